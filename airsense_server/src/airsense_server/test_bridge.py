from airsense_core.config.environments import Settings
from airsense_core.domain.models import Device
from airsense_core.utils.mocks import FakeChannel, StubUoW
from fastapi.testclient import TestClient

from airsense_server.adapters.api.main import create_app
from airsense_server.bridge import build_bridge

UOW = StubUoW(devices=[Device(device_id="d1", user_id="u1", name="Kitchen")])


def make_bridge():
    settings = Settings(MQTT_TOPIC_PREFIX="test/airsense", SWEEP_INTERVAL_SEC=0.01)
    return build_bridge(settings, uow_factory=lambda: UOW, channel=FakeChannel(), with_subscriber=False)


def test_bridge_wires_one_store():
    bridge = make_bridge()

    assert bridge.correlator.store is bridge.store
    assert bridge.sweeper.store is bridge.store
    assert bridge.matcher.correlator is bridge.correlator
    assert bridge.router.topics.prefix == "test/airsense"
    assert bridge.subscriber is None


def test_response_over_router_is_visible_to_api():
    with TestClient(create_app(make_bridge)) as client:
        bridge = client.app.state.bridge
        command_id = client.post(
            "/devices/d1/commands", json={"action": "calibrate"}, headers={"X-User-ID": "u1"}
        ).json()["commandID"]

        bridge.router.route(
            f"test/airsense/devices/d1/commands/{command_id}/response",
            b'{"status": "success", "result": {"offset": 1}}',
        )

        assert client.get(f"/commands/{command_id}", headers={"X-User-ID": "u1"}).json()["status"] == "success"

    assert not bridge.sweeper.is_alive()

import threading

import pytest

from airsense_core.application.command_store import CommandStore
from airsense_core.application.correlator import CommandCorrelator
from airsense_core.application.sweeper import ExpirySweeper
from airsense_core.domain.errors import (
    CommandNotFoundError,
    DeviceNotFoundError,
    ValidationError,
)
from airsense_core.domain.models import (
    REASON_DISPATCH_FAILED,
    REASON_TIMEOUT,
    CommandStatus,
    Device,
)

from airsense_core.utils.mocks import FakeChannel, StubUoW


def test_dispatch_returns_fresh_pending_command(correlator, channel):
    first = correlator.dispatch("d1", "calibrate", {"targetSensor": "co2"})
    second = correlator.dispatch("d1", "calibrate", {"targetSensor": "co2"})

    assert first.status is CommandStatus.PENDING
    assert first.command_id != second.command_id
    assert correlator.get(first.command_id).status is CommandStatus.PENDING
    assert [c.command_id for c in channel.published] == [first.command_id, second.command_id]
    assert channel.published[0].action == "calibrate"
    assert channel.published[0].params == {"targetSensor": "co2"}


def test_dispatch_checks_ownership(correlator, channel):
    assert correlator.dispatch("d1", "reboot", user_id="u1").device_id == "d1"

    with pytest.raises(DeviceNotFoundError):
        correlator.dispatch("d2", "reboot", user_id="u1")
    with pytest.raises(DeviceNotFoundError):
        correlator.dispatch("nope", "reboot")
    assert len(channel.published) == 1


def test_dispatch_requires_action(correlator):
    with pytest.raises(ValidationError):
        correlator.dispatch("d1", "  ")


def test_get_hides_commands_for_devices_the_user_does_not_own(correlator):
    cmd = correlator.dispatch("d1", "calibrate", user_id="u1")

    assert correlator.get(cmd.command_id, user_id="u1").command_id == cmd.command_id
    with pytest.raises(CommandNotFoundError):
        correlator.get(cmd.command_id, user_id="u2")


def test_dispatch_failure_is_immediate_error(store, uow):
    correlator = CommandCorrelator(store, FakeChannel(fail_with="broker down"), lambda: uow)

    cmd = correlator.dispatch("d1", "reboot")

    assert cmd.status is CommandStatus.ERROR
    assert cmd.reason == REASON_DISPATCH_FAILED
    assert cmd.result == {"detail": "broker down"}
    assert store.get(cmd.command_id).status is CommandStatus.ERROR
    assert store.list_expired(store.now() + 3600) == []


def test_resolve_success(correlator):
    cmd = correlator.dispatch("d1", "calibrate")

    done = correlator.resolve(cmd.command_id, CommandStatus.SUCCESS, {"offset": 3})

    assert done.status is CommandStatus.SUCCESS
    assert correlator.get(cmd.command_id).result == {"offset": 3}


def test_duplicate_response_changes_status_once(correlator):
    cmd = correlator.dispatch("d1", "calibrate")

    assert correlator.resolve(cmd.command_id, "success", {"n": 1}) is not None
    assert correlator.resolve(cmd.command_id, "error", {"n": 2}) is None

    final = correlator.get(cmd.command_id)
    assert final.status is CommandStatus.SUCCESS
    assert final.result == {"n": 1}


def test_late_response_after_timeout_is_discarded(correlator, store, clock):
    cmd = correlator.dispatch("d1", "calibrate")
    clock.advance(31)
    ExpirySweeper(store).sweep_once()

    assert correlator.resolve(cmd.command_id, CommandStatus.SUCCESS, {"late": True}) is None

    final = correlator.get(cmd.command_id)
    assert final.status is CommandStatus.ERROR
    assert final.reason == REASON_TIMEOUT
    assert final.result is None


def test_response_from_other_device_is_discarded(correlator):
    cmd = correlator.dispatch("d1", "calibrate")

    assert correlator.resolve(cmd.command_id, "success", device_id="d2") is None
    assert correlator.get(cmd.command_id).status is CommandStatus.PENDING


def test_response_for_unknown_command_is_discarded(correlator):
    assert correlator.resolve("never-issued", CommandStatus.SUCCESS) is None


def test_response_must_be_terminal(correlator):
    cmd = correlator.dispatch("d1", "calibrate")
    with pytest.raises(ValidationError):
        correlator.resolve(cmd.command_id, CommandStatus.PENDING)


def test_resolve_races_sweep_with_single_outcome():
    uow = StubUoW(devices=[Device(device_id="d1", user_id="u1", name="n")])
    for _ in range(50):
        clock_now = [0.0]
        store = CommandStore(clock=lambda: clock_now[0])
        correlator = CommandCorrelator(store, FakeChannel(), lambda: uow, command_ttl=1.0)
        sweeper = ExpirySweeper(store)
        cmd = correlator.dispatch("d1", "ping")
        clock_now[0] = 2.0

        barrier = threading.Barrier(2)
        outcome = {}

        def respond():
            barrier.wait()
            outcome["resolved"] = correlator.resolve(cmd.command_id, "success")

        def sweep():
            barrier.wait()
            outcome["expired"] = sweeper.sweep_once().expired

        threads = [threading.Thread(target=respond), threading.Thread(target=sweep)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        final = store.get(cmd.command_id)
        if outcome["resolved"] is not None:
            assert outcome["expired"] == 0
            assert final.status is CommandStatus.SUCCESS
        else:
            assert outcome["expired"] == 1
            assert final.status is CommandStatus.ERROR
            assert final.reason == REASON_TIMEOUT

import pytest

from airsense_core.application.command_store import CommandStore
from airsense_core.application.correlator import CommandCorrelator
from airsense_core.domain.models import Device
from airsense_core.utils.mocks import FakeChannel, FakeClock, StubUoW


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store(clock):
    return CommandStore(clock=clock)


@pytest.fixture()
def uow():
    return StubUoW(
        devices=[
            Device(device_id="d1", user_id="u1", name="Kitchen", location="home"),
            Device(device_id="d2", user_id="u2", name="Office", location="work"),
        ]
    )


@pytest.fixture()
def channel():
    return FakeChannel()


@pytest.fixture()
def correlator(store, channel, uow):
    return CommandCorrelator(store, channel, lambda: uow, command_ttl=30.0)

from typing import Callable, List, Optional

from airsense_core.domain.errors import DispatchError
from airsense_core.domain.models import Command, Device, SensorReading


class FakeClock:
    """Manually advanced clock, callable like time.time."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDeviceRepo:
    def __init__(self, devices=()):
        self.devices = {d.device_id: d for d in devices}

    def find(self, device_id: str) -> Optional[Device]:
        return self.devices.get(device_id)

    def add(self, device: Device) -> None:
        self.devices[device.device_id] = device


class FakeReadingRepo:
    def __init__(self):
        self.inserted: List[SensorReading] = []

    def insert(self, reading: SensorReading) -> None:
        self.inserted.append(reading)

    def get_readings_for_device(self, device_id, start_ts, end_ts, limit=500):
        return [
            r
            for r in self.inserted
            if r.device_id == device_id
            and (start_ts is None or r.ts >= start_ts)
            and (end_ts is None or r.ts <= end_ts)
        ][:limit]


class StubUoW:
    def __init__(self, devices=()):
        self.device_repo_ = FakeDeviceRepo(devices)
        self.reading_repo_ = FakeReadingRepo()

    def device_repo(self):
        return self.device_repo_

    def reading_repo(self):
        return self.reading_repo_

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        pass


class FakeChannel:
    """Records published commands; raises DispatchError when *fail_with* is set."""

    def __init__(self, fail_with: Optional[str] = None):
        self.fail_with = fail_with
        self.published: List[Command] = []
        self.on_publish: Optional[Callable[[Command], None]] = None

    def publish_command(self, command: Command) -> None:
        if self.fail_with:
            raise DispatchError(self.fail_with)
        self.published.append(command)
        if self.on_publish is not None:
            self.on_publish(command)

from typing import List, Optional, Protocol

from airsense_core.domain.models import Command, Device, SensorReading


class ReadingRepository(Protocol):
    def insert(self, reading: SensorReading) -> None: ...

    def get_readings_for_device(
        self,
        device_id: str,
        start_ts: Optional[float],
        end_ts: Optional[float],
        limit: int = 500,
    ) -> List[SensorReading]: ...


class DeviceRepository(Protocol):
    def find(self, device_id: str) -> Optional[Device]: ...

    def add(self, device: Device) -> None: ...


class UnitOfWork(Protocol):
    def reading_repo(self) -> ReadingRepository: ...

    def device_repo(self) -> DeviceRepository: ...

    def __enter__(self) -> "UnitOfWork": ...

    def __exit__(self, exc_type, exc_val, exc_tb) -> None: ...


class DeviceChannel(Protocol):
    """Backend-to-device command publishing. Raises DispatchError on failure."""

    def publish_command(self, command: Command) -> None: ...

from typing import List, Optional

from airsense_core.domain.models import Device, Measurement, SensorReading
from airsense_core.domain.ports import DeviceRepository, ReadingRepository
from sqlalchemy import select
from sqlalchemy.orm import Session

from airsense_server.adapters.db.sqlalchemy_models import DeviceORM, SensorReadingORM


class SqlReadingRepository(ReadingRepository):
    def __init__(self, session: Session):
        self.session = session

    # READ side
    def get_readings_for_device(
        self,
        device_id: str,
        start_ts: Optional[float],
        end_ts: Optional[float],
        limit: int = 500,
    ) -> List[SensorReading]:
        stmt = select(SensorReadingORM).where(SensorReadingORM.device_id == device_id)
        if start_ts is not None:
            stmt = stmt.where(SensorReadingORM.ts >= start_ts)
        if end_ts is not None:
            stmt = stmt.where(SensorReadingORM.ts <= end_ts)
        stmt = stmt.order_by(SensorReadingORM.ts.asc()).limit(limit)
        return [self._to_domain(r) for r in self.session.scalars(stmt).all()]

    # WRITE side, append only
    def insert(self, reading: SensorReading) -> None:
        row = SensorReadingORM()
        row.id = reading.reading_id
        row.device_id = reading.device_id
        row.ts = reading.ts
        row.sensors = reading.sensors_as_dict()
        self.session.add(row)

    # helper
    @staticmethod
    def _to_domain(row: SensorReadingORM) -> SensorReading:
        return SensorReading(
            reading_id=row.id,
            device_id=row.device_id,
            ts=row.ts,
            sensors={
                kind: Measurement(value=m["value"], unit=m["unit"])
                for kind, m in row.sensors.items()
            },
        )


class SqlDeviceRepository(DeviceRepository):
    def __init__(self, session: Session):
        self.session = session

    def find(self, device_id: str) -> Optional[Device]:
        row = self.session.get(DeviceORM, device_id)
        if row is None:
            return None
        return Device(
            device_id=row.id,
            user_id=row.user_id,
            name=row.name,
            location=row.location,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def add(self, device: Device) -> None:
        row = DeviceORM()
        row.id = device.device_id
        row.user_id = device.user_id
        row.name = device.name
        row.location = device.location
        row.created_at = device.created_at
        row.updated_at = device.updated_at
        self.session.add(row)

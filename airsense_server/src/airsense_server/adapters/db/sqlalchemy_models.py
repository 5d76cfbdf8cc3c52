__all__ = ["Base", "DeviceORM", "SensorReadingORM"]

from typing import Any

from sqlalchemy import JSON, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from airsense_server.adapters.db.session import Base


class DeviceORM(Base):
    __tablename__ = "devices"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    location: Mapped[str] = mapped_column(String, nullable=False, default="")
    created_at: Mapped[float] = mapped_column(Float, nullable=False)
    updated_at: Mapped[float] = mapped_column(Float, nullable=False)


class SensorReadingORM(Base):
    __tablename__ = "sensor_readings"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    device_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    ts: Mapped[float] = mapped_column(Float, index=True, nullable=False)
    # {kind: {"value": float, "unit": str}}
    sensors: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

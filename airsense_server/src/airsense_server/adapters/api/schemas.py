# airsense_server/adapters/api/schemas.py

from typing import Any, Dict, Optional

from airsense_core.domain.models import Command, SensorReading
from pydantic import BaseModel, ConfigDict, Field


class CommandIn(BaseModel):
    action: str = Field(..., min_length=1, description="Action name understood by the device")
    params: Dict[str, Any] = Field(default_factory=dict)


class CommandAccepted(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    command_id: str = Field(..., alias="commandID")
    status: str
    reason: Optional[str] = None


class CommandOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    command_id: str = Field(..., alias="commandID")
    device_id: str = Field(..., alias="deviceID")
    action: str
    params: Dict[str, Any]
    status: str
    result: Any = None
    reason: Optional[str] = None
    created_at: float = Field(..., alias="createdAt")
    updated_at: float = Field(..., alias="updatedAt")

    @classmethod
    def from_domain(cls, command: Command) -> "CommandOut":
        return cls(
            command_id=command.command_id,
            device_id=command.device_id,
            action=command.action,
            params=command.params,
            status=command.status.value,
            result=command.result,
            reason=command.reason,
            created_at=command.created_at,
            updated_at=command.updated_at,
        )


class MeasurementOut(BaseModel):
    value: float
    unit: str


class ReadingOut(BaseModel):
    id: str
    device_id: str
    timestamp: float
    sensors: Dict[str, MeasurementOut]

    @classmethod
    def from_domain(cls, reading: SensorReading) -> "ReadingOut":
        return cls(
            id=reading.reading_id,
            device_id=reading.device_id,
            timestamp=reading.ts,
            sensors={
                k: MeasurementOut(value=m.value, unit=m.unit) for k, m in reading.sensors.items()
            },
        )


class ReadingCreated(BaseModel):
    id: str

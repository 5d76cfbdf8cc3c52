import copy
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

MEASUREMENT_KINDS = ("pm25", "co2", "co", "temperature", "humidity")

REASON_TIMEOUT = "timeout"
REASON_DISPATCH_FAILED = "dispatch_failed"


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Device:
    device_id: str
    user_id: str
    name: str
    location: str = ""
    created_at: float = 0.0
    updated_at: float = 0.0


@dataclass(frozen=True)
class Measurement:
    value: float
    unit: str


@dataclass
class SensorReading:
    reading_id: str
    device_id: str
    ts: float  # capture time reported by the device
    sensors: Dict[str, Measurement] = field(default_factory=dict)

    def sensors_as_dict(self) -> Dict[str, Dict[str, Any]]:
        return {k: {"value": m.value, "unit": m.unit} for k, m in self.sensors.items()}


class CommandStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not CommandStatus.PENDING


@dataclass(frozen=True)
class Command:
    command_id: str
    device_id: str
    action: str
    params: Dict[str, Any]
    status: CommandStatus
    created_at: float
    updated_at: float
    deadline: float
    result: Any = None
    reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def snapshot(self) -> "Command":
        """Detached copy; nested params/result are not shared with the original."""
        return replace(self, params=copy.deepcopy(self.params), result=copy.deepcopy(self.result))

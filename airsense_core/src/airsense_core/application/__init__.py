from .command_store import CommandStore
from .correlator import CommandCorrelator
from .ingest_reading import TelemetryValidator, ingest_reading
from .manage_devices import add_device, require_device
from .query_readings import get_readings_for_device
from .response_matcher import ResponseMatcher
from .sweeper import ExpirySweeper

__all__ = [
    "CommandStore",
    "CommandCorrelator",
    "TelemetryValidator",
    "ingest_reading",
    "add_device",
    "require_device",
    "get_readings_for_device",
    "ResponseMatcher",
    "ExpirySweeper",
]

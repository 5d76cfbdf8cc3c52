import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from airsense_core.domain.errors import ValidationError
from airsense_core.domain.models import Measurement, SensorReading, new_id
from airsense_core.domain.ports import UnitOfWork

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MeasurementSpec:
    min_value: float
    max_value: float
    units: Optional[Tuple[str, ...]] = None  # None accepts any unit label


DEFAULT_MEASUREMENT_SPECS: Dict[str, MeasurementSpec] = {
    "pm25": MeasurementSpec(0.0, 1000.0, ("μg/m³", "µg/m³", "ug/m3")),
    "co2": MeasurementSpec(0.0, 40000.0, ("ppm",)),
    "co": MeasurementSpec(0.0, 1000.0, ("ppm",)),
    "temperature": MeasurementSpec(-40.0, 85.0, ("°C", "C")),
    "humidity": MeasurementSpec(0.0, 100.0, ("%", "%RH")),
}


def _parse_timestamp(raw: Any) -> float:
    if raw is None or isinstance(raw, bool):
        raise ValidationError("timestamp is missing")
    if isinstance(raw, (int, float)):
        try:
            ts = float(raw)
        except OverflowError as exc:
            raise ValidationError("timestamp is not finite") from exc
    elif isinstance(raw, str) and raw.strip():
        try:
            dt = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(f"timestamp {raw!r} is not ISO-8601") from exc
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        try:
            ts = dt.timestamp()
        except (OverflowError, ValueError) as exc:
            raise ValidationError(f"timestamp {raw!r} is out of range") from exc
    else:
        raise ValidationError("timestamp is not parseable")
    # readings predating the Unix epoch are never genuine
    if not math.isfinite(ts) or ts <= 0:
        raise ValidationError(f"timestamp {ts} is not a valid epoch time")
    return ts


class TelemetryValidator:
    """
    Turns a raw telemetry payload into a SensorReading.

    Expected shape::

        {"timestamp": "2025-10-30T08:00:00Z",
         "deviceID": "d1",
         "sensors": {"pm25": {"value": 25.5, "unit": "μg/m³"}, ...}}

    Unknown measurement kinds are dropped with a warning so newer firmware
    can add sensors without breaking ingestion. Everything else that is wrong
    raises ValidationError and nothing is produced.
    """

    def __init__(self, specs: Optional[Mapping[str, MeasurementSpec]] = None):
        self.specs: Dict[str, MeasurementSpec] = dict(
            DEFAULT_MEASUREMENT_SPECS if specs is None else specs
        )

    def validate(
        self, raw: Mapping[str, Any], expected_device_id: Optional[str] = None
    ) -> SensorReading:
        if not isinstance(raw, Mapping):
            raise ValidationError("telemetry payload must be an object")

        device_id = raw.get("deviceID", raw.get("device_id"))
        if not isinstance(device_id, str) or not device_id.strip():
            raise ValidationError("deviceID is missing or empty")
        device_id = device_id.strip()
        if expected_device_id is not None and device_id != expected_device_id:
            raise ValidationError(
                f"deviceID {device_id!r} does not match channel device {expected_device_id!r}"
            )

        ts = _parse_timestamp(raw.get("timestamp"))

        sensors = raw.get("sensors")
        if not isinstance(sensors, Mapping) or not sensors:
            raise ValidationError("sensors must be a non-empty object")

        measurements: Dict[str, Measurement] = {}
        for kind, entry in sensors.items():
            spec = self.specs.get(kind)
            if spec is None:
                log.warning("Dropping unknown measurement kind %r from device %s", kind, device_id)
                continue
            measurements[kind] = self._measurement(kind, entry, spec)

        if not measurements:
            raise ValidationError("no known measurements in payload")

        return SensorReading(reading_id=new_id(), device_id=device_id, ts=ts, sensors=measurements)

    @staticmethod
    def _measurement(kind: str, entry: Any, spec: MeasurementSpec) -> Measurement:
        if not isinstance(entry, Mapping):
            raise ValidationError(f"{kind}: expected an object with value and unit")

        value = entry.get("value")
        # bool is an int subclass, but true/false is never a reading
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{kind}: value {value!r} is not a number")
        try:
            value = float(value)
        except OverflowError as exc:
            raise ValidationError(f"{kind}: value is not finite") from exc
        if not math.isfinite(value):
            raise ValidationError(f"{kind}: value is not finite")
        if not spec.min_value <= value <= spec.max_value:
            raise ValidationError(
                f"{kind}: value {value} outside [{spec.min_value}, {spec.max_value}]"
            )

        unit = entry.get("unit")
        if not isinstance(unit, str) or not unit:
            raise ValidationError(f"{kind}: unit is missing")
        if spec.units is not None and unit not in spec.units:
            raise ValidationError(f"{kind}: unit {unit!r} not one of {list(spec.units)}")

        return Measurement(value=value, unit=unit)


def ingest_reading(
    raw: Mapping[str, Any],
    uow: UnitOfWork,
    validator: Optional[TelemetryValidator] = None,
    expected_device_id: Optional[str] = None,
) -> SensorReading:
    """Validate *raw* and append it to the time series. Raises ValidationError."""
    reading = (validator or TelemetryValidator()).validate(raw, expected_device_id)
    with uow:
        uow.reading_repo().insert(reading)
    return reading

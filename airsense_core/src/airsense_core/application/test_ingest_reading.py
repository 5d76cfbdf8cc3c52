import math

import pytest

from airsense_core.application.ingest_reading import (
    MeasurementSpec,
    TelemetryValidator,
    ingest_reading,
)
from airsense_core.domain.errors import ValidationError

T = "2025-10-30T08:00:00Z"


def payload(**sensors):
    return {"timestamp": T, "deviceID": "d1", "sensors": sensors}


def test_out_of_range_humidity_is_rejected_and_not_persisted(uow):
    raw = payload(humidity={"value": 250, "unit": "%"})

    with pytest.raises(ValidationError):
        ingest_reading(raw, uow)

    assert uow.reading_repo().inserted == []


def test_valid_reading_keeps_values_and_units(uow):
    raw = payload(
        pm25={"value": 25.5, "unit": "μg/m³"},
        co2={"value": 450, "unit": "ppm"},
    )

    reading = ingest_reading(raw, uow)

    assert uow.reading_repo().inserted == [reading]
    assert reading.device_id == "d1"
    assert reading.sensors["pm25"].value == 25.5
    assert reading.sensors["pm25"].unit == "μg/m³"
    assert reading.sensors["co2"].value == 450.0
    assert isinstance(reading.sensors["co2"].value, float)
    assert reading.sensors["co2"].unit == "ppm"


def test_timestamp_is_device_supplied():
    reading = TelemetryValidator().validate(payload(co={"value": 1, "unit": "ppm"}))
    assert reading.ts == 1761811200.0


def test_numeric_timestamp_is_accepted():
    raw = payload(co={"value": 1, "unit": "ppm"})
    raw["timestamp"] = 1761811200
    assert TelemetryValidator().validate(raw).ts == 1761811200.0


@pytest.mark.parametrize(
    "timestamp",
    [0, -5, 10**400, math.inf, "1969-12-31T23:59:59Z", "0001-01-01T00:00:00+01:00"],
)
def test_timestamps_outside_epoch_range_are_rejected(timestamp):
    raw = payload(co={"value": 1, "unit": "ppm"})
    raw["timestamp"] = timestamp
    with pytest.raises(ValidationError, match="timestamp"):
        TelemetryValidator().validate(raw)


@pytest.mark.parametrize(
    "raw, message",
    [
        ({"timestamp": T, "sensors": {"co": {"value": 1, "unit": "ppm"}}}, "deviceID"),
        ({"timestamp": T, "deviceID": "  ", "sensors": {"co": {"value": 1, "unit": "ppm"}}}, "deviceID"),
        ({"deviceID": "d1", "sensors": {"co": {"value": 1, "unit": "ppm"}}}, "timestamp"),
        ({"timestamp": "yesterday", "deviceID": "d1", "sensors": {"co": {"value": 1, "unit": "ppm"}}}, "timestamp"),
        ({"timestamp": T, "deviceID": "d1", "sensors": {}}, "sensors"),
        ({"timestamp": T, "deviceID": "d1"}, "sensors"),
    ],
)
def test_structural_problems_are_rejected(raw, message):
    with pytest.raises(ValidationError, match=message):
        TelemetryValidator().validate(raw)


@pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf, 10**400, "12", True, None])
def test_non_finite_or_non_numeric_values_are_rejected(value):
    with pytest.raises(ValidationError, match="co2"):
        TelemetryValidator().validate(payload(co2={"value": value, "unit": "ppm"}))


def test_inconsistent_unit_is_rejected():
    with pytest.raises(ValidationError, match="unit"):
        TelemetryValidator().validate(payload(temperature={"value": 70, "unit": "°F"}))


def test_unknown_kind_is_dropped_with_warning(caplog):
    raw = payload(pm25={"value": 10, "unit": "μg/m³"}, voc={"value": 3, "unit": "ppb"})

    reading = TelemetryValidator().validate(raw)

    assert set(reading.sensors) == {"pm25"}
    assert "voc" in caplog.text


def test_only_unknown_kinds_is_rejected():
    with pytest.raises(ValidationError, match="no known measurements"):
        TelemetryValidator().validate(payload(voc={"value": 3, "unit": "ppb"}))


def test_device_mismatch_with_channel_is_rejected():
    with pytest.raises(ValidationError, match="does not match"):
        TelemetryValidator().validate(
            payload(co={"value": 1, "unit": "ppm"}), expected_device_id="d2"
        )


def test_custom_ranges():
    validator = TelemetryValidator({"co2": MeasurementSpec(400, 2000)})

    assert validator.validate(payload(co2={"value": 800, "unit": "anything"}))
    with pytest.raises(ValidationError):
        validator.validate(payload(co2={"value": 300, "unit": "ppm"}))

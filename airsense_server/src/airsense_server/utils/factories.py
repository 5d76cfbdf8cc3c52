from datetime import datetime, timezone

import factory
from airsense_core.domain.models import Device, Measurement, SensorReading


class UTCFloatTimestamp(factory.Factory):
    class Meta:
        model = float

    @classmethod
    def _create(cls, *_, **__):
        return datetime.now(tz=timezone.utc).timestamp()


class DeviceFactory(factory.Factory):
    class Meta:
        model = Device

    device_id = factory.Sequence(lambda n: f"device-{n}")
    user_id = "user-1"
    name = factory.LazyAttribute(lambda o: f"Sensor {o.device_id}")
    location = "living room"
    created_at = UTCFloatTimestamp()
    updated_at = factory.SelfAttribute("created_at")


class SensorReadingFactory(factory.Factory):
    class Meta:
        model = SensorReading

    reading_id = factory.Faker("uuid4")
    device_id = factory.Sequence(lambda n: f"device-{n}")
    ts = UTCFloatTimestamp()
    sensors = factory.LazyFunction(
        lambda: {
            "pm25": Measurement(value=12.5, unit="μg/m³"),
            "co2": Measurement(value=450.0, unit="ppm"),
        }
    )


def telemetry_payload(device_id: str = "d1", **sensors) -> dict:
    """Raw device telemetry as it arrives on the wire."""
    return {
        "timestamp": "2025-10-30T08:00:00Z",
        "deviceID": device_id,
        "sensors": sensors or {"pm25": {"value": 25.5, "unit": "μg/m³"}},
    }

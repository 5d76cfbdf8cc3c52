from typing import List, Optional

from airsense_core.application.manage_devices import require_device
from airsense_core.domain.models import SensorReading
from airsense_core.domain.ports import UnitOfWork


def get_readings_for_device(
    device_id: str,
    start_ts: Optional[float],
    end_ts: Optional[float],
    user_id: Optional[str],
    uow: UnitOfWork,
    limit: int = 500,
) -> List[SensorReading]:
    require_device(device_id, user_id, uow)
    with uow:
        return uow.reading_repo().get_readings_for_device(
            device_id=device_id,
            start_ts=start_ts,
            end_ts=end_ts,
            limit=limit,
        )

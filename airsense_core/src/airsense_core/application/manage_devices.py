import time
from typing import Optional

from airsense_core.domain.errors import DeviceNotFoundError
from airsense_core.domain.models import Device
from airsense_core.domain.ports import UnitOfWork


def require_device(device_id: str, user_id: Optional[str], uow: UnitOfWork) -> Device:
    """
    Look up *device_id* and check it belongs to *user_id*.

    A device owned by someone else is reported exactly like a missing one so
    callers cannot probe for other users' device ids. ``user_id=None`` skips
    the ownership check.
    """
    with uow:
        device = uow.device_repo().find(device_id)
    if device is None or (user_id is not None and device.user_id != user_id):
        raise DeviceNotFoundError(device_id)
    return device


def add_device(
    device_id: str,
    user_id: str,
    name: str,
    location: str,
    uow: UnitOfWork,
) -> Device:
    now = time.time()
    device = Device(
        device_id=device_id,
        user_id=user_id,
        name=name,
        location=location,
        created_at=now,
        updated_at=now,
    )
    with uow:
        uow.device_repo().add(device)
    return device

# airsense_server/adapters/api/routes.py

from typing import Any, Dict, Optional

from airsense_core.application import (
    CommandCorrelator,
    get_readings_for_device,
    ingest_reading,
)
from airsense_core.domain.errors import NotFoundError, ValidationError
from airsense_core.domain.models import CommandStatus
from fastapi import APIRouter, Body, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from airsense_server.adapters.api.schemas import (
    CommandAccepted,
    CommandIn,
    CommandOut,
    ReadingCreated,
    ReadingOut,
)
from airsense_server.adapters.db.uow import SqlAlchemyUoW

router = APIRouter()


def get_uow():
    with SqlAlchemyUoW() as uow:
        yield uow


def get_correlator(request: Request) -> CommandCorrelator:
    return request.app.state.bridge.correlator


def get_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    # set by the authentication middleware in front of this service
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-ID header is required")
    return x_user_id.strip()


@router.get("/ping")
def ping():
    return {"status": "ok"}


@router.post("/devices/{device_id}/commands", status_code=202, response_model=CommandAccepted)
def submit_command(
    device_id: str,
    req: CommandIn,
    correlator: CommandCorrelator = Depends(get_correlator),
    user_id: str = Depends(get_user_id),
):
    try:
        command = correlator.dispatch(device_id, req.action, req.params, user_id=user_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    body = CommandAccepted(command_id=command.command_id, status=command.status.value)
    if command.status is CommandStatus.ERROR:
        body.reason = command.reason
        return JSONResponse(status_code=502, content=body.model_dump(by_alias=True))
    return body


@router.get("/commands/{command_id}", response_model=CommandOut, response_model_by_alias=True)
def get_command(
    command_id: str,
    correlator: CommandCorrelator = Depends(get_correlator),
    user_id: str = Depends(get_user_id),
):
    try:
        command = correlator.get(command_id, user_id=user_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return CommandOut.from_domain(command)


@router.post("/telemetry", status_code=201, response_model=ReadingCreated)
def ingest_telemetry(
    payload: Dict[str, Any] = Body(...),
    uow: SqlAlchemyUoW = Depends(get_uow),
):
    try:
        reading = ingest_reading(payload, uow)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return ReadingCreated(id=reading.reading_id)


@router.get("/devices/{device_id}/readings", response_model=list[ReadingOut])
def readings(
    device_id: str,
    start_ts: Optional[float] = None,
    end_ts: Optional[float] = None,
    limit: int = 500,
    uow: SqlAlchemyUoW = Depends(get_uow),
    user_id: str = Depends(get_user_id),
):
    try:
        results = get_readings_for_device(
            device_id=device_id,
            start_ts=start_ts,
            end_ts=end_ts,
            user_id=user_id,
            uow=uow,
            limit=limit,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return [ReadingOut.from_domain(r) for r in results]

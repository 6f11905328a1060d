"""HTTP route definitions for the write-back API."""

from __future__ import annotations

from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from app.runtime import LiveState, get_live_state
from app.schemas import (
    AttendanceEntry,
    AttendanceRequest,
    AttendanceResponse,
    BusCheck,
    CheckBusRequest,
    CheckBusResponse,
    ErrorResponse,
    HealthResponse,
)
from services.errors import StorageError, StorageUnavailable, TransitError, ValidationError
from services.writeback import WriteBackService

router = APIRouter(prefix="/api")

_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
}


def get_writeback(live: LiveState = Depends(get_live_state)) -> WriteBackService:
    return live.writeback


def _raise_http_error(exc: TransitError) -> NoReturn:
    if isinstance(exc, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, StorageUnavailable):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    raise HTTPException(status_code=code, detail=str(exc)) from exc


@router.post(
    "/checkBus",
    response_model=CheckBusResponse,
    responses=_ERROR_RESPONSES,
    summary="Record today's ticket check for a bus.",
)
async def check_bus(
    payload: CheckBusRequest,
    writeback: WriteBackService = Depends(get_writeback),
) -> CheckBusResponse:
    try:
        result = await writeback.record_check(payload)
    except (ValidationError, StorageUnavailable, StorageError) as exc:
        _raise_http_error(exc)
    return CheckBusResponse(result=result)


@router.post(
    "/recordAttendance",
    response_model=AttendanceResponse,
    responses=_ERROR_RESPONSES,
    summary="Record a conductor's attendance on a bus.",
)
async def record_attendance(
    payload: AttendanceRequest,
    writeback: WriteBackService = Depends(get_writeback),
) -> AttendanceResponse:
    try:
        result = await writeback.record_attendance(payload)
    except (ValidationError, StorageUnavailable, StorageError) as exc:
        _raise_http_error(exc)
    return AttendanceResponse(result=result)


@router.get(
    "/checks",
    response_model=list[BusCheck],
    responses=_ERROR_RESPONSES,
    summary="List stored ticket checks.",
)
async def list_checks(
    writeback: WriteBackService = Depends(get_writeback),
) -> list[BusCheck]:
    try:
        return await writeback.list_checks()
    except (StorageUnavailable, StorageError) as exc:
        _raise_http_error(exc)


@router.get(
    "/attendance",
    response_model=list[AttendanceEntry],
    responses=_ERROR_RESPONSES,
    summary="List attendance records, optionally for one bus.",
)
async def list_attendance(
    bus_no: Optional[str] = None,
    writeback: WriteBackService = Depends(get_writeback),
) -> list[AttendanceEntry]:
    try:
        return await writeback.list_attendance(bus_no)
    except (StorageUnavailable, StorageError) as exc:
        _raise_http_error(exc)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(live: LiveState = Depends(get_live_state)) -> HealthResponse:
    poller = live.poller
    return HealthResponse(
        status="ok",
        vehicle_count=len(live.snapshot.current()),
        snapshot_version=live.snapshot.version,
        snapshot_age_seconds=live.snapshot.age_seconds(),
        connected_viewers=len(live.registry),
        stop_count=len(live.fanout.stops),
        storage_connected=live.store.connected,
        poll_cycles=poller.stats.cycles if poller else 0,
        poll_failures=poller.stats.failures if poller else 0,
    )

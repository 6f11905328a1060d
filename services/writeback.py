"""Validation and dispatch for inspector write-back requests."""

from __future__ import annotations

import logging
from typing import Iterable

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from app.schemas import (
    AttendanceEntry,
    AttendanceRequest,
    AttendanceResult,
    BusCheck,
    CheckBusRequest,
    CheckResult,
)
from datastore.records import RecordStore
from services.errors import ValidationError

logger = logging.getLogger(__name__)

_CHECK_FIELDS = ("bus_no", "route_no", "non_ticket_holders", "fine_collected")
_ATTENDANCE_FIELDS = ("bus_no", "conductor_name")


def require_fields(request: BaseModel, names: Iterable[str]) -> None:
    """Raise ``ValidationError`` naming every absent or blank field."""
    missing: list[str] = []
    for name in names:
        value = getattr(request, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            field = type(request).model_fields[name]
            missing.append(field.alias or name)
    if missing:
        raise ValidationError(missing)


class WriteBackService:
    """Runs blocking store calls off the event loop so polling keeps its cadence."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def record_check(self, request: CheckBusRequest) -> CheckResult:
        require_fields(request, _CHECK_FIELDS)
        bus_no = request.bus_no.strip()  # type: ignore[union-attr]
        write = await run_in_threadpool(
            self.store.record_check,
            bus_no,
            request.route_no.strip(),  # type: ignore[union-attr]
            request.non_ticket_holders,
            request.fine_collected,
        )
        logger.info(
            "Recorded ticket check",
            extra={"bus_no": bus_no, "reason": "created" if write.created else "updated"},
        )
        return CheckResult(upserted=write.created, record=write.record)

    async def record_attendance(self, request: AttendanceRequest) -> AttendanceResult:
        require_fields(request, _ATTENDANCE_FIELDS)
        bus_no = request.bus_no.strip()  # type: ignore[union-attr]
        entry = await run_in_threadpool(
            self.store.record_attendance,
            bus_no,
            request.conductor_name.strip(),  # type: ignore[union-attr]
        )
        logger.info("Recorded attendance", extra={"bus_no": bus_no})
        return AttendanceResult(inserted_id=entry.id, record=entry)

    async def list_checks(self) -> list[BusCheck]:
        return await run_in_threadpool(self.store.list_checks)

    async def list_attendance(self, bus_no: str | None = None) -> list[AttendanceEntry]:
        return await run_in_threadpool(self.store.list_attendance, bus_no)

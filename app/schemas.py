"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire format uses camelCase keys, Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckBusRequest(CamelModel):
    """Ticket-check result submitted by an inspector.

    Every field is optional at parse time so that missing values surface as
    a 400 from the write-back service rather than a schema error.
    """

    bus_no: Optional[str] = None
    route_no: Optional[str] = None
    non_ticket_holders: Optional[int] = Field(default=None, ge=0)
    fine_collected: Optional[float] = Field(default=None, ge=0)


class AttendanceRequest(CamelModel):
    bus_no: Optional[str] = None
    conductor_name: Optional[str] = None


class BusCheck(CamelModel):
    """Stored ticket-check record, one per bus per local calendar day."""

    id: int
    bus_no: str
    route_no: str
    checked: bool = True
    non_ticket_holders: int
    fine_collected: float
    check_date: date
    timestamp: datetime


class AttendanceEntry(CamelModel):
    id: int
    bus_no: str
    conductor_name: str
    timestamp: datetime


class CheckResult(CamelModel):
    upserted: bool = Field(..., description="True when a new record was created for the day.")
    record: BusCheck


class AttendanceResult(CamelModel):
    inserted_id: int
    record: AttendanceEntry


class CheckBusResponse(CamelModel):
    success: bool = True
    result: CheckResult


class AttendanceResponse(CamelModel):
    success: bool = True
    result: AttendanceResult


class ErrorResponse(CamelModel):
    success: bool = False
    error: str


class HealthResponse(CamelModel):
    status: str
    vehicle_count: int
    snapshot_version: int
    snapshot_age_seconds: Optional[float] = None
    connected_viewers: int
    stop_count: int
    storage_connected: bool
    poll_cycles: int
    poll_failures: int

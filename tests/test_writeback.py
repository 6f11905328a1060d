from __future__ import annotations

import asyncio

import pytest

from app.schemas import AttendanceRequest, CheckBusRequest
from datastore.records import RecordStore
from services.errors import StorageUnavailable, ValidationError
from services.writeback import WriteBackService, require_fields


def test_require_fields_reports_wire_names() -> None:
    request = CheckBusRequest(bus_no="DL1PC0001", route_no="", non_ticket_holders=None)

    with pytest.raises(ValidationError) as excinfo:
        require_fields(request, ["bus_no", "route_no", "non_ticket_holders", "fine_collected"])

    assert excinfo.value.missing == ["routeNo", "nonTicketHolders", "fineCollected"]


def test_zero_counts_are_not_missing() -> None:
    request = CheckBusRequest(bus_no="A", route_no="1", non_ticket_holders=0, fine_collected=0.0)

    require_fields(request, ["bus_no", "route_no", "non_ticket_holders", "fine_collected"])


def test_validation_happens_before_storage(tmp_path) -> None:
    service = WriteBackService(RecordStore(f"sqlite:///{tmp_path / 'never.db'}"))

    with pytest.raises(ValidationError):
        asyncio.run(service.record_attendance(AttendanceRequest(bus_no="A")))


def test_unconnected_store_surfaces_unavailable(tmp_path) -> None:
    service = WriteBackService(RecordStore(f"sqlite:///{tmp_path / 'never.db'}"))

    with pytest.raises(StorageUnavailable):
        asyncio.run(
            service.record_attendance(AttendanceRequest(bus_no="A", conductor_name="B"))
        )


def test_record_check_strips_identifiers(tmp_path) -> None:
    store = RecordStore(f"sqlite:///{tmp_path / 'records.db'}")
    store.connect()
    service = WriteBackService(store)

    try:
        result = asyncio.run(
            service.record_check(
                CheckBusRequest(
                    bus_no=" DL1PC0001 ", route_no="534", non_ticket_holders=1, fine_collected=200
                )
            )
        )
    finally:
        store.close()

    assert result.upserted is True
    assert result.record.bus_no == "DL1PC0001"

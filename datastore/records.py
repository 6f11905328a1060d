from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Callable, Iterator, Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine, RowMapping, make_url
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError

from app.schemas import AttendanceEntry, BusCheck
from services.errors import StorageError, StorageUnavailable
from settings import get_settings

logger = logging.getLogger(__name__)

metadata = MetaData()

bus_checks = Table(
    "bus_checks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("bus_no", String(64), nullable=False),
    Column("route_no", String(64), nullable=False),
    Column("checked", Boolean, nullable=False, default=True),
    Column("non_ticket_holders", Integer, nullable=False),
    Column("fine_collected", Float, nullable=False),
    Column("check_date", Date, nullable=False),
    Column("timestamp", DateTime(timezone=True), nullable=False),
    UniqueConstraint("bus_no", "check_date", name="uq_bus_checks_bus_day"),
)

bus_attendance = Table(
    "bus_attendance",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("bus_no", String(64), nullable=False),
    Column("conductor_name", String(128), nullable=False),
    Column("timestamp", DateTime(timezone=True), nullable=False),
)


@dataclass(frozen=True)
class CheckWrite:
    record: BusCheck
    created: bool


def local_day(moment: datetime) -> date:
    """Calendar day of ``moment`` in the server's local timezone."""
    return moment.astimezone().date()


class RecordStore:
    """Durable store for ticket checks and conductor attendance."""

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url
        self._engine: Optional[Engine] = None
        self._write_lock = Lock()

    @property
    def connected(self) -> bool:
        return self._engine is not None

    def connect(
        self,
        attempts: int = 1,
        backoff: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Open the engine and create tables, retrying with a fixed backoff."""
        if self._engine is not None:
            return

        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            engine: Optional[Engine] = None
            try:
                self._ensure_sqlite_directory()
                engine = create_engine(self.database_url, pool_pre_ping=True)
                with engine.begin() as conn:
                    metadata.create_all(conn)
            except (SQLAlchemyError, OSError) as exc:
                last_error = exc
                if engine is not None:
                    engine.dispose()
                logger.warning(
                    "Storage connection failed",
                    extra={"attempt": attempt, "attempts": attempts, "reason": str(exc)},
                )
                if attempt < attempts:
                    sleep(backoff)
                continue

            self._engine = engine
            logger.info("Connected to storage", extra={"attempt": attempt})
            return

        raise StorageUnavailable(
            f"Could not connect to storage after {attempts} attempt(s): {last_error}"
        )

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def record_check(
        self,
        bus_no: str,
        route_no: str,
        non_ticket_holders: int,
        fine_collected: float,
        at: Optional[datetime] = None,
    ) -> CheckWrite:
        """Create or overwrite the check for ``bus_no`` on the current local day."""
        timestamp = at or datetime.now(timezone.utc)
        day = local_day(timestamp)
        values = {
            "route_no": route_no,
            "checked": True,
            "non_ticket_holders": non_ticket_holders,
            "fine_collected": fine_collected,
            "timestamp": timestamp,
        }

        # The select-then-write pair must not interleave across worker threads.
        with self._write_lock, self._begin() as conn:
            existing_id = conn.execute(
                select(bus_checks.c.id).where(
                    bus_checks.c.bus_no == bus_no,
                    bus_checks.c.check_date == day,
                )
            ).scalar_one_or_none()

            if existing_id is None:
                result = conn.execute(
                    insert(bus_checks).values(bus_no=bus_no, check_date=day, **values)
                )
                record_id = result.inserted_primary_key[0]
            else:
                conn.execute(
                    update(bus_checks).where(bus_checks.c.id == existing_id).values(**values)
                )
                record_id = existing_id

            row = conn.execute(
                select(bus_checks).where(bus_checks.c.id == record_id)
            ).mappings().one()

        return CheckWrite(record=_check_from_row(row), created=existing_id is None)

    def record_attendance(
        self,
        bus_no: str,
        conductor_name: str,
        at: Optional[datetime] = None,
    ) -> AttendanceEntry:
        timestamp = at or datetime.now(timezone.utc)
        with self._begin() as conn:
            result = conn.execute(
                insert(bus_attendance).values(
                    bus_no=bus_no,
                    conductor_name=conductor_name,
                    timestamp=timestamp,
                )
            )
            record_id = result.inserted_primary_key[0]
        return AttendanceEntry(
            id=record_id,
            bus_no=bus_no,
            conductor_name=conductor_name,
            timestamp=timestamp,
        )

    def list_checks(self, day: Optional[date] = None) -> list[BusCheck]:
        query = select(bus_checks).order_by(bus_checks.c.check_date, bus_checks.c.bus_no)
        if day is not None:
            query = query.where(bus_checks.c.check_date == day)
        with self._begin() as conn:
            rows = conn.execute(query).mappings().all()
        return [_check_from_row(row) for row in rows]

    def list_attendance(self, bus_no: Optional[str] = None) -> list[AttendanceEntry]:
        query = select(bus_attendance).order_by(bus_attendance.c.id)
        if bus_no is not None:
            query = query.where(bus_attendance.c.bus_no == bus_no)
        with self._begin() as conn:
            rows = conn.execute(query).mappings().all()
        return [AttendanceEntry.model_validate(dict(row)) for row in rows]

    @contextmanager
    def _begin(self) -> Iterator[Connection]:
        if self._engine is None:
            raise StorageUnavailable("Storage is not connected.")
        try:
            with self._engine.begin() as conn:
                yield conn
        except (OperationalError, InterfaceError) as exc:
            raise StorageUnavailable(f"Storage connection lost: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def _ensure_sqlite_directory(self) -> None:
        url = make_url(self.database_url)
        if url.get_backend_name() != "sqlite":
            return
        database = url.database
        if not database or database == ":memory:":
            return
        Path(database).parent.mkdir(parents=True, exist_ok=True)


def _check_from_row(row: RowMapping) -> BusCheck:
    return BusCheck.model_validate(dict(row))


@lru_cache
def build_default_store(database_url: Optional[str] = None) -> RecordStore:
    settings = get_settings()
    url = settings.database_url if database_url is None else database_url
    return RecordStore(url)

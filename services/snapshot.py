"""Single-owner holder for the latest decoded vehicle snapshot."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

from models.records import VehicleObservation


class SnapshotCell:
    """Holds the most recent successfully decoded snapshot.

    ``publish`` swaps the whole tuple in one assignment, so readers on the
    event loop always see either the previous snapshot or the new one.
    """

    def __init__(self, initial: Iterable[VehicleObservation] = ()) -> None:
        self._vehicles: tuple[VehicleObservation, ...] = tuple(initial)
        self._updated_at: Optional[datetime] = None
        self._version = 0

    def publish(self, vehicles: Iterable[VehicleObservation]) -> int:
        self._vehicles = tuple(vehicles)
        self._updated_at = datetime.now(timezone.utc)
        self._version += 1
        return self._version

    def current(self) -> tuple[VehicleObservation, ...]:
        return self._vehicles

    @property
    def updated_at(self) -> Optional[datetime]:
        return self._updated_at

    @property
    def version(self) -> int:
        return self._version

    def age_seconds(self) -> Optional[float]:
        if self._updated_at is None:
            return None
        return (datetime.now(timezone.utc) - self._updated_at).total_seconds()

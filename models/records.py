"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass

UNKNOWN = "Unknown"
"""Placeholder for identifiers the feed leaves blank; consumers expect a string."""

UNKNOWN_STOP = "Unknown Stop"


@dataclass(frozen=True, slots=True)
class VehicleObservation:
    """A single vehicle position decoded from the realtime feed."""

    vehicle_id: str
    route_id: str
    latitude: float
    longitude: float

    def to_wire(self) -> dict[str, object]:
        return {
            "busNo": self.vehicle_id,
            "routeNo": self.route_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


@dataclass(frozen=True, slots=True)
class StopRecord:
    """A named stop location from the static catalog."""

    name: str
    latitude: float
    longitude: float

    def to_wire(self) -> dict[str, object]:
        return {
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


@dataclass(slots=True)
class ClientSession:
    """Zoom state tracked for one connected viewer."""

    client_id: str
    zoom_level: int = 0

"""Per-viewer construction and delivery of ``busUpdate`` events."""

from __future__ import annotations

import logging
from typing import Any, Dict, Protocol, Sequence

from models.records import StopRecord, VehicleObservation
from services.registry import ClientRegistry
from services.snapshot import SnapshotCell

logger = logging.getLogger(__name__)

BUS_UPDATE_EVENT = "busUpdate"
DEFAULT_ZOOM_THRESHOLD = 14


class Emitter(Protocol):
    async def emit(self, event: str, data: Any = None, to: str | None = None) -> None:
        ...


def build_payload(
    vehicles: Sequence[VehicleObservation],
    stops: Sequence[StopRecord],
    zoom: int,
    threshold: int = DEFAULT_ZOOM_THRESHOLD,
) -> Dict[str, Any]:
    """Build the update for one viewer.

    Below ``threshold`` the ``stops`` key is left out entirely; viewers use
    its absence to clear their stop layer.
    """
    payload: Dict[str, Any] = {"buses": [vehicle.to_wire() for vehicle in vehicles]}
    if zoom >= threshold:
        payload["stops"] = [stop.to_wire() for stop in stops]
    return payload


class FanoutEngine:
    """Pushes individualised snapshots to every registered viewer."""

    def __init__(
        self,
        emitter: Emitter,
        registry: ClientRegistry,
        snapshot: SnapshotCell,
        stops: Sequence[StopRecord] = (),
        zoom_threshold: int = DEFAULT_ZOOM_THRESHOLD,
    ) -> None:
        self.emitter = emitter
        self.registry = registry
        self.snapshot = snapshot
        self.stops = tuple(stops)
        self.zoom_threshold = zoom_threshold

    def payload_for(self, client_id: str) -> Dict[str, Any]:
        return build_payload(
            self.snapshot.current(),
            self.stops,
            self.registry.zoom_for(client_id),
            self.zoom_threshold,
        )

    async def push(self, client_id: str) -> bool:
        """Send the current snapshot to one viewer; False if delivery failed."""
        payload = self.payload_for(client_id)
        try:
            await self.emitter.emit(BUS_UPDATE_EVENT, payload, to=client_id)
        except Exception as exc:  # noqa: BLE001 - one viewer must not stop the rest
            logger.warning(
                "Failed to push update",
                extra={"client_id": client_id, "reason": str(exc)},
            )
            return False
        return True

    async def broadcast(self) -> int:
        """Push to every viewer connected right now; returns deliveries made."""
        delivered = 0
        for client_id in self.registry.client_ids():
            if client_id not in self.registry:
                continue
            if await self.push(client_id):
                delivered += 1
        return delivered

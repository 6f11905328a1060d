"""In-memory tracking of connected viewers and their zoom levels."""

from __future__ import annotations

import math
from typing import Dict, Optional

from models.records import ClientSession


def coerce_zoom(value: object) -> int:
    """Normalise a zoom value received from a viewer.

    Integers, finite floats and numeric strings are accepted and rounded
    down; anything else raises ``ValueError``.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid zoom level: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Invalid zoom level: {value!r}")
        return math.floor(value)
    if isinstance(value, str):
        try:
            return coerce_zoom(float(value.strip()))
        except ValueError as exc:
            raise ValueError(f"Invalid zoom level: {value!r}") from exc
    raise ValueError(f"Invalid zoom level: {value!r}")


class ClientRegistry:
    """Maps connection ids to the viewer's last reported zoom level."""

    def __init__(self) -> None:
        self._sessions: Dict[str, ClientSession] = {}

    def register(self, client_id: str) -> ClientSession:
        session = self._sessions.get(client_id)
        if session is None:
            session = ClientSession(client_id=client_id)
            self._sessions[client_id] = session
        return session

    def update_zoom(self, client_id: str, zoom: int) -> ClientSession:
        session = self.register(client_id)
        session.zoom_level = zoom
        return session

    def unregister(self, client_id: str) -> None:
        self._sessions.pop(client_id, None)

    def get(self, client_id: str) -> Optional[ClientSession]:
        return self._sessions.get(client_id)

    def zoom_for(self, client_id: str) -> int:
        session = self._sessions.get(client_id)
        return session.zoom_level if session is not None else 0

    def client_ids(self) -> list[str]:
        return list(self._sessions)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

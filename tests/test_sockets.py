from __future__ import annotations

import asyncio
from typing import Any

import socketio

from app.sockets import ZOOM_LEVEL_EVENT, ViewerEvents
from models.records import StopRecord, VehicleObservation
from services.fanout import FanoutEngine
from services.registry import ClientRegistry
from services.snapshot import SnapshotCell


class RecordingEmitter:
    def __init__(self) -> None:
        self.sent: list[tuple[str, Any, str | None]] = []

    async def emit(self, event: str, data: Any = None, to: str | None = None) -> None:
        self.sent.append((event, data, to))


def _events() -> tuple[ViewerEvents, ClientRegistry, SnapshotCell, RecordingEmitter]:
    emitter = RecordingEmitter()
    registry = ClientRegistry()
    snapshot = SnapshotCell()
    snapshot.publish(
        [
            VehicleObservation("DL1PC0001", "534", 28.5, 77.25),
            VehicleObservation("DL1PC0002", "740", 28.6, 77.2),
        ]
    )
    fanout = FanoutEngine(
        emitter,
        registry,
        snapshot,
        stops=[StopRecord("AIIMS", 28.567, 77.21)],
        zoom_threshold=14,
    )
    return ViewerEvents(registry, fanout), registry, snapshot, emitter


def test_connect_then_zoom_in_receives_stops() -> None:
    events, registry, snapshot, emitter = _events()

    asyncio.run(events.on_connect("sid-1", {}))

    assert registry.zoom_for("sid-1") == 0
    (event, first, to) = emitter.sent[-1]
    assert (event, to) == ("busUpdate", "sid-1")
    assert "stops" not in first
    assert len(first["buses"]) == 2

    asyncio.run(events.on_zoom_level("sid-1", 15))

    (_, second, _) = emitter.sent[-1]
    assert registry.zoom_for("sid-1") == 15
    assert second["stops"] == [{"name": "AIIMS", "latitude": 28.567, "longitude": 77.21}]
    assert second["buses"] == first["buses"]


def test_zoom_out_drops_stops_again() -> None:
    events, _, _, emitter = _events()
    asyncio.run(events.on_connect("sid-1", {}))
    asyncio.run(events.on_zoom_level("sid-1", 16))

    asyncio.run(events.on_zoom_level("sid-1", "11"))

    (_, payload, _) = emitter.sent[-1]
    assert "stops" not in payload


def test_invalid_zoom_is_ignored() -> None:
    events, registry, _, emitter = _events()
    asyncio.run(events.on_zoom_level("sid-1", 16))
    sent_before = len(emitter.sent)

    asyncio.run(events.on_zoom_level("sid-1", "very close"))

    assert len(emitter.sent) == sent_before
    assert registry.zoom_for("sid-1") == 16


def test_disconnect_unregisters_viewer() -> None:
    events, registry, _, _ = _events()
    asyncio.run(events.on_connect("sid-1", {}))

    asyncio.run(events.on_disconnect("sid-1", "client disconnect"))

    assert "sid-1" not in registry


def test_attach_registers_handlers() -> None:
    events, _, _, _ = _events()
    sio = socketio.AsyncServer(async_mode="asgi")

    events.attach(sio)

    handlers = sio.handlers["/"]
    assert handlers["connect"] == events.on_connect
    assert handlers[ZOOM_LEVEL_EVENT] == events.on_zoom_level
    assert handlers["disconnect"] == events.on_disconnect

"""Socket.IO event handlers for live map viewers."""

from __future__ import annotations

import logging
from typing import Any, Optional

import socketio

from services.fanout import FanoutEngine
from services.registry import ClientRegistry, coerce_zoom

logger = logging.getLogger(__name__)

ZOOM_LEVEL_EVENT = "zoomLevel"


class ViewerEvents:
    """Keeps the client registry in step with the socket lifecycle."""

    def __init__(self, registry: ClientRegistry, fanout: FanoutEngine) -> None:
        self.registry = registry
        self.fanout = fanout

    async def on_connect(self, sid: str, environ: dict, auth: Optional[Any] = None) -> None:
        self.registry.register(sid)
        logger.info(
            "Viewer connected",
            extra={"client_id": sid, "vehicle_count": len(self.fanout.snapshot.current())},
        )
        await self.fanout.push(sid)

    async def on_zoom_level(self, sid: str, data: Any) -> None:
        try:
            zoom = coerce_zoom(data)
        except ValueError as exc:
            logger.warning(
                "Ignoring invalid zoom report",
                extra={"client_id": sid, "reason": str(exc)},
            )
            return
        self.registry.update_zoom(sid, zoom)
        logger.debug("Viewer zoom changed", extra={"client_id": sid, "zoom_level": zoom})
        await self.fanout.push(sid)

    async def on_disconnect(self, sid: str, reason: Optional[Any] = None) -> None:
        self.registry.unregister(sid)
        logger.info("Viewer disconnected", extra={"client_id": sid, "reason": reason})

    def attach(self, sio: socketio.AsyncServer) -> None:
        sio.on("connect", self.on_connect)
        sio.on(ZOOM_LEVEL_EVENT, self.on_zoom_level)
        sio.on("disconnect", self.on_disconnect)

"""Per-application live state shared by routes, socket handlers and the poller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
import socketio
from fastapi import Request

from datastore.records import RecordStore
from services.fanout import FanoutEngine
from services.poller import FeedPoller
from services.registry import ClientRegistry
from services.snapshot import SnapshotCell
from services.writeback import WriteBackService
from settings import Settings


@dataclass
class LiveState:
    settings: Settings
    snapshot: SnapshotCell
    registry: ClientRegistry
    sio: socketio.AsyncServer
    fanout: FanoutEngine
    store: RecordStore
    writeback: WriteBackService
    feed_transport: Optional[httpx.AsyncBaseTransport] = None
    http_client: Optional[httpx.AsyncClient] = None
    poller: Optional[FeedPoller] = None


def build_live_state(
    settings: Settings,
    store: RecordStore,
    feed_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> LiveState:
    snapshot = SnapshotCell()
    registry = ClientRegistry()
    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins="*",
        always_connect=True,
    )
    fanout = FanoutEngine(
        emitter=sio,
        registry=registry,
        snapshot=snapshot,
        zoom_threshold=settings.zoom_threshold,
    )
    return LiveState(
        settings=settings,
        snapshot=snapshot,
        registry=registry,
        sio=sio,
        fanout=fanout,
        store=store,
        writeback=WriteBackService(store),
        feed_transport=feed_transport,
    )


def get_live_state(request: Request) -> LiveState:
    return request.app.state.live

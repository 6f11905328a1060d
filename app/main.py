from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import httpx
import socketio
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import router
from app.runtime import LiveState, build_live_state
from app.schemas import ErrorResponse
from app.sockets import ViewerEvents
from app.web import router as web_router
from datastore.records import RecordStore, build_default_store
from logging_config import configure_logging
from services.errors import StorageUnavailable
from services.poller import FeedPoller
from services.stop_catalog import load_stop_catalog
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    live: LiveState = app.state.live
    settings = live.settings

    live.fanout.stops = load_stop_catalog(settings.stops_path)

    try:
        await run_in_threadpool(
            live.store.connect,
            settings.database_connect_attempts,
            settings.database_connect_backoff,
        )
    except StorageUnavailable:
        logger.critical("Storage unreachable; refusing to start")
        raise

    live.http_client = httpx.AsyncClient(transport=live.feed_transport)
    live.poller = FeedPoller(
        client=live.http_client,
        settings=settings,
        snapshot=live.snapshot,
        on_snapshot=live.fanout.broadcast,
    )
    live.poller.start()
    try:
        yield
    finally:
        await live.poller.stop()
        await live.http_client.aclose()
        live.store.close()


def _error_body(message: str) -> dict:
    return ErrorResponse(error=message).model_dump(by_alias=True)


async def _http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    reasons = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(reasons or "Invalid request body."),
    )


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
    feed_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    configure_logging()
    settings = settings or get_settings()
    app = FastAPI(
        title="Transit Live Feed",
        description="Live bus positions over Socket.IO plus inspector write-back API.",
        version="0.1.0",
        lifespan=lifespan,
    )
    live = build_live_state(
        settings,
        store if store is not None else build_default_store(),
        feed_transport=feed_transport,
    )
    ViewerEvents(live.registry, live.fanout).attach(live.sio)
    app.state.live = live

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    static_dir = Path(__file__).resolve().parent.parent / "static"
    app.mount("/static", StaticFiles(directory=static_dir), name="static")
    app.include_router(router)
    app.include_router(web_router)
    return app


def create_asgi_app(app: FastAPI) -> socketio.ASGIApp:
    """Wrap ``app`` so Socket.IO traffic is served alongside HTTP routes."""
    return socketio.ASGIApp(app.state.live.sio, other_asgi_app=app)


app = create_app()
asgi_app = create_asgi_app(app)


def run() -> None:
    settings = get_settings()
    uvicorn.run(asgi_app, host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    run()

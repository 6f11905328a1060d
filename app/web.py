from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from app.runtime import LiveState, get_live_state


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

router = APIRouter(include_in_schema=False)


@router.get("/", name="live_map", response_class=HTMLResponse)
async def live_map(
    request: Request,
    live: LiveState = Depends(get_live_state),
) -> HTMLResponse:
    # Stops arrive with the first live update once the viewer reports its zoom.
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "buses": [vehicle.to_wire() for vehicle in live.snapshot.current()],
            "bus_stops": [],
            "zoom_threshold": live.settings.zoom_threshold,
        },
    )

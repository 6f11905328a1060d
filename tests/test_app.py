import time
from dataclasses import replace
from typing import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient
from google.transit import gtfs_realtime_pb2

from app.main import create_app, create_asgi_app
from datastore.records import RecordStore
from services.errors import StorageUnavailable
from settings import Settings, get_settings


def _feed_bytes() -> bytes:
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.header.gtfs_realtime_version = "2.0"
    for index, route in enumerate(["534", "740", ""]):
        entity = feed.entity.add()
        entity.id = str(index)
        entity.vehicle.vehicle.id = f"DL1PC000{index}"
        if route:
            entity.vehicle.trip.route_id = route
        entity.vehicle.position.latitude = 28.5
        entity.vehicle.position.longitude = 77.25
    return feed.SerializeToString()


def _feed_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=_feed_bytes())


def _settings(tmp_path, **overrides) -> Settings:
    stops_path = tmp_path / "stops.csv"
    stops_path.write_text("stop_name,stop_lat,stop_lon\nAIIMS,28.567,77.21\n")
    base = replace(
        get_settings(),
        feed_url="https://feed.test/VehiclePositions.pb",
        feed_api_key=None,
        poll_interval=60.0,
        fetch_attempts=1,
        retry_backoff=0.0,
        stops_path=str(stops_path),
        database_url=f"sqlite:///{tmp_path / 'app.db'}",
        database_connect_attempts=1,
        database_connect_backoff=0.0,
    )
    return replace(base, **overrides)


@pytest.fixture
def api_client(tmp_path) -> Iterator[TestClient]:
    settings = _settings(tmp_path)
    app = create_app(
        settings=settings,
        store=RecordStore(settings.database_url),
        feed_transport=httpx.MockTransport(_feed_handler),
    )
    with TestClient(app) as client:
        yield client


def _wait_for_vehicles(client: TestClient, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    last_payload: dict | None = None
    while time.monotonic() < deadline:
        response = client.get("/api/health")
        assert response.status_code == 200
        last_payload = response.json()
        if last_payload["vehicleCount"]:
            return last_payload
        time.sleep(0.02)
    pytest.fail(f"Initial feed fetch did not complete: {last_payload}")


def test_startup_fetches_feed_and_loads_stops(api_client: TestClient) -> None:
    health = _wait_for_vehicles(api_client)

    assert health["status"] == "ok"
    assert health["vehicleCount"] == 3
    assert health["stopCount"] == 1
    assert health["storageConnected"] is True
    assert health["connectedViewers"] == 0
    assert health["pollCycles"] == 1


def test_index_renders_snapshot_without_stops(api_client: TestClient) -> None:
    _wait_for_vehicles(api_client)

    response = api_client.get("/")

    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    body = response.text
    assert "DL1PC0001" in body
    assert "window.INITIAL_STOPS = []" in body
    assert "/static/js/live-map.js" in body


def test_check_bus_upserts_once_per_day(api_client: TestClient) -> None:
    body = {"busNo": "DL1PC0001", "routeNo": "534", "nonTicketHolders": 2, "fineCollected": 400}

    first = api_client.post("/api/checkBus", json=body)
    second = api_client.post("/api/checkBus", json={**body, "nonTicketHolders": 5})

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json()["success"] is True
    assert first.json()["result"]["upserted"] is True
    assert second.json()["result"]["upserted"] is False
    assert second.json()["result"]["record"]["nonTicketHolders"] == 5

    checks = api_client.get("/api/checks").json()
    assert len(checks) == 1
    assert checks[0]["busNo"] == "DL1PC0001"
    assert checks[0]["checked"] is True


def test_check_bus_missing_fields_returns_bad_request(api_client: TestClient) -> None:
    response = api_client.post("/api/checkBus", json={"busNo": "DL1PC0001", "routeNo": " "})

    assert response.status_code == 400
    payload = response.json()
    assert payload["success"] is False
    assert "routeNo" in payload["error"]
    assert "nonTicketHolders" in payload["error"]
    assert api_client.get("/api/checks").json() == []


def test_check_bus_with_wrong_types_returns_bad_request(api_client: TestClient) -> None:
    response = api_client.post(
        "/api/checkBus",
        json={"busNo": "X", "routeNo": "1", "nonTicketHolders": "many", "fineCollected": 0},
    )

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_record_attendance_inserts(api_client: TestClient) -> None:
    body = {"busNo": "DL1PC0001", "conductorName": "R. Sharma"}

    first = api_client.post("/api/recordAttendance", json=body)
    second = api_client.post("/api/recordAttendance", json=body)

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json()["result"]["insertedId"] != second.json()["result"]["insertedId"]
    assert len(api_client.get("/api/attendance").json()) == 2


def test_record_attendance_missing_conductor_returns_bad_request(api_client: TestClient) -> None:
    response = api_client.post("/api/recordAttendance", json={"busNo": "DL1PC0001"})

    assert response.status_code == 400
    assert "conductorName" in response.json()["error"]
    assert api_client.get("/api/attendance").json() == []


def test_write_back_reports_unavailable_storage(api_client: TestClient) -> None:
    api_client.app.state.live.store.close()

    response = api_client.post(
        "/api/recordAttendance",
        json={"busNo": "DL1PC0001", "conductorName": "R. Sharma"},
    )

    assert response.status_code == 503
    assert response.json()["success"] is False


def test_startup_aborts_when_storage_unreachable(tmp_path) -> None:
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("")
    settings = _settings(tmp_path, database_url=f"sqlite:///{blocker / 'app.db'}")
    app = create_app(
        settings=settings,
        store=RecordStore(settings.database_url),
        feed_transport=httpx.MockTransport(_feed_handler),
    )

    with pytest.raises(StorageUnavailable):
        with TestClient(app):
            pass


def test_asgi_wrapper_serves_http_routes(tmp_path) -> None:
    settings = _settings(tmp_path)
    app = create_app(
        settings=settings,
        store=RecordStore(settings.database_url),
        feed_transport=httpx.MockTransport(_feed_handler),
    )

    with TestClient(create_asgi_app(app)) as client:
        response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["storageConnected"] is True

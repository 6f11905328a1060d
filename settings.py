from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_FEED_URL_ENV = "FEED_URL"
_FEED_API_KEY_ENV = "FEED_API_KEY"
_POLL_INTERVAL_ENV = "FEED_POLL_INTERVAL"
_FETCH_ATTEMPTS_ENV = "FEED_FETCH_ATTEMPTS"
_RETRY_BACKOFF_ENV = "FEED_RETRY_BACKOFF"
_REQUEST_TIMEOUT_ENV = "FEED_REQUEST_TIMEOUT"
_ALLOW_OVERLAP_ENV = "FEED_ALLOW_OVERLAP"
_STOPS_PATH_ENV = "STOPS_PATH"
_ZOOM_THRESHOLD_ENV = "ZOOM_THRESHOLD"
_DATABASE_URL_ENV = "DATABASE_URL"
_DATABASE_ATTEMPTS_ENV = "DATABASE_CONNECT_ATTEMPTS"
_DATABASE_BACKOFF_ENV = "DATABASE_CONNECT_BACKOFF"
_PORT_ENV = "PORT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_FEED_URL = "https://otd.delhi.gov.in/api/realtime/VehiclePositions.pb"


@dataclass(frozen=True)
class Settings:
    feed_url: str
    feed_api_key: Optional[str]
    poll_interval: float
    fetch_attempts: int
    retry_backoff: float
    request_timeout: float
    allow_overlap: bool
    stops_path: str
    zoom_threshold: int
    database_url: str
    database_connect_attempts: int
    database_connect_backoff: float
    port: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_int_env(name: str, default: int, minimum: int = 1) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _read_float_env(name: str, default: float, allow_zero: bool = False) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    if parsed > 0 or (allow_zero and parsed == 0):
        return parsed
    return default


def _read_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in {"1", "true", "yes", "on"}:
        return True
    if candidate in {"0", "false", "no", "off"}:
        return False
    return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        feed_url=_read_str_env(_FEED_URL_ENV, DEFAULT_FEED_URL),
        feed_api_key=_read_optional_env(_FEED_API_KEY_ENV, None),
        poll_interval=_read_float_env(_POLL_INTERVAL_ENV, 1.0),
        fetch_attempts=_read_int_env(_FETCH_ATTEMPTS_ENV, 3),
        retry_backoff=_read_float_env(_RETRY_BACKOFF_ENV, 2.0, allow_zero=True),
        request_timeout=_read_float_env(_REQUEST_TIMEOUT_ENV, 10.0),
        allow_overlap=_read_bool_env(_ALLOW_OVERLAP_ENV, False),
        stops_path=_read_str_env(_STOPS_PATH_ENV, "data/stops.csv"),
        zoom_threshold=_read_int_env(_ZOOM_THRESHOLD_ENV, 14, minimum=0),
        database_url=_read_str_env(_DATABASE_URL_ENV, "sqlite:///./tmp/transit.db"),
        database_connect_attempts=_read_int_env(_DATABASE_ATTEMPTS_ENV, 5),
        database_connect_backoff=_read_float_env(
            _DATABASE_BACKOFF_ENV, 2.0, allow_zero=True
        ),
        port=_read_int_env(_PORT_ENV, 3000),
        log_level=_read_log_level("INFO"),
    )

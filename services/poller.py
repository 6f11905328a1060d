"""Fixed-cadence fetch, decode and publish cycle for the realtime feed."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, Set

import httpx

from models.records import VehicleObservation
from services.decoder import decode_feed
from services.errors import DecodeError, FetchError
from services.snapshot import SnapshotCell
from settings import Settings

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[], Awaitable[object]]
Decoder = Callable[[bytes], Sequence[VehicleObservation]]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class PollerStats:
    cycles: int = 0
    successes: int = 0
    failures: int = 0
    skipped: int = 0


class FeedPoller:
    """Owns the poll schedule and the retry policy for the vehicle feed."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        snapshot: SnapshotCell,
        on_snapshot: Optional[SnapshotListener] = None,
        decoder: Decoder = decode_feed,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.client = client
        self.settings = settings
        self.snapshot = snapshot
        self.on_snapshot = on_snapshot
        self.decoder = decoder
        self._sleep = sleep
        self.stats = PollerStats()
        self._active_cycles = 0
        self._ticker: Optional[asyncio.Task[None]] = None
        self._cycles: Set[asyncio.Task[bool]] = set()

    @property
    def running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    @property
    def cycle_in_progress(self) -> bool:
        if self._active_cycles > 0:
            return True
        return any(not task.done() for task in self._cycles)

    async def fetch(self) -> bytes:
        params = {"key": self.settings.feed_api_key} if self.settings.feed_api_key else None
        try:
            response = await self.client.get(
                self.settings.feed_url,
                params=params,
                timeout=self.settings.request_timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                f"Feed returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Feed request failed: {exc!r}") from exc
        return response.content

    async def run_cycle(self) -> bool:
        """Fetch and decode with retries, then publish and notify.

        Returns False when every attempt failed; the previous snapshot is
        then left in place.
        """
        attempts = self.settings.fetch_attempts
        self._active_cycles += 1
        self.stats.cycles += 1
        start_time = time.perf_counter()
        try:
            for attempt in range(1, attempts + 1):
                try:
                    payload = await self.fetch()
                    vehicles = self.decoder(payload)
                except (FetchError, DecodeError) as exc:
                    logger.warning(
                        "Feed attempt failed",
                        extra={"attempt": attempt, "attempts": attempts, "reason": str(exc)},
                    )
                    if attempt < attempts:
                        await self._sleep(self.settings.retry_backoff)
                    continue

                self.snapshot.publish(vehicles)
                self.stats.successes += 1
                logger.info(
                    "Published vehicle snapshot",
                    extra={
                        "vehicle_count": len(vehicles),
                        "attempt": attempt,
                        "elapsed_ms": int((time.perf_counter() - start_time) * 1000),
                    },
                )
                if self.on_snapshot is not None:
                    await self.on_snapshot()
                return True

            self.stats.failures += 1
            logger.error(
                "Feed unavailable; keeping previous snapshot",
                extra={
                    "attempts": attempts,
                    "vehicle_count": len(self.snapshot.current()),
                },
            )
            return False
        finally:
            self._active_cycles -= 1

    def start(self) -> None:
        """Run one cycle now and then one every ``poll_interval`` seconds."""
        if self.running:
            return
        self._spawn_cycle()
        self._ticker = asyncio.create_task(self._tick_forever(), name="feed-poller")

    async def stop(self) -> None:
        tasks = list(self._cycles)
        if self._ticker is not None:
            tasks.append(self._ticker)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._ticker = None
        self._cycles.clear()

    async def _tick_forever(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.settings.poll_interval
        next_tick = loop.time() + interval
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            # The cadence is fixed to wall-clock ticks, not to cycle completion.
            next_tick += interval
            now = loop.time()
            if next_tick <= now:
                # Ticks missed while the loop was stalled are dropped, not replayed.
                next_tick += (math.floor((now - next_tick) / interval) + 1) * interval
            self._spawn_cycle()

    def _spawn_cycle(self) -> None:
        if self.cycle_in_progress and not self.settings.allow_overlap:
            self.stats.skipped += 1
            logger.warning(
                "Previous feed cycle still running after %.2fs interval; skipping tick",
                self.settings.poll_interval,
                extra={"reason": "overlap", "poll_interval": self.settings.poll_interval},
            )
            return
        task = asyncio.create_task(self.run_cycle())
        self._cycles.add(task)
        task.add_done_callback(self._on_cycle_done)

    def _on_cycle_done(self, task: asyncio.Task[bool]) -> None:
        self._cycles.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Feed cycle crashed", exc_info=exc)

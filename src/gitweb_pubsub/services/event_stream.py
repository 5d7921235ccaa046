"""Long-poll client for the push-notification feed.

A supervisor calls :meth:`EventStreamClient.tick` on a fixed period.  Each
tick only checks on the single in-flight connection: a healthy connection is
left alone, a silent one is cancelled, and a finished one is replaced.
Delivery is at-least-once; the ``X-Fetch-Since`` cursor lets a reconnect
resume where the last heartbeat left off.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Callable

import httpx

from gitweb_pubsub.domain.entities import EventStats, Heartbeat, PollCursor
from gitweb_pubsub.domain.exceptions import HttpStatusError
from gitweb_pubsub.services.event_dispatcher import EventDispatcher
from gitweb_pubsub.services.event_records import (
    RecordAssembler,
    classify_field,
    is_ref_change_key,
)

logger = logging.getLogger(__name__)

STALE_AFTER_SECONDS = 60.0
REPORT_INTERVAL_SECONDS = 15 * 60.0
_CONNECT_TIMEOUT_SECONDS = 30.0


class EventStreamClient:
    """Owns the feed connection lifecycle and the :class:`PollCursor`.

    Parameters
    ----------
    client:
        Async HTTP client used for the long-poll request.
    url:
        Feed endpoint.
    dispatcher:
        Receives every classified event.
    server_template:
        Turns the feed's short server name into a repository base URL.
    period_seconds:
        Supervisor period, clamped to [1, 3600].
    recycle_minutes:
        Age after which a connection is closed and reopened; ``-1`` keeps it
        open for as long as the server does.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        dispatcher: EventDispatcher,
        *,
        server_template: str = "https://{server}.apache.org/repos/asf",
        period_seconds: int = 10,
        recycle_minutes: int = -1,
        stale_after: float = STALE_AFTER_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self.url = url
        self._dispatcher = dispatcher
        self._server_template = server_template
        self.period_seconds = max(1, min(3600, period_seconds))
        self.recycle_minutes = recycle_minutes
        self._stale_after = stale_after
        self._clock = clock
        self.cursor = PollCursor()
        self.stats = EventStats()
        self._task: asyncio.Task[None] | None = None
        self._next_report: float | None = None

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── Supervision ─────────────────────────────────────────────────────

    async def run(self) -> None:
        """Tick forever on the configured period; cancel to stop."""
        try:
            while True:
                await self.tick()
                await asyncio.sleep(self.period_seconds)
        finally:
            await self.close()

    async def tick(self) -> None:
        """Check the in-flight connection and (re)start it when needed."""
        self._maybe_report()
        now = self._clock()
        if self._task is not None:
            if now - self.cursor.last_activity > self._stale_after:
                logger.debug("Event stream request looks dead, restarting...")
                await self._cancel_task()
                self._collect_task_failure()
            elif not self._task.done():
                logger.debug("Event stream request looks alive")
                return
            else:
                self._collect_task_failure()
                logger.debug("Event stream request completed, restarting...")
        else:
            logger.info("Starting event stream request to %s", self.url)

        self.cursor.last_activity = now
        self._task = asyncio.create_task(self._consume(), name="event-stream")

    async def close(self) -> None:
        """Cancel the in-flight connection, if any."""
        await self._cancel_task()
        self._task = None

    async def _cancel_task(self) -> None:
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    def _collect_task_failure(self) -> None:
        task = self._task
        if task is None or task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Event stream request crashed", exc_info=exc)

    # ── Connection ──────────────────────────────────────────────────────

    async def _consume(self) -> None:
        headers: dict[str, str] = {}
        if self.cursor.last_sequence_token:
            headers["X-Fetch-Since"] = str(self.cursor.last_sequence_token)
        read_timeout = (
            None if self.recycle_minutes < 0 else (self.recycle_minutes + 1) * 60.0
        )
        timeout = httpx.Timeout(_CONNECT_TIMEOUT_SECONDS, read=read_timeout)
        recycle_at = (
            None
            if self.recycle_minutes < 0
            else self._clock() + self.recycle_minutes * 60.0
        )
        assembler = RecordAssembler()

        try:
            async with self._client.stream(
                "GET", self.url, headers=headers, timeout=timeout
            ) as response:
                if response.status_code >= 400:
                    raise HttpStatusError(response.status_code, self.url)
                async for chunk in response.aiter_bytes():
                    self.cursor.last_activity = self._clock()
                    for record in assembler.feed(chunk):
                        self.handle_record(record)
                    if recycle_at is not None and self._clock() >= recycle_at:
                        logger.debug("Recycling event stream connection")
                        return
            logger.debug("Event stream connection closed")
        except asyncio.CancelledError:
            logger.debug("Event stream request cancelled")
            raise
        except httpx.TimeoutException:
            logger.debug("Event stream connection timeout", exc_info=True)
        except (httpx.HTTPError, HttpStatusError) as exc:
            logger.warning("Unexpected event stream failure: %s", exc)
            self._record_failure()

    def _record_failure(self) -> None:
        token = self.cursor.last_sequence_token
        if token != 0 and token == self.cursor.stuck_token:
            logger.warning(
                "Resetting X-Fetch-Since from %d to skip past a failing record", token
            )
            self.cursor.last_sequence_token = 0
            self.cursor.stuck_token = 0
        else:
            self.cursor.stuck_token = token

    # ── Records ─────────────────────────────────────────────────────────

    def handle_record(self, raw: bytes) -> None:
        """Decode, count, classify and dispatch one complete record."""
        try:
            record = json.loads(raw)
        except ValueError:
            logger.info("Could not parse event record: %r", raw[:500])
            return
        if not isinstance(record, dict):
            logger.info("Ignoring non-object event record: %r", raw[:500])
            return

        logger.debug("Event record %s", record)
        self.stats.all_events += 1
        for key, value in record.items():
            if key == "stillalive":
                self.stats.alive_events += 1
            elif is_ref_change_key(key):
                self.stats.push_events += 1
            try:
                event = classify_field(key, value, self._server_template)
            except (TypeError, ValueError):
                logger.warning("Ignoring malformed %r field: %r", key, value)
                continue
            if event is None:
                continue
            if isinstance(event, Heartbeat):
                self.cursor.last_sequence_token = event.sequence_token
            self._dispatcher.dispatch(event)

    def _maybe_report(self) -> None:
        now = self._clock()
        if self._next_report is None:
            self._next_report = now + REPORT_INTERVAL_SECONDS
            return
        if now < self._next_report:
            return
        self._next_report += REPORT_INTERVAL_SECONDS
        logger.info(
            "Event stream: %d events processed. stillalive: %d; push: %d",
            self.stats.all_events,
            self.stats.alive_events,
            self.stats.push_events,
        )

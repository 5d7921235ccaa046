"""FastAPI dependency injection wiring."""

from __future__ import annotations

import asyncio

import httpx

from gitweb_pubsub.infrastructure.config import get_settings
from gitweb_pubsub.infrastructure.page_fetcher import PageFetcher
from gitweb_pubsub.infrastructure.url_builder import UrlBuilder
from gitweb_pubsub.services.event_dispatcher import EventDispatcher
from gitweb_pubsub.services.event_stream import EventStreamClient
from gitweb_pubsub.services.navigator import RepositoryNavigator
from gitweb_pubsub.services.telescope import Telescope

_http_client: httpx.Client | None = None
_feed_client: httpx.AsyncClient | None = None
_pages: PageFetcher | None = None
_telescope: Telescope | None = None
_dispatcher: EventDispatcher | None = None
_event_stream: EventStreamClient | None = None
_event_task: asyncio.Task[None] | None = None


async def startup() -> None:
    """Initialise shared resources; called from the lifespan context manager."""
    global _http_client, _feed_client, _pages, _telescope  # noqa: PLW0603
    global _dispatcher, _event_stream, _event_task  # noqa: PLW0603

    settings = get_settings()
    _http_client = httpx.Client(follow_redirects=True)
    _pages = PageFetcher(
        _http_client,
        timeout_ms=settings.request_timeout_ms,
        pre_request_sleep_ms=settings.pre_request_sleep_ms,
    )
    _telescope = Telescope(
        _pages,
        UrlBuilder(settings.gitweb_hosts),
        max_changelog=settings.max_changelog,
        disabled=settings.disable,
    )
    _dispatcher = EventDispatcher()

    if settings.pubsub_enabled:
        _feed_client = httpx.AsyncClient()
        _event_stream = EventStreamClient(
            _feed_client,
            settings.pubsub_url,
            _dispatcher,
            server_template=settings.pubsub_server_template,
            period_seconds=settings.poll_period_seconds,
            recycle_minutes=settings.request_recycle_mins,
        )
        _event_task = asyncio.create_task(_event_stream.run(), name="event-stream-supervisor")


async def shutdown() -> None:
    """Release shared resources."""
    global _http_client, _feed_client, _pages, _telescope  # noqa: PLW0603
    global _dispatcher, _event_stream, _event_task  # noqa: PLW0603

    if _event_task:
        _event_task.cancel()
        await asyncio.gather(_event_task, return_exceptions=True)
        _event_task = None
    _event_stream = None
    if _feed_client:
        await _feed_client.aclose()
        _feed_client = None
    if _http_client:
        _http_client.close()
        _http_client = None
    _pages = None
    _telescope = None
    _dispatcher = None


def get_telescope() -> Telescope:
    assert _telescope is not None, "startup() was not called"
    return _telescope


def get_dispatcher() -> EventDispatcher:
    assert _dispatcher is not None, "startup() was not called"
    return _dispatcher


def get_event_stream() -> EventStreamClient | None:
    return _event_stream


def get_navigator(server: str) -> RepositoryNavigator:
    """Build a navigator for *server* on the shared page fetcher."""
    assert _pages is not None, "startup() was not called"
    return RepositoryNavigator(_pages, server)

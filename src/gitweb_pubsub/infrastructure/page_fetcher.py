"""Throttled, timeout-bounded HTTP access to gitweb (the PageSource adapter)."""

from __future__ import annotations

import logging
import time
from typing import Any, Iterator

import httpx

from gitweb_pubsub.domain.exceptions import (
    HttpStatusError,
    MalformedRemoteDataError,
    TransportError,
)
from gitweb_pubsub.infrastructure.gitweb_page import GitwebPage

logger = logging.getLogger(__name__)

_HEADERS = {"User-Agent": "gitweb-pubsub/1.0"}


class PageFetcher:
    """Concrete PageSource backed by a synchronous ``httpx.Client``.

    Parameters
    ----------
    client:
        Shared HTTP client; the fetcher never closes it.
    timeout_ms:
        Per-request timeout, clamped to [1s, 60s].
    pre_request_sleep_ms:
        Courtesy delay before every request, clamped to [0s, 30s].
    """

    def __init__(
        self,
        client: httpx.Client,
        timeout_ms: int = 10_000,
        pre_request_sleep_ms: int = 0,
    ) -> None:
        self._client = client
        self._timeout = max(1_000, min(60_000, timeout_ms)) / 1000
        self._sleep = max(0, min(30_000, pre_request_sleep_ms)) / 1000

    def fetch(self, url: str) -> GitwebPage:
        """GET *url* and parse the body as a gitweb page."""
        resp = self._get(url)
        return GitwebPage(resp.content, url=url)

    def fetch_json(self, url: str) -> Any:
        """GET *url* and decode the body as JSON."""
        resp = self._get(url)
        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedRemoteDataError(
                f"Expected JSON from {url}", raw=resp.text[:200]
            ) from exc

    def stream(self, url: str) -> Iterator[bytes]:
        """Yield the raw body of *url* chunk by chunk, untouched."""
        self._pre_request_sleep()
        try:
            with self._client.stream(
                "GET", url, headers=_HEADERS, timeout=self._timeout
            ) as resp:
                if resp.status_code >= 400:
                    raise HttpStatusError(resp.status_code, url)
                yield from resp.iter_bytes()
        except httpx.HTTPError as exc:
            raise TransportError(f"Network error fetching {url}: {exc}") from exc

    def _get(self, url: str) -> httpx.Response:
        self._pre_request_sleep()
        try:
            resp = self._client.get(url, headers=_HEADERS, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise TransportError(f"Network error fetching {url}: {exc}") from exc

        if resp.status_code >= 400:
            raise HttpStatusError(resp.status_code, url)
        return resp

    def _pre_request_sleep(self) -> None:
        if self._sleep > 0:
            logger.debug("Pre-request sleep is set, sleeping for %.3fs", self._sleep)
            time.sleep(self._sleep)

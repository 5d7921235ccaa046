"""Domain exception hierarchy.

Each exception maps to a specific HTTP status code at the interface layer.
Inner layers raise these; the outermost error-handler translates them.
"""

from __future__ import annotations


class GitwebPubSubError(Exception):
    """Base exception for the entire application."""


# ── Remote lookup ───────────────────────────────────────────────────────────


class UnknownRemoteError(GitwebPubSubError):
    """The remote identifier matches none of the configured gitweb hosts."""

    def __init__(self, remote: str) -> None:
        super().__init__(f"Unknown remote: {remote}")
        self.remote = remote


class TelescopeDisabledError(GitwebPubSubError):
    """Remote browsing has been switched off by configuration."""


# ── Transport errors ────────────────────────────────────────────────────────


class HttpStatusError(GitwebPubSubError):
    """The gitweb server answered with an HTTP status of 400 or above."""

    def __init__(self, status_code: int, url: str) -> None:
        super().__init__(f"HTTP {status_code} fetching {url}")
        self.status_code = status_code
        self.url = url


class TransportError(GitwebPubSubError):
    """Network failure or timeout while talking to a remote server."""


# ── Page content errors ─────────────────────────────────────────────────────


class MalformedRemoteDataError(GitwebPubSubError):
    """A scraped page did not have the structure we rely on.

    ``raw`` carries the offending text so the failure can be diagnosed
    without re-fetching the page.
    """

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(f"{message}: {raw!r}" if raw else message)
        self.raw = raw


class NoDefaultBranchError(GitwebPubSubError):
    """The heads listing does not flag any branch as the current head."""

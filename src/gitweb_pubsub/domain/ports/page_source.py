"""Port through which services read gitweb pages; implemented by infrastructure."""

from __future__ import annotations

from typing import Any, Iterator, Protocol, Sequence


class Page(Protocol):
    """A fetched gitweb page queried by meaning rather than by selector."""

    def object_header_timestamps(self) -> list[str]:
        """Return the timestamp texts of the object header, in page order."""
        ...

    def object_header_sha1s(self) -> list[str]:
        """Return the ``[commit, tree, parent...]`` hashes of a commit page."""
        ...

    def object_header_identities(self) -> list[str]:
        """Return the ``Name <email>`` texts of a commit page, author first."""
        ...

    def message_nodes(self) -> Sequence[str | None]:
        """Return the commit message as text runs with ``None`` for line breaks."""
        ...

    def tree_rows(self) -> list[tuple[str, str]]:
        """Return ``(mode, name)`` for every row of a tree listing."""
        ...

    def ref_rows(self, table: str) -> list[tuple[str, str | None, str | None]]:
        """Return ``(name, name_href, selflink_href)`` for a heads/tags listing."""
        ...

    def current_head_names(self) -> list[str]:
        """Return the names flagged as the current head in the heads listing."""
        ...

    def shortlog_links(self) -> list[str]:
        """Return the commit links of a shortlog page, newest first."""
        ...

    def history_links(self) -> list[str]:
        """Return the commit links of a history page, newest first."""
        ...


class PageSource(Protocol):
    """Abstract contract for fetching gitweb pages."""

    def fetch(self, url: str) -> Page:
        """Fetch and parse one HTML page."""
        ...

    def fetch_json(self, url: str) -> Any:
        """Fetch and decode one JSON document."""
        ...

    def stream(self, url: str) -> Iterator[bytes]:
        """Stream a raw response body without transformation."""
        ...

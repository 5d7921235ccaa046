"""Directory listings, file types, raw content and last-modified times."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterator

from gitweb_pubsub.domain.entities import UNKNOWN_TIMESTAMP, EntryType, TreeEntry
from gitweb_pubsub.domain.exceptions import MalformedRemoteDataError
from gitweb_pubsub.domain.ports.page_source import PageSource
from gitweb_pubsub.domain.value_objects import ReferenceName
from gitweb_pubsub.infrastructure.gitweb_page import extract_hash
from gitweb_pubsub.infrastructure.url_builder import BLOB, COMMIT, TREE, UrlBuilder
from gitweb_pubsub.services.gitweb_dates import committer_timestamp
from gitweb_pubsub.services.reference_resolver import ReferenceResolver, as_reference

logger = logging.getLogger(__name__)


def normalize_path(path: str | None) -> str:
    """Strip surrounding slashes; the root is the empty string."""
    return (path or "").strip("/")


def _classify(mode: str) -> EntryType:
    if mode.startswith("d"):
        return EntryType.DIRECTORY
    if mode.startswith("-"):
        return EntryType.FILE
    return EntryType.NONEXISTENT


class TreeBrowser:
    """Browses the tree of one revision of a gitweb-hosted repository.

    Nothing is cached: every call reflects the server at the time of the call.
    """

    def __init__(
        self, pages: PageSource, urls: UrlBuilder, resolver: ReferenceResolver
    ) -> None:
        self._pages = pages
        self._urls = urls
        self._resolver = resolver

    def list_children(
        self, remote: str, ref: ReferenceName | str, path: str = ""
    ) -> list[TreeEntry]:
        """List a directory in server order, without ``.`` and ``..``."""
        entries: list[TreeEntry] = []
        for mode, name in self._tree_rows(remote, as_reference(ref), normalize_path(path)):
            if name in (".", ".."):
                continue
            kind = EntryType.DIRECTORY if mode.startswith("d") else EntryType.FILE
            entries.append(TreeEntry(name=name, kind=kind))
        return entries

    def type_of(self, remote: str, ref: ReferenceName | str, path: str) -> EntryType:
        """Classify *path* by looking it up in its parent's listing."""
        path = normalize_path(path)
        if not path:
            return EntryType.DIRECTORY
        parent, _, name = path.rpartition("/")
        for mode, entry in self._tree_rows(remote, as_reference(ref), parent):
            if entry != name:
                continue
            kind = _classify(mode)
            if kind is not EntryType.NONEXISTENT:
                return kind
        return EntryType.NONEXISTENT

    def content(self, remote: str, ref: ReferenceName | str, path: str) -> Iterator[bytes]:
        """Stream the raw bytes of a file."""
        repo = self._urls.resolve(remote)
        url = self._urls.expand(
            BLOB,
            repo,
            a="blob_plain",
            f=normalize_path(path),
            hb=as_reference(ref).wire_name,
        )
        return self._pages.stream(url)

    def last_modified(
        self, remote: str, ref: ReferenceName | str, path: str = ""
    ) -> datetime:
        """Time of the newest commit touching *path*.

        The root follows the revision's own timestamp rules.  For other paths
        an empty history yields :data:`UNKNOWN_TIMESTAMP`.
        """
        ref = as_reference(ref)
        path = normalize_path(path)
        if not path:
            return self._resolver.get_timestamp(remote, ref)

        repo = self._urls.resolve(remote)
        history = self._pages.fetch(
            self._urls.expand(TREE, repo, a="history", hb=ref.wire_name, f=path)
        )
        links = history.history_links()
        if not links:
            logger.debug("No history for %s at %s in %s", path, ref, remote)
            return UNKNOWN_TIMESTAMP
        commit = extract_hash(links[0])
        if commit is None:
            raise MalformedRemoteDataError(
                "History entry does not link to a commit", raw=links[0]
            )
        page = self._pages.fetch(self._urls.expand(COMMIT, repo, a="commit", h=commit))
        return committer_timestamp(page.object_header_timestamps())

    def _tree_rows(
        self, remote: str, ref: ReferenceName, path: str
    ) -> list[tuple[str, str]]:
        repo = self._urls.resolve(remote)
        url = self._urls.expand(
            TREE, repo, a="tree", hb=ref.wire_name, f=path or None
        )
        return self._pages.fetch(url).tree_rows()

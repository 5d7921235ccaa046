"""Resolve branches, tags and hashes to revisions by scraping gitweb.

Branches and hashes come straight from the commit page.  Tags need more
care: an annotated tag has its own tag page (with its own timestamp) while a
lightweight tag answers that page with a 404 and has to be looked up as a
plain commit instead.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from datetime import datetime
from typing import Callable, Iterable, overload

from gitweb_pubsub.domain.entities import Revision
from gitweb_pubsub.domain.exceptions import (
    HttpStatusError,
    MalformedRemoteDataError,
    NoDefaultBranchError,
)
from gitweb_pubsub.domain.ports.page_source import Page, PageSource
from gitweb_pubsub.domain.value_objects import (
    ReferenceName,
    ReferenceType,
    RemoteRepository,
    is_full_hash,
)
from gitweb_pubsub.infrastructure.gitweb_page import extract_hash
from gitweb_pubsub.infrastructure.url_builder import COMMIT, LISTING, UrlBuilder
from gitweb_pubsub.services.gitweb_dates import committer_timestamp, tag_timestamp

logger = logging.getLogger(__name__)

_LISTINGS: tuple[tuple[ReferenceType, str], ...] = (
    (ReferenceType.HEAD, "heads"),
    (ReferenceType.TAG, "tags"),
)


def as_reference(ref: ReferenceName | str) -> ReferenceName:
    return ref if isinstance(ref, ReferenceName) else ReferenceName.parse(ref)


class LazyRevisionList(Sequence[Revision]):
    """Reference listing whose revisions are resolved on first access.

    Resolving every tag of a large repository up front costs several requests
    per tag, so each index is resolved once, when it is read, and memoised.
    Every index has its own lock: concurrent readers of the same index wait
    for a single fetch, readers of different indices do not block each other.
    """

    def __init__(
        self,
        refs: Iterable[ReferenceName],
        hints: Iterable[str | None],
        resolve: Callable[[ReferenceName, str | None], Revision],
    ) -> None:
        self._refs = tuple(refs)
        self._hints = tuple(hints)
        if len(self._hints) != len(self._refs):
            raise ValueError("refs and hints must have the same length")
        self._resolve = resolve
        self._cache: list[Revision | None] = [None] * len(self._refs)
        self._locks = [threading.Lock() for _ in self._refs]

    @property
    def refs(self) -> tuple[ReferenceName, ...]:
        """The listed reference names, available without any resolution."""
        return self._refs

    def __len__(self) -> int:
        return len(self._refs)

    @overload
    def __getitem__(self, index: int) -> Revision: ...

    @overload
    def __getitem__(self, index: slice) -> list[Revision]: ...

    def __getitem__(self, index: int | slice) -> Revision | list[Revision]:
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(len(self)))]
        if index < 0:
            index += len(self._refs)
        if not 0 <= index < len(self._refs):
            raise IndexError("revision index out of range")

        cached = self._cache[index]
        if cached is not None:
            return cached
        with self._locks[index]:
            cached = self._cache[index]
            if cached is None:
                cached = self._resolve(self._refs[index], self._hints[index])
                self._cache[index] = cached
            return cached


class ReferenceResolver:
    """Turns reference names into :class:`Revision` objects.

    Parameters
    ----------
    pages:
        Source of parsed gitweb pages.
    urls:
        Maps remotes onto the configured gitweb hosts.
    """

    def __init__(self, pages: PageSource, urls: UrlBuilder) -> None:
        self._pages = pages
        self._urls = urls

    # ── Public operations ───────────────────────────────────────────────

    def get_timestamp(self, remote: str, ref: ReferenceName | str) -> datetime:
        """Tag timestamp for annotated tags, committer timestamp otherwise."""
        repo = self._urls.resolve(remote)
        ref = as_reference(ref)
        if ref.is_tag:
            tag_page = self._tag_page(repo, ref)
            if tag_page is not None:
                return tag_timestamp(tag_page.object_header_timestamps())
        commit_page = self._commit_page(repo, ref.wire_name)
        return committer_timestamp(commit_page.object_header_timestamps())

    def get_revision(self, remote: str, ref: ReferenceName | str) -> Revision:
        repo = self._urls.resolve(remote)
        ref = as_reference(ref)
        if ref.is_tag:
            tag_page = self._tag_page(repo, ref)
            if tag_page is not None:
                when = tag_timestamp(tag_page.object_header_timestamps())
                tag_hash = self._annotated_tag_hash(repo, ref)
                if tag_hash is not None:
                    return Revision(hash=tag_hash, head=ref, tag_timestamp=when)

        commit_page = self._commit_page(repo, ref.wire_name)
        sha1s = commit_page.object_header_sha1s()
        if not sha1s:
            raise MalformedRemoteDataError(
                "Commit page has no object hash", raw=ref.wire_name
            )
        commit = sha1s[0].lower()
        if ref.is_tag:
            return Revision(
                hash=commit,
                head=ref,
                tag_timestamp=committer_timestamp(
                    commit_page.object_header_timestamps()
                ),
            )
        if ref.is_branch or not is_full_hash(ref.name):
            return Revision(hash=commit, head=ref)
        return Revision(hash=commit, head=ReferenceName.raw(commit))

    def get_revisions(
        self, remote: str, kinds: Iterable[ReferenceType]
    ) -> LazyRevisionList:
        """List the requested reference kinds; resolution is deferred per entry."""
        repo = self._urls.resolve(remote)
        wanted = set(kinds)
        refs: list[ReferenceName] = []
        hints: list[str | None] = []
        for kind, table in _LISTINGS:
            if kind not in wanted:
                continue
            page = self._pages.fetch(self._urls.expand(LISTING, repo, a=table))
            for name, href, selflink in page.ref_rows(table):
                if kind is ReferenceType.HEAD:
                    refs.append(ReferenceName.branch(name))
                    hints.append(None)
                else:
                    refs.append(ReferenceName.tag(name))
                    hints.append(extract_hash(selflink if selflink is not None else href))
        logger.debug("Listed %d references for %s", len(refs), remote)

        def _resolve(ref: ReferenceName, hint: str | None) -> Revision:
            if hint is not None:
                return Revision(
                    hash=hint, head=ref, tag_timestamp=self.get_timestamp(remote, ref)
                )
            return self.get_revision(remote, ref)

        return LazyRevisionList(refs, hints, _resolve)

    def get_default_target(self, remote: str) -> ReferenceName:
        """Return the branch gitweb marks as the current head."""
        repo = self._urls.resolve(remote)
        page = self._pages.fetch(self._urls.expand(LISTING, repo, a="heads"))
        names = page.current_head_names()
        if not names:
            raise NoDefaultBranchError(f"No current head is marked for {remote}")
        return ReferenceName.branch(names[0])

    # ── Internals ───────────────────────────────────────────────────────

    def _commit_page(self, repo: RemoteRepository, ref_or_hash: str) -> Page:
        return self._pages.fetch(
            self._urls.expand(COMMIT, repo, a="commit", h=ref_or_hash)
        )

    def _tag_page(self, repo: RemoteRepository, ref: ReferenceName) -> Page | None:
        """Fetch the tag object page; ``None`` means a lightweight tag."""
        try:
            return self._pages.fetch(
                self._urls.expand(COMMIT, repo, a="tag", h=ref.wire_name)
            )
        except HttpStatusError as exc:
            if exc.status_code == 404:
                return None
            raise

    def _annotated_tag_hash(
        self, repo: RemoteRepository, ref: ReferenceName
    ) -> str | None:
        page = self._pages.fetch(self._urls.expand(LISTING, repo, a="tags"))
        for name, _href, selflink in page.ref_rows("tags"):
            if name != ref.name:
                continue
            if selflink is None:
                logger.debug(
                    "Tag %s has no self-link, resolving it as a commit", ref.name
                )
                return None
            tag_hash = extract_hash(selflink)
            if tag_hash is not None:
                return tag_hash
        return None

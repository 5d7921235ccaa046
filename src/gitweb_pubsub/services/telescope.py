"""Single entry point for every remote introspection operation.

The orchestrator asks a telescope whether it can see a remote and then
resolves, lists, browses and diffs through it without a local clone.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import BinaryIO, Iterable, Iterator

from gitweb_pubsub.domain.entities import EntryType, Revision, TreeEntry
from gitweb_pubsub.domain.exceptions import TelescopeDisabledError, UnknownRemoteError
from gitweb_pubsub.domain.ports.page_source import PageSource
from gitweb_pubsub.domain.value_objects import ReferenceName, ReferenceType
from gitweb_pubsub.infrastructure.url_builder import UrlBuilder
from gitweb_pubsub.services.changelog import ChangelogSynthesizer
from gitweb_pubsub.services.reference_resolver import LazyRevisionList, ReferenceResolver
from gitweb_pubsub.services.tree_browser import TreeBrowser

logger = logging.getLogger(__name__)


class Telescope:
    """Facade over the resolver, the tree browser and the changelog synthesizer.

    Parameters
    ----------
    pages:
        Source of parsed gitweb pages.
    urls:
        Maps remotes onto the configured gitweb hosts.
    max_changelog:
        Hard cap on entries written by :meth:`changes_since`.
    disabled:
        Kill switch; a disabled telescope supports no remote at all.
    """

    def __init__(
        self,
        pages: PageSource,
        urls: UrlBuilder,
        max_changelog: int = 1024,
        disabled: bool = False,
    ) -> None:
        self.urls = urls
        self.resolver = ReferenceResolver(pages, urls)
        self.browser = TreeBrowser(pages, urls, self.resolver)
        self.changelog = ChangelogSynthesizer(pages, urls, max_changelog)
        self._disabled = disabled
        self._disable_logged = False

    # ── Kill switch ─────────────────────────────────────────────────────

    @property
    def disabled(self) -> bool:
        return self._disabled

    @disabled.setter
    def disabled(self, value: bool) -> None:
        self._disabled = value

    def supports(self, remote: str) -> bool:
        """Whether *remote* lives on a known gitweb host and browsing is on."""
        if self._disabled:
            if not self._disable_logged:
                logger.warning("Remote browsing has been disabled by the kill switch")
                self._disable_logged = True
            return False
        if self._disable_logged:
            logger.info("Remote browsing has been re-enabled")
            self._disable_logged = False
        return self.urls.supports(remote)

    def _check(self, remote: str) -> None:
        if self.supports(remote):
            return
        if self._disabled:
            raise TelescopeDisabledError("Remote browsing is disabled")
        raise UnknownRemoteError(remote)

    # ── Revisions ───────────────────────────────────────────────────────

    def get_timestamp(self, remote: str, ref: ReferenceName | str) -> datetime:
        self._check(remote)
        return self.resolver.get_timestamp(remote, ref)

    def get_revision(self, remote: str, ref: ReferenceName | str) -> Revision:
        self._check(remote)
        return self.resolver.get_revision(remote, ref)

    def get_revisions(
        self, remote: str, kinds: Iterable[ReferenceType] = tuple(ReferenceType)
    ) -> LazyRevisionList:
        self._check(remote)
        return self.resolver.get_revisions(remote, kinds)

    def get_default_target(self, remote: str) -> ReferenceName:
        self._check(remote)
        return self.resolver.get_default_target(remote)

    # ── Trees ───────────────────────────────────────────────────────────

    def list_children(
        self, remote: str, ref: ReferenceName | str, path: str = ""
    ) -> list[TreeEntry]:
        self._check(remote)
        return self.browser.list_children(remote, ref, path)

    def type_of(self, remote: str, ref: ReferenceName | str, path: str) -> EntryType:
        self._check(remote)
        return self.browser.type_of(remote, ref, path)

    def content(self, remote: str, ref: ReferenceName | str, path: str) -> Iterator[bytes]:
        self._check(remote)
        return self.browser.content(remote, ref, path)

    def last_modified(
        self, remote: str, ref: ReferenceName | str, path: str = ""
    ) -> datetime:
        self._check(remote)
        return self.browser.last_modified(remote, ref, path)

    # ── Changelog ───────────────────────────────────────────────────────

    def changes_since(
        self,
        remote: str,
        ref: ReferenceName | str,
        since: str | None,
        until: str | None,
        sink: BinaryIO,
    ) -> bool:
        self._check(remote)
        return self.changelog.changes_since(remote, ref, since, until, sink)

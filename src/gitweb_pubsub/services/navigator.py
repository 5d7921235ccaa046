"""Repository discovery from a gitweb server's ``repositories.json`` index."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterator
from urllib.parse import quote, quote_plus

from gitweb_pubsub.domain.entities import RepositorySource
from gitweb_pubsub.domain.exceptions import MalformedRemoteDataError
from gitweb_pubsub.domain.ports.page_source import PageSource

logger = logging.getLogger(__name__)

_REPOS_SEGMENT_RE = re.compile(r"repos/[^/]+$")


def index_url(server: str) -> str:
    """``https://host/repos/asf`` -> ``https://host/repositories.json``."""
    return _REPOS_SEGMENT_RE.sub("repositories.json", server.rstrip("/"))


class RepositoryNavigator:
    """Lists the repositories hosted on one gitweb server.

    Parameters
    ----------
    pages:
        Used to download the JSON index.
    server:
        Server base, one of the configured gitweb hosts.
    """

    def __init__(self, pages: PageSource, server: str) -> None:
        self._pages = pages
        self.server = server.rstrip("/")

    def visit_source(self, name: str) -> RepositorySource:
        """Describe repository *name* without contacting the server."""
        return RepositorySource(
            source_id=f"{self.server}::{name}",
            name=name,
            remote=f"{self.server}/{quote(name, safe='')}.git",
            browser_url=f"{self.server}?p={quote_plus(name + '.git')};a=summary",
        )

    def visit_sources(self, include: str | None = None) -> Iterator[RepositorySource]:
        """Yield every indexed repository whose name fully matches *include*."""
        pattern = re.compile(include) if include else None
        document = self._pages.fetch_json(index_url(self.server))
        count = 0
        for name in self._repository_names(document):
            count += 1
            if pattern is not None and not pattern.fullmatch(name):
                logger.debug("Ignoring %s", name)
                continue
            logger.debug("Proposing %s", name)
            yield self.visit_source(name)
        logger.info("%d repositories were processed on %s", count, self.server)

    @staticmethod
    def _repository_names(document: Any) -> Iterator[str]:
        projects = document.get("projects") if isinstance(document, dict) else None
        if projects is None:
            raise MalformedRemoteDataError(
                "Repository index has no projects", raw=str(document)[:200]
            )
        values = projects.values() if isinstance(projects, dict) else projects
        for project in values:
            if not isinstance(project, dict):
                continue
            yield from project.get("repositories") or {}

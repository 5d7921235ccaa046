"""Changelog synthesis from gitweb shortlog and commit pages.

The output mirrors ``git log`` with the layout::

    commit %H
    tree %T
    parent %P
    author %aN <%aE> %ai
    committer %cN <%cE> %ci

        %w(72,4,4)%B

so that a standard git changelog parser reads it back unchanged.
"""

from __future__ import annotations

import logging
import re
import textwrap
from typing import BinaryIO, Sequence

from gitweb_pubsub.domain.entities import ChangelogEntry, MessageSegment, Person
from gitweb_pubsub.domain.exceptions import MalformedRemoteDataError
from gitweb_pubsub.domain.ports.page_source import PageSource
from gitweb_pubsub.domain.value_objects import ReferenceName, RemoteRepository
from gitweb_pubsub.infrastructure.gitweb_page import extract_hash
from gitweb_pubsub.infrastructure.url_builder import COMMIT, SHORTLOG, UrlBuilder
from gitweb_pubsub.services.gitweb_dates import format_changelog_time, parse_rfc2822
from gitweb_pubsub.services.reference_resolver import as_reference

logger = logging.getLogger(__name__)

WRAP_WIDTH = 72
INDENT = "    "

_IDENTITY_RE = re.compile(r"^(?P<name>.*?)\s*<(?P<email>[^<>]*)>\s*$")


# ── Pure helpers ────────────────────────────────────────────────────────────


def parse_identity(text: str) -> tuple[str, str]:
    """Split ``Name <email>`` into its parts; a missing email is empty."""
    match = _IDENTITY_RE.match(text.strip())
    if not match:
        return text.strip(), ""
    return match["name"], match["email"]


def parse_message(nodes: Sequence[str | None]) -> tuple[MessageSegment, ...]:
    """Rebuild message paragraphs from text runs and line breaks (``None``).

    Text runs separated by a single break belong to the same paragraph and
    are joined with one space.  A break that does not end a text run closes
    the pending paragraph and contributes a blank line.
    """
    segments: list[MessageSegment] = []
    para: list[str] = []
    in_para = False
    for node in nodes:
        if node is None:
            if in_para:
                in_para = False
                continue
            if para:
                segments.append(MessageSegment(" ".join(para)))
                para = []
            segments.append(MessageSegment())
            continue
        text = node.replace("\xa0", " ").strip()
        if text:
            para.append(text)
            in_para = True
    if para:
        segments.append(MessageSegment(" ".join(para)))
    return tuple(segments)


def format_entry(entry: ChangelogEntry) -> str:
    """Serialise *entry* in the git changelog layout, trailing blank line included."""
    lines = [
        f"commit {entry.hash}",
        f"tree {entry.tree_hash}",
        "parent" + "".join(f" {p}" for p in entry.parent_hashes),
        _person_line("author", entry.author),
        _person_line("committer", entry.committer),
        "",
    ]
    for segment in entry.message:
        if segment.is_blank:
            lines.append("")
            continue
        wrapped = textwrap.wrap(
            segment.text or "",
            width=WRAP_WIDTH,
            break_long_words=False,
            break_on_hyphens=False,
        )
        lines.extend(INDENT + line for line in wrapped)
    lines.append("")
    return "\n".join(lines) + "\n"


def _person_line(role: str, person: Person) -> str:
    return (
        f"{role} {person.name} <{person.email}> "
        f"{format_changelog_time(person.timestamp)}"
    )


# ── Synthesizer ─────────────────────────────────────────────────────────────


class ChangelogSynthesizer:
    """Walks shortlog pages newest first and streams changelog entries.

    Parameters
    ----------
    pages:
        Source of parsed gitweb pages.
    urls:
        Maps remotes onto the configured gitweb hosts.
    max_changelog:
        Hard cap on the number of entries written by one call.
    """

    def __init__(
        self, pages: PageSource, urls: UrlBuilder, max_changelog: int = 1024
    ) -> None:
        self._pages = pages
        self._urls = urls
        self._max = max(1, max_changelog)

    def changes_since(
        self,
        remote: str,
        ref: ReferenceName | str,
        since: str | None,
        until: str | None,
        sink: BinaryIO,
    ) -> bool:
        """Write the commits after *since* up to *until* (or *ref*) to *sink*.

        *since* itself is excluded.  Returns ``True`` when at least one entry
        was written; asking for the changes between a revision and itself is
        answered with ``False`` without touching the server.
        """
        since = since.lower() if since else None
        until = until.lower() if until else None
        if since is not None and since == until:
            return False

        repo = self._urls.resolve(remote)
        head = until or as_reference(ref).wire_name
        count = 0
        page_no = 0
        while count < self._max:
            url = self._urls.expand(
                SHORTLOG, repo, a="shortlog", h=head, pg=page_no or None
            )
            page_no += 1
            links = self._pages.fetch(url).shortlog_links()
            if not links:
                logger.debug("Shortlog of %s exhausted after %d commits", head, count)
                break
            for href in links:
                commit = extract_hash(href)
                if commit is None:
                    continue
                if commit == since:
                    return count > 0
                entry = self.read_entry(repo, commit)
                sink.write(format_entry(entry).encode("utf-8"))
                sink.flush()
                count += 1
                if count >= self._max:
                    logger.info(
                        "Changelog for %s truncated at %d commits", head, self._max
                    )
                    break
        return count > 0

    def read_entry(self, repo: RemoteRepository, commit: str) -> ChangelogEntry:
        """Scrape one commit page into a :class:`ChangelogEntry`."""
        page = self._pages.fetch(self._urls.expand(COMMIT, repo, a="commit", h=commit))
        sha1s = page.object_header_sha1s()
        if len(sha1s) < 2:
            raise MalformedRemoteDataError(
                f"Expected commit and tree hashes, got {len(sha1s)}", raw=commit
            )
        identities = page.object_header_identities()
        timestamps = page.object_header_timestamps()
        if len(identities) < 2 or len(timestamps) < 2:
            raise MalformedRemoteDataError(
                "Expected author and committer in the object header",
                raw=" | ".join(identities + timestamps),
            )
        author_name, author_email = parse_identity(identities[0])
        committer_name, committer_email = parse_identity(identities[1])
        return ChangelogEntry(
            hash=sha1s[0],
            tree_hash=sha1s[1],
            parent_hashes=tuple(sha1s[2:]),
            author=Person(author_name, author_email, parse_rfc2822(timestamps[0])),
            committer=Person(
                committer_name, committer_email, parse_rfc2822(timestamps[1])
            ),
            message=parse_message(page.message_nodes()),
        )

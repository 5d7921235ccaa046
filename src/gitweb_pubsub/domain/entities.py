"""Domain entities: pure data structures with no external dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from gitweb_pubsub.domain.value_objects import ReferenceName

UNKNOWN_TIMESTAMP = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ── Revisions ───────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Revision:
    """A reference resolved to the commit it points at.

    ``tag_timestamp`` is only set for tags: the tag object's own timestamp for
    annotated tags, the commit's committer timestamp for lightweight ones.
    """

    hash: str
    head: ReferenceName
    tag_timestamp: datetime | None = None


# ── Trees ───────────────────────────────────────────────────────────────────


class EntryType(str, Enum):
    """Classification of a path inside a tree."""

    FILE = "file"
    DIRECTORY = "directory"
    NONEXISTENT = "nonexistent"


@dataclass(frozen=True, slots=True)
class TreeEntry:
    """One row of a tree listing."""

    name: str
    kind: EntryType


# ── Changelog ───────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Person:
    """Author or committer identity with the time they acted."""

    name: str
    email: str
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class MessageSegment:
    """A paragraph of commit message text, or a blank line when ``text`` is None."""

    text: str | None = None

    @property
    def is_blank(self) -> bool:
        return self.text is None


@dataclass(frozen=True, slots=True)
class ChangelogEntry:
    """Everything the changelog layout needs about one commit."""

    hash: str
    tree_hash: str
    parent_hashes: tuple[str, ...]
    author: Person
    committer: Person
    message: tuple[MessageSegment, ...] = ()


# ── Navigator ───────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class RepositorySource:
    """A repository discovered in a server's ``repositories.json`` index."""

    source_id: str
    name: str
    remote: str
    browser_url: str


# ── Event feed ──────────────────────────────────────────────────────────────


class RefChangeKind(str, Enum):
    """What happened to a reference in a push notification."""

    CREATED = "created"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True, slots=True)
class Heartbeat:
    """A ``stillalive`` record carrying the feed's sequence token."""

    sequence_token: int


@dataclass(frozen=True, slots=True)
class RefChanged:
    """A branch was created, updated or removed in a hosted repository.

    ``legacy`` is set for records delivered under the transitional ``commit``
    key; they are handled exactly like ``push`` records.
    """

    kind: RefChangeKind
    server: str
    project: str
    ref: ReferenceName
    remote: str
    from_hash: str | None = None
    to_hash: str | None = None
    legacy: bool = False


ClassifiedEvent = Heartbeat | RefChanged


@dataclass(slots=True)
class PollCursor:
    """Resumption state of the event feed.

    Mutated only by the owning event stream client.
    """

    last_sequence_token: int = 0
    last_activity: float = 0.0
    stuck_token: int = 0


@dataclass(slots=True)
class EventStats:
    """Running counters of records processed by one event stream client."""

    all_events: int = 0
    alive_events: int = 0
    push_events: int = 0
    counted_since: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

"""Pydantic response DTOs for the API boundary."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from gitweb_pubsub.domain.entities import (
    EntryType,
    EventStats,
    PollCursor,
    RepositorySource,
    Revision,
    TreeEntry,
)
from gitweb_pubsub.domain.value_objects import ReferenceKind, ReferenceName


class ReferenceOut(BaseModel):
    """A reference name as it appears on the wire."""

    ref: str
    kind: ReferenceKind

    @classmethod
    def from_domain(cls, ref: ReferenceName) -> ReferenceOut:
        return cls(ref=ref.wire_name, kind=ref.kind)


class RevisionOut(BaseModel):
    """A reference resolved to its commit."""

    ref: str
    kind: ReferenceKind
    hash: str
    tag_timestamp: datetime | None = None

    @classmethod
    def from_domain(cls, revision: Revision) -> RevisionOut:
        return cls(
            ref=revision.head.wire_name,
            kind=revision.head.kind,
            hash=revision.hash,
            tag_timestamp=revision.tag_timestamp,
        )


class TimestampOut(BaseModel):
    timestamp: datetime


class TreeEntryOut(BaseModel):
    name: str
    kind: EntryType

    @classmethod
    def from_domain(cls, entry: TreeEntry) -> TreeEntryOut:
        return cls(name=entry.name, kind=entry.kind)


class EntryTypeOut(BaseModel):
    path: str
    type: EntryType


class SourceOut(BaseModel):
    """One repository found by the navigator."""

    source_id: str
    name: str
    remote: str
    browser_url: str

    @classmethod
    def from_domain(cls, source: RepositorySource) -> SourceOut:
        return cls(
            source_id=source.source_id,
            name=source.name,
            remote=source.remote,
            browser_url=source.browser_url,
        )


class EventStatusOut(BaseModel):
    """Health of the push notification feed."""

    enabled: bool
    in_flight: bool = False
    last_sequence_token: int = 0
    all_events: int = 0
    alive_events: int = 0
    push_events: int = 0
    watchers: int = 0

    @classmethod
    def from_domain(
        cls, in_flight: bool, cursor: PollCursor, stats: EventStats, watchers: int
    ) -> EventStatusOut:
        return cls(
            enabled=True,
            in_flight=in_flight,
            last_sequence_token=cursor.last_sequence_token,
            all_events=stats.all_events,
            alive_events=stats.alive_events,
            push_events=stats.push_events,
            watchers=watchers,
        )


class ErrorResponse(BaseModel):
    """Standard error envelope returned on all failure paths."""

    status: str = "error"
    message: str

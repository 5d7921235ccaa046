"""API routes: thin controllers that delegate to the telescope.

Handlers are plain ``def`` functions: the telescope blocks on HTTP, and
FastAPI runs synchronous handlers in its threadpool.
"""

from __future__ import annotations

import io
import itertools
from typing import Any

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import StreamingResponse

from gitweb_pubsub.domain.exceptions import TelescopeDisabledError, UnknownRemoteError
from gitweb_pubsub.domain.value_objects import ReferenceType
from gitweb_pubsub.interface.dependencies import (
    get_dispatcher,
    get_event_stream,
    get_navigator,
    get_telescope,
)
from gitweb_pubsub.interface.schemas import (
    EntryTypeOut,
    ErrorResponse,
    EventStatusOut,
    ReferenceOut,
    RevisionOut,
    SourceOut,
    TimestampOut,
    TreeEntryOut,
)
from gitweb_pubsub.services.event_dispatcher import EventDispatcher
from gitweb_pubsub.services.event_stream import EventStreamClient
from gitweb_pubsub.services.navigator import RepositoryNavigator
from gitweb_pubsub.services.telescope import Telescope

router = APIRouter()

_ERRORS: dict[int | str, dict[str, Any]] = {
    404: {"model": ErrorResponse, "description": "Unknown remote or no default branch"},
    502: {
        "model": ErrorResponse,
        "description": "gitweb answered with an error or an unexpected page",
    },
    503: {"model": ErrorResponse, "description": "Remote browsing is disabled"},
    504: {"model": ErrorResponse, "description": "gitweb could not be reached"},
}


# ── References ──────────────────────────────────────────────────────────────


@router.get("/revisions", response_model=None, responses=_ERRORS)
def list_revisions(
    remote: str,
    kind: list[ReferenceType] = Query(default=[ReferenceType.HEAD, ReferenceType.TAG]),
    resolve: bool = False,
    telescope: Telescope = Depends(get_telescope),
) -> list[ReferenceOut] | list[RevisionOut]:
    """List branches and/or tags; ``resolve=true`` also resolves every entry."""
    revisions = telescope.get_revisions(remote, kind)
    if resolve:
        return [RevisionOut.from_domain(r) for r in revisions]
    return [ReferenceOut.from_domain(ref) for ref in revisions.refs]


@router.get("/revision", response_model=RevisionOut, responses=_ERRORS)
def get_revision(
    remote: str, ref: str, telescope: Telescope = Depends(get_telescope)
) -> RevisionOut:
    return RevisionOut.from_domain(telescope.get_revision(remote, ref))


@router.get("/timestamp", response_model=TimestampOut, responses=_ERRORS)
def get_timestamp(
    remote: str, ref: str, telescope: Telescope = Depends(get_telescope)
) -> TimestampOut:
    return TimestampOut(timestamp=telescope.get_timestamp(remote, ref))


@router.get("/default-target", response_model=ReferenceOut, responses=_ERRORS)
def get_default_target(
    remote: str, telescope: Telescope = Depends(get_telescope)
) -> ReferenceOut:
    return ReferenceOut.from_domain(telescope.get_default_target(remote))


# ── Trees ───────────────────────────────────────────────────────────────────


@router.get("/tree", response_model=list[TreeEntryOut], responses=_ERRORS)
def list_tree(
    remote: str,
    ref: str,
    path: str = "",
    telescope: Telescope = Depends(get_telescope),
) -> list[TreeEntryOut]:
    return [
        TreeEntryOut.from_domain(e) for e in telescope.list_children(remote, ref, path)
    ]


@router.get("/type", response_model=EntryTypeOut, responses=_ERRORS)
def get_type(
    remote: str, ref: str, path: str, telescope: Telescope = Depends(get_telescope)
) -> EntryTypeOut:
    return EntryTypeOut(path=path, type=telescope.type_of(remote, ref, path))


@router.get("/content", responses=_ERRORS)
def get_content(
    remote: str, ref: str, path: str, telescope: Telescope = Depends(get_telescope)
) -> StreamingResponse:
    """Stream a file's raw bytes."""
    chunks = telescope.content(remote, ref, path)
    # Pull the first chunk here so HTTP errors surface before headers are sent.
    first = next(chunks, b"")
    return StreamingResponse(
        itertools.chain([first], chunks), media_type="application/octet-stream"
    )


@router.get("/last-modified", response_model=TimestampOut, responses=_ERRORS)
def get_last_modified(
    remote: str,
    ref: str,
    path: str = "",
    telescope: Telescope = Depends(get_telescope),
) -> TimestampOut:
    return TimestampOut(timestamp=telescope.last_modified(remote, ref, path))


# ── Changelog ───────────────────────────────────────────────────────────────


@router.get(
    "/changelog",
    responses={**_ERRORS, 204: {"description": "No changes between the revisions"}},
)
def get_changelog(
    remote: str,
    ref: str,
    since: str | None = None,
    until: str | None = None,
    telescope: Telescope = Depends(get_telescope),
) -> Response:
    """Return the git-format changelog between two revisions as plain text."""
    sink = io.BytesIO()
    if not telescope.changes_since(remote, ref, since, until, sink):
        return Response(status_code=204)
    return Response(content=sink.getvalue(), media_type="text/plain; charset=utf-8")


# ── Navigation and events ───────────────────────────────────────────────────


@router.get("/sources", response_model=list[SourceOut], responses=_ERRORS)
def list_sources(
    server: str,
    include: str | None = None,
    telescope: Telescope = Depends(get_telescope),
    navigator: RepositoryNavigator = Depends(get_navigator),
) -> list[SourceOut]:
    """List the repositories indexed on a known gitweb server."""
    if telescope.disabled:
        raise TelescopeDisabledError("Remote browsing is disabled")
    if server.rstrip("/") not in telescope.urls.hosts:
        raise UnknownRemoteError(server)
    return [SourceOut.from_domain(s) for s in navigator.visit_sources(include)]


@router.get("/events/status", response_model=EventStatusOut)
def event_status(
    dispatcher: EventDispatcher = Depends(get_dispatcher),
    stream: EventStreamClient | None = Depends(get_event_stream),
) -> EventStatusOut:
    if stream is None:
        return EventStatusOut(enabled=False, watchers=len(dispatcher.registrations))
    return EventStatusOut.from_domain(
        stream.in_flight, stream.cursor, stream.stats, len(dispatcher.registrations)
    )

"""Framing and classification of push-notification feed records.

The feed is a chunked HTTP body of JSON objects, each terminated by
``\\r\\n``.  Transport chunks do not line up with records, so bytes are
buffered until a terminator arrives.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from gitweb_pubsub.domain.entities import (
    ClassifiedEvent,
    Heartbeat,
    RefChangeKind,
    RefChanged,
)
from gitweb_pubsub.domain.value_objects import R_HEADS, ReferenceName

logger = logging.getLogger(__name__)

RECORD_TERMINATOR = b"\r\n"

_ACTIONS = {
    "created": RefChangeKind.CREATED,
    "updated": RefChangeKind.UPDATED,
    "deleted": RefChangeKind.REMOVED,
}

# "commit" is the feed's older name for "push"; drop it once the feed
# no longer sends it.
_REF_CHANGE_KEYS = {"push": False, "commit": True}


class RecordAssembler:
    """Reassembles complete records from arbitrarily split chunks.

    One assembler belongs to one connection and is fed from a single
    callback, so it needs no locking.
    """

    def __init__(self) -> None:
        self._partial = bytearray()

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet forming a complete record."""
        return len(self._partial)

    def feed(self, chunk: bytes) -> list[bytes]:
        """Add *chunk* and return every record it completes."""
        if not chunk:
            return []
        if self._partial or not chunk.endswith(RECORD_TERMINATOR):
            logger.debug("Stashing partial record (%d bytes)", len(chunk))
        self._partial.extend(chunk)
        *complete, rest = bytes(self._partial).split(RECORD_TERMINATOR)
        self._partial = bytearray(rest)
        return [record for record in complete if record.strip()]


def remote_for(server_template: str, server: str, project: str) -> str:
    """Clone URL of *project* on the feed's short *server* name."""
    base = server_template.format(server=server).rstrip("/")
    return f"{base}/{quote(project, safe='')}.git"


def classify_ref_change(
    payload: Any, server_template: str, legacy: bool = False
) -> RefChanged | None:
    """Turn a ``push`` payload into :class:`RefChanged`, or ``None`` to ignore it.

    Only branch updates of git repositories are of interest; tag pushes and
    unknown actions are dropped.
    """
    if not isinstance(payload, dict):
        return None
    if payload.get("repository") != "git" or "project" not in payload:
        return None
    if payload.get("type") == "tag":
        return None
    ref = str(payload.get("ref") or "")
    if not ref.startswith(R_HEADS):
        return None
    kind = _ACTIONS.get(str(payload.get("action")))
    if kind is None:
        return None

    project = str(payload["project"])
    server = str(payload.get("server") or "")
    return RefChanged(
        kind=kind,
        server=server,
        project=project,
        ref=ReferenceName.parse(ref),
        remote=remote_for(server_template, server, project),
        from_hash=payload.get("from"),
        to_hash=payload.get("to") or payload.get("hash"),
        legacy=legacy,
    )


def is_ref_change_key(key: str) -> bool:
    return key in _REF_CHANGE_KEYS


def classify_field(key: str, value: Any, server_template: str) -> ClassifiedEvent | None:
    """Classify one top-level field; unrecognised fields yield ``None``.

    Raises ``ValueError`` or ``TypeError`` for a heartbeat whose token is not
    an integer.
    """
    if key == "stillalive":
        return Heartbeat(sequence_token=int(value))
    if key in _REF_CHANGE_KEYS:
        return classify_ref_change(value, server_template, _REF_CHANGE_KEYS[key])
    return None


def classify_record(record: dict[str, Any], server_template: str) -> list[ClassifiedEvent]:
    """Classify every recognised top-level field of one decoded record."""
    events: list[ClassifiedEvent] = []
    for key, value in record.items():
        event = classify_field(key, value, server_template)
        if event is not None:
            events.append(event)
    return events

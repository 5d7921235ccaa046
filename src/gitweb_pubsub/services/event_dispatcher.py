"""Delivery of classified feed events to registered repository watchers."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from urllib.parse import unquote, urlsplit

from gitweb_pubsub.domain.entities import (
    ClassifiedEvent,
    Heartbeat,
    RefChangeKind,
    RefChanged,
    Revision,
)
from gitweb_pubsub.domain.ports.event_listener import RefWatcher
from gitweb_pubsub.domain.value_objects import ReferenceName

logger = logging.getLogger(__name__)


def _normalize_remote(url: str) -> tuple[str, str]:
    parts = urlsplit(url.strip())
    path = unquote(parts.path).rstrip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    return (parts.hostname or "").lower(), path.rstrip("/")


def loosely_matches(a: str, b: str) -> bool:
    """Compare remotes ignoring scheme, port, host case, trailing ``/`` and ``.git``."""
    return _normalize_remote(a) == _normalize_remote(b)


@dataclass(frozen=True, eq=False)
class WatcherRegistration:
    """A callback interested in pushes to one remote."""

    remote: str
    callback: RefWatcher
    ignore_on_push: bool = False


class EventDispatcher:
    """Matches ref-change events against watchers and notifies them.

    Registration may happen from any thread; dispatch works on a snapshot.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._registrations: tuple[WatcherRegistration, ...] = ()

    @property
    def registrations(self) -> tuple[WatcherRegistration, ...]:
        return self._registrations

    def register(
        self, remote: str, callback: RefWatcher, *, ignore_on_push: bool = False
    ) -> WatcherRegistration:
        registration = WatcherRegistration(remote, callback, ignore_on_push)
        with self._lock:
            self._registrations = (*self._registrations, registration)
        return registration

    def unregister(self, registration: WatcherRegistration) -> None:
        with self._lock:
            self._registrations = tuple(
                r for r in self._registrations if r is not registration
            )

    def dispatch(self, event: ClassifiedEvent) -> int:
        """Deliver *event*; returns how many watchers were notified."""
        if isinstance(event, Heartbeat):
            logger.debug("Heartbeat %d", event.sequence_token)
            return 0

        notified = 0
        for registration in self._registrations:
            if registration.ignore_on_push:
                continue
            if not loosely_matches(registration.remote, event.remote):
                continue
            try:
                registration.callback(event)
            except Exception:
                logger.exception(
                    "Watcher for %s failed handling %s", registration.remote, event
                )
                continue
            notified += 1
        logger.debug(
            "%s of %s %s notified %d watcher(s)",
            event.kind.value,
            event.remote,
            event.ref,
            notified,
        )
        return notified

    @staticmethod
    def heads(event: RefChanged) -> dict[ReferenceName, Revision | None]:
        """The branch an event moved and its new revision; ``None`` once deleted."""
        if event.kind is RefChangeKind.REMOVED or not event.to_hash:
            return {event.ref: None}
        return {event.ref: Revision(hash=event.to_hash, head=event.ref)}

"""Port implemented by whoever watches a repository for pushes."""

from __future__ import annotations

from typing import Protocol

from gitweb_pubsub.domain.entities import RefChanged


class RefWatcher(Protocol):
    """Callback invoked for every push notification matching a watched remote."""

    def __call__(self, event: RefChanged) -> None:
        ...

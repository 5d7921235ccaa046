"""Gitweb URL construction from remote identifiers and URI templates."""

from __future__ import annotations

import re
import threading
from typing import Iterable
from urllib.parse import quote

from gitweb_pubsub.domain.exceptions import UnknownRemoteError
from gitweb_pubsub.domain.value_objects import RemoteRepository

# ── Action templates ────────────────────────────────────────────────────────

COMMIT = "{+server}{?p}{;a,h}"
LISTING = "{+server}{?p}{;a}"
SHORTLOG = "{+server}{?p}{;a,h,pg}"
TREE = "{+server}{?p}{;a,hb,f}"
BLOB = "{+server}{?p}{;a,f,hb}"

_EXPRESSION_RE = re.compile(r"\{([+#./;?&]?)([^}]+)\}")

# operator -> (first, separator, named, safe characters)
_OPERATORS: dict[str, tuple[str, str, bool, str]] = {
    "": ("", ",", False, ""),
    "+": ("", ",", False, ":/?#[]@!$&'()*+,;="),
    "#": ("#", ",", False, ":/?#[]@!$&'()*+,;="),
    ".": (".", ".", False, ""),
    "/": ("/", "/", False, ""),
    ";": (";", ";", True, ""),
    "?": ("?", "&", True, ""),
    "&": ("&", "&", True, ""),
}


def expand_template(template: str, values: dict[str, object]) -> str:
    """Expand an RFC 6570 (level 3) URI template.

    Variables whose value is ``None`` are left out of the result entirely.
    """

    def _expand(match: re.Match[str]) -> str:
        first, sep, named, safe = _OPERATORS[match.group(1)]
        parts: list[str] = []
        for name in match.group(2).split(","):
            value = values.get(name)
            if value is None:
                continue
            encoded = quote(str(value), safe=safe)
            if not named:
                parts.append(encoded)
            elif encoded or match.group(1) != ";":
                parts.append(f"{name}={encoded}")
            else:
                parts.append(name)
        return first + sep.join(parts) if parts else ""

    return _EXPRESSION_RE.sub(_expand, template)


class UrlBuilder:
    """Maps remotes onto known gitweb hosts and builds action URLs.

    The host list is copied on construction and only mutated under a lock,
    so lookups always see a consistent snapshot.
    """

    def __init__(self, hosts: Iterable[str]) -> None:
        self._lock = threading.Lock()
        self._hosts: tuple[str, ...] = tuple(hosts)

    @property
    def hosts(self) -> tuple[str, ...]:
        return self._hosts

    def add_host(self, prefix: str) -> None:
        with self._lock:
            if prefix not in self._hosts:
                self._hosts = (*self._hosts, prefix)

    def remove_host(self, prefix: str) -> None:
        with self._lock:
            self._hosts = tuple(h for h in self._hosts if h != prefix)

    def supports(self, remote: str) -> bool:
        return any(remote.startswith(prefix + "/") for prefix in self._hosts)

    def resolve(self, remote: str) -> RemoteRepository:
        """Split *remote* into the matching host prefix and the project path."""
        for prefix in self._hosts:
            if remote.startswith(prefix + "/"):
                return RemoteRepository(
                    server_base=prefix,
                    project_path=remote[len(prefix) + 1:],
                )
        raise UnknownRemoteError(remote)

    @staticmethod
    def expand(template: str, repo: RemoteRepository, **params: object) -> str:
        """Expand an action *template* for *repo*; ``None`` params are omitted."""
        return expand_template(
            template,
            {"server": repo.server_base, "p": repo.project_path, **params},
        )

"""Value objects: self-validating domain primitives."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

R_HEADS = "refs/heads/"
R_TAGS = "refs/tags/"

_HASH_RE = re.compile(r"^[0-9a-fA-F]{40}$")


class ReferenceKind(str, Enum):
    """Namespace a reference name lives in."""

    BRANCH = "branch"
    TAG = "tag"
    HASH = "hash"


@dataclass(frozen=True, slots=True)
class RemoteRepository:
    """A repository hosted on one of the known gitweb servers.

    ``server_base`` is the configured host prefix (for example
    ``https://gitbox.apache.org/repos/asf``) and ``project_path`` the rest of
    the remote after ``prefix + "/"`` (for example ``maven.git``).
    """

    server_base: str
    project_path: str

    @property
    def remote(self) -> str:
        return f"{self.server_base}/{self.project_path}"


@dataclass(frozen=True, slots=True)
class ReferenceName:
    """A branch, a tag, or a raw revision expression.

    Branches and tags are stored without their ``refs/heads/`` or
    ``refs/tags/`` prefix; :attr:`wire_name` puts it back.  The ``HASH`` kind
    covers 40-hex commit ids as well as any other expression gitweb resolves
    verbatim.
    """

    kind: ReferenceKind
    name: str

    @classmethod
    def branch(cls, name: str) -> ReferenceName:
        return cls(ReferenceKind.BRANCH, name)

    @classmethod
    def tag(cls, name: str) -> ReferenceName:
        return cls(ReferenceKind.TAG, name)

    @classmethod
    def raw(cls, name: str) -> ReferenceName:
        return cls(ReferenceKind.HASH, name)

    @classmethod
    def parse(cls, text: str) -> ReferenceName:
        """Classify ``text`` by its ``refs/`` namespace prefix."""
        text = text.strip()
        if text.startswith(R_HEADS):
            return cls.branch(text[len(R_HEADS):])
        if text.startswith(R_TAGS):
            return cls.tag(text[len(R_TAGS):])
        return cls.raw(text.lower() if is_full_hash(text) else text)

    @property
    def wire_name(self) -> str:
        if self.kind is ReferenceKind.BRANCH:
            return R_HEADS + self.name
        if self.kind is ReferenceKind.TAG:
            return R_TAGS + self.name
        return self.name

    @property
    def is_tag(self) -> bool:
        return self.kind is ReferenceKind.TAG

    @property
    def is_branch(self) -> bool:
        return self.kind is ReferenceKind.BRANCH

    def __str__(self) -> str:
        return self.wire_name


def is_full_hash(text: str) -> bool:
    """Return ``True`` when *text* is a full 40 character hex object id."""
    return bool(_HASH_RE.match(text))


class ReferenceType(str, Enum):
    """Which listing of a repository to enumerate."""

    HEAD = "head"
    TAG = "tag"

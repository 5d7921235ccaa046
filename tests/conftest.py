"""Shared fixtures: a scripted gitweb server behind ``httpx.MockTransport``.

Routes are keyed by the decoded query parameters of the gitweb action
(everything except ``p``), so tests register pages the way gitweb addresses
them: ``gitweb.add(commit_page(...), a="commit", h="refs/heads/master")``.
"""

from __future__ import annotations

import json
import re
from collections import Counter
from collections.abc import Iterator
from typing import Any
from urllib.parse import unquote

import httpx
import pytest

from gitweb_pubsub.infrastructure.page_fetcher import PageFetcher
from gitweb_pubsub.infrastructure.url_builder import UrlBuilder
from gitweb_pubsub.services.telescope import Telescope

HOST = "http://gitweb.test/repos/asf"
REMOTE = f"{HOST}/maven.git"

MASTER = "f5f76c70e1828a7e6c6267fc4bc53abc35c19ce7"
TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"
PARENT = "0c3d2b1a0c3d2b1a0c3d2b1a0c3d2b1a0c3d2b1a"
LIGHTWEIGHT_TAG_COMMIT = "5919b7450d2e01f079e930d92df7910af39d489a"
ANNOTATED_TAG = "61a8c2048bec05c0748b143e3bfd54f97d1a1423"
ANNOTATED_TAG_COMMIT = "9d3f0a5a6c2c1c2d3e4f5a6b7c8d9e0f1a2b3c4d"

AUTHOR_DATE = "Thu, 26 Oct 2017 08:30:12 +0000"
COMMITTER_DATE = "Thu, 26 Oct 2017 09:15:00 +0000"
TAG_DATE = "Mon, 20 Nov 2017 11:38:47 +0000"

_PARAM_SPLIT_RE = re.compile(r"[;&]")


def _key(params: dict[str, Any]) -> frozenset[tuple[str, str]]:
    return frozenset(
        (name, str(value)) for name, value in params.items() if value is not None
    )


def _request_key(request: httpx.Request) -> frozenset[tuple[str, str]]:
    pairs: dict[str, str] = {}
    for part in _PARAM_SPLIT_RE.split(request.url.query.decode("ascii")):
        if not part:
            continue
        name, _, value = part.partition("=")
        if name != "p":
            pairs[unquote(name)] = unquote(value)
    return _key(pairs)


class FakeGitweb:
    """Answers gitweb actions from a table of canned responses; 404 otherwise."""

    def __init__(self) -> None:
        self._routes: dict[frozenset[tuple[str, str]], tuple[int, bytes]] = {}
        self._documents: dict[str, Any] = {}
        self.hits: Counter[frozenset[tuple[str, str]]] = Counter()
        self.paths: list[str] = []

    def add(self, body: str | bytes, *, status: int = 200, **params: Any) -> None:
        content = body.encode("utf-8") if isinstance(body, str) else body
        self._routes[_key(params)] = (status, content)

    def add_json(self, path: str, document: Any) -> None:
        self._documents[path] = document

    def count(self, **params: Any) -> int:
        return self.hits[_key(params)]

    @property
    def total(self) -> int:
        return sum(self.hits.values())

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.paths.append(request.url.path)
        if request.url.path in self._documents:
            return httpx.Response(
                200, content=json.dumps(self._documents[request.url.path]).encode()
            )
        key = _request_key(request)
        self.hits[key] += 1
        status, body = self._routes.get(key, (404, b"<html>404 - Not found</html>"))
        return httpx.Response(status, content=body)


# ── Page builders ───────────────────────────────────────────────────────────


def commit_page(
    commit: str = MASTER,
    *,
    tree: str = TREE,
    parents: tuple[str, ...] = (PARENT,),
    author: str = "Jane Doe <jane@example.org>",
    author_date: str = AUTHOR_DATE,
    committer: str = "John Roe <john@example.org>",
    committer_date: str = COMMITTER_DATE,
    message: str = "Fix the widget<br/>",
) -> str:
    parent_rows = "".join(
        f'<tr><td>parent</td><td class="sha1"><a href="?a=commit;h={p}">{p}</a></td></tr>'
        for p in parents
    )
    return f"""<html><body>
<div class="page_nav">summary | shortlog | log</div>
<table class="object_header">
<tr><td>author</td><td>{_escape(author)}</td><td rowspan="2"></td></tr>
<tr><td></td><td><span class="datetime">{author_date}</span> (10:30 +0200)</td></tr>
<tr><td>committer</td><td>{_escape(committer)}</td><td rowspan="2"></td></tr>
<tr><td></td><td><span class="datetime">{committer_date}</span></td></tr>
<tr><td>commit</td><td class="sha1">{commit}</td></tr>
<tr><td>tree</td><td class="sha1"><a href="?a=tree;h={tree}">{tree}</a></td></tr>
{parent_rows}
</table>
<div class="page_body">
{message}
</div>
</body></html>"""


def tag_page(tag_date: str = TAG_DATE, tagger: str = "Jane Doe <jane@example.org>") -> str:
    return f"""<html><body>
<table class="object_header">
<tr><td>object</td><td class="sha1">{ANNOTATED_TAG_COMMIT}</td></tr>
<tr><td>author</td><td>{_escape(tagger)}</td></tr>
<tr><td></td><td><span class="datetime">{tag_date}</span></td></tr>
</table>
<div class="page_body">Release 1.0<br/></div>
</body></html>"""


def heads_page(heads: list[tuple[str, bool]]) -> str:
    rows = []
    for name, current in heads:
        cell = '<td class="current_head">' if current else "<td>"
        rows.append(
            f"<tr><td><i>2 days ago</i></td>{cell}"
            f'<a class="list name" href="?p=maven.git;a=shortlog;h=refs/heads/{name}">{name}</a>'
            "</td></tr>"
        )
    return f'<html><body><table class="heads">{"".join(rows)}</table></body></html>'


def tags_page(tags: list[tuple[str, str, str | None]]) -> str:
    """Rows of ``(name, commit, tag_object)``; lightweight tags have no object."""
    rows = []
    for name, commit, tag_object in tags:
        selflink = (
            f'<a href="?p=maven.git;a=tag;h={tag_object}">tag</a>' if tag_object else ""
        )
        rows.append(
            f"<tr><td><i>3 weeks ago</i></td>"
            f'<td><a class="list name" href="?p=maven.git;a=commit;h={commit}">{name}</a></td>'
            f'<td class="selflink">{selflink}</td></tr>'
        )
    return f'<html><body><table class="tags">{"".join(rows)}</table></body></html>'


def tree_page(entries: list[tuple[str, str]]) -> str:
    rows = "".join(
        f'<tr><td class="mode">{mode}</td><td class="size">-</td>'
        f'<td class="list"><a class="list" href="?a=tree;f={name}">{name}</a></td></tr>'
        for mode, name in entries
    )
    return f'<html><body><table class="tree">{rows}</table></body></html>'


def shortlog_page(commits: list[str], table: str = "shortlog") -> str:
    rows = "".join(
        f'<tr><td title="2017-10-26"><i>2017-10-26</i></td><td class="author">Jane</td>'
        f'<td><a class="list subject" href="?p=maven.git;a=commit;h={c}">Change {c[:7]}</a></td></tr>'
        for c in commits
    )
    return f'<html><body><table class="{table}">{rows}</table></body></html>'


def history_page(commits: list[str]) -> str:
    return shortlog_page(commits, table="history")


def _escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


# ── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def gitweb() -> FakeGitweb:
    return FakeGitweb()


@pytest.fixture
def http_client(gitweb: FakeGitweb) -> Iterator[httpx.Client]:
    client = httpx.Client(transport=httpx.MockTransport(gitweb.handler))
    yield client
    client.close()


@pytest.fixture
def pages(http_client: httpx.Client) -> PageFetcher:
    return PageFetcher(http_client)


@pytest.fixture
def urls() -> UrlBuilder:
    return UrlBuilder([HOST])


@pytest.fixture
def telescope(pages: PageFetcher, urls: UrlBuilder) -> Telescope:
    return Telescope(pages, urls)

"""Gitweb HTML page wrapper: the only module that knows gitweb's markup.

The services ask questions such as "which timestamps are in the object
header" and never see a CSS selector, so a change in the front end's markup
is contained to this file.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from gitweb_pubsub.domain.exceptions import MalformedRemoteDataError

_HREF_HASH_RE = re.compile(r".*[;?&]h=([a-fA-F0-9]{40})(?:[;&].*)?$")
_WHITESPACE_RE = re.compile(r"[ \t\r\n\f]+")


def extract_hash(href: str | None) -> str | None:
    """Return the 40 hex ``h=`` parameter of a gitweb link, lower-cased."""
    if not href:
        return None
    match = _HREF_HASH_RE.match(href)
    return match.group(1).lower() if match else None


def _text(node: Tag) -> str:
    return " ".join(node.get_text().split())


class GitwebPage:
    """A parsed gitweb page, queried by meaning."""

    def __init__(self, html: str | bytes, url: str = "") -> None:
        self.url = url
        self._soup = BeautifulSoup(html, "html.parser")

    # ── Object header (commit and tag pages) ────────────────────────────

    def object_header_timestamps(self) -> list[str]:
        return [
            _text(span)
            for span in self._soup.select("table.object_header tr td span.datetime")
        ]

    def object_header_sha1s(self) -> list[str]:
        return [
            cell.get_text().strip()
            for cell in self._soup.select("table.object_header tr td.sha1")
        ]

    def object_header_identities(self) -> list[str]:
        rows = self._soup.select("table.object_header tr")
        identities: list[str] = []
        for row in rows[0:3:2]:
            cells = [child for child in row.children if isinstance(child, Tag)]
            if len(cells) < 2:
                raise MalformedRemoteDataError(
                    "Expected a label and a value cell in the object header",
                    raw=str(row),
                )
            identities.append(_text(cells[1]))
        return identities

    def message_nodes(self) -> list[str | None]:
        body = self._soup.select_one("div.page_body")
        if body is None:
            raise MalformedRemoteDataError(
                "Commit page has no message body", raw=self.url
            )
        nodes: list[str | None] = []
        for child in body.children:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                nodes.append(_WHITESPACE_RE.sub(" ", str(child)))
            elif isinstance(child, Tag):
                if child.name.lower() == "br":
                    nodes.append(None)
                else:
                    nodes.append(_WHITESPACE_RE.sub(" ", child.get_text()))
        return nodes

    # ── Listings ────────────────────────────────────────────────────────

    def tree_rows(self) -> list[tuple[str, str]]:
        rows: list[tuple[str, str]] = []
        for cell in self._soup.select("table.tree tr td.list"):
            link = cell.find("a")
            if link is None:
                continue
            row = cell.find_parent("tr")
            mode_cell = row.select_one("td.mode") if row is not None else None
            if mode_cell is None:
                siblings = cell.find_previous_siblings("td")
                if len(siblings) < 2:
                    raise MalformedRemoteDataError(
                        "Tree row has no mode column", raw=str(row or cell)
                    )
                mode_cell = siblings[1]
            rows.append((mode_cell.get_text().strip(), link.get_text()))
        return rows

    def ref_rows(self, table: str) -> list[tuple[str, str | None, str | None]]:
        rows: list[tuple[str, str | None, str | None]] = []
        for link in self._soup.select(f"table.{table} tr td a.name"):
            row = link.find_parent("tr")
            selflink = row.select_one("td.selflink a") if row is not None else None
            rows.append(
                (
                    link.get_text().strip(),
                    link.get("href"),
                    selflink.get("href") if selflink is not None else None,
                )
            )
        return rows

    def current_head_names(self) -> list[str]:
        return [
            link.get_text().strip()
            for link in self._soup.select("table.heads tr td.current_head a.name")
        ]

    def shortlog_links(self) -> list[str]:
        return [
            link.get("href", "")
            for link in self._soup.select("table.shortlog tr td a.subject")
        ]

    def history_links(self) -> list[str]:
        return [
            link.get("href", "")
            for link in self._soup.select("table.history tr td a.subject")
        ]

"""HTTP-level tests: routes, status codes and the error envelope."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from conftest import (
    HOST,
    MASTER,
    PARENT,
    REMOTE,
    FakeGitweb,
    commit_page,
    heads_page,
    shortlog_page,
    tags_page,
    tree_page,
)
from gitweb_pubsub.infrastructure.page_fetcher import PageFetcher
from gitweb_pubsub.interface.app import create_app
from gitweb_pubsub.interface.dependencies import (
    get_dispatcher,
    get_event_stream,
    get_navigator,
    get_telescope,
)
from gitweb_pubsub.services.event_dispatcher import EventDispatcher
from gitweb_pubsub.services.navigator import RepositoryNavigator
from gitweb_pubsub.services.telescope import Telescope

BRANCH = "refs/heads/master"


@pytest.fixture
def client(telescope: Telescope, pages: PageFetcher, gitweb: FakeGitweb) -> Iterator[TestClient]:
    gitweb.add(commit_page(MASTER), a="commit", h=BRANCH)
    gitweb.add(heads_page([("master", True), ("develop", False)]), a="heads")
    gitweb.add(tags_page([]), a="tags")
    gitweb.add(tree_page([("drwxr-xr-x", "src"), ("-rw-r--r--", "pom.xml")]), a="tree", hb=BRANCH)

    def navigator(server: str) -> RepositoryNavigator:
        return RepositoryNavigator(pages, server)

    app = create_app()
    app.dependency_overrides[get_telescope] = lambda: telescope
    app.dependency_overrides[get_dispatcher] = EventDispatcher
    app.dependency_overrides[get_event_stream] = lambda: None
    app.dependency_overrides[get_navigator] = navigator
    # No context manager: the lifespan (real HTTP clients, feed task) stays off.
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


class TestReferences:
    def test_revision(self, client: TestClient) -> None:
        resp = client.get("/revision", params={"remote": REMOTE, "ref": BRANCH})
        assert resp.status_code == 200
        assert resp.json() == {"ref": BRANCH, "kind": "branch", "hash": MASTER, "tag_timestamp": None}

    def test_revisions_without_resolution(self, client: TestClient, gitweb: FakeGitweb) -> None:
        resp = client.get("/revisions", params={"remote": REMOTE, "kind": "head"})
        assert resp.json() == [
            {"ref": "refs/heads/master", "kind": "branch"},
            {"ref": "refs/heads/develop", "kind": "branch"},
        ]
        assert gitweb.count(a="commit", h=BRANCH) == 0

    def test_revisions_resolved(self, client: TestClient, gitweb: FakeGitweb) -> None:
        gitweb.add(heads_page([("master", True)]), a="heads")
        resp = client.get("/revisions", params={"remote": REMOTE, "resolve": "true"})
        assert [r["hash"] for r in resp.json()] == [MASTER]

    def test_timestamp(self, client: TestClient) -> None:
        resp = client.get("/timestamp", params={"remote": REMOTE, "ref": BRANCH})
        assert resp.json()["timestamp"].startswith("2017-10-26T09:15:00")

    def test_default_target(self, client: TestClient) -> None:
        resp = client.get("/default-target", params={"remote": REMOTE})
        assert resp.json() == {"ref": BRANCH, "kind": "branch"}


class TestTrees:
    def test_tree(self, client: TestClient) -> None:
        resp = client.get("/tree", params={"remote": REMOTE, "ref": BRANCH})
        assert resp.json() == [
            {"name": "src", "kind": "directory"},
            {"name": "pom.xml", "kind": "file"},
        ]

    def test_type(self, client: TestClient) -> None:
        resp = client.get("/type", params={"remote": REMOTE, "ref": BRANCH, "path": "pom.xml"})
        assert resp.json() == {"path": "pom.xml", "type": "file"}

    def test_last_modified(self, client: TestClient, gitweb: FakeGitweb) -> None:
        gitweb.add(shortlog_page([], table="history"), a="history", hb=BRANCH, f="gone")
        resp = client.get("/last-modified", params={"remote": REMOTE, "ref": BRANCH, "path": "gone"})
        assert resp.json()["timestamp"].startswith("1970-01-01T00:00:00")

    def test_content(self, client: TestClient, gitweb: FakeGitweb) -> None:
        gitweb.add(b"<project/>", a="blob_plain", f="pom.xml", hb=BRANCH)
        resp = client.get("/content", params={"remote": REMOTE, "ref": BRANCH, "path": "pom.xml"})
        assert resp.status_code == 200
        assert resp.content == b"<project/>"

    def test_missing_content(self, client: TestClient) -> None:
        resp = client.get("/content", params={"remote": REMOTE, "ref": BRANCH, "path": "nope"})
        assert resp.status_code == 502
        assert resp.json()["status"] == "error"


class TestChangelog:
    def test_changes(self, client: TestClient, gitweb: FakeGitweb) -> None:
        gitweb.add(shortlog_page([MASTER, PARENT]), a="shortlog", h=BRANCH)
        gitweb.add(commit_page(MASTER), a="commit", h=MASTER)
        resp = client.get(
            "/changelog", params={"remote": REMOTE, "ref": BRANCH, "since": PARENT}
        )
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/plain")
        assert resp.text.startswith(f"commit {MASTER}\n")

    def test_full_history_without_bounds(self, client: TestClient, gitweb: FakeGitweb) -> None:
        gitweb.add(shortlog_page([MASTER]), a="shortlog", h=BRANCH)
        gitweb.add(shortlog_page([]), a="shortlog", h=BRANCH, pg=1)
        gitweb.add(commit_page(MASTER), a="commit", h=MASTER)
        resp = client.get("/changelog", params={"remote": REMOTE, "ref": BRANCH})
        assert resp.status_code == 200
        assert resp.text.startswith(f"commit {MASTER}\n")

    def test_no_changes(self, client: TestClient) -> None:
        resp = client.get(
            "/changelog",
            params={"remote": REMOTE, "ref": BRANCH, "since": MASTER, "until": MASTER},
        )
        assert resp.status_code == 204


class TestErrors:
    def test_unknown_remote(self, client: TestClient) -> None:
        resp = client.get("/revision", params={"remote": "https://example.org/x.git", "ref": BRANCH})
        assert resp.status_code == 404
        assert resp.json()["status"] == "error"

    def test_disabled(self, client: TestClient, telescope: Telescope) -> None:
        telescope.disabled = True
        resp = client.get("/tree", params={"remote": REMOTE, "ref": BRANCH})
        assert resp.status_code == 503

    def test_missing_parameter(self, client: TestClient) -> None:
        resp = client.get("/revision", params={"remote": REMOTE})
        assert resp.status_code == 422
        assert "ref" in resp.json()["message"]


class TestSourcesAndEvents:
    def test_sources(self, client: TestClient, gitweb: FakeGitweb) -> None:
        gitweb.add_json("/repositories.json", {"projects": {"maven": {"repositories": {"maven": {}}}}})
        resp = client.get("/sources", params={"server": HOST})
        assert resp.json() == [
            {
                "source_id": f"{HOST}::maven",
                "name": "maven",
                "remote": REMOTE,
                "browser_url": f"{HOST}?p=maven.git;a=summary",
            }
        ]

    def test_sources_on_unknown_server(self, client: TestClient) -> None:
        assert client.get("/sources", params={"server": "https://example.org/repos/x"}).status_code == 404

    def test_event_status_when_feed_is_off(self, client: TestClient) -> None:
        resp = client.get("/events/status")
        assert resp.json()["enabled"] is False
        assert resp.json()["watchers"] == 0


def test_error_envelope_is_documented(client: TestClient) -> None:
    openapi = client.get("/openapi.json").json()
    assert "ErrorResponse" in openapi["components"]["schemas"]
    responses = openapi["paths"]["/revision"]["get"]["responses"]
    assert responses["404"]["content"]["application/json"]["schema"] == {
        "$ref": "#/components/schemas/ErrorResponse"
    }

from __future__ import annotations

import hashlib
import hmac
import json

import anyio
import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from diffreview.github.adapter import COMMENT_SIGNATURE
from diffreview.github.adapter import GitHubPlatform
from diffreview.github.adapter import parse_repo
from diffreview.github.adapter import sign_comment_body
from diffreview.github.client import PER_PAGE
from diffreview.github.client import GitHubAPIError
from diffreview.github.client import GitHubClient
from diffreview.github.schemas import GitHubPullRequestWebhookEvent
from diffreview.github.webhook import build_github_webhook_router
from diffreview.review.models import ReviewComment

API = "https://api.github.test"


def _pull(number: int = 7, sha: str = "abc123") -> dict[str, object]:
    return {
        "number": number,
        "title": "Add feature",
        "body": "",
        "user": {"login": "octocat"},
        "head": {"sha": sha, "ref": "feature"},
        "base": {"ref": "main"},
        "updated_at": "2024-05-01T10:00:00Z",
        "html_url": f"https://github.test/acme/app/pull/{number}",
    }


class FakeGitHub:
    """按 (method, path) 返回预置响应，并记录所有请求。"""

    def __init__(self, routes: dict[tuple[str, str], object]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"message": "Not Found"})
        route = self.routes[key]
        if callable(route):
            return route(request)
        return httpx.Response(200 if request.method == "GET" else 201, json=route)


def _platform(fake: FakeGitHub) -> GitHubPlatform:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake))
    return GitHubPlatform(client=GitHubClient(api_base_url=API, token="t", http_client=http_client))


def test_parse_repo() -> None:
    assert parse_repo("acme/app") == ("acme", "app")
    for bad in ("acme", "acme/", "/app", "a/b/c"):
        with pytest.raises(ValueError):
            parse_repo(bad)


def test_get_pull_requests_maps_to_domain_model() -> None:
    fake = FakeGitHub({("GET", "/repos/acme/app/pulls"): [_pull(7), _pull(8, sha="def")]})
    prs = anyio.run(_platform(fake).get_pull_requests, "acme/app")

    assert [p.number for p in prs] == [7, 8]
    assert prs[0].author == "octocat"
    assert prs[0].branch == "feature"
    assert prs[0].base_branch == "main"
    assert prs[0].head_sha == "abc123"
    assert prs[0].description is None
    assert fake.requests[0].headers["Authorization"] == "Bearer t"
    assert fake.requests[0].url.params["state"] == "open"


def test_get_file_changes_paginates_and_maps_status() -> None:
    first_page = [
        {"filename": f"f{i}.py", "status": "modified", "additions": 1, "deletions": 0, "patch": "@@ -1 +1 @@\n+x"}
        for i in range(PER_PAGE)
    ]
    second_page = [
        {"filename": "gone.py", "status": "removed", "deletions": 3},
        {"filename": "new.py", "status": "renamed", "previous_filename": "old.py", "patch": ""},
        {"filename": "copy.py", "status": "copied"},
    ]

    def files(request: httpx.Request) -> httpx.Response:
        page = int(request.url.params["page"])
        return httpx.Response(200, json=first_page if page == 1 else second_page)

    fake = FakeGitHub({("GET", "/repos/acme/app/pulls/7/files"): files})
    changes = anyio.run(_platform(fake).get_file_changes, "acme/app", 7)

    assert len(changes) == PER_PAGE + 3
    assert len(fake.requests) == 2
    gone, renamed, copied = changes[-3:]
    assert gone.status == "deleted"
    assert gone.patch is None
    assert renamed.status == "renamed"
    assert renamed.previous_filename == "old.py"
    assert renamed.patch is None
    assert copied.status == "modified"


def test_post_inline_and_summary_comments() -> None:
    fake = FakeGitHub(
        {
            ("GET", "/repos/acme/app/pulls/7"): _pull(7),
            ("POST", "/repos/acme/app/pulls/7/comments"): {"id": 1},
            ("POST", "/repos/acme/app/issues/7/comments"): {"id": 2},
        }
    )
    platform = _platform(fake)

    async def post_both() -> None:
        await platform.post_comment(
            "acme/app", 7, ReviewComment(type="inline", path="src/app.py", line=12, content="Fix this")
        )
        await platform.post_comment("acme/app", 7, ReviewComment(type="summary", content="Overall fine"))

    anyio.run(post_both)

    posts = [r for r in fake.requests if r.method == "POST"]
    inline_payload = json.loads(posts[0].content)
    assert posts[0].url.path == "/repos/acme/app/pulls/7/comments"
    assert inline_payload["commit_id"] == "abc123"
    assert inline_payload["path"] == "src/app.py"
    assert inline_payload["line"] == 12
    assert inline_payload["body"] == sign_comment_body("Fix this", "abc123")

    summary_payload = json.loads(posts[1].content)
    assert posts[1].url.path == "/repos/acme/app/issues/7/comments"
    assert summary_payload["body"].startswith("Overall fine")
    assert COMMENT_SIGNATURE in summary_payload["body"]


def test_has_reviewed_checks_signature_and_head_sha() -> None:
    routes: dict[tuple[str, str], object] = {
        ("GET", "/repos/acme/app/pulls/7"): _pull(7, sha="new-sha"),
        ("GET", "/repos/acme/app/issues/7/comments"): [
            {"id": 1, "body": sign_comment_body("old review", "old-sha")},
            {"id": 2, "body": "<!-- SHA: new-sha --> but unsigned"},
        ],
        ("GET", "/repos/acme/app/pulls/7/comments"): [],
    }
    assert anyio.run(_platform(FakeGitHub(routes)).has_reviewed, "acme/app", 7) is False

    routes[("GET", "/repos/acme/app/pulls/7/comments")] = [{"id": 3, "body": sign_comment_body("x", "new-sha")}]
    assert anyio.run(_platform(FakeGitHub(routes)).has_reviewed, "acme/app", 7) is True


def test_api_error_is_raised() -> None:
    fake = FakeGitHub({})
    with pytest.raises(GitHubAPIError):
        anyio.run(_platform(fake).get_pull_requests, "acme/app")


def _sign(body: bytes, secret: str) -> str:
    return "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def _webhook_client(received: list[GitHubPullRequestWebhookEvent]) -> TestClient:
    async def handler(event: GitHubPullRequestWebhookEvent) -> None:
        received.append(event)

    app = FastAPI()
    app.include_router(build_github_webhook_router(webhook_secret="s3cret", handler=handler))
    return TestClient(app)


def test_webhook_dispatches_reviewable_actions() -> None:
    received: list[GitHubPullRequestWebhookEvent] = []
    client = _webhook_client(received)
    payload = {
        "action": "synchronize",
        "pull_request": _pull(7),
        "repository": {"name": "app", "owner": {"login": "acme"}, "full_name": "acme/app"},
    }
    body = json.dumps(payload).encode("utf-8")

    resp = client.post(
        "/github/webhook",
        content=body,
        headers={"X-GitHub-Event": "pull_request", "X-Hub-Signature-256": _sign(body, "s3cret")},
    )

    assert resp.status_code == 200
    assert resp.json() == {"status": "accepted", "pull_request": "acme/app#7"}
    assert len(received) == 1
    assert received[0].repository.full_name == "acme/app"


def test_webhook_ignores_other_actions_and_events() -> None:
    received: list[GitHubPullRequestWebhookEvent] = []
    client = _webhook_client(received)
    payload = {
        "action": "closed",
        "pull_request": _pull(7),
        "repository": {"name": "app", "owner": {"login": "acme"}, "full_name": "acme/app"},
    }
    body = json.dumps(payload).encode("utf-8")

    resp = client.post(
        "/github/webhook",
        content=body,
        headers={"X-GitHub-Event": "pull_request", "X-Hub-Signature-256": _sign(body, "s3cret")},
    )
    assert resp.json()["status"] == "ignored"
    assert "closed" in resp.json()["reason"]

    resp = client.post(
        "/github/webhook",
        content=b"{}",
        headers={"X-GitHub-Event": "push", "X-Hub-Signature-256": _sign(b"{}", "s3cret")},
    )
    assert resp.json()["status"] == "ignored"
    assert received == []


def test_webhook_rejects_bad_signature() -> None:
    received: list[GitHubPullRequestWebhookEvent] = []
    client = _webhook_client(received)
    resp = client.post(
        "/github/webhook",
        content=b"{}",
        headers={"X-GitHub-Event": "pull_request", "X-Hub-Signature-256": _sign(b"{}", "wrong")},
    )
    assert resp.status_code == 401
    assert received == []


def test_webhook_rejects_missing_signature_and_bad_payload() -> None:
    received: list[GitHubPullRequestWebhookEvent] = []
    client = _webhook_client(received)

    resp = client.post("/github/webhook", content=b"{}", headers={"X-GitHub-Event": "pull_request"})
    assert resp.status_code == 401

    body = b'{"action": "opened"}'
    resp = client.post(
        "/github/webhook",
        content=body,
        headers={"X-GitHub-Event": "pull_request", "X-Hub-Signature-256": _sign(body, "s3cret")},
    )
    assert resp.status_code == 400
    assert received == []

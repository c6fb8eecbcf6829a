"""
GitHub REST 客户端。

只覆盖 review 需要的接口：open PR 列表、PR 文件、两类评论的读写。
非 2xx 一律抛 `GitHubAPIError`，由 pipeline 把对应 PR 记为 failure。
"""

from __future__ import annotations

from typing import Any, TypeVar

import httpx
from pydantic import BaseModel

from diffreview.github.schemas import GitHubComment
from diffreview.github.schemas import GitHubPullRequest
from diffreview.github.schemas import GitHubPullRequestFile

PER_PAGE = 100
API_VERSION = "2022-11-28"

ModelT = TypeVar("ModelT", bound=BaseModel)


class GitHubAPIError(RuntimeError):
    """GitHub 返回非 2xx 或响应结构不符合预期。"""

    pass


class GitHubClient:
    def __init__(self, api_base_url: str, token: str, http_client: httpx.AsyncClient) -> None:
        self._base = api_base_url.rstrip("/")
        self._auth_headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        self._http = http_client

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._http.request(method, f"{self._base}{path}", headers=self._auth_headers, **kwargs)
        if response.status_code >= 400:
            raise GitHubAPIError(f"GitHub API error {response.status_code}: {response.text}")
        return response.json()

    async def _list(self, path: str, item_model: type[ModelT], **params: str | int) -> list[ModelT]:
        """逐页拉取，直到某一页不满 `PER_PAGE` 条。"""
        collected: list[ModelT] = []
        page = 1
        while True:
            data = await self._request("GET", path, params={**params, "per_page": PER_PAGE, "page": page})
            if not isinstance(data, list):
                raise GitHubAPIError(f"Expected a JSON array from {path}, got {type(data).__name__}")
            collected.extend(item_model.model_validate(item) for item in data)
            if len(data) < PER_PAGE:
                return collected
            page += 1

    async def list_open_pull_requests(self, owner: str, repo: str) -> list[GitHubPullRequest]:
        """最近更新的 PR 排在前面。"""
        return await self._list(
            f"/repos/{owner}/{repo}/pulls",
            GitHubPullRequest,
            state="open",
            sort="updated",
            direction="desc",
        )

    async def get_pull_request(self, owner: str, repo: str, pull_number: int) -> GitHubPullRequest:
        data = await self._request("GET", f"/repos/{owner}/{repo}/pulls/{pull_number}")
        return GitHubPullRequest.model_validate(data)

    async def list_pull_request_files(self, owner: str, repo: str, pull_number: int) -> list[GitHubPullRequestFile]:
        return await self._list(f"/repos/{owner}/{repo}/pulls/{pull_number}/files", GitHubPullRequestFile)

    async def list_issue_comments(self, owner: str, repo: str, pull_number: int) -> list[GitHubComment]:
        return await self._list(f"/repos/{owner}/{repo}/issues/{pull_number}/comments", GitHubComment)

    async def list_review_comments(self, owner: str, repo: str, pull_number: int) -> list[GitHubComment]:
        return await self._list(f"/repos/{owner}/{repo}/pulls/{pull_number}/comments", GitHubComment)

    async def create_review_comment(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        commit_id: str,
        path: str,
        line: int,
        body: str,
    ) -> None:
        """行内评论；`line` 是新文件中的行号（RIGHT side），不是 diff position。"""
        await self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{pull_number}/comments",
            json={"commit_id": commit_id, "path": path, "line": line, "side": "RIGHT", "body": body},
        )

    async def create_issue_comment(self, owner: str, repo: str, pull_number: int, body: str) -> None:
        await self._request("POST", f"/repos/{owner}/{repo}/issues/{pull_number}/comments", json={"body": body})

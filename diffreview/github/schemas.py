"""GitHub payload 的最小子集：webhook event、PR、PR 文件、评论。多余字段直接忽略。"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class GitHubOwner(BaseModel):
    login: str


class GitHubRepository(BaseModel):
    name: str
    owner: GitHubOwner
    full_name: str


class GitHubPullRequestHead(BaseModel):
    sha: str
    ref: str


class GitHubPullRequestBase(BaseModel):
    ref: str


class GitHubPullRequest(BaseModel):
    number: int
    title: str = ""
    body: str | None = None
    user: GitHubOwner | None = None
    head: GitHubPullRequestHead
    base: GitHubPullRequestBase
    updated_at: datetime | None = None
    html_url: str | None = None


class GitHubPullRequestWebhookEvent(BaseModel):
    """`pull_request` 事件；只有 `REVIEWABLE_ACTIONS` 里的 action 会触发 review。"""

    action: str
    pull_request: GitHubPullRequest
    repository: GitHubRepository


class GitHubPullRequestFile(BaseModel):
    """
    `GET /pulls/{n}/files` 的一项。

    patch 可能缺失（例如大文件/二进制），此时 FileChange.patch 为 None，prompt 里显示 "No changes"。
    """

    filename: str
    status: Literal["added", "modified", "removed", "renamed", "changed", "copied", "unchanged"]
    additions: int = 0
    deletions: int = 0
    patch: str | None = None
    previous_filename: str | None = None


class GitHubComment(BaseModel):
    """issue comment / review comment 的公共子集。"""

    id: int
    body: str | None = None

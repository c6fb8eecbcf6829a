"""
平台接口（GitHub / 本地 git）。

review 流程只依赖这个 Protocol，不关心评论最终写到哪里。
"""

from __future__ import annotations

from typing import Protocol

import httpx

from diffreview.config import AppConfig
from diffreview.config import ReviewConfig
from diffreview.github.adapter import GitHubPlatform
from diffreview.github.client import GitHubClient
from diffreview.local.platform import LocalPlatform
from diffreview.review.models import FileChange
from diffreview.review.models import PullRequest
from diffreview.review.models import ReviewComment


class CodeReviewPlatform(Protocol):
    async def get_pull_requests(self, repo: str) -> list[PullRequest]: ...

    async def get_file_changes(self, repo: str, pr_id: str | int) -> list[FileChange]: ...

    async def post_comment(self, repo: str, pr_id: str | int, comment: ReviewComment) -> None: ...

    async def has_reviewed(self, repo: str, pr_id: str | int) -> bool: ...


def build_platform(
    config: ReviewConfig,
    app_config: AppConfig,
    http_client: httpx.AsyncClient,
) -> CodeReviewPlatform:
    """按 `config.git_platform` 创建平台 adapter。"""
    if config.git_platform == "github":
        if app_config.github is None:
            raise ValueError("GITHUB_TOKEN environment variable is required")
        client = GitHubClient(
            api_base_url=str(app_config.github.api_base_url),
            token=app_config.github.token,
            http_client=http_client,
        )
        return GitHubPlatform(client=client)
    if config.git_platform == "local":
        return LocalPlatform.create(config=config)
    raise ValueError(f"Unsupported platform: {config.git_platform}")

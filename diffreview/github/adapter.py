"""
GitHub -> Review domain adapter。

职责：
- 将 GitHub PR / files 转为平台无关的 `PullRequest` / `FileChange`
- 回写评论时附带签名 + head SHA，用于判断"当前 head 是否已经 review 过"
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from diffreview.github.client import GitHubClient
from diffreview.github.schemas import GitHubPullRequest
from diffreview.github.schemas import GitHubPullRequestFile
from diffreview.review.models import FileChange
from diffreview.review.models import FileStatus
from diffreview.review.models import PullRequest
from diffreview.review.models import ReviewComment

COMMENT_SIGNATURE = "<!-- DIFF-REVIEW-BOT -->"

_SHA_MARKER_RE = re.compile(r"<!-- SHA: (.+?) -->")

_STATUS_MAP: dict[str, FileStatus] = {
    "added": "added",
    "removed": "deleted",
    "renamed": "renamed",
}


def parse_repo(repo: str) -> tuple[str, str]:
    """`owner/repo` -> (owner, repo)。"""
    owner, _, name = repo.partition("/")
    if not owner or not name or "/" in name:
        raise ValueError(f"Invalid repository format: {repo}. Expected format: owner/repo")
    return owner, name


def to_file_change(f: GitHubPullRequestFile) -> FileChange:
    status = _STATUS_MAP.get(f.status, "modified")
    return FileChange(
        filename=f.filename,
        status=status,
        additions=f.additions,
        deletions=f.deletions,
        patch=f.patch or None,
        previous_filename=f.previous_filename if status == "renamed" else None,
    )


def to_pull_request(pull: GitHubPullRequest) -> PullRequest:
    return PullRequest(
        id=pull.number,
        number=pull.number,
        title=pull.title,
        description=pull.body or None,
        author=pull.user.login if pull.user is not None else "unknown",
        branch=pull.head.ref,
        base_branch=pull.base.ref,
        updated_at=pull.updated_at or datetime.now(timezone.utc),
        url=pull.html_url,
        head_sha=pull.head.sha,
    )


def sign_comment_body(content: str, head_sha: str) -> str:
    return f"{content}\n\n{COMMENT_SIGNATURE}\n<!-- SHA: {head_sha} -->"


class GitHubPlatform:
    def __init__(self, client: GitHubClient) -> None:
        self._client = client

    async def get_pull_requests(self, repo: str) -> list[PullRequest]:
        owner, name = parse_repo(repo)
        pulls = await self._client.list_open_pull_requests(owner=owner, repo=name)
        return [to_pull_request(p) for p in pulls]

    async def get_file_changes(self, repo: str, pr_id: str | int) -> list[FileChange]:
        owner, name = parse_repo(repo)
        files = await self._client.list_pull_request_files(owner=owner, repo=name, pull_number=int(pr_id))
        return [to_file_change(f) for f in files]

    async def post_comment(self, repo: str, pr_id: str | int, comment: ReviewComment) -> None:
        """inline 且带 path/line 时发行内评论，否则发全局评论。"""
        owner, name = parse_repo(repo)
        pull_number = int(pr_id)
        pull = await self._client.get_pull_request(owner=owner, repo=name, pull_number=pull_number)
        body = sign_comment_body(content=comment.content, head_sha=pull.head.sha)

        if comment.type == "inline" and comment.path and comment.line:
            await self._client.create_review_comment(
                owner=owner,
                repo=name,
                pull_number=pull_number,
                commit_id=pull.head.sha,
                path=comment.path,
                line=comment.line,
                body=body,
            )
            return
        await self._client.create_issue_comment(owner=owner, repo=name, pull_number=pull_number, body=body)

    async def has_reviewed(self, repo: str, pr_id: str | int) -> bool:
        """当前 head SHA 上是否已经有带签名的评论（issue comments + review comments）。"""
        owner, name = parse_repo(repo)
        pull_number = int(pr_id)
        pull = await self._client.get_pull_request(owner=owner, repo=name, pull_number=pull_number)

        comments = await self._client.list_issue_comments(owner=owner, repo=name, pull_number=pull_number)
        comments += await self._client.list_review_comments(owner=owner, repo=name, pull_number=pull_number)

        reviewed_shas: set[str] = set()
        for c in comments:
            if not c.body or COMMENT_SIGNATURE not in c.body:
                continue
            match = _SHA_MARKER_RE.search(c.body)
            if match is not None:
                reviewed_shas.add(match.group(1))
        return pull.head.sha in reviewed_shas

"""
Review 领域模型（Pydantic）。

用途：
- 明确各阶段输入/输出的数据结构（平台无关）
- `ReviewComment` 是最终输出单元：由 normalizer / legacy parser 创建，交给平台回写
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

FileStatus = Literal["added", "modified", "deleted", "renamed"]
OutputSeverity = Literal["error", "warning", "suggestion"]


class FileChange(BaseModel):
    """单个文件的变更（从 GitHub PR files / 本地 git diff 归一化而来）。"""

    model_config = ConfigDict(frozen=True)

    filename: str
    status: FileStatus
    additions: int = Field(default=0, ge=0)
    deletions: int = Field(default=0, ge=0)
    patch: str | None = None
    previous_filename: str | None = None


class ReviewComment(BaseModel):
    """
    归一化后的评论。

    - inline：必须带 path + line（line 是变更后文件的绝对行号）
    - summary：全局评论
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["inline", "summary"]
    content: str
    path: str | None = None
    line: int | None = None
    severity: OutputSeverity | None = None


class PullRequest(BaseModel):
    """一个待 review 的变更集（远端 PR 或本地 diff 的合成 PR）。"""

    id: str | int
    number: int | None = None
    title: str
    description: str | None = None
    author: str
    branch: str
    base_branch: str
    updated_at: datetime
    url: str | None = None
    head_sha: str | None = None


class ReviewResult(BaseModel):
    """单个 PR 的处理结果（用于最终汇总）。"""

    pr_id: str | int
    comments_posted: int
    status: Literal["success", "failure", "skipped"]
    error: str | None = None

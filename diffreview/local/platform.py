"""
本地平台 adapter：review 本地 git diff（或 patch 文件），不访问任何远端 API。

- 永远以 dry-run 方式输出（评论打印到终端，`post_comment` 是 no-op）
- 不做重复 review 检测（`has_reviewed` 永远为 False）
"""

from __future__ import annotations

import logging
import re
import subprocess
from datetime import datetime, timezone
from pathlib import Path

import anyio

from diffreview.config import ReviewConfig
from diffreview.review.models import FileChange
from diffreview.review.models import FileStatus
from diffreview.review.models import PullRequest
from diffreview.review.models import ReviewComment

logger = logging.getLogger(__name__)

_FILE_HEADER_RE = re.compile(r"^a/(.+?)\s+b/(.+)$")


class LocalDiffError(RuntimeError):
    """本地 git / patch 文件不可用。"""

    pass


class LocalPlatform:
    def __init__(self, repo_path: str, base: str, head: str, patch_file: str | None, git_bin: str = "git") -> None:
        self._repo_path = repo_path
        self._base = base
        self._head = head
        self._patch_file = patch_file
        self._git_bin = git_bin

    @classmethod
    def create(cls, config: ReviewConfig, repo_path: str | None = None, git_bin: str = "git") -> LocalPlatform:
        """
        校验运行环境并创建实例。

        - 指定 patch 文件：只校验文件存在
        - 否则：必须在 git 仓库内；base 未指定时取 upstream 的 merge-base，没有 upstream 则用 HEAD~1
        """
        cwd = repo_path or str(Path.cwd())
        if config.patch:
            patch_path = Path(config.patch).resolve()
            if not patch_path.exists():
                raise LocalDiffError(f"Patch file not found: {patch_path}")
            return cls(repo_path=cwd, base="", head=config.head, patch_file=str(patch_path), git_bin=git_bin)

        try:
            _run_git(git_bin, ["rev-parse", "--git-dir"], cwd)
        except LocalDiffError as exc:
            raise LocalDiffError(
                f"Not a git repository: {cwd}. Run this command from inside a git repository."
            ) from exc

        base = config.base or _resolve_default_base(git_bin=git_bin, cwd=cwd, head=config.head)
        for ref in (base, config.head):
            try:
                _run_git(git_bin, ["rev-parse", "--verify", ref], cwd)
            except LocalDiffError as exc:
                raise LocalDiffError(f"Invalid git ref: '{ref}'. Make sure it exists in this repository.") from exc
        return cls(repo_path=cwd, base=base, head=config.head, patch_file=None, git_bin=git_bin)

    async def get_pull_requests(self, repo: str) -> list[PullRequest]:
        """返回一个由本地 git 元信息合成的 PR。"""
        now = datetime.now(timezone.utc)
        if self._patch_file is not None:
            return [
                PullRequest(
                    id="local-patch",
                    number=0,
                    title=f"Patch: {Path(self._patch_file).name}",
                    author="local",
                    branch="patch-file",
                    base_branch="N/A",
                    updated_at=now,
                )
            ]

        branch = self._git_or_default(["rev-parse", "--abbrev-ref", "HEAD"], "unknown")
        title = self._git_or_default(["log", "--format=%s", "-1", self._head], f"Local diff: {self._base}...{self._head}")
        author = self._git_or_default(["config", "user.name"], "local")
        return [
            PullRequest(
                id="local",
                number=0,
                title=title,
                author=author,
                branch=branch,
                base_branch=self._base,
                updated_at=now,
            )
        ]

    async def get_file_changes(self, repo: str, pr_id: str | int) -> list[FileChange]:
        if self._patch_file is not None:
            diff_output = Path(self._patch_file).read_text(encoding="utf-8")
        else:
            diff_output = await anyio.to_thread.run_sync(
                _run_git,
                self._git_bin,
                ["diff", f"{self._base}...{self._head}", "--unified=3"],
                self._repo_path,
            )
        if not diff_output.strip():
            return []
        return parse_git_diff(diff_output=diff_output)

    async def post_comment(self, repo: str, pr_id: str | int, comment: ReviewComment) -> None:
        # 本地模式的输出由调用方（dry-run 打印）负责
        return None

    async def has_reviewed(self, repo: str, pr_id: str | int) -> bool:
        return False

    def _git_or_default(self, args: list[str], default: str) -> str:
        try:
            output = _run_git(self._git_bin, args, self._repo_path).strip()
        except LocalDiffError:
            return default
        return output or default


def parse_git_diff(diff_output: str) -> list[FileChange]:
    """
    解析完整的 `git diff` 输出（含 `diff --git` 文件头）。

    - status：`new file` -> added，`deleted file` -> deleted，`rename from` -> renamed，否则 modified
    - patch：从第一个 `@@` 开始到该文件结束；没有 hunk（例如纯重命名/二进制）时为 None
    """
    files: list[FileChange] = []
    for file_diff in re.split(r"^diff --git ", diff_output, flags=re.MULTILINE):
        if not file_diff:
            continue
        lines = file_diff.split("\n")
        header = _FILE_HEADER_RE.match(lines[0])
        if header is None:
            continue
        old_path, new_path = header.group(1), header.group(2)

        status: FileStatus = "modified"
        previous_filename: str | None = None
        for line in lines[1:]:
            if line.startswith("new file"):
                status = "added"
                break
            if line.startswith("deleted file"):
                status = "deleted"
                break
            if line.startswith("rename from"):
                status = "renamed"
                previous_filename = old_path
                break
            if line.startswith("@@"):
                break

        patch_start = file_diff.find("\n@@")
        patch = file_diff[patch_start + 1 :] if patch_start != -1 else None

        additions = 0
        deletions = 0
        for patch_line in (patch or "").split("\n"):
            if patch_line.startswith("+") and not patch_line.startswith("+++"):
                additions += 1
            elif patch_line.startswith("-") and not patch_line.startswith("---"):
                deletions += 1

        files.append(
            FileChange(
                filename=new_path,
                status=status,
                additions=additions,
                deletions=deletions,
                patch=patch,
                previous_filename=previous_filename,
            )
        )
    return files


def _resolve_default_base(git_bin: str, cwd: str, head: str) -> str:
    """有 upstream 时用 merge-base（diff 更干净），否则退回 HEAD~1。"""
    try:
        upstream = _run_git(git_bin, ["rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{upstream}"], cwd).strip()
        if upstream:
            return _run_git(git_bin, ["merge-base", upstream, head], cwd).strip()
    except LocalDiffError:
        logger.debug("No upstream branch, falling back to HEAD~1")
    return "HEAD~1"


def _run_git(git_bin: str, args: list[str], cwd: str | None) -> str:
    cmd = [git_bin] + args
    try:
        result = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True)
    except OSError as exc:
        raise LocalDiffError(f"git command failed: {' '.join(cmd)}: {exc}") from exc
    if result.returncode != 0:
        logger.debug(f"git failed: {' '.join(cmd)}\nstdout={result.stdout}\nstderr={result.stderr}")
        raise LocalDiffError(f"git command failed: {' '.join(cmd)}")
    return result.stdout

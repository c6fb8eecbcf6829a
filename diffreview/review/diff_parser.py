from __future__ import annotations

import re
from collections.abc import Sequence

from diffreview.review.models import FileChange

LINE_NUMBER_MARKER = " // LINE_NUMBER: "

_HUNK_HEADER_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,\d+)? @@")


def annotate_file_changes(files: Sequence[FileChange]) -> list[FileChange]:
    """
    给每个新增行追加它在变更后文件中的绝对行号。

    平台的行内评论 API 用的是新文件行号（不是 diff 内的相对位置），
    模型看到带行号的 diff 才能给出可直接回写的 line。
    deleted 文件、没有 patch 的文件原样返回。
    """
    return [_annotate_file_change(file_change=f) for f in files]


def _annotate_file_change(file_change: FileChange) -> FileChange:
    if file_change.patch is None or file_change.status == "deleted":
        return file_change
    return file_change.model_copy(update={"patch": annotate_patch(patch=file_change.patch)})


def annotate_patch(patch: str) -> str:
    updated: list[str] = []
    new_start = 0
    offset = 0
    for line in patch.split("\n"):
        hunk_start = _parse_hunk_new_start(line=line)
        if hunk_start is not None:
            new_start = hunk_start
            offset = 0
            updated.append(line)
            continue
        if line.startswith("+") and not line.startswith("+++"):
            updated.append(f"{line}{LINE_NUMBER_MARKER}{new_start + offset}")
            offset += 1
            continue
        if line.startswith("-") and not line.startswith("---"):
            # 删除行不占新文件行号
            updated.append(line)
            continue
        # context 行
        updated.append(line)
        offset += 1
    return "\n".join(updated)


def _parse_hunk_new_start(line: str) -> int | None:
    # @@ -a[,b] +c[,d] @@ ；省略长度等价于 1
    match = _HUNK_HEADER_RE.match(line)
    if match is None:
        return None
    return int(match.group(1))

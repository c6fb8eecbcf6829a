"""
自由文本解析（legacy 模式）。

用于：
- 模型不支持结构化输出
- 结构化输出解析/校验失败后的兜底

约定：识别 `path:line — text` 形式的行内评论；一条都识别不到时整段作为 summary，
保证纯文本回复（例如 "looks good"）不会被静默丢弃。
"""

from __future__ import annotations

import re

from diffreview.config import ReviewConfig
from diffreview.review.models import ReviewComment

# path:line <dash> text，text 懒惰匹配到下一个 `path:line <dash>` 或结尾。
# `\w` 只匹配 ASCII 字符。
# 注意：正文里本身出现 `a.py:3 -` 这类片段时会被误切分。
_INLINE_COMMENT_RE = re.compile(
    r"([\w/.-]+):(\d+)\s*[—–-]\s*(.*?)(?=\s+[\w/.-]+:\d+\s*[—–-]|\Z)",
    re.DOTALL | re.ASCII,
)


def parse_free_text_response(text: str, config: ReviewConfig) -> list[ReviewComment]:
    if config.comment_style == "summary":
        return [ReviewComment(type="summary", content=text.strip(), severity=config.severity)]

    comments = [
        ReviewComment(
            type="inline",
            path=match.group(1),
            line=int(match.group(2)),
            content=match.group(3).strip(),
            severity=config.severity,
        )
        for match in _INLINE_COMMENT_RE.finditer(text)
    ]

    if not comments:
        return [ReviewComment(type="summary", content=text.strip(), severity=config.severity)]
    return comments

"""
结构化评论 -> 最终评论（`ReviewComment`）。

过滤规则（两个条件独立，都满足才保留）：
- 严重度不低于配置的阈值（4 级排序：critical > warning > suggestion > nitpick）
- confidence >= `MIN_CONFIDENCE`（固定值，不可配置）
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from diffreview.config import ReviewConfig
from diffreview.review.models import OutputSeverity
from diffreview.review.models import ReviewComment
from diffreview.review.schema import SEVERITY_ORDER
from diffreview.review.schema import CommentSeverity
from diffreview.review.schema import StructuredComment
from diffreview.review.schema import StructuredReviewResponse

MIN_CONFIDENCE = 0.6
DEFAULT_MIN_SEVERITY: CommentSeverity = "suggestion"

# 配置里的阈值是 3 级（error/warning/suggestion），这里映射到 4 级排序
_THRESHOLD_ALIASES: dict[str, str] = {"error": "critical"}

_OUTPUT_SEVERITY: dict[str, OutputSeverity] = {
    "critical": "error",
    "warning": "warning",
    "suggestion": "suggestion",
    "nitpick": "suggestion",
}


def severity_threshold_index(min_severity: str | None) -> int:
    """阈值在 4 级排序中的位置；未设置或无法识别时按 suggestion 处理。"""
    name = _THRESHOLD_ALIASES.get(min_severity or "", min_severity)
    if name not in SEVERITY_ORDER:
        name = DEFAULT_MIN_SEVERITY
    return SEVERITY_ORDER.index(name)


def filter_structured_comments(
    comments: Sequence[StructuredComment],
    min_severity: str | None,
) -> list[StructuredComment]:
    threshold = severity_threshold_index(min_severity)
    kept: list[StructuredComment] = []
    for comment in comments:
        if SEVERITY_ORDER.index(comment.severity) > threshold:
            continue
        if comment.confidence < MIN_CONFIDENCE:
            continue
        kept.append(comment)
    return kept


def to_review_comment(comment: StructuredComment) -> ReviewComment:
    """渲染成可直接贴到 PR 的 markdown 行内评论。"""
    # half-up，与 round() 的银行家舍入不同
    confidence_percent = math.floor(comment.confidence * 100 + 0.5)
    content = (
        f"**[{comment.category.capitalize()}] {comment.title}** (confidence: {confidence_percent}%)"
        f"\n\n{comment.explanation}"
    )
    if comment.suggestion:
        content += f"\n\n**Suggestion:**\n```\n{comment.suggestion}\n```"

    return ReviewComment(
        type="inline",
        path=comment.file,
        line=comment.line,
        content=content,
        severity=_OUTPUT_SEVERITY[comment.severity],
    )


def normalize_structured_response(response: StructuredReviewResponse, config: ReviewConfig) -> list[ReviewComment]:
    comments: list[ReviewComment] = []
    if response.summary:
        comments.append(ReviewComment(type="summary", content=response.summary, severity=config.severity))

    for structured in filter_structured_comments(comments=response.comments, min_severity=config.severity):
        comments.append(to_review_comment(comment=structured))
    return comments

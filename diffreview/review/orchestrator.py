"""
Review Orchestrator（核心流程编排）。

关键思想：
- **流程由工程代码控制**：过滤 -> 空检查 -> 构建 prompt -> 调用模型（唯一一次网络调用）-> 解析
- **模型只负责生成文本**：结构化/自由文本的选择由 adapter 能力 + 实际响应形态决定
- **解析失败不是错误**：结构化解析失败会告警并回退 legacy 解析；只有传输失败会抛出

无跨调用状态：多个 review 可以由调用方并发执行。
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from diffreview.config import ReviewConfig
from diffreview.llm.client import ChatMessage
from diffreview.llm.client import ModelAdapter
from diffreview.review.legacy import parse_free_text_response
from diffreview.review.models import FileChange
from diffreview.review.models import ReviewComment
from diffreview.review.normalize import normalize_structured_response
from diffreview.review.prompt import build_system_prompt
from diffreview.review.prompt import build_user_prompt
from diffreview.review.validate import ParseSuccess
from diffreview.review.validate import looks_like_structured_response
from diffreview.review.validate import parse_structured_response

logger = logging.getLogger(__name__)

NO_FILES_MESSAGE = "No files to review after applying ignore patterns."


@dataclass(frozen=True)
class ReviewOrchestrator:
    """Orchestrator 运行时依赖集合（目前只需要模型 adapter）。"""

    model: ModelAdapter


def build_review_orchestrator(model: ModelAdapter) -> ReviewOrchestrator:
    return ReviewOrchestrator(model=model)


def filter_ignored_files(files: Sequence[FileChange], ignore_patterns: Sequence[str]) -> list[FileChange]:
    """`*.ext` 按后缀匹配，其它 pattern 按文件名完全相等匹配（不支持目录 glob）。"""
    if not ignore_patterns:
        return list(files)
    return [f for f in files if not any(_matches(filename=f.filename, pattern=p) for p in ignore_patterns)]


def _matches(filename: str, pattern: str) -> bool:
    if pattern.startswith("*") and pattern.find(".") > 0:
        return filename.endswith(pattern[1:])
    return filename == pattern


async def review_changes(
    orchestrator: ReviewOrchestrator,
    files: Sequence[FileChange],
    config: ReviewConfig,
) -> list[ReviewComment]:
    """
    跑一次 review，返回最终评论列表（不负责回写平台）。

    - files：应当是已经过 `annotate_file_changes` 的变更（带行号标记）
    - 模型调用失败：记录日志后原样抛出
    """
    selected = filter_ignored_files(files=files, ignore_patterns=config.ignore_files)
    if not selected:
        return [ReviewComment(type="summary", content=NO_FILES_MESSAGE, severity="suggestion")]

    messages = [
        ChatMessage(role="system", content=build_system_prompt(config=config)),
        ChatMessage(role="user", content=build_user_prompt(files=selected, config=config)),
    ]

    model = orchestrator.model
    try:
        raw = await model.invoke(messages, config)
    except Exception as exc:
        logger.error(f"Error generating review with {model.name}: {exc}")
        raise

    if not model.supports_structured:
        return parse_free_text_response(text=raw, config=config)
    return _parse_model_response(raw=raw, config=config)


def _parse_model_response(raw: str, config: ReviewConfig) -> list[ReviewComment]:
    if not looks_like_structured_response(raw):
        return parse_free_text_response(text=raw, config=config)

    result = parse_structured_response(raw)
    if isinstance(result, ParseSuccess):
        return normalize_structured_response(response=result.data, config=config)

    logger.warning(f"Structured response parsing failed, falling back to legacy parsing: {result.error}")
    return parse_free_text_response(text=raw, config=config)

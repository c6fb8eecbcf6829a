"""
结构化响应的解析与校验。

三个入口：
- `validate_structured_response`：对已解码的任意值做结构校验，收集所有错误，永不抛错
- `parse_structured_response`：原始文本 -> JSON -> 校验，返回 `ParseSuccess | ParseFailure`
- `looks_like_structured_response`：orchestrator 用的廉价预检

失败不走异常：解析失败是"正常分支"（会回退到 legacy 解析），只有传输失败才抛错。
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from pydantic import ValidationError

from diffreview.review.schema import StructuredComment
from diffreview.review.schema import StructuredReviewResponse


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ParseSuccess:
    data: StructuredReviewResponse


@dataclass(frozen=True)
class ParseFailure:
    error: str


ParseResult = ParseSuccess | ParseFailure


def validate_structured_response(data: object) -> ValidationResult:
    """
    校验模型输出是否符合 `StructuredReviewResponse`。

    - 顶层不是 object / comments 不是数组：直接失败，不再逐条检查
    - 每条 comment 的所有字段错误都会被收集（不短路）
    """
    if not isinstance(data, dict):
        return ValidationResult(valid=False, errors=["Response must be an object"])

    comments = data.get("comments")
    if not isinstance(comments, list):
        return ValidationResult(valid=False, errors=["'comments' must be an array"])

    errors: list[str] = []
    for index, comment in enumerate(comments):
        prefix = f"comments[{index}]"
        if not isinstance(comment, dict):
            errors.append(f"{prefix} must be an object")
            continue
        try:
            StructuredComment.model_validate(comment)
        except ValidationError as exc:
            errors.extend(_format_validation_errors(prefix=prefix, exc=exc))

    if "summary" in data and not isinstance(data["summary"], str):
        errors.append("'summary' must be a string if provided")

    return ValidationResult(valid=not errors, errors=errors)


def _format_validation_errors(prefix: str, exc: ValidationError) -> list[str]:
    """把 Pydantic 的错误列表转成 `comments[0].line: ...` 形式的可读字符串。"""
    messages: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"])
        messages.append(f"{prefix}.{loc}: {err['msg']}")
    return messages


def parse_structured_response(text: str) -> ParseResult:
    """原始文本 -> `StructuredReviewResponse`；失败时带上可读原因。"""
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, RecursionError) as exc:
        # 嵌套过深的输出会让 json 模块抛 RecursionError，同样按解析失败处理
        return ParseFailure(error=f"JSON parse error: {exc}")

    validation = validate_structured_response(parsed)
    if not validation.valid:
        return ParseFailure(error=f"Validation failed: {'; '.join(validation.errors)}")

    return ParseSuccess(data=StructuredReviewResponse.model_validate(parsed))


def looks_like_structured_response(text: str) -> bool:
    """以 `{` 开头、能解码、且 `comments` 是数组。任何失败都返回 False。"""
    trimmed = text.strip()
    if not trimmed.startswith("{"):
        return False
    try:
        parsed = json.loads(trimmed)
    except (ValueError, RecursionError):
        return False
    return isinstance(parsed, dict) and isinstance(parsed.get("comments"), list)

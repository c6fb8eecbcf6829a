"""
LLM 结构化输出 schema。

说明：
- 这是与模型之间唯一"逐字节"的契约：`summary`（可选）+ `comments`（数组）
- Pydantic model 用于运行时校验；`REVIEW_RESPONSE_JSON_SCHEMA` 用于 OpenAI `json_schema` response_format
- 字段全部 strict：不接受 bool 冒充数字，也不做字符串 -> 数字的隐式转换
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, Field

CommentSeverity = Literal["critical", "warning", "suggestion", "nitpick"]
CommentCategory = Literal["bug", "security", "performance", "style", "architecture", "testing"]

# 从最严重到最轻微；index 越小越严重
SEVERITY_ORDER: tuple[str, ...] = ("critical", "warning", "suggestion", "nitpick")
CATEGORIES: tuple[str, ...] = ("bug", "security", "performance", "style", "architecture", "testing")


def _whole_float_to_int(value: Any) -> Any:
    # JSON 不区分 5 和 5.0；只放行整数值的 float，3.5 仍然由 strict int 拒绝
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


LineNumber = Annotated[int, BeforeValidator(_whole_float_to_int), Field(ge=1, strict=True)]


class StructuredComment(BaseModel):
    """模型输出的单条结构化评论。"""

    file: str = Field(min_length=1, strict=True)
    line: LineNumber
    severity: CommentSeverity
    category: CommentCategory
    confidence: float = Field(ge=0.0, le=1.0, strict=True)
    title: str = Field(min_length=1, strict=True)
    explanation: str = Field(min_length=1, strict=True)
    suggestion: str = Field(default="", strict=True)


class StructuredReviewResponse(BaseModel):
    """模型输出的完整结构：comments 必须存在（可以为空数组）。"""

    # 缺省为空串而不是 None：序列化结果里不会出现 "summary": null
    summary: str = Field(default="", strict=True)
    comments: list[StructuredComment]


_COMMENT_JSON_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "file": {"type": "string", "description": "Path of the file being commented on"},
        "line": {"type": "integer", "description": "Line number in the new version of the file"},
        "severity": {"type": "string", "enum": list(SEVERITY_ORDER)},
        "category": {"type": "string", "enum": list(CATEGORIES)},
        "confidence": {"type": "number", "description": "Confidence between 0.0 and 1.0"},
        "title": {"type": "string", "description": "One-line summary (max 80 chars)"},
        "explanation": {"type": "string"},
        "suggestion": {"type": "string", "description": "Suggested fix, empty string if none"},
    },
    "required": ["file", "line", "severity", "category", "confidence", "title", "explanation", "suggestion"],
    "additionalProperties": False,
}

# OpenAI strict 模式要求所有字段 required + additionalProperties=false
REVIEW_RESPONSE_JSON_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "summary": {"type": "string", "description": "Brief overall assessment"},
        "comments": {"type": "array", "items": _COMMENT_JSON_SCHEMA},
    },
    "required": ["summary", "comments"],
    "additionalProperties": False,
}

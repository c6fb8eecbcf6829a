"""
Review prompt 构建（纯函数，确定性）。

- system prompt：固定角色 + 要求 JSON 输出
- user prompt：输出 schema 说明 + severity/category 图例 + 规则 + 带行号的 diff + 自定义 prompt

schema 说明必须与 `review/schema.py` 保持一致：模型按它输出，validator 按它校验。
"""

from __future__ import annotations

from collections.abc import Sequence

from diffreview.config import ReviewConfig
from diffreview.review.models import FileChange

SYSTEM_PROMPT = (
    "You are a senior software engineer doing a peer code review. "
    "Your job is to spot all logic, syntax, and semantic issues in a code diff. "
    "Always respond with valid JSON matching the requested schema."
)

_OUTPUT_SCHEMA_DESCRIPTION = """Output your response as a JSON object matching this structure:
{
  "summary": "Brief overall assessment (optional)",
  "comments": [
    {
      "file": "path/to/file.ts",
      "line": 42,
      "severity": "critical|warning|suggestion|nitpick",
      "category": "bug|security|performance|style|architecture|testing",
      "confidence": 0.95,
      "title": "One-line summary of the issue (max 80 chars)",
      "explanation": "Detailed explanation of why this is an issue",
      "suggestion": "Suggested fix or improvement (use empty string if none)"
    }
  ]
}"""

_LEGENDS = """Severity levels:
- critical: Bugs, security vulnerabilities, or data loss risks
- warning: Potential issues or code smells
- suggestion: Improvements that would be nice to have
- nitpick: Minor style preferences

Categories:
- bug: Logic errors, incorrect behavior
- security: Security vulnerabilities, unsafe practices
- performance: Performance bottlenecks, inefficiencies
- style: Code style, formatting, naming
- architecture: Design patterns, code organization
- testing: Test coverage, test quality"""

_FORMATTING_RULES = """Important rules:
- Added lines end with "// LINE_NUMBER: N"; use N as the "line" value
- Only comment on lines that are part of the diff (added or modified)
- Do not comment on unchanged context lines unless directly impacted
- Be specific and actionable in your feedback
- Use direct, professional tone
- Include a suggestion when you can provide a concrete improvement"""


def build_system_prompt(config: ReviewConfig) -> str:
    return SYSTEM_PROMPT


def build_user_prompt(files: Sequence[FileChange], config: ReviewConfig) -> str:
    sections: list[str] = [
        "Review the following code changes and provide specific, actionable feedback.",
        _OUTPUT_SCHEMA_DESCRIPTION,
        _LEGENDS,
        _FORMATTING_RULES,
    ]
    if config.rules:
        numbered = "\n".join(f"{i}. {rule}" for i, rule in enumerate(config.rules, start=1))
        sections.append(f"Apply these specific rules:\n{numbered}")

    sections.append(f"Here are the changes to review:\n\n{format_diff_text(files=files)}")
    if config.custom_prompt:
        sections.append(config.custom_prompt)
    return "\n\n".join(sections) + "\n"


def format_diff_text(files: Sequence[FileChange]) -> str:
    return "\n\n".join(f"File: {f.filename} ({f.status})\n{f.patch or 'No changes'}\n" for f in files)

"""
LLM Client（基于 OpenAI SDK）。

目标：
- **尽量薄**：只做协议适配与错误处理，prompt / 解析都不在这里
- **统一接口**：所有 provider 都满足 `ModelAdapter`（name + supports_structured + invoke）
- **不重试**：失败直接抛给上游（上游把这一个 PR 标记为失败）
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Literal, Protocol

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel

from diffreview.config import ReviewConfig
from diffreview.review.schema import REVIEW_RESPONSE_JSON_SCHEMA

logger = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS = 4000
TEMPERATURE = 0.1


class ChatMessage(BaseModel):
    """OpenAI chat message 的最小结构。"""

    role: Literal["system", "user", "assistant"]
    content: str


class ModelTransportError(RuntimeError):
    """模型调用失败（鉴权/网络/超时/非 2xx/空响应）。"""

    pass


class ModelAdapter(Protocol):
    """orchestrator 依赖的能力集合：调用模型 + 声明是否支持结构化输出。"""

    @property
    def name(self) -> str: ...

    @property
    def supports_structured(self) -> bool: ...

    async def invoke(self, messages: Sequence[ChatMessage], config: ReviewConfig) -> str: ...


class OpenAICompatLLMClient:
    """
    OpenAI（或 OpenAI-compatible 网关）adapter。

    使用 `json_schema` response_format（strict），模型侧就约束输出结构；
    本地仍然会再做一次校验（见 `review/validate.py`）。
    """

    def __init__(self, api_key: str, model: str, http_client: httpx.AsyncClient, base_url: str | None = None) -> None:
        """
        - api_key: OpenAI API key
        - model: 模型名（例如 `gpt-4o`）
        - http_client: 复用 httpx.AsyncClient 连接池
        - base_url: 自定义 endpoint（为空则用 SDK 默认地址）
        """
        if not model:
            raise ValueError("Model is required")
        self._model = model
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, http_client=http_client, max_retries=0)

    @property
    def name(self) -> str:
        return f"OpenAI ({self._model})"

    @property
    def supports_structured(self) -> bool:
        return True

    async def invoke(self, messages: Sequence[ChatMessage], config: ReviewConfig) -> str:
        """调用 chat completion 并返回原始文本 content。"""
        try:
            logger.info(f"LLM request: model={self._model}, messages={len(messages)} msg(s)")
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[m.model_dump() for m in messages],
                temperature=TEMPERATURE,
                max_tokens=MAX_OUTPUT_TOKENS,
                timeout=config.request_timeout,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": "review_response",
                        "description": "Structured code review response",
                        "schema": REVIEW_RESPONSE_JSON_SCHEMA,
                        "strict": True,
                    },
                },
            )
        except OpenAIError as exc:
            logger.error(f"LLM API error: {exc}")
            raise
        except httpx.HTTPError as exc:
            logger.error(f"LLM HTTP error: {exc}")
            raise

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.error("LLM returned empty content")
            raise ModelTransportError("No response from OpenAI")

        logger.info(f"LLM response: {len(content)} chars")
        return str(content)

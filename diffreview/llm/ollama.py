"""
Ollama adapter（本地模型，HTTP `/api/chat`）。

说明：
- `format: "json"` 只保证 JSON 语法，不保证 schema；schema 由 validator 兜底，失败会回退 legacy 解析
- 超时/连接失败翻译成可读的 `ModelTransportError`，便于用户直接定位
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx

from diffreview.config import ReviewConfig
from diffreview.llm.client import MAX_OUTPUT_TOKENS
from diffreview.llm.client import TEMPERATURE
from diffreview.llm.client import ChatMessage
from diffreview.llm.client import ModelTransportError

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_ENDPOINT = "http://localhost:11434"


class OllamaClient:
    def __init__(self, model: str, http_client: httpx.AsyncClient, endpoint: str | None = None) -> None:
        if not model:
            raise ValueError("Model is required")
        self._model = model
        self._endpoint = (endpoint or DEFAULT_OLLAMA_ENDPOINT).rstrip("/")
        self._http_client = http_client

    @property
    def name(self) -> str:
        return f"Ollama ({self._model})"

    @property
    def supports_structured(self) -> bool:
        return True

    async def invoke(self, messages: Sequence[ChatMessage], config: ReviewConfig) -> str:
        timeout_s = config.request_timeout
        payload = {
            "model": self._model,
            "messages": [m.model_dump() for m in messages],
            "format": "json",
            "stream": False,
            "options": {"temperature": TEMPERATURE, "num_predict": MAX_OUTPUT_TOKENS},
        }
        logger.info(f"Ollama request: model={self._model}, messages={len(messages)} msg(s)")
        try:
            response = await self._http_client.post(
                f"{self._endpoint}/api/chat",
                json=payload,
                timeout=httpx.Timeout(timeout_s),
            )
        except httpx.TimeoutException as exc:
            logger.error(f"Ollama timeout after {timeout_s}s")
            raise ModelTransportError(
                f"Ollama request timed out after {timeout_s:g}s. "
                "The model may be too slow for this diff size. Try a smaller model or reduce the diff."
            ) from exc
        except httpx.ConnectError as exc:
            logger.error(f"Ollama connect error: {exc}")
            raise ModelTransportError(
                f"Cannot connect to Ollama at {self._endpoint}. Is Ollama running? Start it with: ollama serve"
            ) from exc

        if response.status_code >= 400:
            raise ModelTransportError(f"Ollama API error ({response.status_code}): {response.text}")

        data = response.json()
        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content:
            raise ModelTransportError("No response content from Ollama")

        logger.info(f"Ollama response: {len(content)} chars")
        return content

from __future__ import annotations

import httpx

from diffreview.config import LLMCredentials
from diffreview.llm.client import ModelAdapter
from diffreview.llm.client import OpenAICompatLLMClient
from diffreview.llm.ollama import OllamaClient


def build_model_adapter(
    provider: str,
    model: str,
    credentials: LLMCredentials,
    http_client: httpx.AsyncClient,
    endpoint: str | None = None,
) -> ModelAdapter:
    """按 provider 名称创建 adapter；未知 provider / 缺少密钥直接抛 `ValueError`。"""
    if provider == "openai":
        if not credentials.openai_api_key:
            raise ValueError("OPENAI_API_KEY environment variable is required")
        return OpenAICompatLLMClient(
            api_key=credentials.openai_api_key,
            model=model,
            http_client=http_client,
            base_url=endpoint,
        )
    if provider == "ollama":
        return OllamaClient(model=model, http_client=http_client, endpoint=endpoint)
    raise ValueError(f"Unsupported provider: {provider}")

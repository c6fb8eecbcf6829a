"""
FastAPI 服务入口（GitHub webhook 模式）。

这里做三件事：
- 加载配置（密钥来自环境变量，review 行为来自配置文件 `REVIEW_CONFIG_PATH`）
- 组装外部依赖（HTTP Client / 模型 adapter / GitHub 平台）
- 装配路由（health + github webhook）

注意：
- 业务流程不写在这里（由 `review/pipeline.py` + `review/orchestrator.py` 负责）
- `httpx.AsyncClient` 会被复用（避免每个请求新建连接）
"""

from __future__ import annotations

import os

import httpx
from fastapi import FastAPI

from diffreview.config import load_config_from_env
from diffreview.config import load_review_config
from diffreview.github.adapter import GitHubPlatform
from diffreview.github.client import GitHubClient
from diffreview.github.webhook import build_github_webhook_router
from diffreview.llm.providers import build_model_adapter
from diffreview.review.orchestrator import build_review_orchestrator
from diffreview.review.pipeline import build_github_webhook_handler


def build_app() -> FastAPI:
    """创建并返回 FastAPI app（便于测试/复用）。"""

    # 1) 配置：缺失会直接抛错，启动失败（这是期望行为）
    app_config = load_config_from_env(os.environ, require_webhook_secret=True)
    review_config = load_review_config(config_path=os.environ.get("REVIEW_CONFIG_PATH")).model_copy(
        update={"dry_run": False, "git_platform": "github"}
    )
    if app_config.github is None or app_config.github.webhook_secret is None:
        raise ValueError("Missing required env vars: GITHUB_TOKEN, GITHUB_WEBHOOK_SECRET")

    # 2) 可复用的 HTTP client：供 GitHub API 与模型调用使用
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(30.0))

    model = build_model_adapter(
        provider=review_config.provider,
        model=review_config.model,
        credentials=app_config.llm,
        http_client=http_client,
        endpoint=review_config.endpoint,
    )
    orchestrator = build_review_orchestrator(model=model)
    platform = GitHubPlatform(
        client=GitHubClient(
            api_base_url=str(app_config.github.api_base_url),
            token=app_config.github.token,
            http_client=http_client,
        )
    )

    app = FastAPI(title="AI Diff Review", version="0.1.0")

    @app.get("/health")
    async def health() -> dict[str, str]:
        """健康检查：用于 k8s / LB 探活。"""
        return {"status": "ok"}

    handler = build_github_webhook_handler(orchestrator=orchestrator, platform=platform, config=review_config)
    app.include_router(build_github_webhook_router(webhook_secret=app_config.github.webhook_secret, handler=handler))
    return app


# Uvicorn 默认会从模块级变量 `app` 读取 ASGI 应用
app = build_app()


def main() -> None:
    import uvicorn

    uvicorn.run(app, host=os.environ.get("HOST", "0.0.0.0"), port=int(os.environ.get("PORT", "8000")))


if __name__ == "__main__":
    main()

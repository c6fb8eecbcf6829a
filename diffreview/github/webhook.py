"""
GitHub Webhook 接入层。

流程：验签 -> 过滤 event / action -> payload 转 schema -> 后台执行 review

注意：
- 验签在任何判断之前进行，未签名的请求一律 401
- 一次 review 可能要几十秒（模型超时默认 120s），而 GitHub 投递超时只有 10s，
  因此 handler 放到 `BackgroundTasks` 里执行，接口立即返回 `accepted`
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from collections.abc import Awaitable, Callable

from fastapi import APIRouter
from fastapi import BackgroundTasks
from fastapi import Header
from fastapi import HTTPException
from fastapi import Request
from pydantic import ValidationError

from diffreview.github.schemas import GitHubPullRequestWebhookEvent

logger = logging.getLogger(__name__)

GitHubWebhookHandler = Callable[[GitHubPullRequestWebhookEvent], Awaitable[None]]

REVIEWABLE_ACTIONS: tuple[str, ...] = ("opened", "reopened", "synchronize")


def verify_github_signature(body: bytes, signature_header: str | None, secret: str) -> None:
    """`X-Hub-Signature-256: sha256=<hex>`，不匹配抛 401。"""
    if not signature_header or not signature_header.startswith("sha256="):
        raise HTTPException(status_code=401, detail="Missing or malformed X-Hub-Signature-256 header")
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(f"sha256={digest}", signature_header):
        raise HTTPException(status_code=401, detail="Webhook signature mismatch")


def parse_pull_request_event(body: bytes) -> GitHubPullRequestWebhookEvent:
    try:
        return GitHubPullRequestWebhookEvent.model_validate(json.loads(body))
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail="Webhook body is not valid JSON") from exc
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Unexpected pull_request payload: {exc.error_count()} error(s)") from exc


def build_github_webhook_router(webhook_secret: str, handler: GitHubWebhookHandler) -> APIRouter:
    router = APIRouter()

    @router.post("/github/webhook")
    async def receive_github_event(
        request: Request,
        background_tasks: BackgroundTasks,
        event_name: str = Header(default="", alias="X-GitHub-Event"),
        signature: str | None = Header(default=None, alias="X-Hub-Signature-256"),
    ) -> dict[str, str]:
        body = await request.body()
        verify_github_signature(body=body, signature_header=signature, secret=webhook_secret)

        if event_name != "pull_request":
            return {"status": "ignored", "reason": f"event '{event_name}' is not reviewed"}

        event = parse_pull_request_event(body)
        target = f"{event.repository.full_name}#{event.pull_request.number}"
        if event.action not in REVIEWABLE_ACTIONS:
            return {"status": "ignored", "reason": f"action '{event.action}' is not reviewed"}

        logger.info(f"Queued review for {target} (action={event.action}, head={event.pull_request.head.sha})")
        background_tasks.add_task(handler, event)
        return {"status": "accepted", "pull_request": target}

    return router

"""
Review 流水线（多 PR）。

Webhook / CLI -> list PRs -> 跳过已 review 的 head -> get files -> annotate -> review -> post（或 dry-run 打印）

失败隔离：单个 PR 失败只记录为 failure，不影响其它 PR。
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence

from diffreview.config import ReviewConfig
from diffreview.github.adapter import GitHubPlatform
from diffreview.github.adapter import to_pull_request
from diffreview.github.schemas import GitHubPullRequestWebhookEvent
from diffreview.platform import CodeReviewPlatform
from diffreview.review.diff_parser import annotate_file_changes
from diffreview.review.models import PullRequest
from diffreview.review.models import ReviewComment
from diffreview.review.models import ReviewResult
from diffreview.review.orchestrator import ReviewOrchestrator
from diffreview.review.orchestrator import review_changes

logger = logging.getLogger(__name__)

CommentPrinter = Callable[[PullRequest, Sequence[ReviewComment]], None]


def format_comments_for_display(pr: PullRequest, comments: Sequence[ReviewComment]) -> str:
    """dry-run 输出：`path:line` 或 `Summary comment` 作为每条评论的标题。"""
    lines: list[str] = [f"== Comments for PR #{pr.number}: {pr.title} =="]
    for c in comments:
        heading = f"{c.path}:{c.line}" if c.type == "inline" else "Summary comment"
        lines.append("")
        lines.append(f"{heading}:")
        lines.append(c.content)
    return "\n".join(lines)


async def review_pull_request(
    orchestrator: ReviewOrchestrator,
    platform: CodeReviewPlatform,
    repo: str,
    pr: PullRequest,
    config: ReviewConfig,
    print_comments: CommentPrinter | None = None,
) -> ReviewResult:
    """review 单个 PR；异常向上抛，由调用方决定如何记录。"""
    if await platform.has_reviewed(repo, pr.id):
        logger.info(f"Skipping PR #{pr.number} - already reviewed since last update")
        return ReviewResult(pr_id=pr.id, comments_posted=0, status="skipped")

    files = await platform.get_file_changes(repo, pr.id)
    logger.debug(f"Got diff for PR #{pr.number} with {len(files)} changed files")

    annotated = annotate_file_changes(files)
    comments = await review_changes(orchestrator=orchestrator, files=annotated, config=config)
    logger.debug(f"Generated {len(comments)} comments for PR #{pr.number}")

    if config.dry_run:
        if print_comments is not None:
            print_comments(pr, comments)
    else:
        for comment in comments:
            await platform.post_comment(repo, pr.id, comment)
        logger.info(f"Posted {len(comments)} comments to PR #{pr.number}")

    return ReviewResult(pr_id=pr.id, comments_posted=len(comments), status="success")


async def review_pull_requests(
    orchestrator: ReviewOrchestrator,
    platform: CodeReviewPlatform,
    repo: str,
    config: ReviewConfig,
    print_comments: CommentPrinter | None = None,
) -> list[ReviewResult]:
    pull_requests = await platform.get_pull_requests(repo)
    logger.info(f"Found {len(pull_requests)} PRs")

    results: list[ReviewResult] = []
    for pr in pull_requests:
        logger.debug(f"Processing PR #{pr.number}: {pr.title}")
        try:
            result = await review_pull_request(
                orchestrator=orchestrator,
                platform=platform,
                repo=repo,
                pr=pr,
                config=config,
                print_comments=print_comments,
            )
        except Exception as exc:
            logger.error(f"Error processing PR #{pr.number}: {exc}")
            result = ReviewResult(pr_id=pr.id, comments_posted=0, status="failure", error=str(exc))
        results.append(result)
    return results


def summarize_results(results: Sequence[ReviewResult]) -> dict[str, int]:
    return {
        "total": len(results),
        "reviewed": sum(1 for r in results if r.status == "success"),
        "skipped": sum(1 for r in results if r.status == "skipped"),
        "failed": sum(1 for r in results if r.status == "failure"),
    }


def build_github_webhook_handler(
    orchestrator: ReviewOrchestrator,
    platform: GitHubPlatform,
    config: ReviewConfig,
) -> Callable[[GitHubPullRequestWebhookEvent], Awaitable[None]]:
    """
    装配 webhook handler：
    - 把平台（GitHubPlatform）和业务编排（orchestrator）绑定起来
    - 返回一个 `async def handle(event)` 给 webhook 路由调用
    """

    async def handle(event: GitHubPullRequestWebhookEvent) -> None:
        repo = event.repository.full_name
        pr = to_pull_request(event.pull_request)
        try:
            result = await review_pull_request(orchestrator=orchestrator, platform=platform, repo=repo, pr=pr, config=config)
        except Exception as exc:
            # 后台任务里没有调用方可以接住异常
            logger.error(f"Webhook review for {repo}#{pr.number} failed: {exc}")
            return
        logger.info(f"Webhook review for {repo}#{pr.number}: {result.status} ({result.comments_posted} comments)")

    return handle

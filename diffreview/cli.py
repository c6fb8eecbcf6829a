"""命令行入口：对 GitHub 上的 open PR 或本地 git diff 做一次 AI review。"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from typing import Optional

import anyio
import httpx
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from diffreview.config import ReviewConfig
from diffreview.config import load_config_from_env
from diffreview.config import load_review_config
from diffreview.config import merge_cli_options
from diffreview.llm.providers import build_model_adapter
from diffreview.platform import build_platform
from diffreview.review.models import PullRequest
from diffreview.review.models import ReviewComment
from diffreview.review.models import ReviewResult
from diffreview.review.orchestrator import build_review_orchestrator
from diffreview.review.pipeline import format_comments_for_display
from diffreview.review.pipeline import review_pull_requests
from diffreview.review.pipeline import summarize_results

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="diffreview",
    help="AI-assisted code review for pull requests and local diffs.",
    add_completion=False,
)
console = Console()

LOCAL_REPO_NAME = "local"


def _setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
    )


def _print_comments(pr: PullRequest, comments: Sequence[ReviewComment]) -> None:
    console.print(format_comments_for_display(pr, comments), markup=False, highlight=False)


async def _run_review(config: ReviewConfig, repo: str) -> list[ReviewResult]:
    app_config = load_config_from_env(os.environ)
    async with httpx.AsyncClient(timeout=httpx.Timeout(30.0)) as http_client:
        model = build_model_adapter(
            provider=config.provider,
            model=config.model,
            credentials=app_config.llm,
            http_client=http_client,
            endpoint=config.endpoint,
        )
        logger.info(f"Using model: {model.name}")
        platform = build_platform(config=config, app_config=app_config, http_client=http_client)
        orchestrator = build_review_orchestrator(model=model)
        return await review_pull_requests(
            orchestrator=orchestrator,
            platform=platform,
            repo=repo,
            config=config,
            print_comments=_print_comments,
        )


def _print_summary(results: Sequence[ReviewResult]) -> None:
    summary = summarize_results(results)
    table = Table(title="Review summary")
    table.add_column("Total", justify="right")
    table.add_column("Reviewed", justify="right", style="green")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Failed", justify="right", style="red")
    table.add_row(
        str(summary["total"]),
        str(summary["reviewed"]),
        str(summary["skipped"]),
        str(summary["failed"]),
    )
    console.print(table)


@app.command()
def review(
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="AI provider (openai, ollama)"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model name (e.g. gpt-4o, llama3)"),
    model_endpoint: Optional[str] = typer.Option(None, "--model-endpoint", "-e", help="Custom model API endpoint"),
    git_platform: Optional[str] = typer.Option(None, "--git-platform", "-g", help="Platform (github, local)"),
    repo: Optional[str] = typer.Option(None, "--repo", "-r", help="Repository (owner/repo)"),
    comment_style: Optional[str] = typer.Option(None, "--comment-style", "-s", help="Comment style (inline, summary)"),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Print comments instead of posting them"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    config_path: Optional[str] = typer.Option(None, "--config-path", "-c", help="Path to .aicodeconfig.json or .aicode.yml"),
    base: Optional[str] = typer.Option(None, "--base", help="Base ref for local diff (default: upstream merge-base or HEAD~1)"),
    head: Optional[str] = typer.Option(None, "--head", help="Head ref for local diff (default: HEAD)"),
    patch: Optional[str] = typer.Option(None, "--patch", help="Review a patch file instead of a git diff"),
) -> None:
    """Review open pull requests (or a local diff) and post or print the comments."""
    _setup_logging(verbose)

    cli_options = {
        "provider": provider,
        "model": model,
        "endpoint": model_endpoint,
        "git_platform": git_platform,
        "repo": repo,
        "comment_style": comment_style,
        # flag 未传时不覆盖配置文件
        "dry_run": True if dry_run else None,
        "verbose": True if verbose else None,
        "base": base,
        "head": head,
        "patch": patch,
    }
    try:
        # pydantic 的 ValidationError 也是 ValueError（例如非法的 --comment-style）
        config = merge_cli_options(cli_options, load_review_config(config_path=config_path))
    except ValueError as exc:
        console.print(f"[red]Invalid configuration: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    if config.git_platform == "local":
        # 本地模式没有可回写的地方
        config = config.model_copy(update={"dry_run": True})
        target_repo = LOCAL_REPO_NAME
    elif not config.repo:
        console.print("[red]Repository is required. Use --repo owner/repo or set it in the config file.[/red]")
        raise typer.Exit(code=1)
    else:
        target_repo = config.repo

    logger.debug(f"Effective config: {config.model_dump()}")

    try:
        results = anyio.run(_run_review, config, target_repo)
    except Exception as exc:
        logger.error(f"Review failed: {exc}")
        raise typer.Exit(code=1) from exc

    _print_summary(results)
    if any(r.status == "failure" for r in results):
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()

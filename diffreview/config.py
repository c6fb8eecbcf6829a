"""
应用配置加载。

两类配置：
- **ReviewConfig**：一次 review 的行为配置（阈值、忽略文件、规则…），来自配置文件 + CLI，
  构造一次后只读传递（frozen），核心流程不读任何全局可变状态
- **AppConfig**：密钥/外部服务地址，来自环境变量（严格：部分配置直接报错）

配置文件：
- 默认查找 `.aicodeconfig.json`，其次 `.aicode.yml`
- key 使用 camelCase（如 `commentStyle`、`ignoreFiles`），也兼容 snake_case
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, HttpUrl
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

Provider = Literal["openai", "ollama"]
Platform = Literal["github", "local"]
SeverityThreshold = Literal["suggestion", "warning", "error"]

VALID_PROVIDERS: tuple[str, ...] = ("openai", "ollama")
VALID_PLATFORMS: tuple[str, ...] = ("github", "local")
VALID_SEVERITIES: tuple[str, ...] = ("suggestion", "warning", "error")

DEFAULT_CONFIG_FILENAMES: tuple[str, ...] = (".aicodeconfig.json", ".aicode.yml")


class ReviewConfig(BaseModel):
    """单次 review 的不可变配置快照。"""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    provider: Provider = "openai"
    model: str = "gpt-4o"
    git_platform: Platform = "github"
    repo: str | None = None
    comment_style: Literal["inline", "summary"] = "inline"
    dry_run: bool = False
    verbose: bool = False
    endpoint: str | None = None
    severity: SeverityThreshold = "suggestion"
    ignore_files: list[str] = Field(default_factory=list)
    rules: list[str] = Field(default_factory=list)
    custom_prompt: str | None = None
    request_timeout: float = Field(default=120.0, gt=0)
    base: str | None = None
    head: str = "HEAD"
    patch: str | None = None


DEFAULT_CONFIG = ReviewConfig()


def load_review_config(config_path: str | None = None, cwd: Path | None = None) -> ReviewConfig:
    """
    读取配置文件并与默认值合并。

    - 显式传入且存在的路径优先
    - 否则在 `cwd` 下查找默认文件名
    - 都没有：返回默认配置
    - 文件格式不支持/内容非法：抛 `ValueError`（宁可启动失败，也不要带着错误配置跑）
    """
    if config_path and Path(config_path).exists():
        return _load_config_file(path=Path(config_path))

    base_dir = cwd if cwd is not None else Path.cwd()
    for name in DEFAULT_CONFIG_FILENAMES:
        candidate = base_dir / name
        if candidate.exists():
            return _load_config_file(path=candidate)

    return DEFAULT_CONFIG


def _load_config_file(path: Path) -> ReviewConfig:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        raw = json.loads(text)
    elif path.suffix in (".yml", ".yaml"):
        raw = yaml.safe_load(text) or {}
    else:
        raise ValueError(f"Unsupported config file format: {path}")

    if not isinstance(raw, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")

    logger.info(f"Loaded review config from {path}")
    return ReviewConfig.model_validate(raw)


def merge_cli_options(cli_options: Mapping[str, Any], file_config: ReviewConfig) -> ReviewConfig:
    """
    CLI 参数覆盖配置文件（None 表示"未指定"，不覆盖）。

    provider / platform / severity 非法时回退到默认值并告警，而不是直接失败。
    """
    merged: dict[str, Any] = file_config.model_dump()
    merged.update({key: value for key, value in cli_options.items() if value is not None})

    if merged["provider"] not in VALID_PROVIDERS:
        logger.warning(f"Invalid provider '{merged['provider']}'. Using default: {DEFAULT_CONFIG.provider}")
        merged["provider"] = DEFAULT_CONFIG.provider
    if merged["git_platform"] not in VALID_PLATFORMS:
        logger.warning(f"Invalid platform '{merged['git_platform']}'. Using default: {DEFAULT_CONFIG.git_platform}")
        merged["git_platform"] = DEFAULT_CONFIG.git_platform
    if merged["severity"] not in VALID_SEVERITIES:
        logger.warning(f"Invalid severity '{merged['severity']}'. Using default: {DEFAULT_CONFIG.severity}")
        merged["severity"] = DEFAULT_CONFIG.severity

    return ReviewConfig.model_validate(merged)


class LLMCredentials(BaseModel):
    """模型服务密钥（ollama 本地运行时可以没有）。"""

    openai_api_key: str | None = None


class GitHubConfig(BaseModel):
    api_base_url: HttpUrl
    token: str
    webhook_secret: str | None = None


class AppConfig(BaseModel):
    llm: LLMCredentials
    github: GitHubConfig | None = None


def load_config_from_env(environ: Mapping[str, str], require_webhook_secret: bool = False) -> AppConfig:
    """
    从环境变量加载并校验密钥配置。

    - **输入**：`environ`（例如 `os.environ`）
    - **GitHub**：`GITHUB_TOKEN` 缺失则 github 为 None；设置了 webhook 相关变量但缺 token 视为部分配置，报错
    - **失败**：抛 `ValueError`
    """
    github_token = environ.get("GITHUB_TOKEN") or None
    github_api_base_url = environ.get("GITHUB_API_BASE_URL") or "https://api.github.com"
    webhook_secret = environ.get("GITHUB_WEBHOOK_SECRET") or None

    if github_token is None and webhook_secret is not None:
        raise ValueError("Missing required env vars: GITHUB_TOKEN")
    if require_webhook_secret and webhook_secret is None:
        raise ValueError("Missing required env vars: GITHUB_WEBHOOK_SECRET")

    github = None
    if github_token is not None:
        github = GitHubConfig(api_base_url=github_api_base_url, token=github_token, webhook_secret=webhook_secret)

    return AppConfig(
        llm=LLMCredentials(openai_api_key=environ.get("OPENAI_API_KEY") or None),
        github=github,
    )

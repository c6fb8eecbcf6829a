from __future__ import annotations

import json
from pathlib import Path

import pytest

from diffreview.config import DEFAULT_CONFIG
from diffreview.config import load_config_from_env
from diffreview.config import load_review_config
from diffreview.config import merge_cli_options


def test_load_review_config_defaults_when_no_file(tmp_path: Path) -> None:
    cfg = load_review_config(cwd=tmp_path)
    assert cfg == DEFAULT_CONFIG
    assert cfg.provider == "openai"
    assert cfg.severity == "suggestion"
    assert cfg.ignore_files == []


def test_load_review_config_json_uses_camel_case_keys(tmp_path: Path) -> None:
    (tmp_path / ".aicodeconfig.json").write_text(
        json.dumps({"provider": "ollama", "commentStyle": "summary", "ignoreFiles": ["*.lock"], "severity": "warning"}),
        encoding="utf-8",
    )
    cfg = load_review_config(cwd=tmp_path)
    assert cfg.provider == "ollama"
    assert cfg.comment_style == "summary"
    assert cfg.ignore_files == ["*.lock"]
    assert cfg.severity == "warning"


def test_load_review_config_yaml(tmp_path: Path) -> None:
    (tmp_path / ".aicode.yml").write_text(
        "model: llama3\nrules:\n  - No print statements\ncustomPrompt: Be brief.\n",
        encoding="utf-8",
    )
    cfg = load_review_config(cwd=tmp_path)
    assert cfg.model == "llama3"
    assert cfg.rules == ["No print statements"]
    assert cfg.custom_prompt == "Be brief."


def test_json_config_takes_precedence_over_yaml(tmp_path: Path) -> None:
    (tmp_path / ".aicodeconfig.json").write_text('{"model": "from-json"}', encoding="utf-8")
    (tmp_path / ".aicode.yml").write_text("model: from-yaml\n", encoding="utf-8")
    assert load_review_config(cwd=tmp_path).model == "from-json"


def test_explicit_config_path(tmp_path: Path) -> None:
    path = tmp_path / "custom.yaml"
    path.write_text("gitPlatform: local\n", encoding="utf-8")
    assert load_review_config(config_path=str(path), cwd=tmp_path).git_platform == "local"


def test_unsupported_config_format_raises(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("model = 'x'\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_review_config(config_path=str(path), cwd=tmp_path)


def test_merge_cli_options_overrides_file_values() -> None:
    file_config = DEFAULT_CONFIG.model_copy(update={"model": "gpt-4o-mini", "repo": "acme/app"})
    cfg = merge_cli_options({"model": "gpt-4o", "repo": None, "dry_run": True}, file_config)
    assert cfg.model == "gpt-4o"
    assert cfg.repo == "acme/app"
    assert cfg.dry_run is True


def test_merge_cli_options_falls_back_on_invalid_values() -> None:
    cfg = merge_cli_options(
        {"provider": "anthropic", "git_platform": "gitlab", "severity": "blocker"},
        DEFAULT_CONFIG,
    )
    assert cfg.provider == "openai"
    assert cfg.git_platform == "github"
    assert cfg.severity == "suggestion"


def test_load_config_from_env_without_github() -> None:
    cfg = load_config_from_env(environ={"OPENAI_API_KEY": "k"})
    assert cfg.llm.openai_api_key == "k"
    assert cfg.github is None


def test_load_config_from_env_github_ok() -> None:
    cfg = load_config_from_env(environ={"GITHUB_TOKEN": "t", "GITHUB_WEBHOOK_SECRET": "s"})
    assert cfg.github is not None
    assert cfg.github.token == "t"
    assert cfg.github.webhook_secret == "s"
    assert str(cfg.github.api_base_url).startswith("https://api.github.com")


def test_load_config_from_env_rejects_partial_github() -> None:
    with pytest.raises(ValueError):
        load_config_from_env(environ={"GITHUB_WEBHOOK_SECRET": "s"})


def test_load_config_from_env_requires_webhook_secret_for_server() -> None:
    with pytest.raises(ValueError):
        load_config_from_env(environ={"GITHUB_TOKEN": "t"}, require_webhook_secret=True)

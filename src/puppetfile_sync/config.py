"""設定の読み込み（YAML ファイル + 環境変数による上書き）.

使用例:
    >>> settings = load_settings(Path("settings.yml"))
    >>> settings.default_branch
    'production'

YAML形式:
    default_branch: production
    manifest_repo_url: git@git.example.com:puppet/control.git
    workspace_root: /var/tmp
    git:
      user_name: r10k-bot
      user_email: r10k-bot@example.com
    rundeck:
      url: https://rundeck.example.com
      api_version: 41
      job_ids:
        deploy_env: 0b1c...
        deploy_mod: 7f3a...
      poll_interval: 5
      timeout: 1800
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from loguru import logger

DEFAULT_BRANCH = "production"
DEFAULT_WORKSPACE_ROOT = Path("/var/tmp")


@dataclass(frozen=True)
class RundeckSettings:
    url: str | None = None
    token: str | None = None
    api_version: int = 41
    job_ids: dict[str, str] = field(default_factory=dict)
    poll_interval: float = 5.0
    timeout: float = 1800.0


@dataclass(frozen=True)
class Settings:
    default_branch: str = DEFAULT_BRANCH
    manifest_repo_url: str | None = None
    puppetfile_name: str = "Puppetfile"
    workspace_root: Path = DEFAULT_WORKSPACE_ROOT
    git_user_name: str | None = None
    git_user_email: str | None = None
    rundeck: RundeckSettings = field(default_factory=RundeckSettings)


def _load_yaml(settings_yml: Path) -> dict:
    if not settings_yml.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_yml}")

    with open(settings_yml, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file must contain a mapping, got {type(data).__name__}")
    return data


def _section(data: dict, key: str) -> dict:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Settings section '{key}' must be a mapping, got {type(value).__name__}")
    return value


def load_settings(settings_yml: Path | None = None, environ: dict[str, str] | None = None) -> Settings:
    """設定を読み込む.

    環境変数はYAMLの値より優先される。

    Args:
        settings_yml: 設定YAMLのパス（None の場合は環境変数とデフォルト値のみ）
        environ: 参照する環境変数（None の場合は os.environ）

    Returns:
        Settings

    Raises:
        FileNotFoundError: settings_yml が存在しない場合
        ValueError: YAMLの構造、または数値項目が不正な場合
    """
    env = os.environ if environ is None else environ
    data = _load_yaml(settings_yml) if settings_yml is not None else {}
    git_cfg = _section(data, "git")
    rd_cfg = _section(data, "rundeck")

    job_ids = {str(k): str(v) for k, v in _section(rd_cfg, "job_ids").items()}
    if env.get("RUNDECK_JOB_ID_DEPLOY_ENV"):
        job_ids["deploy_env"] = env["RUNDECK_JOB_ID_DEPLOY_ENV"]
    if env.get("RUNDECK_JOB_ID_DEPLOY_MOD"):
        job_ids["deploy_mod"] = env["RUNDECK_JOB_ID_DEPLOY_MOD"]

    try:
        rundeck = RundeckSettings(
            url=env.get("RUNDECK_URL") or rd_cfg.get("url"),
            token=env.get("RUNDECK_TOKEN") or rd_cfg.get("token"),
            api_version=int(env.get("RUNDECK_API_VERSION") or rd_cfg.get("api_version", 41)),
            job_ids=job_ids,
            poll_interval=float(rd_cfg.get("poll_interval", 5.0)),
            timeout=float(rd_cfg.get("timeout", 1800.0)),
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid rundeck settings: {e}") from e

    settings = Settings(
        default_branch=env.get("PUPPETFILE_GIT_DEFAULT_BRANCH") or data.get("default_branch") or DEFAULT_BRANCH,
        manifest_repo_url=env.get("PUPPETFILE_GIT_REPO") or data.get("manifest_repo_url"),
        puppetfile_name=data.get("puppetfile_name") or "Puppetfile",
        workspace_root=Path(
            env.get("PUPPETFILE_WORKSPACE_ROOT") or data.get("workspace_root") or DEFAULT_WORKSPACE_ROOT
        ),
        git_user_name=env.get("PUPPETFILE_GIT_USER_NAME") or git_cfg.get("user_name"),
        git_user_email=env.get("PUPPETFILE_GIT_USER_EMAIL") or git_cfg.get("user_email"),
        rundeck=rundeck,
    )

    if settings_yml is not None:
        logger.info(f"Loaded settings from {settings_yml}")
    logger.debug(f"Default Puppetfile branch: {settings.default_branch}")
    return settings

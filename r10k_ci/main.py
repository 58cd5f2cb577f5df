"""modify イベント処理の CLI エントリポイント."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

import yaml
from loguru import logger

from puppetfile_sync.config import load_settings
from puppetfile_sync.core.event import ModifyEvent
from r10k_ci.modify import run_modify


def _load_event_payload(event_path: Path) -> dict:
    """イベントファイル（JSON または YAML）を読み込む."""
    text = event_path.read_text(encoding="utf-8")
    if event_path.suffix.lower() == ".json":
        payload = json.loads(text)
    else:
        payload = yaml.safe_load(text)
    if not isinstance(payload, dict):
        raise ValueError(f"Event file must contain an object, got {type(payload).__name__}")
    return payload


def _payload_from_args(args: argparse.Namespace) -> dict:
    payload = {
        "branch": args.branch,
        "reponame": args.module,
        "repourl": args.repo_url,
        "pushuser": args.push_user,
        "repopath": args.repo_path,
    }
    if args.manifest_repo:
        payload["pfrepo"] = args.manifest_repo
    return {k: v for k, v in payload.items() if v is not None}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Reconcile a module branch with the Puppetfile repository and deploy it")
    p.add_argument("--event", type=Path, default=None, help="event payload file (JSON or YAML)")
    p.add_argument("--settings", type=Path, default=None, help="settings YAML path")
    p.add_argument("--branch", default=None, help="module branch name")
    p.add_argument("--module", default=None, help="module name")
    p.add_argument("--repo-url", default=None, help="module repository URL (as written in :git)")
    p.add_argument("--manifest-repo", default=None, help="Puppetfile repository URL")
    p.add_argument("--push-user", default=None, help="user who pushed the change")
    p.add_argument("--repo-path", default=None, help="module repository path")
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"],
        help="log level",
    )
    return p


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level=args.log_level)

    try:
        settings = load_settings(args.settings)
        payload = _load_event_payload(args.event) if args.event else {}
    except (OSError, ValueError, yaml.YAMLError) as e:
        p.error(str(e))

    # フラグ指定はイベントファイルの値より優先
    payload.update(_payload_from_args(args))
    try:
        event = ModifyEvent.from_payload(payload, manifest_repo_url=settings.manifest_repo_url)
    except ValueError as e:
        p.error(str(e))

    result = run_modify(event, settings)
    if not result.ok:
        logger.error(f"modify failed at stage {result.failed_at.value if result.failed_at else 'unknown'}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

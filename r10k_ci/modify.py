"""modify イベントの処理（Puppetfile リポジトリの整合と r10k デプロイ起動）.

処理の流れ:
    - Puppetfile リポジトリを一時ディレクトリへ clone
    - fetch（prune）
    - ブランチをチェックアウト。既存ブランチなら production ブランチの変更をマージ
    - 必要なら Puppetfile のモジュール参照を更新
    - 必要ならコミット、プッシュ
    - r10k ジョブを起動
      - 通常は feature 環境内の対象モジュールのみ更新
      - production からのマージがあった場合は feature 環境全体を再デプロイ

一時ディレクトリは成功・失敗に関わらず削除する。
"""

from __future__ import annotations

import shutil
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from loguru import logger

from puppetfile_sync.config import Settings
from puppetfile_sync.core.decision import DeployKind, DeploymentGate, DeploymentRequest, build_request, decide
from puppetfile_sync.core.event import ModifyEvent, resolve_target_branch
from puppetfile_sync.core.puppetfile import read_puppetfile, update_module_ref, write_puppetfile
from puppetfile_sync.core.reconcile import VersionControlGateway, reconcile_branch
from puppetfile_sync.git_ops import GitGateway
from r10k_ci.rundeck import RundeckDispatcher

WORKSPACE_PREFIX = "puppetfile_repo_"


class JobDispatcher(Protocol):
    def run_job(self, request: DeploymentRequest) -> str: ...


class PipelineStage(str, Enum):
    """パイプラインの到達段階."""

    INIT = "init"
    CLONED = "cloned"
    FETCHED = "fetched"
    RECONCILED = "reconciled"
    MANIFEST_EVALUATED = "manifest_evaluated"
    COMMITTED = "committed"
    PUSHED = "pushed"
    DISPATCHED = "dispatched"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ModifyResult:
    event: ModifyEvent
    target_branch: str
    stage: PipelineStage = PipelineStage.INIT
    gate: DeploymentGate | None = None
    status: str | None = None
    error: Exception | None = None
    failed_at: PipelineStage | None = None

    @property
    def ok(self) -> bool:
        return self.stage == PipelineStage.DONE


def _remove_workspace(gitdir: Path) -> None:
    logger.debug(f"Removing temp dir: {gitdir}")
    try:
        shutil.rmtree(gitdir)
    except OSError as e:
        logger.warning(f"Failed to remove temp dir {gitdir}: {e}")


def run_modify(
    event: ModifyEvent,
    settings: Settings,
    git: VersionControlGateway | None = None,
    dispatcher: JobDispatcher | None = None,
) -> ModifyResult:
    """modify イベントを1回処理する.

    Args:
        event: 入力イベント
        settings: 設定
        git: git ゲートウェイ（None の場合は GitGateway）
        dispatcher: ジョブディスパッチャ（None の場合は設定から RundeckDispatcher を生成）

    Returns:
        処理結果。失敗時は stage=FAILED、error に原因の例外、failed_at に最後に完了した段階
    """
    target_branch = resolve_target_branch(event.branch, settings.default_branch)
    result = ModifyResult(event=event, target_branch=target_branch)
    if git is None:
        git = GitGateway(
            puppetfile_name=settings.puppetfile_name,
            user_name=settings.git_user_name,
            user_email=settings.git_user_email,
        )
    owned_dispatcher: RundeckDispatcher | None = None
    gitdir: Path | None = None

    logger.info(f'Entering "modify" process for branch {target_branch} of module {event.module_name}')

    try:
        # 設定不備はリモートを変更する前に検出する
        if dispatcher is None:
            owned_dispatcher = RundeckDispatcher(settings.rundeck)
            dispatcher = owned_dispatcher

        settings.workspace_root.mkdir(parents=True, exist_ok=True)
        gitdir = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=settings.workspace_root))

        git.clone(gitdir, event.manifest_repo_url)
        result.stage = PipelineStage.CLONED

        def _fetched() -> None:
            result.stage = PipelineStage.FETCHED

        outcome = reconcile_branch(git, gitdir, target_branch, settings.default_branch, on_fetched=_fetched)
        result.stage = PipelineStage.RECONCILED

        pfile = gitdir / settings.puppetfile_name
        update = update_module_ref(
            read_puppetfile(pfile),
            module_name=event.module_name,
            repo_url=event.repo_url,
            branch=event.branch,
            target_branch=target_branch,
        )
        if update.modified:
            write_puppetfile(pfile, update.content)
        result.stage = PipelineStage.MANIFEST_EVALUATED

        gate = decide(outcome, manifest_modified=update.modified)
        result.gate = gate
        logger.debug(
            f"Gate for {target_branch}: commit={gate.commit_needed} push={gate.push_needed} "
            f"kind={gate.deploy_kind.value}"
        )

        if gate.commit_needed:
            logger.debug(f"Branch {target_branch} has been updated. Commit required")
            git.commit(event.module_name, target_branch, gitdir)
            result.stage = PipelineStage.COMMITTED

        if gate.push_needed:
            git.push(target_branch, gitdir)
            result.stage = PipelineStage.PUSHED

        request = build_request(event, target_branch, gate)
        if gate.deploy_kind is DeployKind.FULL_ENVIRONMENT:
            logger.info(f"Deploy all modules in environment {target_branch} using r10k")
        else:
            logger.info(f"Update module {event.module_name} in environment {target_branch} using r10k")

        result.status = dispatcher.run_job(request)
        result.stage = PipelineStage.DISPATCHED

        logger.info(f"Processing branch {target_branch} of module {event.module_name} {result.status}")
        result.stage = PipelineStage.DONE

    except Exception as e:
        logger.exception(f"Processing branch {target_branch} of module {event.module_name} failed: {e}")
        result.failed_at = result.stage
        result.stage = PipelineStage.FAILED
        result.error = e

    finally:
        if gitdir is not None:
            _remove_workspace(gitdir)
        if owned_dispatcher is not None:
            owned_dispatcher.close()

    return result

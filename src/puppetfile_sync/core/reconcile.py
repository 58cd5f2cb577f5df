"""Puppetfile リポジトリのブランチ整合."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from loguru import logger

from .decision import ReconciliationOutcome


class VersionControlGateway(Protocol):
    def clone(self, dest: Path, url: str) -> None: ...

    def fetch(self, workdir: Path) -> None: ...

    def branch_exists(self, name: str, workdir: Path) -> bool: ...

    def checkout_existing(self, name: str, workdir: Path, production_branch: str) -> bool: ...

    def checkout_new(self, name: str, workdir: Path) -> None: ...

    def commit(self, module_name: str, branch: str, workdir: Path) -> None: ...

    def push(self, branch: str, workdir: Path) -> None: ...


def reconcile_branch(
    git: VersionControlGateway,
    workdir: Path,
    target_branch: str,
    production_branch: str,
    on_fetched: Callable[[], None] | None = None,
) -> ReconciliationOutcome:
    """作業ツリーを target_branch に切り替え、環境全体のデプロイが必要かを判定.

    1. リモートを prune 付きで fetch（削除済みブランチの参照を残さない）
    2. target_branch がリモートに存在するか確認
    3. 存在する場合: チェックアウトして production_branch の変更をマージ。
       マージで新しいコミットが入った場合のみ全体デプロイが必要
    4. 存在しない場合: 現在の状態から新規作成。全体デプロイとコミットが必須

    Args:
        git: git 操作のゲートウェイ
        workdir: Puppetfile リポジトリのクローン先
        target_branch: 読み替え後のブランチ名
        production_branch: マージ元となる本番ブランチ名
        on_fetched: fetch 完了時に呼ばれるコールバック（段階の記録用）

    Returns:
        ReconciliationOutcome

    Raises:
        GitCommandError: いずれかの git 操作が失敗した場合（リトライしない）
    """
    git.fetch(workdir)
    if on_fetched is not None:
        on_fetched()

    logger.debug(f'Checking if branch "{target_branch}" exists on remote')
    if git.branch_exists(target_branch, workdir):
        merged = git.checkout_existing(target_branch, workdir, production_branch)
        if merged:
            logger.info(f"Changes from {production_branch} were merged into {target_branch}")
        return ReconciliationOutcome(branch_existed=True, full_deployment_needed=merged)

    # 手動で Puppetfile リポジトリが変更された場合以外は起こらない想定
    logger.warning(f"Branch {target_branch} does not exist on remote, creating it")
    git.checkout_new(target_branch, workdir)
    return ReconciliationOutcome(branch_existed=False, full_deployment_needed=True)

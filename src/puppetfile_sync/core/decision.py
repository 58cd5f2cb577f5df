"""コミット/プッシュ/デプロイ粒度の判定.

ブランチ整合（reconcile）の結果と Puppetfile の変更有無だけから決まる純粋関数群。
I/O は行わない。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .event import ModifyEvent


class DeployKind(str, Enum):
    """r10k デプロイの粒度（値はジョブの type オプション）."""

    FULL_ENVIRONMENT = "deploy_env"  # 環境内の全モジュールを再デプロイ
    SINGLE_MODULE = "deploy_mod"  # 対象モジュールのみ更新


@dataclass(frozen=True)
class ReconciliationOutcome:
    branch_existed: bool
    full_deployment_needed: bool

    @property
    def branch_created(self) -> bool:
        return not self.branch_existed


@dataclass(frozen=True)
class DeploymentGate:
    commit_needed: bool
    push_needed: bool
    deploy_kind: DeployKind


@dataclass(frozen=True)
class DeploymentRequest:
    push_username: str
    branch: str
    module: str
    path: str
    repo_url: str
    kind: DeployKind

    def as_options(self) -> dict[str, str]:
        """ジョブへ渡すオプション辞書."""
        return {
            "pushUsername": self.push_username,
            "branch": self.branch,
            "module": self.module,
            "path": self.path,
            "repoUrl": self.repo_url,
            "type": self.kind.value,
        }


def decide(outcome: ReconciliationOutcome, manifest_modified: bool) -> DeploymentGate:
    """コミット/プッシュの要否とデプロイ粒度を決定.

    - ブランチを新規作成した、または Puppetfile を変更した場合はコミットが必要
    - コミットした場合、または production からのマージが入った場合はプッシュが必要
    - production からのマージが入った（またはブランチを新規作成した）場合は環境全体をデプロイ

    Args:
        outcome: reconcile_branch の結果
        manifest_modified: Puppetfile を変更したか

    Returns:
        DeploymentGate
    """
    commit_needed = outcome.branch_created or manifest_modified
    push_needed = commit_needed or outcome.full_deployment_needed
    if outcome.full_deployment_needed:
        deploy_kind = DeployKind.FULL_ENVIRONMENT
    else:
        deploy_kind = DeployKind.SINGLE_MODULE
    return DeploymentGate(
        commit_needed=commit_needed,
        push_needed=push_needed,
        deploy_kind=deploy_kind,
    )


def build_request(event: ModifyEvent, target_branch: str, gate: DeploymentGate) -> DeploymentRequest:
    """ディスパッチャへ渡すデプロイ要求を生成（ブランチは読み替え後の名前）."""
    return DeploymentRequest(
        push_username=event.push_username,
        branch=target_branch,
        module=event.module_name,
        path=event.repo_path,
        repo_url=event.repo_url,
        kind=gate.deploy_kind,
    )

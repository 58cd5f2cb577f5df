"""modify イベント処理のコア判定ロジック.

- ブランチ整合（存在確認、production からのマージ、新規作成）
- Puppetfile の :ref 更新
- コミット/プッシュ/デプロイ粒度の判定
"""

from .decision import DeployKind, DeploymentGate, DeploymentRequest, ReconciliationOutcome, build_request, decide
from .event import PRODUCTION_BRANCH, ModifyEvent, resolve_target_branch
from .puppetfile import Puppetfile, UpdateAction, update_module_ref
from .reconcile import reconcile_branch

__all__ = [
    "PRODUCTION_BRANCH",
    "ModifyEvent",
    "resolve_target_branch",
    "Puppetfile",
    "UpdateAction",
    "update_module_ref",
    "reconcile_branch",
    "DeployKind",
    "DeploymentGate",
    "DeploymentRequest",
    "ReconciliationOutcome",
    "decide",
    "build_request",
]

"""r10k_ci: CI/CD統合レイヤ.

モジュールのブランチ変更イベントを受けて Puppetfile リポジトリを整合させ、
Rundeck 経由で r10k のデプロイジョブを起動する。
"""

from r10k_ci.modify import ModifyResult, PipelineStage, run_modify
from r10k_ci.rundeck import RundeckDispatcher

__version__ = "0.1.0"

__all__ = [
    # modify
    "run_modify",
    "ModifyResult",
    "PipelineStage",
    # rundeck
    "RundeckDispatcher",
]

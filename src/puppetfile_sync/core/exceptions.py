"""Puppetfile sync exceptions.

パイプラインの各ステップで発生する失敗を表す例外クラスを定義します。
いずれのステップもリトライせず、呼び出し元へそのまま伝播させる前提です。
"""

from __future__ import annotations

from pathlib import Path


class ReconciliationError(Exception):
    """modify イベント処理中の失敗の基底クラス."""


class GitCommandError(ReconciliationError):
    """git コマンドが非ゼロで終了した場合の例外.

    Attributes:
        args_: 実行した git の引数（"git" 自体は含まない）
        returncode: 終了コード
        stderr: 標準エラー出力
    """

    def __init__(self, args: list[str], returncode: int, stderr: str) -> None:
        self.args_ = list(args)
        self.returncode = returncode
        self.stderr = stderr
        message = f"git {' '.join(args)} failed with exit code {returncode}"
        if stderr.strip():
            message += f": {stderr.strip()}"
        super().__init__(message)


class PuppetfileError(ReconciliationError):
    """Puppetfile の読み書きに失敗した場合の例外."""

    def __init__(self, path: Path, operation: str, reason: str) -> None:
        self.path = path
        self.operation = operation
        super().__init__(f"Failed to {operation} Puppetfile {path}: {reason}")


class DispatchError(ReconciliationError):
    """デプロイジョブの起動失敗、または成功以外の終了ステータス."""

    def __init__(self, message: str, status: str | None = None) -> None:
        self.status = status
        super().__init__(message)

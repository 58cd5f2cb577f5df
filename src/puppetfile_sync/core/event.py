"""modify イベント（キューから受け取る入力）の定義."""

from __future__ import annotations

from dataclasses import dataclass

# 本番ブランチを表すイベント上の予約名
PRODUCTION_BRANCH = "production"

_REQUIRED_KEYS = ("branch", "reponame", "repourl", "pushuser", "repopath")


@dataclass(frozen=True)
class ModifyEvent:
    branch: str
    module_name: str
    repo_url: str
    manifest_repo_url: str
    push_username: str
    repo_path: str

    @classmethod
    def from_payload(cls, payload: dict, manifest_repo_url: str | None = None) -> ModifyEvent:
        """キューのペイロード辞書からイベントを生成.

        Args:
            payload: branch/reponame/repourl/pushuser/repopath（任意で pfrepo）を含む辞書
            manifest_repo_url: ペイロードに pfrepo が無い場合に使う Puppetfile リポジトリURL

        Returns:
            ModifyEvent

        Raises:
            ValueError: 必須キーが欠けている、または空の場合
        """
        missing = [key for key in _REQUIRED_KEYS if not payload.get(key)]
        pfrepo = payload.get("pfrepo") or manifest_repo_url
        if not pfrepo:
            missing.append("pfrepo")
        if missing:
            raise ValueError(f"Event payload is missing required keys: {', '.join(missing)}")

        return cls(
            branch=str(payload["branch"]),
            module_name=str(payload["reponame"]),
            repo_url=str(payload["repourl"]),
            manifest_repo_url=str(pfrepo),
            push_username=str(payload["pushuser"]),
            repo_path=str(payload["repopath"]),
        )


def resolve_target_branch(branch: str, default_branch: str) -> str:
    """イベントのブランチ名から Puppetfile リポジトリ側のブランチ名を決定.

    "production" は設定されたデフォルトブランチ名に読み替える。
    """
    if branch == PRODUCTION_BRANCH:
        return default_branch
    return branch

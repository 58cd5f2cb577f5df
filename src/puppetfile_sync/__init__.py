"""puppetfile_sync: モジュールのブランチ変更を Puppetfile リポジトリへ反映するコア."""

from puppetfile_sync.config import Settings, load_settings
from puppetfile_sync.git_ops import GitGateway

__version__ = "0.1.0"

__all__ = [
    "GitGateway",
    "Settings",
    "load_settings",
]

"""git CLI を使った Puppetfile リポジトリ操作.

すべての操作は作業ディレクトリを明示的に受け取り、`subprocess` の `cwd` で実行する。
プロセスのカレントディレクトリは変更しない。
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from loguru import logger

from puppetfile_sync.core.exceptions import GitCommandError


class GitGateway:
    """Puppetfile リポジトリに対する git 操作.

    Args:
        puppetfile_name: コミット対象のファイル名
        user_name: コミットに使う user.name（None なら git の設定に従う）
        user_email: コミットに使う user.email（None なら git の設定に従う）
        remote: リモート名
    """

    def __init__(
        self,
        puppetfile_name: str = "Puppetfile",
        user_name: str | None = None,
        user_email: str | None = None,
        remote: str = "origin",
    ) -> None:
        self.puppetfile_name = puppetfile_name
        self.user_name = user_name
        self.user_email = user_email
        self.remote = remote

    def _run(
        self,
        args: list[str],
        cwd: Path | None = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        logger.debug(f"git {' '.join(args)} (cwd={cwd})")
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
        )
        if check and result.returncode != 0:
            raise GitCommandError(args, result.returncode, result.stderr)
        return result

    def _head(self, workdir: Path) -> str:
        return self._run(["rev-parse", "HEAD"], cwd=workdir).stdout.strip()

    def clone(self, dest: Path, url: str) -> None:
        logger.info(f"Cloning {url} into {dest}")
        self._run(["clone", url, str(dest)])

    def fetch(self, workdir: Path) -> None:
        self._run(["fetch", "--prune", self.remote], cwd=workdir)

    def branch_exists(self, name: str, workdir: Path) -> bool:
        result = self._run(
            ["rev-parse", "--verify", "--quiet", f"refs/remotes/{self.remote}/{name}"],
            cwd=workdir,
            check=False,
        )
        return result.returncode == 0

    def checkout_existing(self, name: str, workdir: Path, production_branch: str) -> bool:
        """既存ブランチをチェックアウトし、production_branch をマージ.

        Returns:
            マージで新しいコミットが取り込まれた（HEAD が動いた）場合 True
        """
        self._run(["checkout", "-B", name, f"{self.remote}/{name}"], cwd=workdir)
        before = self._head(workdir)

        self._run(
            [*self._identity(), "merge", "--no-edit", f"{self.remote}/{production_branch}"],
            cwd=workdir,
        )
        after = self._head(workdir)

        if before == after:
            logger.debug(f"Branch {name} is already up to date with {production_branch}")
            return False
        logger.debug(f"Merged {production_branch} into {name}: {before[:8]}..{after[:8]}")
        return True

    def checkout_new(self, name: str, workdir: Path) -> None:
        self._run(["checkout", "-b", name], cwd=workdir)

    def commit(self, module_name: str, branch: str, workdir: Path) -> None:
        self._run(["add", self.puppetfile_name], cwd=workdir)
        message = f"Update Puppetfile: module {module_name} on branch {branch}"
        # ファイル差分が無くても新規ブランチ作成時はコミットを残す
        self._run([*self._identity(), "commit", "--allow-empty", "-m", message], cwd=workdir)
        logger.info(f"Committed Puppetfile changes on {branch}")

    def push(self, branch: str, workdir: Path) -> None:
        self._run(["push", "--set-upstream", self.remote, branch], cwd=workdir)
        logger.info(f"Pushed {branch} to {self.remote}")

    def _identity(self) -> list[str]:
        args: list[str] = []
        if self.user_name:
            args += ["-c", f"user.name={self.user_name}"]
        if self.user_email:
            args += ["-c", f"user.email={self.user_email}"]
        return args

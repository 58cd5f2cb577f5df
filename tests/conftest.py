"""Shared test doubles for the git gateway and the job dispatcher."""

from __future__ import annotations

from pathlib import Path

import pytest

from puppetfile_sync.core.decision import DeploymentRequest
from puppetfile_sync.core.exceptions import DispatchError, GitCommandError


class FakeGit:
    """In-memory Puppetfile repository.

    `remote` maps branch name -> Puppetfile content. `merge_commits` is the number of
    production commits not yet merged into each feature branch.
    """

    def __init__(
        self,
        remote: dict[str, str],
        default_branch: str = "production",
        merge_commits: dict[str, int] | None = None,
        fail_on: str | None = None,
    ) -> None:
        self.remote = dict(remote)
        self.default_branch = default_branch
        self.merge_commits = dict(merge_commits or {})
        self.fail_on = fail_on
        self.calls: list[tuple] = []
        self._workdir: Path | None = None
        self._committed: str | None = None

    def _record(self, name: str, *args: object) -> None:
        self.calls.append((name, *args))
        if self.fail_on == name:
            raise GitCommandError([name], 128, f"fatal: {name} failed")

    def _pfile(self, workdir: Path) -> Path:
        return workdir / "Puppetfile"

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    def clone(self, dest: Path, url: str) -> None:
        self._record("clone", url)
        self._workdir = dest
        self._committed = None
        self._pfile(dest).write_bytes(self.remote[self.default_branch].encode("utf-8"))

    def fetch(self, workdir: Path) -> None:
        self._record("fetch")

    def branch_exists(self, name: str, workdir: Path) -> bool:
        self._record("branch_exists", name)
        return name in self.remote

    def checkout_existing(self, name: str, workdir: Path, production_branch: str) -> bool:
        self._record("checkout_existing", name, production_branch)
        self._pfile(workdir).write_bytes(self.remote[name].encode("utf-8"))
        return self.merge_commits.pop(name, 0) > 0

    def checkout_new(self, name: str, workdir: Path) -> None:
        self._record("checkout_new", name)

    def commit(self, module_name: str, branch: str, workdir: Path) -> None:
        self._record("commit", module_name, branch)
        self._committed = self._pfile(workdir).read_bytes().decode("utf-8")

    def push(self, branch: str, workdir: Path) -> None:
        self._record("push", branch)
        if self._committed is not None:
            self.remote[branch] = self._committed
        else:
            self.remote.setdefault(branch, self._pfile(workdir).read_bytes().decode("utf-8"))


class FakeDispatcher:
    def __init__(self, status: str = "succeeded") -> None:
        self.status = status
        self.requests: list[DeploymentRequest] = []

    def run_job(self, request: DeploymentRequest) -> str:
        self.requests.append(request)
        if self.status != "succeeded":
            raise DispatchError(f"execution finished with status {self.status}", status=self.status)
        return self.status


@pytest.fixture
def fake_git_factory():
    return FakeGit


@pytest.fixture
def fake_dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture
def fake_dispatcher_factory():
    return FakeDispatcher

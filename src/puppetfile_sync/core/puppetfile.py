"""Puppetfile のモジュール参照（:ref）の検出と書き換え.

Puppetfile を物理行単位で `mod` ブロックへ分割し、
- `:git` のURL（完全一致）でモジュールを特定
- `:ref` の値だけを差し替え（それ以外のバイトは一切変更しない）
- 未登録のモジュールは末尾に追記
を行う。Puppetfile 全体を解釈する汎用パーサではなく、`mod` / `:git` / `:ref` のみを扱う。

対象とするエントリ形式:

    mod "<moduleName>",
      :git => "<repoUrl>",
      :ref => "<refValue>"
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from loguru import logger

from .event import PRODUCTION_BRANCH
from .exceptions import PuppetfileError

_MOD_RE = re.compile(r"""^\s*mod\s+(['"])(?P<name>[^'"]+)\1""")
_GIT_RE = re.compile(r""":git\s*=>\s*(['"])(?P<url>[^'"]+)\1""")
# :ref は1物理行内で閉じクォートで終わるもののみ対象（末尾の空白は許容）
_REF_RE = re.compile(r""":ref\s*=>\s*['"](?P<ref>[^'"]+)['"][ \t]*$""")


class UpdateAction(str, Enum):
    """update_module_ref の結果種別."""

    APPENDED = "appended"  # 未登録のため末尾に追記
    REWRITTEN = "rewritten"  # 既存の :ref を書き換え
    UNCHANGED = "unchanged"  # 変更不要


@dataclass(frozen=True)
class ModuleEntry:
    name: str
    git: str | None
    ref: str | None
    start_line: int
    end_line: int
    ref_line: int | None = None
    ref_start: int | None = None
    ref_end: int | None = None


@dataclass(frozen=True)
class ManifestUpdate:
    content: str
    modified: bool
    action: UpdateAction


def _strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


class Puppetfile:
    """行単位に分割した Puppetfile テキストと、その `mod` エントリ一覧.

    元テキストは行末コードを含めてそのまま保持し、書き換えは対象行の
    :ref 値の範囲だけを差し替えて再結合する。
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.lines = text.splitlines(keepends=True)
        self.entries = self._parse_entries()

    @classmethod
    def parse(cls, text: str) -> Puppetfile:
        return cls(text)

    def _parse_entries(self) -> list[ModuleEntry]:
        starts: list[tuple[int, str]] = []
        for index, line in enumerate(self.lines):
            m = _MOD_RE.match(line)
            if m:
                starts.append((index, m.group("name")))

        entries: list[ModuleEntry] = []
        for pos, (start, name) in enumerate(starts):
            end = starts[pos + 1][0] if pos + 1 < len(starts) else len(self.lines)
            git = None
            ref = None
            ref_line = ref_start = ref_end = None

            for index in range(start, end):
                body = _strip_eol(self.lines[index])
                if body.lstrip().startswith("#"):
                    continue
                if git is None:
                    git_match = _GIT_RE.search(body)
                    if git_match:
                        git = git_match.group("url")
                if ref is None:
                    ref_match = _REF_RE.search(body)
                    if ref_match:
                        ref = ref_match.group("ref")
                        ref_line = index
                        ref_start, ref_end = ref_match.span("ref")

            entries.append(
                ModuleEntry(
                    name=name,
                    git=git,
                    ref=ref,
                    start_line=start,
                    end_line=end,
                    ref_line=ref_line,
                    ref_start=ref_start,
                    ref_end=ref_end,
                )
            )
        return entries

    def references(self) -> dict[str, str]:
        """:git URL -> :ref のマッピング（同一URLは先勝ち）."""
        refs: dict[str, str] = {}
        for entry in self.entries:
            if entry.git is not None and entry.ref is not None:
                refs.setdefault(entry.git, entry.ref)
        return refs

    def find(self, repo_url: str) -> ModuleEntry | None:
        """:git が repo_url と完全一致し、:ref を持つ最初のエントリを返す."""
        for entry in self.entries:
            if entry.git == repo_url and entry.ref_line is not None:
                return entry
        return None

    def replace_ref(self, entry: ModuleEntry, ref: str) -> str:
        """entry の :ref 値だけを ref に置き換えたテキストを返す."""
        if entry.ref_line is None or entry.ref_start is None or entry.ref_end is None:
            raise ValueError(f"Module {entry.name} has no :ref to replace")

        lines = list(self.lines)
        line = lines[entry.ref_line]
        lines[entry.ref_line] = line[: entry.ref_start] + ref + line[entry.ref_end :]
        return "".join(lines)

    def append_module(self, name: str, repo_url: str, ref: str) -> str:
        """新しいモジュールエントリを末尾に追記したテキストを返す."""
        return self.text + f'\nmod "{name}",\n  :git => "{repo_url}",\n  :ref => "{ref}"\n'


def update_module_ref(
    content: str,
    module_name: str,
    repo_url: str,
    branch: str,
    target_branch: str,
) -> ManifestUpdate:
    """モジュールの :ref を必要に応じて更新.

    Args:
        content: Puppetfile の全文
        module_name: モジュール名（追記時に使用）
        repo_url: モジュールのリポジトリURL（:git の値と完全一致で照合）
        branch: イベントのブランチ名（書き込む値。読み替え前の名前）
        target_branch: Puppetfile リポジトリ側のブランチ名（読み替え後）

    Returns:
        更新後テキスト、変更有無、結果種別
    """
    puppetfile = Puppetfile.parse(content)
    entry = puppetfile.find(repo_url)

    if entry is None:
        logger.info(f"Module {module_name} is not yet referenced in Puppetfile, adding it")
        new_content = puppetfile.append_module(module_name, repo_url, branch)
        return ManifestUpdate(content=new_content, modified=True, action=UpdateAction.APPENDED)

    if entry.ref in (target_branch, PRODUCTION_BRANCH):
        logger.debug(f"Module {module_name} already references {entry.ref}, nothing to update")
        return ManifestUpdate(content=content, modified=False, action=UpdateAction.UNCHANGED)

    # modify イベントでは本来発生しない（create 時点で :ref はブランチを指しているはず）
    logger.warning(
        f"Reference of module {module_name} is {entry.ref!r}, "
        f"neither {target_branch!r} nor {PRODUCTION_BRANCH!r}. Updating it to {branch!r}"
    )
    new_content = puppetfile.replace_ref(entry, branch)
    return ManifestUpdate(content=new_content, modified=True, action=UpdateAction.REWRITTEN)


def read_puppetfile(path: Path) -> str:
    """Puppetfile を読み込む（行末コードは変換しない）.

    Raises:
        PuppetfileError: 読み込みに失敗した場合
    """
    try:
        with open(path, encoding="utf-8", newline="") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise PuppetfileError(path, "read", str(e)) from e


def write_puppetfile(path: Path, content: str) -> None:
    """Puppetfile を書き込む（行末コードは変換しない）.

    Raises:
        PuppetfileError: 書き込みに失敗した場合
    """
    try:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as e:
        raise PuppetfileError(path, "write", str(e)) from e
    logger.debug(f"Puppetfile written: {path}")

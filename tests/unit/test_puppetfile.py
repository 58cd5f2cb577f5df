"""Unit tests for Puppetfile reference updates."""

from pathlib import Path

import pytest

from puppetfile_sync.core.exceptions import PuppetfileError
from puppetfile_sync.core.puppetfile import (
    Puppetfile,
    UpdateAction,
    read_puppetfile,
    update_module_ref,
    write_puppetfile,
)

NGINX_URL = "git@git.example.com:puppet/nginx.git"
APACHE_URL = "git@git.example.com:puppet/apache.git"

PUPPETFILE = """forge "https://forgeapi.puppetlabs.com"

mod 'puppetlabs/stdlib', '9.4.1'

mod "profile",
  :git => "git@git.example.com:puppet/profile.git",
  :ref => "production"

mod "nginx",
  :git => "git@git.example.com:puppet/nginx.git",
  :ref => "old-branch"
"""


class TestPuppetfileParse:
    def test_entries(self) -> None:
        """mod ブロックごとに :git と :ref が取得できること."""
        pf = Puppetfile.parse(PUPPETFILE)

        assert [e.name for e in pf.entries] == ["puppetlabs/stdlib", "profile", "nginx"]
        assert pf.entries[0].git is None
        assert pf.entries[0].ref is None
        assert pf.references() == {
            "git@git.example.com:puppet/profile.git": "production",
            NGINX_URL: "old-branch",
        }

    def test_find_requires_exact_url(self) -> None:
        """URLの部分一致ではマッチしないこと."""
        pf = Puppetfile.parse(PUPPETFILE)

        assert pf.find(NGINX_URL) is not None
        assert pf.find("git.example.com:puppet/nginx.git") is None
        assert pf.find("git@git.example.com:puppet/nginx") is None

    def test_commented_ref_is_ignored(self) -> None:
        content = 'mod "nginx",\n  :git => "' + NGINX_URL + '",\n  # :ref => "feature-x"\n  :branch => "main"\n'
        pf = Puppetfile.parse(content)

        assert pf.find(NGINX_URL) is None

    def test_ref_must_end_the_line(self) -> None:
        content = 'mod "nginx",\n  :git => "' + NGINX_URL + '",\n  :ref => "feature-x" # pinned\n'
        pf = Puppetfile.parse(content)

        assert pf.find(NGINX_URL) is None

    def test_single_line_entry(self) -> None:
        content = "mod 'nginx', :git => '" + NGINX_URL + "', :ref => 'feature-x'\n"
        entry = Puppetfile.parse(content).find(NGINX_URL)

        assert entry is not None
        assert entry.ref == "feature-x"


class TestUpdateModuleRef:
    def test_append_missing_module(self) -> None:
        """未登録モジュールはイベントのブランチ名で追記されること."""
        result = update_module_ref(PUPPETFILE, "apache", APACHE_URL, "feature-x", "feature-x")

        assert result.modified is True
        assert result.action == UpdateAction.APPENDED
        assert result.content == (
            PUPPETFILE + '\nmod "apache",\n  :git => "' + APACHE_URL + '",\n  :ref => "feature-x"\n'
        )

    def test_append_uses_literal_event_branch(self) -> None:
        result = update_module_ref(PUPPETFILE, "apache", APACHE_URL, "production", "main")

        assert result.content.endswith(':ref => "production"\n')
        assert ':ref => "main"' not in result.content

    def test_unchanged_when_ref_is_target_branch(self) -> None:
        content = PUPPETFILE.replace('"old-branch"', '"feature-x"')
        result = update_module_ref(content, "nginx", NGINX_URL, "feature-x", "feature-x")

        assert result.modified is False
        assert result.action == UpdateAction.UNCHANGED
        assert result.content == content

    def test_unchanged_when_ref_is_production(self) -> None:
        content = PUPPETFILE.replace('"old-branch"', '"production"')
        result = update_module_ref(content, "nginx", NGINX_URL, "feature-x", "feature-x")

        assert result.modified is False
        assert result.content == content

    def test_rewrite_mismatched_ref(self) -> None:
        """:ref の値だけが書き換わり、他のバイトは保持されること."""
        result = update_module_ref(PUPPETFILE, "nginx", NGINX_URL, "feature-x", "feature-x")

        assert result.modified is True
        assert result.action == UpdateAction.REWRITTEN
        assert result.content == PUPPETFILE.replace('"old-branch"', '"feature-x"')

    def test_rewrite_preserves_quotes_whitespace_and_crlf(self) -> None:
        content = (
            "mod 'nginx',\r\n"
            "  :git => '" + NGINX_URL + "',\r\n"
            "  :ref  =>  'old-branch'  \r\n"
            "mod 'other',\r\n"
            "  :git => 'git@git.example.com:puppet/other.git',\r\n"
            "  :ref => 'old-branch'\r\n"
        )
        result = update_module_ref(content, "nginx", NGINX_URL, "feature-x", "feature-x")

        assert result.content == content.replace("'old-branch'  ", "'feature-x'  ", 1)
        assert result.content.count("'old-branch'") == 1

    def test_first_match_wins(self) -> None:
        content = PUPPETFILE + '\nmod "nginx_dup",\n  :git => "' + NGINX_URL + '",\n  :ref => "old-branch"\n'
        result = update_module_ref(content, "nginx", NGINX_URL, "feature-x", "feature-x")

        assert result.content.count('"feature-x"') == 1
        assert result.content.endswith(':ref => "old-branch"\n')

    def test_overlapping_url_is_not_matched(self) -> None:
        """URLが部分的に重なる別モジュールは対象外として追記されること."""
        url = "git.example.com:puppet/nginx.git"
        result = update_module_ref(PUPPETFILE, "nginx", url, "feature-x", "feature-x")

        assert result.action == UpdateAction.APPENDED
        assert ':ref => "old-branch"' in result.content

    def test_entry_without_ref_is_appended(self) -> None:
        content = 'mod "nginx",\n  :git => "' + NGINX_URL + '",\n  :branch => "feature-x"\n'
        result = update_module_ref(content, "nginx", NGINX_URL, "feature-x", "feature-x")

        assert result.action == UpdateAction.APPENDED

    def test_second_update_is_noop(self) -> None:
        first = update_module_ref(PUPPETFILE, "apache", APACHE_URL, "feature-x", "feature-x")
        second = update_module_ref(first.content, "apache", APACHE_URL, "feature-x", "feature-x")

        assert first.modified is True
        assert second.modified is False
        assert second.content == first.content


class TestPuppetfileIO:
    def test_roundtrip_keeps_line_endings(self, tmp_path: Path) -> None:
        path = tmp_path / "Puppetfile"
        content = "mod 'a',\r\n  :git => 'x',\r\n  :ref => 'y'\r\n"
        write_puppetfile(path, content)

        assert path.read_bytes() == content.encode("utf-8")
        assert read_puppetfile(path) == content

    def test_read_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(PuppetfileError, match="Failed to read Puppetfile"):
            read_puppetfile(tmp_path / "Puppetfile")

    def test_write_to_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(PuppetfileError, match="Failed to write Puppetfile"):
            write_puppetfile(tmp_path / "missing" / "Puppetfile", "")

"""
Unit tests for Wine/Proton prefix translation.
"""

import pytest

from savesync.paths import build_root_table, contract_path, expand_path
from savesync.paths.wine import (
    contract_wine_path,
    drive_token,
    find_wine_user,
    is_legacy_wine_key,
    is_valid_prefix,
    prefix_from_path,
    resolve_wine_token,
)


@pytest.fixture
def wine_prefix(temp_dir):
    """A minimal Proton style prefix with a steamuser profile."""
    prefix = temp_dir / "pfx"
    (prefix / "drive_c" / "users" / "steamuser").mkdir(parents=True)
    (prefix / "drive_c" / "users" / "Public").mkdir(parents=True)
    (prefix / "system.reg").write_text("")
    (prefix / "user.reg").write_text("")
    return prefix


@pytest.mark.unit
class TestContractWinePath:
    """Test cases for contract_wine_path."""

    PREFIX = "/home/alice/.steam/steamapps/compatdata/123/pfx"

    def _user(self, rest: str) -> str:
        return f"{self.PREFIX}/drive_c/users/steamuser/{rest}"

    def test_roaming_appdata(self):
        assert contract_wine_path(self._user("AppData/Roaming/Foo/a.sav"), self.PREFIX) == "%APPDATA%/Foo/a.sav"

    def test_local_appdata(self):
        assert contract_wine_path(self._user("AppData/Local/Foo/b.sav"), self.PREFIX) == "%LOCALAPPDATA%/Foo/b.sav"

    def test_documents_and_saved_games(self):
        assert contract_wine_path(self._user("Documents/Foo/c.sav"), self.PREFIX) == "%DOCUMENTS%/Foo/c.sav"
        assert contract_wine_path(self._user("My Documents/Foo/c.sav"), self.PREFIX) == "%DOCUMENTS%/Foo/c.sav"
        assert contract_wine_path(self._user("Saved Games/Foo/d.sav"), self.PREFIX) == "%SAVEDGAMES%/Foo/d.sav"

    def test_user_profile_fallback(self):
        assert contract_wine_path(self._user("Foo/e.sav"), self.PREFIX) == "%USERPROFILE%/Foo/e.sav"

    def test_public_and_programdata(self):
        public = f"{self.PREFIX}/drive_c/users/Public/Foo/f.sav"
        programdata = f"{self.PREFIX}/drive_c/ProgramData/Foo/g.sav"

        assert contract_wine_path(public, self.PREFIX) == "%PUBLIC%/Foo/f.sav"
        assert contract_wine_path(programdata, self.PREFIX) == "%PROGRAMDATA%/Foo/g.sav"

    def test_other_drive(self):
        assert contract_wine_path(f"{self.PREFIX}/drive_d/Games/h.sav", self.PREFIX) == "%DRIVE_D%/Games/h.sav"

    def test_path_outside_prefix(self):
        assert contract_wine_path("/home/alice/other/a.sav", self.PREFIX) is None
        assert contract_wine_path(f"{self.PREFIX}/dosdevices/c:", self.PREFIX) is None

    def test_codec_prefers_prefix_over_host_roots(self):
        roots = build_root_table({"HOME": "/home/alice"}, windows=False)
        path = self._user("AppData/Roaming/Foo/a.sav")

        assert contract_path(path, "/home/alice/Games/Foo", self.PREFIX, roots) == "%APPDATA%/Foo/a.sav"
        assert contract_path(path, "/home/alice/Games/Foo", None, roots).startswith("%USERPROFILE%/")


@pytest.mark.unit
class TestResolveWineToken:
    """Test cases for expanding tokens into a prefix."""

    def test_user_tokens(self, wine_prefix):
        prefix = str(wine_prefix)

        assert resolve_wine_token("%APPDATA%", prefix) == f"{prefix}/drive_c/users/steamuser/AppData/Roaming"
        assert resolve_wine_token("%USERPROFILE%", prefix) == f"{prefix}/drive_c/users/steamuser"

    def test_explicit_user(self):
        assert resolve_wine_token("%DOCUMENTS%", "/pfx", user="bob") == "/pfx/drive_c/users/bob/Documents"

    def test_drive_tokens(self):
        assert resolve_wine_token("%PROGRAMDATA%", "/pfx") == "/pfx/drive_c/ProgramData"
        assert resolve_wine_token(drive_token("d"), "/pfx") == "/pfx/drive_d"

    def test_unknown_token(self):
        assert resolve_wine_token("%GAMEPATH%", "/pfx") is None

    def test_expand_into_prefix(self, wine_prefix):
        prefix = str(wine_prefix)
        roots = build_root_table({"HOME": "/home/alice"}, windows=False)

        assert expand_path("%APPDATA%/Foo/a.sav", None, prefix, roots) == (
            f"{prefix}/drive_c/users/steamuser/AppData/Roaming/Foo/a.sav"
        )

    def test_token_unknown_to_prefix_falls_back_to_host(self):
        roots = build_root_table({"HOME": "/home/alice", "TMPDIR": "/var/tmp"}, windows=False)

        assert expand_path("%FOO%/a", None, "/pfx", roots) == "%FOO%/a"


@pytest.mark.unit
class TestPrefixHelpers:
    """Test cases for prefix inspection helpers."""

    def test_find_wine_user_prefers_steamuser(self, wine_prefix):
        (wine_prefix / "drive_c" / "users" / "alice").mkdir()

        assert find_wine_user(str(wine_prefix)) == "steamuser"

    def test_find_wine_user_skips_public(self, temp_dir):
        users = temp_dir / "drive_c" / "users"
        (users / "Public").mkdir(parents=True)
        (users / "bob").mkdir()

        assert find_wine_user(str(temp_dir)) == "bob"

    def test_is_valid_prefix(self, wine_prefix, temp_dir):
        assert is_valid_prefix(str(wine_prefix))
        assert not is_valid_prefix(str(temp_dir))
        assert not is_valid_prefix("")

    def test_legacy_keys(self):
        assert is_legacy_wine_key("/home/alice/.wine/drive_c/users/alice/a.sav")
        assert not is_legacy_wine_key("%APPDATA%/Foo/a.sav")
        assert not is_legacy_wine_key("")

    def test_prefix_from_path(self):
        assert prefix_from_path("/home/alice/.wine/drive_c/users/a.sav") == "/home/alice/.wine"
        assert prefix_from_path("/home/alice/a.sav") is None

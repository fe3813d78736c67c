"""
Unit tests for the portable path codec.

Every test passes an explicit root table so results do not depend on the
environment of the machine running the suite.
"""

import pytest

from savesync.paths import (
    PathCodec,
    build_root_table,
    contract_path,
    expand_path,
    get_game_path,
    portable_paths_equal,
    set_game_path,
)

WINDOWS_ENV = {
    "USERPROFILE": "C:\\Users\\Bob",
    "APPDATA": "C:\\Users\\Bob\\AppData\\Roaming",
    "LOCALAPPDATA": "C:\\Users\\Bob\\AppData\\Local",
    "PROGRAMDATA": "C:\\ProgramData",
}


@pytest.fixture
def windows_roots():
    return build_root_table(WINDOWS_ENV, windows=True)


@pytest.fixture
def linux_roots():
    return build_root_table({"HOME": "/home/alice", "TMPDIR": "/tmp"}, windows=False)


@pytest.mark.unit
class TestContractPath:
    """Test cases for contract_path."""

    def test_install_dir_becomes_gamepath(self, windows_roots):
        result = contract_path("C:\\Games\\Foo\\Saves\\slot1.sav", "C:/Games/Foo", roots=windows_roots)

        assert result == "%GAMEPATH%/Saves/slot1.sav"

    def test_install_dir_wins_over_host_roots(self, windows_roots):
        install_dir = "C:/Users/Bob/AppData/Roaming/Foo"
        result = contract_path(install_dir + "/profile.dat", install_dir, roots=windows_roots)

        assert result == "%GAMEPATH%/profile.dat"

    def test_longest_root_wins(self, windows_roots):
        result = contract_path("C:/Users/Bob/AppData/Roaming/Foo/settings.ini", "C:/Games/Foo", roots=windows_roots)

        assert result == "%APPDATA%/Foo/settings.ini"

    def test_contraction_is_case_insensitive_but_keeps_remainder_case(self, windows_roots):
        result = contract_path("c:/users/bob/Documents/My Games/Foo.sav", None, roots=windows_roots)

        assert result == "%DOCUMENTS%/My Games/Foo.sav"

    def test_unmatched_path_is_returned_normalized(self, windows_roots):
        assert contract_path("D:\\Other\\file.sav", "C:/Games/Foo", roots=windows_roots) == "D:/Other/file.sav"

    def test_portable_input_is_returned_unchanged(self, windows_roots):
        assert contract_path("%APPDATA%/Foo/a.ini", "C:/Games/Foo", roots=windows_roots) == "%APPDATA%/Foo/a.ini"

    def test_empty_input(self):
        assert contract_path("") == ""

    def test_linux_home_paths(self, linux_roots):
        assert contract_path("/home/alice/.config/Foo/a.ini", roots=linux_roots) == "%APPDATA%/Foo/a.ini"
        assert contract_path("/home/alice/.local/share/Foo/b.sav", roots=linux_roots) == "%LOCALAPPDATA%/Foo/b.sav"
        assert contract_path("/home/alice/notes.txt", roots=linux_roots) == "%USERPROFILE%/notes.txt"


@pytest.mark.unit
class TestExpandPath:
    """Test cases for expand_path."""

    def test_gamepath_uses_install_dir(self, windows_roots):
        result = expand_path("%GAMEPATH%/Saves/slot1.sav", "D:/Games/Foo", roots=windows_roots)

        assert result == "D:/Games/Foo/Saves/slot1.sav"

    def test_gamepath_uses_override_when_no_install_dir(self, windows_roots):
        set_game_path("E:\\Foo\\")

        assert get_game_path() == "E:/Foo"
        assert expand_path("%GAMEPATH%/a.sav", roots=windows_roots) == "E:/Foo/a.sav"

    def test_install_dir_takes_precedence_over_override(self, windows_roots):
        set_game_path("E:/Foo")

        assert expand_path("%GAMEPATH%/a.sav", "F:/Foo", roots=windows_roots) == "F:/Foo/a.sav"

    def test_host_token(self, linux_roots):
        assert expand_path("%APPDATA%/Foo/a.ini", roots=linux_roots) == "/home/alice/.config/Foo/a.ini"

    def test_token_is_case_insensitive(self, linux_roots):
        assert expand_path("%documents%/x.sav", roots=linux_roots) == "/home/alice/Documents/x.sav"

    def test_unknown_token_is_returned_normalized(self, linux_roots):
        assert expand_path("%SAVEDGAMES%\\Foo\\a.sav", roots=linux_roots) == "%SAVEDGAMES%/Foo/a.sav"

    def test_gamepath_without_any_install_dir(self, linux_roots):
        assert expand_path("%GAMEPATH%/a.sav", roots=linux_roots) == "%GAMEPATH%/a.sav"

    def test_plain_path_is_normalized(self, linux_roots):
        assert expand_path("C:\\x\\y.sav", roots=linux_roots) == "C:/x/y.sav"

    def test_round_trip_across_machines(self, windows_roots, linux_roots):
        portable = contract_path("C:/Users/Bob/Documents/Foo/slot1.sav", "C:/Games/Foo", roots=windows_roots)

        assert expand_path(portable, "/home/alice/Games/Foo", roots=linux_roots) == (
            "/home/alice/Documents/Foo/slot1.sav"
        )


@pytest.mark.unit
class TestPathCodec:
    """Test cases for the bound PathCodec helper."""

    def test_contract_and_expand(self, windows_roots):
        codec = PathCodec("C:\\Games\\Foo", roots=windows_roots)

        assert codec.contract("C:/Games/Foo/Saves/a.sav") == "%GAMEPATH%/Saves/a.sav"
        assert codec.expand("%GAMEPATH%/Saves/a.sav") == "C:/Games/Foo/Saves/a.sav"

    def test_install_dir_helpers(self, windows_roots):
        codec = PathCodec("C:/Games/Foo", roots=windows_roots)

        assert codec.is_in_install_dir("c:/games/foo/x/y.sav")
        assert codec.relative_to_install_dir("C:/Games/Foo/x/y.sav") == "x/y.sav"
        with pytest.raises(ValueError):
            codec.relative_to_install_dir("C:/Elsewhere/y.sav")

    def test_codec_without_install_dir(self, windows_roots):
        codec = PathCodec(None, roots=windows_roots)

        assert not codec.is_in_install_dir("C:/Games/Foo/a.sav")


@pytest.mark.unit
def test_portable_paths_equal():
    assert portable_paths_equal("%AppData%/Foo/A.ini", "%APPDATA%\\foo\\a.ini")
    assert not portable_paths_equal("%APPDATA%/Foo/a.ini", "%LOCALAPPDATA%/Foo/a.ini")
    assert portable_paths_equal(None, None)
    assert not portable_paths_equal(None, "%APPDATA%")

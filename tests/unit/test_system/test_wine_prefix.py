"""
Unit tests for Wine prefix and launcher detection.
"""

import pytest

from savesync.system.wine_prefix import (
    LAUNCHER_LUTRIS,
    LAUNCHER_STEAM,
    LAUNCHER_UNKNOWN,
    detect_launcher,
    detect_wine_prefix,
    process_family,
)


def _make_prefix(path):
    (path / "drive_c" / "users").mkdir(parents=True)
    (path / "system.reg").write_text("")
    (path / "user.reg").write_text("")
    return path


@pytest.fixture
def family_lister(fake_lister):
    """init(1) -> launcher(10) -> game(20) -> helper(30)"""
    fake_lister.add(1, "/sbin/init", None)
    fake_lister.add(10, "/usr/bin/python3", 1)
    fake_lister.add(20, "/games/foo/game.exe", 10)
    fake_lister.add(30, "/games/foo/helper.exe", 20)
    fake_lister.add(40, "/usr/bin/bash", 1)
    return fake_lister


@pytest.mark.unit
class TestProcessFamily:
    """Test cases for process_family."""

    def test_ancestors_then_children(self, family_lister):
        assert process_family(20, family_lister) == [20, 10, 1, 30]

    def test_parent_cycle_terminates(self, fake_lister):
        fake_lister.add(5, None, 6)
        fake_lister.add(6, None, 5)

        assert process_family(5, fake_lister) == [5, 6]


@pytest.mark.unit
class TestDetectWinePrefix:
    """Test cases for detect_wine_prefix."""

    def test_wineprefix_environment(self, family_lister, temp_dir):
        prefix = _make_prefix(temp_dir / "wine")
        family_lister.environ[10] = {"WINEPREFIX": str(prefix)}

        assert detect_wine_prefix(20, family_lister, home=str(temp_dir)) == str(prefix)

    def test_invalid_wineprefix_is_skipped(self, family_lister, temp_dir):
        family_lister.environ[20] = {"WINEPREFIX": str(temp_dir / "missing")}

        assert detect_wine_prefix(20, family_lister, home=str(temp_dir)) is None

    def test_steam_compat_data_path(self, family_lister, temp_dir):
        compat = temp_dir / "compatdata" / "570"
        _make_prefix(compat / "pfx")
        family_lister.environ[20] = {"STEAM_COMPAT_DATA_PATH": str(compat)}

        assert detect_wine_prefix(20, family_lister, home=str(temp_dir)) == f"{compat}/pfx"

    def test_walk_up_from_working_directory(self, family_lister, temp_dir):
        prefix = _make_prefix(temp_dir / "bottle")
        game_dir = prefix / "drive_c" / "Games" / "Foo"
        game_dir.mkdir(parents=True)
        family_lister.cwd[20] = str(game_dir)

        assert detect_wine_prefix(20, family_lister, home=str(temp_dir)) == str(prefix)

    def test_default_wine_prefix(self, family_lister, temp_dir):
        _make_prefix(temp_dir / ".wine")

        assert detect_wine_prefix(20, family_lister, home=str(temp_dir)) == f"{temp_dir}/.wine"

    def test_native_process(self, family_lister, temp_dir):
        assert detect_wine_prefix(20, family_lister, home=str(temp_dir)) is None


@pytest.mark.unit
class TestDetectLauncher:
    """Test cases for detect_launcher."""

    def test_steam_in_ancestor_command_line(self, family_lister):
        family_lister.cmdline[10] = ["/home/u/.steam/steam/ubuntu12_32/reaper", "SteamLaunch"]

        assert detect_launcher(20, family_lister) == LAUNCHER_STEAM

    def test_lutris_executable(self, family_lister):
        family_lister.add(10, "/usr/bin/lutris-wrapper", 1)

        assert detect_launcher(20, family_lister) == LAUNCHER_LUTRIS

    def test_unknown(self, family_lister):
        assert detect_launcher(20, family_lister) == LAUNCHER_UNKNOWN

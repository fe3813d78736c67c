"""
Unit tests for the allow/deny base-path filter.
"""

import pytest

from savesync.classification import PathFilter, default_path_filter
from savesync.models.config import GameConfig
from savesync.paths import build_root_table

WINDOWS_ENV = {
    "USERPROFILE": "C:\\Users\\Bob",
    "APPDATA": "C:\\Users\\Bob\\AppData\\Roaming",
    "LOCALAPPDATA": "C:\\Users\\Bob\\AppData\\Local",
    "TEMP": "C:\\Users\\Bob\\AppData\\Local\\Temp",
    "PROGRAMFILES": "C:\\Program Files",
    "PROGRAMFILES(X86)": "C:\\Program Files (x86)",
    "PROGRAMDATA": "C:\\ProgramData",
    "SYSTEMROOT": "C:\\Windows",
}

INSTALL_DIR = "C:/Program Files (x86)/Steam/steamapps/common/Foo"


@pytest.fixture
def roots():
    return build_root_table(WINDOWS_ENV, windows=True)


@pytest.fixture
def game():
    return GameConfig(name="Foo", install_dir=INSTALL_DIR)


@pytest.mark.unit
class TestDefaultPathFilter:
    """Test cases for the default filter of a game."""

    def test_install_dir_wins_over_denied_program_files(self, game, roots):
        path_filter = default_path_filter(game, roots=roots)

        assert path_filter.should_track(f"{INSTALL_DIR}/Saves/slot1.sav")
        assert not path_filter.should_track("C:/Program Files (x86)/Other/slot1.sav")

    def test_common_save_locations_are_allowed(self, game, roots):
        path_filter = default_path_filter(game, roots=roots)

        assert path_filter.should_track("C:/Users/Bob/Documents/My Games/Foo/slot1.sav")
        assert path_filter.should_track("C:/Users/Bob/AppData/Roaming/Foo/settings.ini")
        assert path_filter.should_track("C:/Users/Bob/Saved Games/Foo/slot1.sav")
        assert path_filter.should_track("C:/Users/Bob/AppData/LocalLow/Studio/Foo/slot1.sav")

    def test_denied_locations_inside_allowed_roots(self, game, roots):
        path_filter = default_path_filter(game, roots=roots)

        assert not path_filter.should_track("C:/Users/Bob/AppData/Local/Temp/slot1.sav")
        assert not path_filter.should_track("C:/Users/Bob/AppData/Roaming/Microsoft/Windows/a.dat")
        assert not path_filter.should_track("C:/Users/Bob/AppData/Local/Google/Chrome/prefs")

    def test_unlisted_locations_are_rejected(self, game, roots):
        path_filter = default_path_filter(game, roots=roots)

        assert not path_filter.should_track("C:/Users/Bob/Desktop/slot1.sav")
        assert not path_filter.should_track("D:/Random/slot1.sav")
        assert not path_filter.should_track("")

    def test_steam_cloud_folder_beats_denied_program_files(self, roots):
        game = GameConfig(name="Foo", install_dir=INSTALL_DIR, steam_user_id="42", steam_app_id="570")
        path_filter = default_path_filter(game, roots=roots)

        assert path_filter.should_track("C:/Program Files (x86)/Steam/userdata/42/570/remote/slot1.sav")
        assert not path_filter.should_track("C:/Program Files (x86)/Steam/userdata/42/999/remote/slot1.sav")

    def test_wine_prefix_users_allowed_windows_denied(self, roots):
        prefix = "/home/alice/.wine"
        game = GameConfig(name="Foo", install_dir="/home/alice/Games/Foo")
        path_filter = default_path_filter(game, emulation_prefix=prefix, roots=roots)

        assert path_filter.should_track(f"{prefix}/drive_c/users/alice/AppData/Roaming/Foo/a.sav")
        assert not path_filter.should_track(f"{prefix}/drive_c/windows/system32/a.dll")
        assert path_filter.should_track("/home/alice/Games/Foo/save/a.sav")


@pytest.mark.unit
def test_filter_without_install_dir():
    path_filter = PathFilter(None, allowed_paths=["/srv/saves"], denied_paths=["/srv/saves/tmp"])

    assert path_filter.should_track("/srv/saves/a.sav")
    assert not path_filter.should_track("/srv/saves/tmp/a.sav")
    assert not path_filter.should_track("/srv/other/a.sav")

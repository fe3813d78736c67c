"""
End-to-end tests for the command line interface.

Runs main_cli with a generated config.toml and checks exit codes, printed
output and the files left behind. The rclone backend is replaced by the
folder-backed fake for the transfer commands.
"""

import signal
from unittest.mock import patch

import pytest
import toml

from savesync.cli.main import build_parser, main_cli
from savesync.config import clear_config_cache


@pytest.fixture
def config_path(temp_dir, install_dir):
    path = temp_dir / "config.toml"
    data = {
        "tracker": {"poll_interval_seconds": 0.05, "scan_interval_seconds": 0.05, "shutdown_grace_seconds": 0},
        "manifest": {"io_backoff_seconds": 0.0},
        "transfer": {"remote": f"local:{temp_dir / 'remote'}", "retry_delay_seconds": 0.0, "retry_attempts": 1},
        "games": [{"name": "MyGame", "install_dir": str(install_dir), "executable": "game.exe"}],
    }
    with open(path, "w") as f:
        toml.dump(data, f)
    return path


@pytest.fixture
def restore_signals():
    """main_cli installs SIGINT/SIGTERM handlers; put the originals back."""
    original = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    yield
    for sig, handler in original.items():
        signal.signal(sig, handler)


def run_cli(*argv):
    with pytest.raises(SystemExit) as exc_info:
        main_cli(list(argv))
    return exc_info.value.code


@pytest.mark.e2e
class TestCliCommands:
    """End-to-end tests for the offline commands."""

    def setup_method(self):
        clear_config_cache()

    def teardown_method(self):
        clear_config_cache()

    def test_parser_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_missing_config(self, temp_dir):
        assert run_cli("-c", str(temp_dir / "nope.toml"), "status", "MyGame") == 1

    def test_unknown_game(self, config_path):
        assert run_cli("-c", str(config_path), "status", "OtherGame") == 1

    def test_invalid_game_name(self, config_path):
        assert run_cli("-c", str(config_path), "status", "My/Game") == 1

    def test_contract_and_expand(self, config_path, install_dir, capsys):
        absolute = f"{install_dir}/saves/slot1.sav"

        assert run_cli("-c", str(config_path), "contract", "MyGame", absolute) == 0
        assert f"{absolute}\t%GAMEPATH%/saves/slot1.sav" in capsys.readouterr().out.splitlines()

        assert run_cli("-c", str(config_path), "expand", "MyGame", "%GAMEPATH%/saves/slot1.sav") == 0
        assert f"%GAMEPATH%/saves/slot1.sav\t{absolute}" in capsys.readouterr().out.splitlines()

    def test_classify(self, config_path, install_dir, capsys):
        code = run_cli(
            "-c", str(config_path), "classify", "MyGame",
            f"{install_dir}/slot1.sav", f"{install_dir}/autosave.tmp",
        )

        lines = capsys.readouterr().out.splitlines()
        assert code == 0
        assert f"{install_dir}/slot1.sav\ttracked" in lines
        assert f"{install_dir}/autosave.tmp\tignored (extension:.tmp)" in lines

    def test_blacklist_and_status(self, config_path, install_dir, capsys):
        target = f"{install_dir}/Replays"

        assert run_cli("-c", str(config_path), "blacklist", "MyGame", "add", target) == 0
        assert run_cli("-c", str(config_path), "status", "MyGame") == 0
        out = capsys.readouterr().out
        assert "Game:             MyGame" in out
        assert "  %GAMEPATH%/Replays" in out

        assert run_cli("-c", str(config_path), "blacklist", "MyGame", "remove", target) == 0
        assert run_cli("-c", str(config_path), "blacklist", "MyGame", "remove", target) == 1


@pytest.mark.e2e
class TestCliTransfers:
    """End-to-end tests for upload, download and compare."""

    def setup_method(self):
        clear_config_cache()

    def teardown_method(self):
        clear_config_cache()

    def test_upload_download_compare(self, config_path, install_dir, temp_dir, local_backend, restore_signals, capsys):
        save = install_dir / "saves" / "slot1.sav"
        save.parent.mkdir()
        save.write_text("chapter 3")

        with patch("savesync.cli.runner.create_backend", return_value=local_backend):
            assert run_cli("-c", str(config_path), "upload", "MyGame", str(save)) == 0
            assert (temp_dir / "remote" / "MyGame" / "%GAMEPATH%" / "saves" / "slot1.sav").read_text() == "chapter 3"

            save.unlink()
            assert run_cli("-c", str(config_path), "download", "MyGame") == 0
            assert save.read_text() == "chapter 3"

            capsys.readouterr()
            assert run_cli("-c", str(config_path), "compare", "MyGame") == 0
            lines = capsys.readouterr().out.splitlines()
            assert any(line.startswith("similar\t") for line in lines)

    def test_download_without_cloud_save(self, config_path, local_backend, restore_signals):
        with patch("savesync.cli.runner.create_backend", return_value=local_backend):
            assert run_cli("-c", str(config_path), "download", "MyGame") == 1

    def test_track_without_executable_or_target(self, temp_dir, install_dir, restore_signals):
        path = temp_dir / "noexe.toml"
        with open(path, "w") as f:
            toml.dump({"games": [{"name": "MyGame", "install_dir": str(install_dir)}]}, f)

        assert run_cli("-c", str(path), "track", "MyGame") == 2

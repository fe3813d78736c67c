"""
Unit tests for game process tracking.

Uses an in-memory process table so the tests control exactly which
processes exist and how they are related.
"""

import asyncio

import pytest

from savesync.models.config import TrackerConfig
from savesync.tracking import ProcessTracker

INSTALL_DIR = "/games/foo"


@pytest.fixture
def tracker(fake_lister):
    fake_lister.add(1, "/sbin/init", None)
    fake_lister.add(100, f"{INSTALL_DIR}/game.exe", 1)
    return ProcessTracker(INSTALL_DIR, lister=fake_lister)


@pytest.mark.unit
class TestProcessTrackerMembership:
    """Test cases for deciding which processes belong to the game."""

    def test_empty_install_dir_rejected(self, fake_lister):
        with pytest.raises(ValueError):
            ProcessTracker("", lister=fake_lister)

    def test_initialize_tracks_root_and_directory_processes(self, tracker, fake_lister):
        fake_lister.add(200, f"{INSTALL_DIR}/bin/crashpad_handler", 1)
        fake_lister.add(300, "/usr/bin/bash", 1)

        count = tracker.initialize(100)

        assert count == 2
        assert tracker.tracked_pids == {100, 200}
        reasons = {p.pid: p.reason for p in tracker.tracked_processes}
        assert reasons == {100: "root", 200: "directory"}

    def test_child_of_tracked_process_is_inherited(self, tracker, fake_lister):
        tracker.initialize(100)
        fake_lister.add(101, "/usr/lib/helper", 100)

        assert tracker.handle_new_process(101, parent_pid=100) is True
        assert tracker.is_tracked(101)

    def test_unrelated_process_is_not_tracked(self, tracker, fake_lister):
        tracker.initialize(100)
        fake_lister.add(400, "/usr/bin/vim", 1)

        assert tracker.handle_new_process(400, parent_pid=1) is False
        assert not tracker.is_tracked(400)

    def test_process_started_from_install_dir(self, tracker, fake_lister):
        tracker.initialize(100)
        fake_lister.add(500, f"{INSTALL_DIR}/launcher2.exe", 1)

        assert tracker.handle_new_process(500, parent_pid=1) is True

    def test_already_tracked_process(self, tracker):
        tracker.initialize(100)

        assert tracker.handle_new_process(100) is True
        assert len(tracker.tracked_processes) == 1

    def test_install_dir_match_is_case_insensitive_and_bounded(self, tracker):
        assert tracker.is_in_install_dir("/GAMES/FOO/Game.exe")
        assert not tracker.is_in_install_dir("/games/foobar/game.exe")
        assert not tracker.is_in_install_dir(None)

    def test_explicit_tracking(self, tracker, fake_lister):
        fake_lister.add(600, "/opt/anticheat/ac", 1)

        tracker.add_explicitly_tracked_pid(600)

        assert tracker.is_tracked(600)
        assert tracker.tracked_processes[0].reason == "explicit"

    def test_exit_and_clear(self, tracker):
        tracker.initialize(100)

        assert tracker.handle_process_exit(100) is True
        assert tracker.handle_process_exit(100) is False
        assert not tracker.has_tracked_processes()

        tracker.add_explicitly_tracked_pid(100)
        tracker.clear()
        assert tracker.tracked_pids == set()


@pytest.mark.unit
class TestProcessTrackerScans:
    """Test cases for directory, descendant and liveness scans."""

    def test_scan_for_children_finds_grandchildren(self, tracker, fake_lister):
        tracker.initialize(100)
        # grandchild listed before its parent
        fake_lister.add(103, "/usr/bin/c", 102)
        fake_lister.add(102, "/usr/bin/b", 100)
        fake_lister.add(104, "/usr/bin/d", 1)

        added = tracker.scan_for_children(100)

        assert added == 2
        assert tracker.tracked_pids == {100, 102, 103}

    def test_scan_for_processes_in_directory_counts_new_only(self, tracker, fake_lister):
        tracker.initialize(100)
        fake_lister.add(200, f"{INSTALL_DIR}/server.exe", 1)

        assert tracker.scan_for_processes_in_directory() == 1
        assert tracker.scan_for_processes_in_directory() == 0

    def test_prune_exited(self, tracker, fake_lister):
        tracker.initialize(100)
        fake_lister.add(101, "/usr/bin/helper", 100)
        tracker.scan_for_children(100)
        fake_lister.remove(100)

        assert tracker.prune_exited() == [100]
        assert tracker.tracked_pids == {101}

    def test_enumeration_failure_is_tolerated(self, tracker, fake_lister, monkeypatch):
        tracker.initialize(100)

        def broken():
            raise RuntimeError("no process table")

        monkeypatch.setattr(fake_lister, "list_processes", broken)

        assert tracker.scan_for_processes_in_directory() == 0
        assert tracker.scan_for_children(100) == 0


@pytest.mark.unit
class TestProcessTrackerAsync:
    """Test cases for the asynchronous loops."""

    @pytest.mark.asyncio
    async def test_periodic_scan_picks_up_new_processes(self, tracker, fake_lister):
        tracker.initialize(100)
        cancel = asyncio.Event()
        task = asyncio.create_task(tracker.start_periodic_scan(0.02, cancel))

        fake_lister.add(101, "/usr/bin/helper", 100)
        fake_lister.remove(100)
        for _ in range(200):
            if tracker.tracked_pids == {101}:
                break
            await asyncio.sleep(0.01)

        cancel.set()
        await asyncio.wait_for(task, timeout=5)
        assert tracker.tracked_pids == {101}

    @pytest.mark.asyncio
    async def test_periodic_scan_returns_when_already_cancelled(self, tracker):
        cancel = asyncio.Event()
        cancel.set()

        await asyncio.wait_for(tracker.start_periodic_scan(60, cancel), timeout=5)

    @pytest.mark.asyncio
    async def test_periodic_scan_rejects_bad_interval(self, tracker):
        with pytest.raises(ValueError):
            await tracker.start_periodic_scan(0, asyncio.Event())

    @pytest.mark.asyncio
    async def test_wait_for_process_in_directory(self, fake_lister):
        tracker = ProcessTracker(INSTALL_DIR, lister=fake_lister)

        async def launch_later():
            await asyncio.sleep(0.05)
            fake_lister.add(700, f"{INSTALL_DIR}/RealGame.exe", 1)

        launcher = asyncio.create_task(launch_later())
        pid = await tracker.wait_for_process_in_directory(timeout=5, poll_interval=0.01)
        await launcher

        assert pid == 700
        assert tracker.is_tracked(700)

    @pytest.mark.asyncio
    async def test_wait_for_process_times_out(self, fake_lister):
        config = TrackerConfig(process_wait_timeout=0.05, process_wait_poll_interval=0.01)
        tracker = ProcessTracker(INSTALL_DIR, lister=fake_lister, config=config)

        assert await tracker.wait_for_process_in_directory() is None

"""
Unit tests for transfer progress sinks.
"""

import asyncio
import logging

import pytest

from savesync.transfer.progress import LoggingProgressSink, ProgressUpdate, QueueProgressSink
from savesync.transfer.state import TransferState


@pytest.mark.unit
class TestProgressUpdate:
    """Test cases for ProgressUpdate."""

    def test_overall_percent(self):
        assert ProgressUpdate(TransferState.TRANSFERRING_INTERNAL, processed=1, total=3).overall_percent == 33.3

    def test_overall_percent_without_files(self):
        assert ProgressUpdate(TransferState.DONE).overall_percent == 100.0
        assert ProgressUpdate(TransferState.SCANNING).overall_percent == 0.0


@pytest.mark.unit
class TestQueueProgressSink:
    """Test cases for QueueProgressSink."""

    @pytest.mark.asyncio
    async def test_updates_are_queued(self):
        sink = QueueProgressSink()
        update = ProgressUpdate(TransferState.SCANNING)

        sink.publish(update)

        assert await asyncio.wait_for(sink.queue.get(), timeout=1) == update

    @pytest.mark.asyncio
    async def test_oldest_update_is_dropped_when_full(self):
        sink = QueueProgressSink(maxsize=2)
        for processed in range(4):
            sink.publish(ProgressUpdate(TransferState.TRANSFERRING_INTERNAL, processed=processed, total=4))

        remaining = [sink.queue.get_nowait().processed for _ in range(sink.queue.qsize())]

        assert remaining == [2, 3]
        assert sink.dropped == 2


@pytest.mark.unit
class TestLoggingProgressSink:
    """Test cases for LoggingProgressSink."""

    def test_state_changes_logged_at_info(self, caplog):
        sink = LoggingProgressSink()

        with caplog.at_level(logging.DEBUG, logger="savesync.transfer.progress"):
            sink.publish(ProgressUpdate(TransferState.TRANSFERRING_INTERNAL, total=2))
            sink.publish(ProgressUpdate(TransferState.TRANSFERRING_INTERNAL, "slot1.sav", 1, 2, 50, "1 MiB/s"))

        info = [r for r in caplog.records if r.levelno == logging.INFO]
        debug = [r for r in caplog.records if r.levelno == logging.DEBUG]
        assert info[0].getMessage() == "Transfer transferring_internal: 0/2"
        assert debug[0].getMessage() == "[1/2] slot1.sav 50% at 1 MiB/s"

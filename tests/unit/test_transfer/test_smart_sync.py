"""
Unit tests for play-time based progress comparison.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest

from savesync.manifest import GameUploadData
from savesync.transfer.smart_sync import ProgressStatus, compare_progress, compare_with_remote


@pytest.mark.unit
class TestCompareProgress:
    """Test cases for compare_progress."""

    def test_no_cloud_manifest(self):
        result = compare_progress(timedelta(hours=1), None)

        assert result.status == ProgressStatus.CLOUD_NOT_FOUND
        assert result.should_download is False

    def test_fresh_install_prefers_cloud(self):
        result = compare_progress(timedelta(0), timedelta(minutes=1))

        assert result.status == ProgressStatus.CLOUD_AHEAD
        assert result.should_download is True

    def test_similar_within_threshold(self):
        result = compare_progress(timedelta(minutes=62), timedelta(minutes=60))

        assert result.status == ProgressStatus.SIMILAR
        assert result.difference == timedelta(minutes=2)

    def test_local_ahead(self):
        assert compare_progress(timedelta(hours=3), timedelta(hours=1)).status == ProgressStatus.LOCAL_AHEAD

    def test_cloud_ahead(self):
        assert compare_progress(timedelta(hours=1), timedelta(hours=3)).status == ProgressStatus.CLOUD_AHEAD

    def test_threshold_boundary_is_not_similar(self):
        result = compare_progress(timedelta(minutes=10), timedelta(minutes=5), threshold=timedelta(minutes=5))

        assert result.status == ProgressStatus.LOCAL_AHEAD

    def test_negative_threshold(self):
        with pytest.raises(ValueError):
            compare_progress(timedelta(0), timedelta(0), threshold=timedelta(seconds=-1))


@pytest.mark.unit
class TestCompareWithRemote:
    """Test cases for compare_with_remote against a mocked orchestrator."""

    @pytest.fixture
    def orchestrator(self):
        orchestrator = Mock()
        orchestrator.manifest.load = AsyncMock(return_value=GameUploadData(play_time=timedelta(hours=1)))
        orchestrator.peek_remote_manifest = AsyncMock(return_value=GameUploadData(play_time=timedelta(hours=4)))
        return orchestrator

    @pytest.mark.asyncio
    async def test_cloud_ahead(self, orchestrator, game):
        result = await compare_with_remote(orchestrator, "remote:MyGame", game)

        assert result.status == ProgressStatus.CLOUD_AHEAD
        orchestrator.peek_remote_manifest.assert_awaited_once_with("remote:MyGame", game)

    @pytest.mark.asyncio
    async def test_smart_sync_disabled(self, orchestrator, game):
        orchestrator.manifest.load.return_value = GameUploadData(enable_smart_sync=False)

        result = await compare_with_remote(orchestrator, "remote:MyGame", game)

        assert result.status == ProgressStatus.SIMILAR
        orchestrator.peek_remote_manifest.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_errors_are_reported(self, orchestrator, game):
        orchestrator.peek_remote_manifest.side_effect = RuntimeError("network down")

        result = await compare_with_remote(orchestrator, "remote:MyGame", game)

        assert result.status == ProgressStatus.ERROR
        assert result.message == "network down"

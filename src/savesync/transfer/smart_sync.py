"""
Play-time based comparison of local and cloud progress.

Before launching a game the local manifest's accumulated play time is
compared with the cloud manifest's. The side with clearly more play time is
assumed to hold the newer progress.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..models.config import GameConfig

if TYPE_CHECKING:
    from .orchestrator import TransferOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = timedelta(minutes=5)


class ProgressStatus(Enum):
    LOCAL_AHEAD = "local_ahead"
    CLOUD_AHEAD = "cloud_ahead"
    SIMILAR = "similar"
    CLOUD_NOT_FOUND = "cloud_not_found"
    ERROR = "error"


@dataclass
class ProgressComparison:
    """
    Outcome of a local/cloud play time comparison.
    """

    status: ProgressStatus
    local_play_time: timedelta = timedelta(0)
    cloud_play_time: timedelta = timedelta(0)
    # Human readable explanation, also set for ERROR.
    message: str = ""

    @property
    def difference(self) -> timedelta:
        return self.local_play_time - self.cloud_play_time

    @property
    def should_download(self) -> bool:
        return self.status == ProgressStatus.CLOUD_AHEAD


def compare_progress(
    local_play_time: timedelta,
    cloud_play_time: Optional[timedelta],
    threshold: timedelta = DEFAULT_THRESHOLD,
) -> ProgressComparison:
    """
    Compare two accumulated play times.

    Args:
        local_play_time: Play time recorded in the local manifest
        cloud_play_time: Play time of the cloud manifest; None if there is none
        threshold: Differences smaller than this count as SIMILAR

    Raises:
        ValueError: If threshold is negative
    """
    if threshold < timedelta(0):
        raise ValueError("threshold must not be negative")

    if cloud_play_time is None:
        return ProgressComparison(
            ProgressStatus.CLOUD_NOT_FOUND, local_play_time, timedelta(0), "No cloud save found"
        )

    # a fresh install has no local play time; any cloud progress wins
    if local_play_time <= timedelta(0) and cloud_play_time > timedelta(0):
        return ProgressComparison(
            ProgressStatus.CLOUD_AHEAD, local_play_time, cloud_play_time, "No local progress recorded"
        )

    diff = local_play_time - cloud_play_time
    if abs(diff) < threshold:
        status = ProgressStatus.SIMILAR
        message = "Local and cloud progress are similar"
    elif diff > timedelta(0):
        status = ProgressStatus.LOCAL_AHEAD
        message = f"Local is ahead by {diff}"
    else:
        status = ProgressStatus.CLOUD_AHEAD
        message = f"Cloud is ahead by {-diff}"
    return ProgressComparison(status, local_play_time, cloud_play_time, message)


async def compare_with_remote(
    orchestrator: "TransferOrchestrator",
    remote_root: str,
    game: GameConfig,
    threshold: timedelta = DEFAULT_THRESHOLD,
) -> ProgressComparison:
    """Peek the cloud manifest of a game and compare it with the local one."""
    try:
        local = await orchestrator.manifest.load(game.install_dir, game.profile_id)
        if not local.enable_smart_sync:
            return ProgressComparison(
                ProgressStatus.SIMILAR, local.play_time, timedelta(0), "Smart sync disabled for this game"
            )
        cloud = await orchestrator.peek_remote_manifest(remote_root, game)
        result = compare_progress(local.play_time, cloud.play_time if cloud else None, threshold)
    except Exception as e:
        logger.error(f"Progress comparison failed for {game.name}: {e}")
        return ProgressComparison(ProgressStatus.ERROR, message=str(e))

    logger.info(f"{game.name}: {result.message} (local {result.local_play_time}, cloud {result.cloud_play_time})")
    return result

"""
Batch transfer state machine.

    SCANNING -> BATCHING -> TRANSFERRING_INTERNAL -> TRANSFERRING_EXTERNAL -> DONE

A failure inside either transferring state moves the run to FAILED_PARTIAL;
the run keeps going with the remaining files and FAILED_PARTIAL is its
terminal state. Any other transition raises.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

from ..models.results import UploadStats

logger = logging.getLogger(__name__)


class TransferState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    BATCHING = "batching"
    TRANSFERRING_INTERNAL = "transferring_internal"
    TRANSFERRING_EXTERNAL = "transferring_external"
    DONE = "done"
    FAILED_PARTIAL = "failed_partial"


_TRANSITIONS: Dict[TransferState, Set[TransferState]] = {
    TransferState.IDLE: {TransferState.SCANNING},
    TransferState.SCANNING: {TransferState.BATCHING},
    TransferState.BATCHING: {TransferState.TRANSFERRING_INTERNAL},
    TransferState.TRANSFERRING_INTERNAL: {
        TransferState.TRANSFERRING_EXTERNAL,
        TransferState.FAILED_PARTIAL,
    },
    TransferState.TRANSFERRING_EXTERNAL: {
        TransferState.DONE,
        TransferState.FAILED_PARTIAL,
    },
    TransferState.DONE: set(),
    TransferState.FAILED_PARTIAL: set(),
}

TERMINAL_STATES = {TransferState.DONE, TransferState.FAILED_PARTIAL}


class InvalidTransitionError(RuntimeError):
    pass


@dataclass
class TransferRun:
    """
    State and counters of one process_batch call.
    """

    stats: UploadStats = field(default_factory=UploadStats)
    state: TransferState = TransferState.IDLE
    # Every state entered, in order.
    history: List[TransferState] = field(default_factory=lambda: [TransferState.IDLE])
    # Whether any transfer failed; the run still ends in FAILED_PARTIAL.
    partial_failure: bool = False
    started_at: float = field(default_factory=time.monotonic)
    finished_at: Optional[float] = None

    def transition(self, new_state: TransferState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"Invalid transfer transition {self.state.value} -> {new_state.value}")
        logger.debug(f"Transfer state {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)
        if new_state in TERMINAL_STATES:
            self.finished_at = time.monotonic()

    def mark_failure(self) -> None:
        """Note a per-file failure; the run continues."""
        self.partial_failure = True

    def finish(self) -> TransferState:
        """Enter DONE, or FAILED_PARTIAL when any file failed."""
        if self.state == TransferState.TRANSFERRING_INTERNAL:
            self.transition(TransferState.TRANSFERRING_EXTERNAL)
        target = TransferState.FAILED_PARTIAL if self.partial_failure else TransferState.DONE
        self.transition(target)
        return self.state

    @property
    def is_finished(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def duration(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at

"""
Transfer progress reporting.

The orchestrator publishes ProgressUpdate records to an optional sink. A
sink must never block or raise into the transfer; failures are logged and
dropped.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .state import TransferState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressUpdate:
    """
    One progress event.
    """

    state: TransferState
    # File currently moving (portable or file name); empty between files.
    current_file: str = ""
    processed: int = 0
    total: int = 0
    # Backend-reported percent of the current call, if any.
    percent: Optional[int] = None
    # Backend-reported speed, e.g. "1.2 MiB/s".
    speed: Optional[str] = None

    @property
    def overall_percent(self) -> float:
        if self.total <= 0:
            return 100.0 if self.state == TransferState.DONE else 0.0
        return round(100.0 * self.processed / self.total, 1)


class ProgressSink(ABC):
    """Receiver of progress updates."""

    @abstractmethod
    def publish(self, update: ProgressUpdate) -> None:
        pass


class QueueProgressSink(ProgressSink):
    """
    Push updates into an asyncio.Queue.

    When the queue is full the oldest update is dropped; consumers only care
    about the latest state.
    """

    def __init__(self, queue: Optional["asyncio.Queue[ProgressUpdate]"] = None, maxsize: int = 100):
        self.queue: "asyncio.Queue[ProgressUpdate]" = queue or asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def publish(self, update: ProgressUpdate) -> None:
        try:
            self.queue.put_nowait(update)
        except asyncio.QueueFull:
            try:
                self.queue.get_nowait()
                self.dropped += 1
            except asyncio.QueueEmpty:
                pass
            self.queue.put_nowait(update)


class LoggingProgressSink(ProgressSink):
    """Log state changes at INFO and per-file progress at DEBUG."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger
        self._last_state: Optional[TransferState] = None

    def publish(self, update: ProgressUpdate) -> None:
        if update.state != self._last_state:
            self._last_state = update.state
            self.log.info(f"Transfer {update.state.value}: {update.processed}/{update.total}")
            return
        speed = f" at {update.speed}" if update.speed else ""
        percent = f" {update.percent}%" if update.percent is not None else ""
        self.log.debug(
            f"[{update.processed}/{update.total}] {update.current_file}{percent}{speed}"
        )

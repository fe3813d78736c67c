"""
Runtime data models.

This module contains the transient structures produced while a game is
being tracked: process rows from the lister, tracked processes and
classified candidate files.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ProcessInfo:
    """
    One row of a process listing.
    """

    pid: int
    # Absolute path of the executable; None when the OS refused to tell.
    executable_path: Optional[str] = None
    parent_pid: Optional[int] = None
    name: str = ""


@dataclass
class TrackedProcess:
    """
    A running OS process believed to belong to the tracked game.
    """

    pid: int
    executable_path: Optional[str] = None
    parent_pid: Optional[int] = None
    # How the process was associated: "root", "parent", "directory" or "explicit".
    reason: str = ""


@dataclass
class CandidateFile:
    """
    A path observed during a session together with the classifier verdict.
    """

    path: str
    ignored: bool
    # Diagnostic reason for the verdict, e.g. "extension:.tmp".
    reason: str = ""

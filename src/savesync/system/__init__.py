"""
System interaction utilities.

This module provides the host-facing pieces of the tracker and the transfer
backend:

- Process enumeration through psutil with a /proc fallback
- Wine/Proton prefix and launcher detection
- External command execution with timeouts
"""

# Command execution
from .commands import CommandResult, run_command

# Process enumeration
from .processes import (
    FallbackProcessLister,
    ProcessLister,
    ProcFsProcessLister,
    PsutilProcessLister,
    create_process_lister,
)

# Emulation layer
from .wine_prefix import detect_launcher, detect_wine_prefix, process_family

__all__ = [
    # Commands
    "CommandResult",
    "run_command",
    # Processes
    "FallbackProcessLister",
    "ProcessLister",
    "ProcFsProcessLister",
    "PsutilProcessLister",
    "create_process_lister",
    # Emulation layer
    "detect_launcher",
    "detect_wine_prefix",
    "process_family",
]

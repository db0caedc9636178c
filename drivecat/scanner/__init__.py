"""Scanner module for drive traversal and cataloguing."""

from .checkpoint import CheckpointManager
from .filesystem import WalkEntry, parse_filename, walk_tree
from .identity import (
    DeviceInfo,
    DriveIdentityError,
    DriveNotFoundError,
    VerificationDeclinedError,
    resolve_device,
    verify_drive,
)
from .interrupt import CancellationToken, ScanContext, handle_signals, session_guard
from .progress import ProgressReporter, ScanStats
from .recovery import RemountController, is_transient_io_error
from .resume import ResumeFilter
from .scanner import (
    CheckpointNotReachedError,
    ConcurrentScanError,
    ScanAbortedError,
    ScanError,
    ScanOutcome,
    Scanner,
)

__all__ = [
    "Scanner",
    "ScanOutcome",
    "ScanError",
    "ScanAbortedError",
    "ConcurrentScanError",
    "CheckpointNotReachedError",
    "CheckpointManager",
    "WalkEntry",
    "parse_filename",
    "walk_tree",
    "DeviceInfo",
    "DriveIdentityError",
    "DriveNotFoundError",
    "VerificationDeclinedError",
    "resolve_device",
    "verify_drive",
    "CancellationToken",
    "ScanContext",
    "handle_signals",
    "session_guard",
    "ProgressReporter",
    "ScanStats",
    "RemountController",
    "is_transient_io_error",
    "ResumeFilter",
]

"""Batched commits with a resumable checkpoint."""

import logging
import time
from collections.abc import Callable
from dataclasses import replace

from drivecat.database import Database
from drivecat.database.sessions import save_progress
from drivecat.scanner.progress import ScanStats

logger = logging.getLogger(__name__)


class CheckpointManager:
    """Commits the open transaction every N entries or T seconds.

    Each flush writes the last processed path and all counters to the
    session row in the same transaction as the entries it covers, so the
    stored checkpoint never runs ahead of the stored files.
    """

    def __init__(
        self,
        db: Database,
        session_id: int,
        stats: ScanStats,
        every_items: int = 500,
        every_seconds: float = 30.0,
        committed_path: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.db = db
        self.session_id = session_id
        self.stats = stats
        self.every_items = max(1, every_items)
        self.every_seconds = every_seconds
        self.clock = clock

        self.pending = 0
        self.last_path = committed_path
        self.committed_path = committed_path
        self.committed_stats = replace(stats)
        self._last_flush = clock()

    def record(self, relative_path: str) -> None:
        """Count one fully processed entry and flush when a threshold is hit."""
        self.pending += 1
        self.last_path = relative_path
        if (
            self.pending >= self.every_items
            or self.clock() - self._last_flush >= self.every_seconds
        ):
            self.flush()

    def flush(self) -> None:
        save_progress(
            self.db.conn,
            self.session_id,
            self.last_path,
            self.stats.counters(),
            self.stats.duration_seconds,
        )
        self.db.commit()

        self.committed_path = self.last_path
        self.committed_stats = replace(self.stats)
        logger.debug("Checkpoint after %d entries at %s", self.pending, self.committed_path)
        self.pending = 0
        self._last_flush = self.clock()

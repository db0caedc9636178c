"""Deferred thumbnail jobs for drives scanned with ``--thumbnail-queue``."""

import logging
import sqlite3
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from drivecat.database import Database
from drivecat.database.files import set_thumbnail_path
from drivecat.thumbnails.generator import ThumbnailGenerator, ThumbnailOutcome, thumbnail_relpath

logger = logging.getLogger(__name__)


class QueueStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def enqueue(conn: sqlite3.Connection, file_id: int, now: int) -> None:
    """Add a pending job unless the file already has one waiting."""
    row = conn.execute(
        "SELECT 1 FROM thumbnail_queue WHERE file_id = ? AND status IN (?, ?)",
        (file_id, QueueStatus.PENDING.value, QueueStatus.PROCESSING.value),
    ).fetchone()
    if row:
        return
    conn.execute(
        "INSERT INTO thumbnail_queue (file_id, status, added_at) VALUES (?, ?, ?)",
        (file_id, QueueStatus.PENDING.value, now),
    )


def queue_status(conn: sqlite3.Connection, drive_id: int) -> dict[str, int]:
    counts = {status.value: 0 for status in QueueStatus}
    rows = conn.execute(
        """
        SELECT q.status, COUNT(*) AS count
        FROM thumbnail_queue q
        JOIN files f ON q.file_id = f.id
        WHERE f.drive_id = ?
        GROUP BY q.status
        """,
        (drive_id,),
    ).fetchall()
    for row in rows:
        counts[row["status"]] = row["count"]
    return counts


@dataclass
class QueueRunStats:
    completed: int = 0
    failed: int = 0


class ThumbnailQueueWorker:
    """Drains pending jobs of one drive, reading sources from its mount point."""

    def __init__(
        self,
        db: Database,
        generator: ThumbnailGenerator,
        mount_point: Path,
        batch_size: int = 10,
    ):
        self.db = db
        self.generator = generator
        self.mount_point = mount_point
        self.batch_size = batch_size

    def run(self, drive_id: int) -> QueueRunStats:
        stats = QueueRunStats()
        while True:
            jobs = self._fetch_pending(drive_id)
            if not jobs:
                break
            print(f"Processing {len(jobs)} thumbnail jobs...")
            for job in jobs:
                if self._process(job):
                    stats.completed += 1
                else:
                    stats.failed += 1
        return stats

    def _fetch_pending(self, drive_id: int) -> list[sqlite3.Row]:
        return self.db.conn.execute(
            """
            SELECT q.id, q.file_id, f.path, f.thumbnail_path
            FROM thumbnail_queue q
            JOIN files f ON q.file_id = f.id
            WHERE f.drive_id = ? AND q.status = ?
            ORDER BY q.id
            LIMIT ?
            """,
            (drive_id, QueueStatus.PENDING.value, self.batch_size),
        ).fetchall()

    def _process(self, job: sqlite3.Row) -> bool:
        self._set_status(job["id"], QueueStatus.PROCESSING)
        self.db.commit()

        source = self.mount_point / job["path"].lstrip("/")
        error = None
        if not source.is_file():
            error = f"Source file does not exist: {source}"
        else:
            outcome = self.generator.ensure(job["file_id"], source, job["thumbnail_path"])
            if outcome is ThumbnailOutcome.CREATED:
                set_thumbnail_path(self.db.conn, job["file_id"], thumbnail_relpath(job["file_id"]))
            elif outcome is ThumbnailOutcome.FAILED:
                error = f"Thumbnail creation failed for file ID {job['file_id']}"

        if error:
            logger.error("Thumbnail job %d failed: %s", job["id"], error)
            self._set_status(job["id"], QueueStatus.FAILED, error)
        else:
            self._set_status(job["id"], QueueStatus.COMPLETED)
        self.db.commit()
        return error is None

    def _set_status(self, job_id: int, status: QueueStatus, error: str | None = None) -> None:
        self.db.conn.execute(
            """
            UPDATE thumbnail_queue
            SET status = ?, processed_at = ?, error_message = ?
            WHERE id = ?
            """,
            (status.value, int(time.time()), error, job_id),
        )

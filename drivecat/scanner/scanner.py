"""Main scanner implementation."""

import logging
import os
import sqlite3
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Protocol

from drivecat.config import ScannerConfig, ScanOptions
from drivecat.database import Database, ExistingFile, FileCategory, FileRecord, ScanStatus
from drivecat.database.drives import touch_drive
from drivecat.database.files import (
    lookup_file,
    set_thumbnail_path,
    soft_delete_unseen,
    stamp_file,
    upsert_file,
)
from drivecat.database.sessions import (
    create_session,
    find_latest_session,
    find_sessions,
    reactivate_session,
    save_progress,
    set_status,
)
from drivecat.extractor import MetadataPipeline, categorize
from drivecat.scanner.checkpoint import CheckpointManager
from drivecat.scanner.filesystem import WalkEntry, parse_filename, walk_tree
from drivecat.scanner.hashing import md5_file, path_hash
from drivecat.scanner.interrupt import CancellationToken, ScanContext, session_guard
from drivecat.scanner.progress import ProgressReporter, ScanStats
from drivecat.scanner.recovery import is_transient_io_error
from drivecat.scanner.resume import ResumeFilter
from drivecat.thumbnails import ThumbnailGenerator, ThumbnailOutcome, enqueue, thumbnail_relpath

logger = logging.getLogger(__name__)


class ScanError(Exception):
    """Raised when a scan cannot start or cannot finish."""


class ScanAbortedError(ScanError):
    """Raised when an I/O error persists after recovery was attempted."""


class ConcurrentScanError(ScanError):
    """Raised when another live process is already scanning the drive."""


class CheckpointNotReachedError(ScanError):
    """Raised when a resumed walk never meets its checkpoint path."""


class Recovery(Protocol):
    def recover(self) -> bool:
        """Bring the drive back; return False when it stays unavailable."""


@dataclass
class ScanOutcome:
    session_id: int
    status: ScanStatus
    stats: ScanStats
    last_committed_path: str | None


def read_stat(path: Path) -> os.stat_result:
    return os.lstat(path)


def pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class Scanner:
    """Walks one mounted partition and reconciles it with the catalog."""

    def __init__(
        self,
        db: Database,
        drive_id: int,
        partition_number: int,
        mount_point: Path,
        pipeline: MetadataPipeline,
        options: ScanOptions | None = None,
        config: ScannerConfig | None = None,
        thumbnails: ThumbnailGenerator | None = None,
        recovery: Recovery | None = None,
        cancel: CancellationToken | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.drive_id = drive_id
        self.partition_number = partition_number
        self.mount_point = mount_point
        self.pipeline = pipeline
        self.options = options or ScanOptions()
        self.config = config or ScannerConfig()
        self.thumbnails = thumbnails
        self.recovery = recovery
        self.cancel = cancel or CancellationToken()
        self.clock = clock
        self.sleep = sleep
        self.progress = ProgressReporter(interval=self.config.progress_interval)
        self._session_id = 0

    def scan(self) -> ScanOutcome:
        self.options.validate()
        session_id, stats, checkpoint_path = self._open_session()
        self._session_id = session_id

        checkpoint = CheckpointManager(
            self.db,
            session_id,
            stats,
            every_items=self.config.commit_every_items,
            every_seconds=self.config.commit_every_seconds,
            committed_path=checkpoint_path,
            clock=self.clock,
        )
        context = ScanContext(self.db, self.cancel, session_id, checkpoint)
        resume = ResumeFilter(checkpoint_path)
        if self.options.resume:
            self.progress.report_resume(stats, checkpoint_path)

        print(f"Scanning {self.mount_point} (drive {self.drive_id}, partition {self.partition_number})")

        completed = False
        with session_guard(context):
            walked = self._walk(resume, stats, checkpoint)
            if walked:
                if resume.active:
                    raise CheckpointNotReachedError(
                        f"Checkpoint {checkpoint_path!r} was not found in {self.mount_point}; "
                        "nothing was processed"
                    )
                self._finish(context, stats, checkpoint)
                completed = True

        if not completed:
            self.progress.report_interruption(checkpoint.committed_stats, checkpoint.committed_path)
            return ScanOutcome(
                session_id,
                ScanStatus.INTERRUPTED,
                checkpoint.committed_stats,
                checkpoint.committed_path,
            )

        self.progress.report_completion(stats)
        return ScanOutcome(session_id, ScanStatus.COMPLETED, stats, checkpoint.committed_path)

    def _open_session(self) -> tuple[int, ScanStats, str | None]:
        conn = self.db.conn
        self._release_stale_sessions()

        if self.options.resume:
            session = find_latest_session(conn, self.drive_id, ScanStatus.INTERRUPTED)
            if session is not None:
                if session.partition_number != self.partition_number:
                    raise ScanError(
                        f"Interrupted session {session.id} belongs to partition "
                        f"{session.partition_number}, not {self.partition_number}"
                    )
                reactivate_session(conn, session.id, os.getpid())
                logger.info(
                    "Resuming session %d from %s", session.id, session.last_scanned_path
                )
                stats = ScanStats(
                    items_scanned=session.items_scanned,
                    files_added=session.files_added,
                    files_updated=session.files_updated,
                    files_deleted=session.files_deleted,
                    files_skipped=session.files_skipped,
                    thumbnails_created=session.thumbnails_created,
                    thumbnails_failed=session.thumbnails_failed,
                    thumbnails_queued=session.thumbnails_queued,
                    thumbnails_queue_failed=session.thumbnails_queue_failed,
                    prior_duration=session.duration_seconds or 0,
                )
                return session.id, stats, session.last_scanned_path

            logger.warning(
                "No interrupted session for drive %d, starting a new scan", self.drive_id
            )
            print("No interrupted session found, starting a new scan.")

        session_id = create_session(
            conn, self.drive_id, self.partition_number, str(self.mount_point), os.getpid()
        )
        logger.info("Started session %d for drive %d", session_id, self.drive_id)
        return session_id, ScanStats(), None

    def _release_stale_sessions(self) -> None:
        """Refuse to run beside a live scan; demote running rows left by dead ones."""
        conn = self.db.conn
        for session in find_sessions(conn, self.drive_id, ScanStatus.RUNNING):
            if session.pid and session.pid != os.getpid() and pid_alive(session.pid):
                raise ConcurrentScanError(
                    f"Drive {self.drive_id} is already being scanned by process "
                    f"{session.pid} (session {session.id})"
                )
            logger.warning("Session %d was left running; marking it interrupted", session.id)
            set_status(
                conn,
                session.id,
                ScanStatus.INTERRUPTED,
                error_message=f"Process {session.pid} exited without finishing",
            )
        conn.commit()

    def _walk(
        self, resume: ResumeFilter, stats: ScanStats, checkpoint: CheckpointManager
    ) -> bool:
        """Process entries in walk order; False when stopped by cancellation."""
        delay = self.options.delay_microseconds / 1_000_000
        entries = walk_tree(
            self.mount_point,
            on_error=self._on_listing_error,
            max_path_length=self.config.max_path_length,
        )
        for entry in entries:
            if self.cancel.is_set():
                logger.warning("Scan cancelled before %s", entry.relative_path)
                return False
            if resume.should_skip(entry.relative_path):
                continue

            self._process_with_recovery(entry, stats)
            checkpoint.record(entry.relative_path)
            self.progress.report_if_needed(stats, entry.relative_path)
            if delay:
                self.sleep(delay)

        if resume.suppressed:
            logger.info("Skipped %d entries already processed before resume", resume.suppressed)
        return not self.cancel.is_set()

    def _on_listing_error(self, directory: Path, error: OSError) -> bool:
        if isinstance(error, PermissionError) or not is_transient_io_error(error):
            return False
        logger.error("I/O error listing %s: %s", directory, error)
        self._recover_or_abort(str(directory), error)
        return True

    def _recover_or_abort(self, location: str, error: OSError) -> None:
        if self.recovery is None or not self.recovery.recover():
            raise ScanAbortedError(f"Unrecoverable I/O error at {location}: {error}") from error
        logger.info("Drive recovered, retrying %s", location)

    def _process_with_recovery(self, entry: WalkEntry, stats: ScanStats) -> None:
        try:
            self._process_entry(entry, stats)
            return
        except OSError as e:
            if not is_transient_io_error(e):
                logger.error("Skipping %s: %s", entry.relative_path, e)
                return
            logger.error("I/O error on %s: %s", entry.relative_path, e)
            self._recover_or_abort(entry.relative_path, e)

        try:
            self._process_entry(entry, stats)
        except OSError as e:
            raise ScanAbortedError(
                f"I/O error on {entry.relative_path} persisted after recovery: {e}"
            ) from e

    def _process_entry(self, entry: WalkEntry, stats: ScanStats) -> None:
        """Fully process one entry. Counters change only once nothing can fail."""
        conn = self.db.conn
        relative_path = entry.relative_path
        identity = path_hash(relative_path)
        existing = lookup_file(conn, self.drive_id, self.partition_number, identity)

        if self.options.skip_existing and existing is not None:
            stamp_file(conn, existing.id, self._session_id)
            stats.files_skipped += 1
            stats.items_scanned += 1
            logger.debug("Already catalogued: %s", relative_path)
            return

        try:
            stat_result = read_stat(entry.path)
        except FileNotFoundError:
            logger.warning("Entry disappeared during scan: %s", relative_path)
            return

        parsed = parse_filename(relative_path.rsplit("/", 1)[-1])
        category = categorize(parsed.extension, entry.is_dir)
        metadata = self.pipeline.extract(entry.path, category)

        record = FileRecord(
            drive_id=self.drive_id,
            partition_number=self.partition_number,
            path=relative_path,
            path_hash=identity,
            filename=parsed.full,
            extension=parsed.extension,
            size=0 if entry.is_dir else stat_result.st_size,
            md5_hash=self._content_hash(entry, stat_result, existing),
            ctime=int(stat_result.st_ctime),
            mtime=int(stat_result.st_mtime),
            category=category,
            is_directory=entry.is_dir,
            **asdict(metadata),
        )
        file_id, inserted = upsert_file(
            conn, record, existing, self._session_id, int(time.time())
        )

        thumbnail_counter = None
        if category is FileCategory.IMAGE and not entry.is_dir:
            thumbnail_counter = self._thumbnail(file_id, entry, existing)

        if inserted:
            stats.files_added += 1
        else:
            stats.files_updated += 1
        if thumbnail_counter:
            setattr(stats, thumbnail_counter, getattr(stats, thumbnail_counter) + 1)
        stats.items_scanned += 1
        logger.debug("%s %s (%s)", "Added" if inserted else "Updated", relative_path, category.value)

    def _content_hash(
        self, entry: WalkEntry, stat_result: os.stat_result, existing: ExistingFile | None
    ) -> str | None:
        if entry.is_dir:
            return None
        stored = existing.md5_hash if existing else None
        if (
            stored
            and existing.size == stat_result.st_size
            and existing.mtime == int(stat_result.st_mtime)
        ):
            return stored
        if not self.options.calculate_md5:
            return stored
        return md5_file(entry.path)

    def _thumbnail(
        self, file_id: int, entry: WalkEntry, existing: ExistingFile | None
    ) -> str | None:
        """Create or queue the thumbnail; returns the counter to increment, if any."""
        if not self.options.generate_thumbnails or self.thumbnails is None:
            return None

        existing_path = existing.thumbnail_path if existing else None
        if self.options.thumbnail_queue:
            if existing_path and (self.thumbnails.root / existing_path).is_file():
                return None
            try:
                enqueue(self.db.conn, file_id, int(time.time()))
            except sqlite3.Error as e:
                logger.error("Could not queue thumbnail for %s: %s", entry.relative_path, e)
                return "thumbnails_queue_failed"
            return "thumbnails_queued"

        outcome = self.thumbnails.ensure(file_id, entry.path, existing_path)
        if outcome is ThumbnailOutcome.CREATED:
            set_thumbnail_path(self.db.conn, file_id, thumbnail_relpath(file_id))
            return "thumbnails_created"
        if outcome is ThumbnailOutcome.FAILED:
            logger.warning("Thumbnail failed for %s", entry.relative_path)
            return "thumbnails_failed"
        return None

    def _finish(
        self, context: ScanContext, stats: ScanStats, checkpoint: CheckpointManager
    ) -> None:
        """Reconcile and complete the session in one transaction."""
        now = int(time.time())
        with self.db.transaction() as conn:
            stats.files_deleted = soft_delete_unseen(conn, self.drive_id, self._session_id, now)
            touch_drive(conn, self.drive_id, now)
            save_progress(
                conn,
                self._session_id,
                checkpoint.last_path,
                stats.counters(),
                stats.duration_seconds,
            )
            set_status(conn, self._session_id, ScanStatus.COMPLETED)
        context.session_id = None
        logger.info(
            "Session %d completed: %d items, %d soft-deleted",
            self._session_id,
            stats.items_scanned,
            stats.files_deleted,
        )

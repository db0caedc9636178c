"""Progress reporting utilities for scanning."""

import sys
import time
from dataclasses import dataclass, field

from drivecat.database.sessions import COUNTER_COLUMNS


@dataclass
class ScanStats:
    """Running counters of a scan session.

    ``prior_duration`` carries the seconds already spent by earlier runs of a
    resumed session.
    """

    items_scanned: int = 0
    files_added: int = 0
    files_updated: int = 0
    files_deleted: int = 0
    files_skipped: int = 0
    thumbnails_created: int = 0
    thumbnails_failed: int = 0
    thumbnails_queued: int = 0
    thumbnails_queue_failed: int = 0
    prior_duration: int = 0
    start_time: float = field(default_factory=time.monotonic)

    @property
    def duration_seconds(self) -> int:
        return self.prior_duration + int(time.monotonic() - self.start_time)

    def counters(self) -> dict[str, int]:
        return {column: getattr(self, column) for column in COUNTER_COLUMNS}


class ProgressReporter:
    """Reports scan progress to the user."""

    def __init__(self, interval: int = 1000):
        self.interval = interval
        self._last_report_count = 0

    def report_if_needed(self, stats: ScanStats, current_path: str) -> None:
        if stats.items_scanned - self._last_report_count >= self.interval:
            self._print_progress(stats, current_path)
            self._last_report_count = stats.items_scanned

    def report_completion(self, stats: ScanStats) -> None:
        duration = _format_duration(stats.duration_seconds)
        print(f"\nScan complete: {stats.items_scanned:,} items in {duration}")
        print(
            f"Added: {stats.files_added:,}  Updated: {stats.files_updated:,}  "
            f"Deleted: {stats.files_deleted:,}  Skipped: {stats.files_skipped:,}"
        )
        if stats.thumbnails_queued or stats.thumbnails_queue_failed:
            print(
                f"Thumbnails queued: {stats.thumbnails_queued:,}  "
                f"Queue failures: {stats.thumbnails_queue_failed:,}"
            )
        else:
            print(
                f"Thumbnails created: {stats.thumbnails_created:,}  "
                f"Failed: {stats.thumbnails_failed:,}"
            )

    def report_interruption(self, stats: ScanStats, last_committed: str | None) -> None:
        print(
            f"\nScan interrupted after {stats.items_scanned:,} items. "
            "Run again with --resume to continue."
        )
        print(f"Last committed path: {last_committed or '(none)'}")

    def report_resume(self, stats: ScanStats, checkpoint: str | None) -> None:
        print(f"Resuming: {stats.items_scanned:,} items already processed")
        if checkpoint:
            print(f"Skipping entries up to {checkpoint}")
        self._last_report_count = stats.items_scanned

    def _print_progress(self, stats: ScanStats, current_path: str) -> None:
        print(f"[{stats.items_scanned:,} items] Scanning: {current_path}", file=sys.stderr)


def _format_duration(seconds: float) -> str:
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"

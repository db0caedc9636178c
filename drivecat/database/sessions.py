"""Scan session persistence."""

import sqlite3
import time

from .models import ScanSession, ScanStatus

COUNTER_COLUMNS = (
    "items_scanned",
    "files_added",
    "files_updated",
    "files_deleted",
    "files_skipped",
    "thumbnails_created",
    "thumbnails_failed",
    "thumbnails_queued",
    "thumbnails_queue_failed",
)


def _row_to_session(row: sqlite3.Row) -> ScanSession:
    return ScanSession(
        id=row["id"],
        drive_id=row["drive_id"],
        partition_number=row["partition_number"],
        mount_point=row["mount_point"],
        status=ScanStatus(row["status"]),
        last_scanned_path=row["last_scanned_path"],
        items_scanned=row["items_scanned"],
        files_added=row["files_added"],
        files_updated=row["files_updated"],
        files_deleted=row["files_deleted"],
        files_skipped=row["files_skipped"],
        thumbnails_created=row["thumbnails_created"],
        thumbnails_failed=row["thumbnails_failed"],
        thumbnails_queued=row["thumbnails_queued"],
        thumbnails_queue_failed=row["thumbnails_queue_failed"],
        started_at=row["started_at"],
        duration_seconds=row["duration_seconds"],
        pid=row["pid"],
        completed_at=row["completed_at"],
        error_message=row["error_message"],
    )


def get_session(conn: sqlite3.Connection, session_id: int) -> ScanSession | None:
    row = conn.execute("SELECT * FROM scan_sessions WHERE id = ?", (session_id,)).fetchone()
    return _row_to_session(row) if row else None


def find_latest_session(
    conn: sqlite3.Connection, drive_id: int, status: ScanStatus
) -> ScanSession | None:
    row = conn.execute(
        """
        SELECT * FROM scan_sessions
        WHERE drive_id = ? AND status = ?
        ORDER BY id DESC
        LIMIT 1
        """,
        (drive_id, status.value),
    ).fetchone()
    return _row_to_session(row) if row else None


def find_sessions(
    conn: sqlite3.Connection, drive_id: int, status: ScanStatus
) -> list[ScanSession]:
    rows = conn.execute(
        "SELECT * FROM scan_sessions WHERE drive_id = ? AND status = ? ORDER BY id",
        (drive_id, status.value),
    ).fetchall()
    return [_row_to_session(row) for row in rows]


def list_sessions(conn: sqlite3.Connection, limit: int = 20) -> list[sqlite3.Row]:
    return conn.execute(
        """
        SELECT s.*, d.name AS drive_name
        FROM scan_sessions s
        LEFT JOIN drives d ON s.drive_id = d.id
        ORDER BY s.id DESC
        LIMIT ?
        """,
        (limit,),
    ).fetchall()


def create_session(
    conn: sqlite3.Connection,
    drive_id: int,
    partition_number: int,
    mount_point: str,
    pid: int,
) -> int:
    now = int(time.time())
    cursor = conn.execute(
        """
        INSERT INTO scan_sessions
        (drive_id, partition_number, mount_point, status, started_at, pid)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (drive_id, partition_number, mount_point, ScanStatus.RUNNING.value, now, pid),
    )
    conn.commit()
    assert cursor.lastrowid is not None
    return cursor.lastrowid


def reactivate_session(conn: sqlite3.Connection, session_id: int, pid: int) -> None:
    conn.execute(
        "UPDATE scan_sessions SET status = ?, pid = ?, error_message = NULL WHERE id = ?",
        (ScanStatus.RUNNING.value, pid, session_id),
    )
    conn.commit()


def save_progress(
    conn: sqlite3.Connection,
    session_id: int,
    last_scanned_path: str | None,
    counters: dict[str, int],
    duration_seconds: int,
) -> None:
    """Write checkpoint and counters. The caller owns the commit."""
    assignments = ", ".join(f"{column} = :{column}" for column in COUNTER_COLUMNS)
    params = {column: counters.get(column, 0) for column in COUNTER_COLUMNS}
    params.update(
        session_id=session_id,
        last_scanned_path=last_scanned_path,
        duration_seconds=duration_seconds,
    )
    conn.execute(
        f"""
        UPDATE scan_sessions
        SET last_scanned_path = :last_scanned_path, {assignments},
            duration_seconds = :duration_seconds
        WHERE id = :session_id
        """,
        params,
    )


def set_status(
    conn: sqlite3.Connection,
    session_id: int,
    status: ScanStatus,
    error_message: str | None = None,
) -> None:
    completed_at = int(time.time()) if status is ScanStatus.COMPLETED else None
    conn.execute(
        """
        UPDATE scan_sessions
        SET status = ?, completed_at = COALESCE(?, completed_at), error_message = ?
        WHERE id = ?
        """,
        (status.value, completed_at, error_message, session_id),
    )

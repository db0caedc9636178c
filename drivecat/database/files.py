"""File catalog persistence: upsert, stamping and reconciliation."""

import sqlite3
from dataclasses import asdict

from .models import ExistingFile, FileRecord

_RECORD_COLUMNS = (
    "drive_id",
    "partition_number",
    "path",
    "path_hash",
    "filename",
    "extension",
    "size",
    "md5_hash",
    "ctime",
    "mtime",
    "category",
    "is_directory",
    "media_format",
    "media_codec",
    "media_resolution",
    "media_duration",
    "exif_date_taken",
    "exif_camera_model",
    "product_name",
    "product_version",
    "content_type",
    "exiftool_json",
)

# Columns rewritten on every re-observation; the key columns never change.
_REFRESH_COLUMNS = tuple(
    c for c in _RECORD_COLUMNS if c not in ("drive_id", "partition_number", "path_hash")
)


def lookup_file(
    conn: sqlite3.Connection, drive_id: int, partition_number: int, path_hash: str
) -> ExistingFile | None:
    row = conn.execute(
        """
        SELECT id, size, mtime, md5_hash, thumbnail_path, deleted_at
        FROM files
        WHERE drive_id = ? AND partition_number = ? AND path_hash = ?
        """,
        (drive_id, partition_number, path_hash),
    ).fetchone()
    if not row:
        return None
    return ExistingFile(
        id=row["id"],
        size=row["size"],
        mtime=row["mtime"],
        md5_hash=row["md5_hash"],
        thumbnail_path=row["thumbnail_path"],
        deleted_at=row["deleted_at"],
    )


def _record_params(record: FileRecord) -> dict:
    params = asdict(record)
    params["category"] = record.category.value
    params["is_directory"] = int(record.is_directory)
    return params


def upsert_file(
    conn: sqlite3.Connection,
    record: FileRecord,
    existing: ExistingFile | None,
    session_id: int,
    now: int,
) -> tuple[int, bool]:
    """Insert a new row or refresh the existing one.

    Returns ``(file_id, inserted)``. A refresh clears the soft-delete marker
    and stamps the row with ``session_id``.
    """
    params = _record_params(record)
    params.update(last_scan_id=session_id, now=now)

    if existing is None:
        columns = ", ".join(_RECORD_COLUMNS)
        placeholders = ", ".join(f":{c}" for c in _RECORD_COLUMNS)
        cursor = conn.execute(
            f"""
            INSERT INTO files ({columns}, added_at, deleted_at, last_scan_id)
            VALUES ({placeholders}, :now, NULL, :last_scan_id)
            """,
            params,
        )
        assert cursor.lastrowid is not None
        return cursor.lastrowid, True

    assignments = ", ".join(f"{c} = :{c}" for c in _REFRESH_COLUMNS)
    params["id"] = existing.id
    conn.execute(
        f"""
        UPDATE files
        SET {assignments}, deleted_at = NULL, last_scan_id = :last_scan_id
        WHERE id = :id
        """,
        params,
    )
    return existing.id, False


def stamp_file(conn: sqlite3.Connection, file_id: int, session_id: int) -> None:
    """Mark a row as observed by the session without refreshing its fields."""
    conn.execute(
        "UPDATE files SET last_scan_id = ?, deleted_at = NULL WHERE id = ?",
        (session_id, file_id),
    )


def set_thumbnail_path(conn: sqlite3.Connection, file_id: int, thumbnail_path: str) -> None:
    conn.execute("UPDATE files SET thumbnail_path = ? WHERE id = ?", (thumbnail_path, file_id))


def soft_delete_unseen(conn: sqlite3.Connection, drive_id: int, session_id: int, now: int) -> int:
    """Soft-delete every live row of the drive not stamped by ``session_id``."""
    cursor = conn.execute(
        """
        UPDATE files
        SET deleted_at = ?
        WHERE drive_id = ?
          AND (last_scan_id IS NULL OR last_scan_id != ?)
          AND deleted_at IS NULL
        """,
        (now, drive_id, session_id),
    )
    return cursor.rowcount

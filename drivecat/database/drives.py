"""Drive lookups and identity updates."""

import sqlite3
import time

from .models import Drive


def get_drive(conn: sqlite3.Connection, drive_id: int) -> Drive | None:
    row = conn.execute("SELECT * FROM drives WHERE id = ?", (drive_id,)).fetchone()
    if not row:
        return None
    return Drive(
        id=row["id"],
        name=row["name"],
        vendor=row["vendor"],
        model=row["model"],
        model_number=row["model_number"],
        serial=row["serial"],
        filesystem=row["filesystem"],
        size=row["size"],
        pair_id=row["pair_id"],
        dead=bool(row["dead"]),
        online=bool(row["online"]),
        offsite=bool(row["offsite"]),
        encrypted=bool(row["encrypted"]),
        empty=bool(row["empty"]),
    )


def update_drive_identity(conn: sqlite3.Connection, drive_id: int, changes: dict[str, str]) -> None:
    """Write back identity fields that differ from the physical device."""
    allowed = {"vendor", "model", "filesystem"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Cannot update drive fields: {sorted(unknown)}")
    if not changes:
        return

    assignments = ", ".join(f"{column} = ?" for column in changes)
    conn.execute(
        f"UPDATE drives SET {assignments}, updated_at = ? WHERE id = ?",
        (*changes.values(), int(time.time()), drive_id),
    )
    conn.commit()


def touch_drive(conn: sqlite3.Connection, drive_id: int, now: int) -> None:
    conn.execute("UPDATE drives SET updated_at = ? WHERE id = ?", (now, drive_id))

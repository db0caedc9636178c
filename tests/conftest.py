"""Shared fixtures."""

# pylint: disable=redefined-outer-name

from collections.abc import Iterator
from pathlib import Path

import pytest

from drivecat.database import Database

DRIVE_SERIAL = "WD-WCC4E1234567"


def insert_drive(db: Database, drive_id: int = 1, serial: str = DRIVE_SERIAL, **fields) -> int:
    values = {
        "id": drive_id,
        "name": f"Archive {drive_id}",
        "vendor": "WDC",
        "model": "WD40EFRX",
        "serial": serial,
        "filesystem": "ext4",
        "size": 4_000_787_030_016,
    }
    values.update(fields)
    columns = ", ".join(values)
    placeholders = ", ".join("?" for _ in values)
    db.conn.execute(f"INSERT INTO drives ({columns}) VALUES ({placeholders})", tuple(values.values()))
    db.conn.commit()
    return drive_id


@pytest.fixture
def db(tmp_path: Path) -> Iterator[Database]:
    """A catalog database with one registered drive (id 1)."""
    with Database(tmp_path / "catalog.db") as database:
        insert_drive(database)
        yield database

"""Database schema definition."""

import sqlite3

SCHEMA_SQL = """
-- Catalogued drives (maintained by drive administration)
CREATE TABLE IF NOT EXISTS drives (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    vendor TEXT NOT NULL DEFAULT '',
    model TEXT NOT NULL DEFAULT '',
    model_number TEXT NOT NULL DEFAULT '',
    serial TEXT NOT NULL,
    filesystem TEXT,
    size INTEGER NOT NULL DEFAULT 0,
    pair_id INTEGER REFERENCES drives(id) ON DELETE SET NULL,
    dead INTEGER NOT NULL DEFAULT 0,
    online INTEGER NOT NULL DEFAULT 0,
    offsite INTEGER NOT NULL DEFAULT 0,
    encrypted INTEGER NOT NULL DEFAULT 0,
    empty INTEGER NOT NULL DEFAULT 0,
    added_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now')),
    updated_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
);

-- Scan session tracking
CREATE TABLE IF NOT EXISTS scan_sessions (
    id INTEGER PRIMARY KEY,
    drive_id INTEGER NOT NULL REFERENCES drives(id) ON DELETE CASCADE,
    partition_number INTEGER NOT NULL,
    mount_point TEXT NOT NULL,
    status TEXT NOT NULL,
    last_scanned_path TEXT,
    items_scanned INTEGER DEFAULT 0,
    files_added INTEGER DEFAULT 0,
    files_updated INTEGER DEFAULT 0,
    files_deleted INTEGER DEFAULT 0,
    files_skipped INTEGER DEFAULT 0,
    thumbnails_created INTEGER DEFAULT 0,
    thumbnails_failed INTEGER DEFAULT 0,
    thumbnails_queued INTEGER DEFAULT 0,
    thumbnails_queue_failed INTEGER DEFAULT 0,
    started_at INTEGER NOT NULL,
    completed_at INTEGER,
    duration_seconds INTEGER DEFAULT 0,
    pid INTEGER,
    error_message TEXT
);

-- File inventory, one row per (drive, partition, path)
CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY,
    drive_id INTEGER NOT NULL REFERENCES drives(id) ON DELETE CASCADE,
    partition_number INTEGER NOT NULL DEFAULT 1,
    path TEXT NOT NULL,
    path_hash TEXT NOT NULL,
    filename TEXT NOT NULL,
    extension TEXT,
    size INTEGER NOT NULL,
    md5_hash TEXT,
    ctime INTEGER,
    mtime INTEGER,
    category TEXT NOT NULL,
    is_directory INTEGER NOT NULL DEFAULT 0,
    media_format TEXT,
    media_codec TEXT,
    media_resolution TEXT,
    media_duration REAL,
    exif_date_taken TEXT,
    exif_camera_model TEXT,
    product_name TEXT,
    product_version TEXT,
    content_type TEXT,
    exiftool_json TEXT,
    thumbnail_path TEXT,
    added_at INTEGER NOT NULL,
    deleted_at INTEGER,
    last_scan_id INTEGER REFERENCES scan_sessions(id) ON DELETE SET NULL,
    UNIQUE(drive_id, partition_number, path_hash)
);

-- Deferred thumbnail jobs for the external pipeline
CREATE TABLE IF NOT EXISTS thumbnail_queue (
    id INTEGER PRIMARY KEY,
    file_id INTEGER NOT NULL REFERENCES files(id) ON DELETE CASCADE,
    status TEXT NOT NULL DEFAULT 'pending',
    added_at INTEGER NOT NULL,
    processed_at INTEGER,
    error_message TEXT
);

CREATE INDEX IF NOT EXISTS idx_sessions_drive_status ON scan_sessions(drive_id, status);
CREATE INDEX IF NOT EXISTS idx_files_drive ON files(drive_id);
CREATE INDEX IF NOT EXISTS idx_files_last_scan ON files(drive_id, last_scan_id);
CREATE INDEX IF NOT EXISTS idx_files_filename ON files(filename);
CREATE INDEX IF NOT EXISTS idx_files_md5 ON files(md5_hash) WHERE md5_hash IS NOT NULL;
CREATE INDEX IF NOT EXISTS idx_files_deleted ON files(drive_id) WHERE deleted_at IS NOT NULL;
CREATE INDEX IF NOT EXISTS idx_thumbnail_queue_status ON thumbnail_queue(status);
CREATE INDEX IF NOT EXISTS idx_thumbnail_queue_file ON thumbnail_queue(file_id);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create schema and run migrations."""
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='files'")
    files_exists = cursor.fetchone() is not None

    if files_exists:
        migrate_add_content_type_column(conn)

    conn.executescript(SCHEMA_SQL)
    conn.commit()


def migrate_add_content_type_column(conn: sqlite3.Connection) -> None:
    """Add content_type to catalogs created before the content identifier existed."""
    cursor = conn.execute("PRAGMA table_info(files)")
    existing_columns = {row[1] for row in cursor.fetchall()}

    if "content_type" not in existing_columns:
        conn.execute("ALTER TABLE files ADD COLUMN content_type TEXT")
        conn.commit()

"""Data models for the database."""

from dataclasses import dataclass
from enum import Enum


class ScanStatus(Enum):
    """Status of a scan session."""

    RUNNING = "running"
    INTERRUPTED = "interrupted"
    COMPLETED = "completed"
    FAILED = "failed"


class FileCategory(Enum):
    """Catalog category of a filesystem entry."""

    VIDEO = "Video"
    AUDIO = "Audio"
    IMAGE = "Image"
    DOCUMENT = "Document"
    ARCHIVE = "Archive"
    EXECUTABLE = "Executable"
    DIRECTORY = "Directory"
    OTHER = "Other"


@dataclass
class Drive:
    """Represents a catalogued drive."""

    id: int
    name: str
    vendor: str
    model: str
    model_number: str
    serial: str
    filesystem: str | None
    size: int
    pair_id: int | None
    dead: bool
    online: bool
    offsite: bool
    encrypted: bool
    empty: bool


@dataclass
class ScanSession:
    """Represents a scan session record."""

    id: int
    drive_id: int
    partition_number: int
    mount_point: str
    status: ScanStatus
    last_scanned_path: str | None
    items_scanned: int
    files_added: int
    files_updated: int
    files_deleted: int
    files_skipped: int
    thumbnails_created: int
    thumbnails_failed: int
    thumbnails_queued: int
    thumbnails_queue_failed: int
    started_at: int
    duration_seconds: int
    pid: int | None
    completed_at: int | None = None
    error_message: str | None = None


@dataclass
class ExistingFile:
    """The stored fields of a catalog row that the scanner compares against."""

    id: int
    size: int
    mtime: int | None
    md5_hash: str | None
    thumbnail_path: str | None
    deleted_at: int | None


@dataclass
class FileRecord:
    """Represents one observed filesystem entry ready to be persisted."""

    drive_id: int
    partition_number: int
    path: str
    path_hash: str
    filename: str
    extension: str | None
    size: int
    md5_hash: str | None
    ctime: int | None
    mtime: int | None
    category: FileCategory
    is_directory: bool
    media_format: str | None = None
    media_codec: str | None = None
    media_resolution: str | None = None
    media_duration: float | None = None
    exif_date_taken: str | None = None
    exif_camera_model: str | None = None
    product_name: str | None = None
    product_version: str | None = None
    content_type: str | None = None
    exiftool_json: str | None = None


@dataclass
class ParsedFilename:
    """Parsed components of a filename."""

    full: str
    base: str
    extension: str | None

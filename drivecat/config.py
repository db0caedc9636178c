"""Configuration module for drivecat."""

from dataclasses import dataclass, field
from pathlib import Path


def _get_project_root() -> Path:
    return Path(__file__).parent.parent


@dataclass
class ScannerConfig:
    progress_interval: int = 1000
    max_path_length: int = 4096
    commit_every_items: int = 500
    commit_every_seconds: float = 30.0
    thumbnail_max_width: int = 400
    thumbnail_quality: int = 85
    tool_timeout_seconds: int = 120


@dataclass
class RecoveryConfig:
    max_attempts: int = 5
    backoff_seconds: float = 10.0
    mount_timeout_seconds: int = 60


@dataclass
class Config:
    database_path: Path = field(default_factory=lambda: _get_project_root() / "data" / "catalog.db")
    thumbnail_root: Path = field(default_factory=lambda: _get_project_root() / "data" / "thumbnails")
    log_path: Path = field(default_factory=lambda: _get_project_root() / "logs" / "drivecat.log")
    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    recovery: RecoveryConfig = field(default_factory=RecoveryConfig)


@dataclass
class ScanOptions:
    """Per-invocation switches for a drive scan."""

    calculate_md5: bool = True
    update_drive_identity: bool = True
    generate_thumbnails: bool = True
    thumbnail_queue: bool = False
    resume: bool = False
    skip_existing: bool = False
    verbose: bool = False
    delay_microseconds: int = 0

    def validate(self) -> None:
        if self.resume and self.skip_existing:
            raise ValueError("--resume and --skip-existing cannot be used together")
        if self.delay_microseconds < 0:
            raise ValueError("--delay must not be negative")

"""Database module for drivecat."""

from .connection import Database
from .models import (
    Drive,
    ExistingFile,
    FileCategory,
    FileRecord,
    ParsedFilename,
    ScanSession,
    ScanStatus,
)
from .schema import create_schema

__all__ = [
    "Database",
    "create_schema",
    "Drive",
    "ExistingFile",
    "FileCategory",
    "FileRecord",
    "ParsedFilename",
    "ScanSession",
    "ScanStatus",
]

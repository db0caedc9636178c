"""Metadata extraction from catalogued files."""

from drivecat.extractor.categories import EXTENSION_CATEGORIES, categorize
from drivecat.extractor.exiftool import ExiftoolNotFoundError, ExiftoolRunner
from drivecat.extractor.pipeline import (
    Extractor,
    FileMetadata,
    MetadataPipeline,
    build_pipeline,
)

__all__ = [
    "EXTENSION_CATEGORIES",
    "categorize",
    "ExiftoolRunner",
    "ExiftoolNotFoundError",
    "Extractor",
    "FileMetadata",
    "MetadataPipeline",
    "build_pipeline",
]

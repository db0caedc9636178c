"""Category-aware metadata extraction pipeline."""

import logging
import shutil
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Protocol, Self

from drivecat.database.models import FileCategory
from drivecat.extractor.content_type import ContentTypeIdentifier
from drivecat.extractor.exiftool import ExiftoolNotFoundError, ExiftoolRunner
from drivecat.extractor.ffprobe import FfprobeProbe
from drivecat.extractor.images import ImageReader
from drivecat.extractor.snapshot import ExecutableInfoReader, MetadataSnapshot

logger = logging.getLogger(__name__)


class Extractor(Protocol):
    """Given a path, return a metadata fragment or None. Must not raise for bad input."""

    def extract(self, path: Path) -> dict | None:
        """Return field values keyed by FileMetadata attribute name."""


@dataclass
class FileMetadata:
    """Merged extractor output for one entry."""

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

    def merge(self, fragment: dict | None) -> None:
        if not fragment:
            return
        known = {f.name for f in fields(self)}
        for key, value in fragment.items():
            if key in known and value is not None:
                setattr(self, key, value)


class MetadataPipeline:
    """Runs the category extractor plus the generic extractors for an entry.

    Any extractor may be None when its tool is unavailable; the affected
    fields then stay null.
    """

    def __init__(
        self,
        video: Extractor | None = None,
        audio: Extractor | None = None,
        image: Extractor | None = None,
        executable: Extractor | None = None,
        content_type: Extractor | None = None,
        snapshot: Extractor | None = None,
        exiftool: ExiftoolRunner | None = None,
    ) -> None:
        self._by_category: dict[FileCategory, Extractor | None] = {
            FileCategory.VIDEO: video,
            FileCategory.AUDIO: audio,
            FileCategory.IMAGE: image,
            FileCategory.EXECUTABLE: executable,
        }
        self.content_type = content_type
        self.snapshot = snapshot
        self._exiftool = exiftool

    def extract(self, path: Path, category: FileCategory) -> FileMetadata:
        metadata = FileMetadata()
        if category is FileCategory.DIRECTORY:
            return metadata

        extractor = self._by_category.get(category)
        if extractor is not None:
            metadata.merge(extractor.extract(path))

        if self.content_type is not None:
            metadata.merge(self.content_type.extract(path))
        if self.snapshot is not None:
            metadata.merge(self.snapshot.extract(path))
        return metadata

    def close(self) -> None:
        if self._exiftool is not None:
            self._exiftool.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def check_tool_availability() -> dict[str, bool]:
    return {tool: shutil.which(tool) is not None for tool in ("ffprobe", "exiftool", "file")}


def build_pipeline(timeout: int = 120) -> MetadataPipeline:
    """Assemble a pipeline from whichever external tools are installed."""
    tools = check_tool_availability()

    video = audio = None
    if tools["ffprobe"]:
        video = FfprobeProbe("video", timeout=timeout)
        audio = FfprobeProbe("audio", timeout=timeout)
    else:
        logger.warning("ffprobe not found: video and audio metadata will not be extracted")

    exiftool = None
    executable = snapshot = None
    try:
        exiftool = ExiftoolRunner()
        executable = ExecutableInfoReader(exiftool)
        snapshot = MetadataSnapshot(exiftool)
    except ExiftoolNotFoundError:
        logger.warning("exiftool not found: version info and metadata snapshots are disabled")

    content_type = None
    if tools["file"]:
        content_type = ContentTypeIdentifier(timeout=timeout)
    else:
        logger.warning("file not found: content type identification is disabled")

    return MetadataPipeline(
        video=video,
        audio=audio,
        image=ImageReader(),
        executable=executable,
        content_type=content_type,
        snapshot=snapshot,
        exiftool=exiftool,
    )

"""Downscaled JPEG previews stored in a sharded directory tree."""

import logging
from enum import Enum
from pathlib import Path

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)


class ThumbnailOutcome(Enum):
    CREATED = "created"
    EXISTS = "exists"
    FAILED = "failed"


def thumbnail_relpath(file_id: int) -> str:
    """Sharded location of a file's thumbnail, e.g. ``00/00/12/000012345.jpg``."""
    padded = f"{file_id:09d}"
    return f"{padded[0:2]}/{padded[2:4]}/{padded[4:6]}/{padded}.jpg"


def scaled_size(width: int, height: int, max_width: int) -> tuple[int, int]:
    """Width capped at ``max_width``, height scaled to keep the aspect ratio (floored)."""
    new_width = min(width, max_width)
    return new_width, height * new_width // width


class ThumbnailGenerator:
    """Creates thumbnails under ``root`` and skips those already on disk."""

    def __init__(self, root: Path, max_width: int = 400, quality: int = 85):
        self.root = root
        self.max_width = max_width
        self.quality = quality

    def ensure(
        self, file_id: int, source: Path, existing_path: str | None = None
    ) -> ThumbnailOutcome:
        if existing_path and (self.root / existing_path).is_file():
            return ThumbnailOutcome.EXISTS

        destination = self.root / thumbnail_relpath(file_id)
        if self.generate(source, destination):
            return ThumbnailOutcome.CREATED
        return ThumbnailOutcome.FAILED

    def generate(self, source: Path, destination: Path) -> bool:
        try:
            with Image.open(source) as img:
                width, height = img.size
                if width <= 0 or height <= 0:
                    logger.warning("Image has no dimensions, no thumbnail: %s", source)
                    return False

                new_width, new_height = scaled_size(width, height, self.max_width)
                if new_height == 0:
                    logger.warning(
                        "Thumbnail of %s would be zero pixels tall (%dx%d)", source, width, height
                    )
                    return False

                img.draft("RGB", (new_width, new_height))
                thumb = img.convert("RGB").resize((new_width, new_height), Image.Resampling.LANCZOS)

            destination.parent.mkdir(parents=True, exist_ok=True)
            thumb.save(destination, format="JPEG", quality=self.quality)
        except (UnidentifiedImageError, Image.DecompressionBombError) as e:
            logger.warning("Unsupported image for thumbnail %s: %s", source, e)
            return False
        except (OSError, ValueError, SyntaxError) as e:
            logger.warning("Thumbnail generation failed for %s: %s", source, e)
            return False

        logger.debug("Thumbnail written: %s", destination)
        return True

"""Image dimensions and EXIF reading with Pillow."""

import logging
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from drivecat.extractor.parser import clean_text, format_capture_date, parse_capture_date

logger = logging.getLogger(__name__)

# Formats whose containers carry an EXIF block worth reading.
EXIF_FORMATS = {"JPEG", "MPO", "TIFF", "WEBP", "PNG", "HEIF"}

TAG_MODEL = 0x0110
TAG_DATETIME = 0x0132
TAG_DATETIME_ORIGINAL = 0x9003
EXIF_IFD_POINTER = 0x8769


class ImageReader:
    """Reads format, resolution, capture date and camera model from an image."""

    def extract(self, path: Path) -> dict | None:
        try:
            with Image.open(path) as img:
                width, height = img.size
                image_format = img.format
                mime_type = img.get_format_mimetype() if image_format else None
                exif_fields = self._read_exif(img) if image_format in EXIF_FORMATS else {}
        except (UnidentifiedImageError, Image.DecompressionBombError) as e:
            logger.debug("Not a readable image %s: %s", path, e)
            return None
        except (OSError, ValueError, SyntaxError) as e:
            logger.warning("Failed to read image %s: %s", path, e)
            return None

        return {
            "media_format": mime_type,
            "media_codec": None,
            "media_resolution": f"{width}x{height}",
            "media_duration": None,
            "exif_date_taken": exif_fields.get("date_taken"),
            "exif_camera_model": exif_fields.get("camera_model"),
        }

    def _read_exif(self, img: Image.Image) -> dict:
        exif = img.getexif()
        if not exif:
            return {}

        exif_ifd = exif.get_ifd(EXIF_IFD_POINTER)
        date_taken = parse_capture_date(clean_text(exif_ifd.get(TAG_DATETIME_ORIGINAL)))
        if date_taken is None:
            date_taken = parse_capture_date(clean_text(exif.get(TAG_DATETIME)))

        return {
            "date_taken": format_capture_date(date_taken),
            "camera_model": clean_text(exif.get(TAG_MODEL)),
        }

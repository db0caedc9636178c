"""Extractors backed by the shared exiftool process."""

import json
import logging
from pathlib import Path

from drivecat.extractor.exiftool import ExiftoolRunner
from drivecat.extractor.parser import clean_text, get_first_value

logger = logging.getLogger(__name__)


class ExecutableInfoReader:
    """Product name and version from Windows executables."""

    TAGS = ["ProductName", "ProductVersion"]

    def __init__(self, runner: ExiftoolRunner) -> None:
        self.runner = runner

    def extract(self, path: Path) -> dict | None:
        result = self.runner.extract_single(str(path), tags=self.TAGS)
        if result.error:
            logger.debug("No version info for %s: %s", path, result.error)
            return None

        tags = result.metadata[0]
        return {
            "product_name": clean_text(get_first_value(tags, "EXE:ProductName", "ProductName")),
            "product_version": clean_text(
                get_first_value(tags, "EXE:ProductVersion", "ProductVersion")
            ),
        }


class MetadataSnapshot:
    """Full exiftool tag dump, stored verbatim as a one-element JSON array."""

    def __init__(self, runner: ExiftoolRunner) -> None:
        self.runner = runner

    def extract(self, path: Path) -> dict | None:
        result = self.runner.extract_single(str(path))
        if result.error:
            logger.debug("No exiftool snapshot for %s: %s", path, result.error)
            return None
        return {"exiftool_json": json.dumps(result.metadata[:1], ensure_ascii=False)}

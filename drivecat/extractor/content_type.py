"""Generic content identification using the ``file`` utility."""

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class ContentTypeIdentifier:
    """Stores the raw ``file -b`` description of every non-directory entry."""

    def __init__(self, file_path: str = "file", timeout: int = 120) -> None:
        self.file_path = file_path
        self.timeout = timeout

    def extract(self, path: Path) -> dict | None:
        try:
            result = subprocess.run(
                [self.file_path, "-b", "--", str(path)],
                start_new_session=True,
                capture_output=True,
                text=True,
                errors="replace",
                check=False,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("file failed for %s: %s", path, e)
            return None

        description = result.stdout.strip()
        if result.returncode != 0 or not description:
            return None
        return {"content_type": description}

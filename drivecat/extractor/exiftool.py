"""Exiftool wrapper kept alive for the duration of a scan."""

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Self

logger = logging.getLogger(__name__)

READY_MARKER = "{ready}"


class ExiftoolNotFoundError(Exception):
    """Raised when exiftool is not installed."""


class ExiftoolProcessError(Exception):
    """Raised when the persistent exiftool process exits unexpectedly."""


@dataclass
class ExiftoolResult:
    """Result from exiftool extraction."""

    source_file: str
    metadata: list[dict]
    error: str | None = None


class ExiftoolRunner:
    """Drives one ``exiftool -stay_open`` process over its argument pipe.

    Starting exiftool costs far more than reading one file's tags, so the
    process is started lazily on first use and reused for every file until
    ``close``. If it dies, the current request fails and the next one starts
    a fresh process.
    """

    EXIFTOOL_ARGS = ["-json", "-G"]

    def __init__(self) -> None:
        self.version = self._check_exiftool()
        self._process: subprocess.Popen | None = None

    def _check_exiftool(self) -> str:
        path = shutil.which("exiftool")
        if not path:
            raise ExiftoolNotFoundError(
                "exiftool is required but not found.\n"
                "Please install exiftool: https://exiftool.org/install.html"
            )

        result = subprocess.run(
            ["exiftool", "-ver"],
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()

    def start(self) -> None:
        if self._process is not None and self._process.poll() is None:
            return
        logger.debug("Starting persistent exiftool process")
        # Own session so a terminal Ctrl-C reaches only the scanner.
        self._process = subprocess.Popen(
            ["exiftool", "-stay_open", "True", "-@", "-"],
            start_new_session=True,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            encoding="utf-8",
            errors="replace",
        )

    def close(self) -> None:
        process = self._process
        self._process = None
        if process is None:
            return
        try:
            if process.poll() is None and process.stdin:
                process.stdin.write("-stay_open\nFalse\n")
                process.stdin.flush()
            process.wait(timeout=10)
        except (OSError, subprocess.TimeoutExpired):
            process.kill()
            process.wait()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def execute(self, args: list[str]) -> str:
        """Send one request and return everything exiftool printed for it."""
        self.start()
        process = self._process
        assert process is not None and process.stdin and process.stdout

        try:
            process.stdin.write("\n".join(args) + "\n-execute\n")
            process.stdin.flush()
        except OSError as e:
            self._process = None
            raise ExiftoolProcessError(f"exiftool stopped accepting input: {e}") from e

        lines: list[str] = []
        while True:
            line = process.stdout.readline()
            if line == "":
                self._process = None
                raise ExiftoolProcessError("exiftool exited before finishing the request")
            if line.rstrip("\r\n") == READY_MARKER:
                break
            lines.append(line)
        return "".join(lines)

    def extract_single(self, file_path: str, tags: list[str] | None = None) -> ExiftoolResult:
        """Extract metadata from a single file, optionally limited to ``tags``."""
        if "\n" in file_path or "\r" in file_path:
            return ExiftoolResult(file_path, [], "Path contains a line break")

        tag_args = [f"-{tag}" for tag in tags or []]
        try:
            output = self.execute(self.EXIFTOOL_ARGS + tag_args + [file_path])
        except ExiftoolProcessError as e:
            return ExiftoolResult(file_path, [], str(e))

        if not output.strip():
            return ExiftoolResult(file_path, [], "No output from exiftool")

        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            return ExiftoolResult(file_path, [], f"JSON parse error: {e}")

        if not isinstance(data, list) or not data:
            return ExiftoolResult(file_path, [], "Unexpected exiftool output")
        return ExiftoolResult(file_path, data)

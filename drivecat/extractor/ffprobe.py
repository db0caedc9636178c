"""Video and audio stream probing using ffprobe."""

import json
import logging
import subprocess
from pathlib import Path
from typing import Any

from drivecat.extractor.parser import clean_text

logger = logging.getLogger(__name__)


class FfprobeProbe:
    """Probes the first video or audio stream of a media file."""

    def __init__(self, stream: str, ffprobe_path: str = "ffprobe", timeout: int = 120) -> None:
        if stream not in ("video", "audio"):
            raise ValueError(f"Unknown stream type: {stream}")
        self.stream = stream
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout

    def extract(self, path: Path) -> dict | None:
        data = self._run(path)
        if data is None:
            return None

        streams = data.get("streams") or []
        if not streams:
            return None
        stream = streams[0]
        fmt = data.get("format") or {}

        if self.stream == "video":
            return parse_video_stream(stream, fmt)
        return parse_audio_stream(stream, fmt)

    def _run(self, path: Path) -> dict | None:
        selector = "v:0" if self.stream == "video" else "a:0"
        try:
            result = subprocess.run(
                [
                    self.ffprobe_path,
                    "-v",
                    "quiet",
                    "-print_format",
                    "json",
                    "-show_format",
                    "-show_streams",
                    "-select_streams",
                    selector,
                    str(path),
                ],
                start_new_session=True,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("ffprobe failed for %s: %s", path, e)
            return None

        if result.returncode != 0 or not result.stdout.strip():
            logger.debug("ffprobe returned %d for %s", result.returncode, path)
            return None

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError:
            logger.warning("ffprobe produced invalid JSON for %s", path)
            return None
        return data if isinstance(data, dict) else None


def _duration(fmt: dict[str, Any]) -> float | None:
    try:
        return float(fmt["duration"])
    except (KeyError, TypeError, ValueError):
        return None


def _to_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_video_stream(stream: dict[str, Any], fmt: dict[str, Any]) -> dict:
    width = stream.get("width")
    height = stream.get("height")
    resolution = f"{width}x{height}" if width and height else None
    return {
        "media_format": clean_text(fmt.get("format_name")),
        "media_codec": clean_text(stream.get("codec_name")),
        "media_resolution": resolution,
        "media_duration": _duration(fmt),
    }


def parse_audio_stream(stream: dict[str, Any], fmt: dict[str, Any]) -> dict:
    """Summarise an audio stream as ``"<codec>, <N> kbps, <N> kHz"``."""
    parts: list[str] = []
    if stream.get("codec_long_name"):
        parts.append(str(stream["codec_long_name"]))

    bitrate = _to_int(stream.get("bit_rate") or fmt.get("bit_rate"))
    if bitrate:
        parts.append(f"{round(bitrate / 1000)} kbps")

    sample_rate = _to_int(stream.get("sample_rate"))
    if sample_rate:
        parts.append(f"{sample_rate / 1000:g} kHz")

    return {
        "media_format": clean_text(fmt.get("format_name")),
        "media_codec": ", ".join(parts) or None,
        "media_resolution": None,
        "media_duration": _duration(fmt),
    }

"""Filesystem traversal utilities for scanning drives."""

import logging
import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

from drivecat.database.models import ParsedFilename

logger = logging.getLogger(__name__)

# Called with (directory, error) when a directory cannot be listed.
# Returning True asks the walk to list the directory once more.
ListingErrorHandler = Callable[[Path, OSError], bool]


@dataclass
class WalkEntry:
    path: Path
    relative_path: str
    name: str
    is_dir: bool


def parse_filename(filename: str) -> ParsedFilename:
    if not filename:
        return ParsedFilename(full=filename, base=filename, extension=None)

    dot_index = filename.rfind(".")

    if dot_index <= 0 or dot_index == len(filename) - 1:
        return ParsedFilename(full=filename, base=filename.rstrip("."), extension=None)

    extension = filename[dot_index + 1 :].lower()
    base = filename[:dot_index]

    return ParsedFilename(full=filename, base=base, extension=extension)


def relative_to_mount(path: Path, root: Path) -> str:
    """Catalog form of a path: relative to the mount point with a leading slash."""
    relative = path.relative_to(root).as_posix()
    if relative == ".":
        return "/"
    # Undecodable bytes in names cannot be stored as TEXT.
    relative = relative.encode("utf-8", "surrogateescape").decode("utf-8", "replace")
    return f"/{relative}"


def walk_tree(
    root: Path,
    on_error: ListingErrorHandler | None = None,
    max_path_length: int = 4096,
) -> Iterator[WalkEntry]:
    """Walk ``root`` depth-first, yielding each directory before its contents.

    Entries are ordered by name within a directory so that the sequence is
    stable between runs on an unchanged tree. Symlinks are not followed or
    yielded, and the root itself is not yielded.
    """
    yield from _walk_recursive(root, root, on_error, max_path_length)


def _walk_recursive(
    directory: Path,
    root: Path,
    on_error: ListingErrorHandler | None,
    max_path_length: int,
) -> Iterator[WalkEntry]:
    for entry in _list_directory(directory, root, on_error, max_path_length):
        yield entry
        if entry.is_dir:
            yield from _walk_recursive(entry.path, root, on_error, max_path_length)


def _list_directory(
    directory: Path,
    root: Path,
    on_error: ListingErrorHandler | None,
    max_path_length: int,
) -> list[WalkEntry]:
    try:
        return _read_entries(directory, root, max_path_length)
    except OSError as e:
        if on_error is None or not on_error(directory, e):
            logger.warning("Cannot list directory %s: %s", directory, e)
            return []

    try:
        return _read_entries(directory, root, max_path_length)
    except OSError as e:
        logger.error("Cannot list directory %s after recovery: %s", directory, e)
        return []


def _read_entries(directory: Path, root: Path, max_path_length: int) -> list[WalkEntry]:
    entries: list[WalkEntry] = []
    with os.scandir(directory) as it:
        for entry in it:
            if entry.is_symlink():
                continue
            if len(entry.path) > max_path_length:
                logger.warning("Path too long, skipping: %s", entry.path)
                continue
            path = Path(entry.path)
            entries.append(
                WalkEntry(
                    path=path,
                    relative_path=relative_to_mount(path, root),
                    name=entry.name,
                    is_dir=entry.is_dir(follow_symlinks=False),
                )
            )
    entries.sort(key=lambda e: e.name)
    return entries

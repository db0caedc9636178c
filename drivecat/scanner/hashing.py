"""Path identity and content hashing."""

import hashlib
from pathlib import Path

CHUNK_SIZE = 1024 * 1024


def path_hash(relative_path: str) -> str:
    """SHA-256 of the catalog path; the per-file upsert key."""
    return hashlib.sha256(relative_path.encode("utf-8")).hexdigest()


def md5_file(path: Path, chunk_size: int = CHUNK_SIZE) -> str:
    digest = hashlib.md5()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()

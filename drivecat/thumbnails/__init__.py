"""Thumbnail generation for image files."""

from .generator import ThumbnailGenerator, ThumbnailOutcome, thumbnail_relpath
from .queue import QueueStatus, ThumbnailQueueWorker, enqueue, queue_status

__all__ = [
    "ThumbnailGenerator",
    "ThumbnailOutcome",
    "thumbnail_relpath",
    "QueueStatus",
    "ThumbnailQueueWorker",
    "enqueue",
    "queue_status",
]

"""Cooperative cancellation and interrupted-session bookkeeping."""

import logging
import signal
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from drivecat.database import Database, ScanStatus
from drivecat.database.sessions import save_progress, set_status
from drivecat.scanner.checkpoint import CheckpointManager

logger = logging.getLogger(__name__)


class CancellationToken:
    """Set from a signal handler, polled by the walk loop between entries."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()


@dataclass
class ScanContext:
    """State shared by the walk loop and its cleanup.

    ``session_id`` is None whenever no session is open; a completed scan
    clears it before leaving ``session_guard``.
    """

    db: Database
    cancel: CancellationToken
    session_id: int | None = None
    checkpoint: CheckpointManager | None = None


@contextmanager
def handle_signals(
    token: CancellationToken,
    signals: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM),
) -> Iterator[CancellationToken]:
    """Route SIGINT and SIGTERM to ``token`` for the duration of the block."""

    def _handler(signum, frame):
        logger.warning(
            "Received %s, stopping after the current entry", signal.Signals(signum).name
        )
        token.cancel()

    previous = {sig: signal.signal(sig, _handler) for sig in signals}
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


@contextmanager
def session_guard(context: ScanContext) -> Iterator[ScanContext]:
    """Leave the open session ``interrupted`` on any abnormal exit.

    Covers uncaught exceptions and a cancelled token. The session keeps its
    last committed checkpoint and counters; uncommitted work is rolled back.
    """
    try:
        yield context
    except BaseException as exc:
        try:
            mark_interrupted(context, f"{type(exc).__name__}: {exc}")
        except sqlite3.Error:
            logger.exception("Could not mark session %s interrupted", context.session_id)
        raise
    if context.cancel.is_set():
        mark_interrupted(context, "Cancelled by signal")


def mark_interrupted(context: ScanContext, reason: str) -> None:
    if context.session_id is None:
        return

    session_id = context.session_id
    db = context.db
    db.rollback()

    if context.checkpoint is not None:
        checkpoint = context.checkpoint
        stats = checkpoint.committed_stats
        save_progress(
            db.conn,
            session_id,
            checkpoint.committed_path,
            stats.counters(),
            stats.duration_seconds,
        )
    set_status(db.conn, session_id, ScanStatus.INTERRUPTED, error_message=reason)
    db.commit()
    context.session_id = None
    logger.warning("Session %d interrupted: %s", session_id, reason)

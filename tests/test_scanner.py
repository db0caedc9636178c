"""Tests for the scanner orchestration."""

import errno
import os
from pathlib import Path
from unittest.mock import Mock

import pytest
from PIL import Image

from drivecat.config import ScannerConfig, ScanOptions
from drivecat.database import Database, ScanStatus
from drivecat.database.sessions import create_session, get_session, save_progress, set_status
from drivecat.extractor import FileMetadata, MetadataPipeline
from drivecat.extractor.images import ImageReader
from drivecat.scanner import filesystem
from drivecat.scanner.hashing import md5_file
from drivecat.scanner.interrupt import CancellationToken
from drivecat.scanner.scanner import (
    CheckpointNotReachedError,
    ConcurrentScanError,
    ScanAbortedError,
    ScanError,
    Scanner,
    read_stat,
)
from drivecat.thumbnails import ThumbnailGenerator, thumbnail_relpath


class StaticExtractor:
    def __init__(self, fragment: dict):
        self.fragment = fragment

    def extract(self, path: Path) -> dict:
        return dict(self.fragment)


class FakePipeline:
    """Returns empty metadata and calls ``on_extract`` with the running count."""

    def __init__(self, on_extract=None):
        self.on_extract = on_extract
        self.calls = 0

    def extract(self, path, category) -> FileMetadata:
        self.calls += 1
        if self.on_extract is not None:
            self.on_extract(self.calls)
        return FileMetadata()


class FakeRecovery:
    def __init__(self, succeeds: bool = True):
        self.succeeds = succeeds
        self.calls = 0

    def recover(self) -> bool:
        self.calls += 1
        return self.succeeds


def _scanner(db: Database, root: Path, **kwargs) -> Scanner:
    kwargs.setdefault("pipeline", FakePipeline())
    return Scanner(db, 1, 1, root, **kwargs)


def _files(db: Database) -> dict[str, dict]:
    rows = db.conn.execute("SELECT * FROM files ORDER BY path").fetchall()
    return {row["path"]: dict(row) for row in rows}


def _interrupted_session(db: Database, path: str | None, partition: int = 1) -> int:
    session_id = create_session(db.conn, 1, partition, "/mnt/archive", 1)
    counters = {"items_scanned": 0}
    save_progress(db.conn, session_id, path, counters, 0)
    set_status(db.conn, session_id, ScanStatus.INTERRUPTED, error_message="test")
    db.commit()
    return session_id


@pytest.fixture
def media_tree(tmp_path: Path) -> Path:
    root = tmp_path / "mnt"
    (root / "movies").mkdir(parents=True)
    (root / "movies" / "clip.mp4").write_bytes(b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64)
    Image.new("RGB", (800, 600), color=(10, 120, 200)).save(root / "photo.jpg", "JPEG")
    (root / "notes.txt").write_text("shopping list")
    return root


@pytest.fixture
def flat_tree(tmp_path: Path) -> Path:
    root = tmp_path / "flat"
    root.mkdir()
    for index in range(10):
        (root / f"file{index:02d}.txt").write_text(f"content {index}")
    return root


class TestFreshScan:
    def test_catalogues_every_entry(self, db: Database, media_tree: Path, tmp_path: Path):
        pipeline = MetadataPipeline(
            video=StaticExtractor({"media_codec": "h264", "media_resolution": "1920x1080"}),
            image=ImageReader(),
        )
        thumbnails = ThumbnailGenerator(tmp_path / "thumbs")

        outcome = _scanner(db, media_tree, pipeline=pipeline, thumbnails=thumbnails).scan()

        assert outcome.status is ScanStatus.COMPLETED
        assert outcome.stats.files_added == 4
        assert outcome.stats.items_scanned == 4
        assert outcome.stats.thumbnails_created == 1

        files = _files(db)
        assert set(files) == {"/movies", "/movies/clip.mp4", "/notes.txt", "/photo.jpg"}

        video = files["/movies/clip.mp4"]
        assert video["category"] == "Video"
        assert video["media_codec"] == "h264"
        assert video["media_resolution"] == "1920x1080"
        assert video["md5_hash"] is not None

        directory = files["/movies"]
        assert directory["is_directory"] == 1
        assert directory["size"] == 0
        assert directory["md5_hash"] is None

        photo = files["/photo.jpg"]
        assert photo["media_resolution"] == "800x600"
        assert photo["thumbnail_path"] == thumbnail_relpath(photo["id"])
        assert (tmp_path / "thumbs" / photo["thumbnail_path"]).is_file()

        session = get_session(db.conn, outcome.session_id)
        assert session.status is ScanStatus.COMPLETED
        assert session.completed_at is not None
        assert session.files_added == 4

    def test_every_row_stamped_with_session(self, db: Database, media_tree: Path):
        outcome = _scanner(db, media_tree).scan()
        assert {row["last_scan_id"] for row in _files(db).values()} == {outcome.session_id}

    def test_empty_mount(self, db: Database, tmp_path: Path):
        root = tmp_path / "empty"
        root.mkdir()

        outcome = _scanner(db, root).scan()
        assert outcome.status is ScanStatus.COMPLETED
        assert outcome.stats.items_scanned == 0

    def test_wide_image_fails_thumbnail(self, db: Database, tmp_path: Path):
        root = tmp_path / "mnt"
        root.mkdir()
        Image.new("RGB", (2000, 1)).save(root / "strip.png", "PNG")
        thumbnails = ThumbnailGenerator(tmp_path / "thumbs")

        outcome = _scanner(db, root, thumbnails=thumbnails).scan()

        assert outcome.stats.thumbnails_failed == 1
        assert outcome.stats.thumbnails_created == 0
        assert _files(db)["/strip.png"]["thumbnail_path"] is None

    def test_no_thumbnails_option(self, db: Database, media_tree: Path, tmp_path: Path):
        thumbnails = ThumbnailGenerator(tmp_path / "thumbs")
        options = ScanOptions(generate_thumbnails=False)

        outcome = _scanner(db, media_tree, thumbnails=thumbnails, options=options).scan()

        assert outcome.stats.thumbnails_created == 0
        assert not (tmp_path / "thumbs").exists()

    def test_thumbnail_queue_mode(self, db: Database, media_tree: Path, tmp_path: Path):
        thumbnails = ThumbnailGenerator(tmp_path / "thumbs")
        options = ScanOptions(thumbnail_queue=True)

        outcome = _scanner(db, media_tree, thumbnails=thumbnails, options=options).scan()

        assert outcome.stats.thumbnails_queued == 1
        assert outcome.stats.thumbnails_created == 0
        row = db.conn.execute("SELECT status FROM thumbnail_queue").fetchone()
        assert row["status"] == "pending"

    def test_delay_between_entries(self, db: Database, media_tree: Path):
        sleeps = []
        options = ScanOptions(delay_microseconds=2500)

        _scanner(db, media_tree, options=options, sleep=sleeps.append).scan()

        assert sleeps == [0.0025] * 4

    def test_rejects_resume_with_skip_existing(self, db: Database, media_tree: Path):
        options = ScanOptions(resume=True, skip_existing=True)
        with pytest.raises(ValueError):
            _scanner(db, media_tree, options=options).scan()


class TestRescan:
    def test_rescan_updates_without_rehashing(
        self, db: Database, media_tree: Path, monkeypatch
    ):
        _scanner(db, media_tree).scan()
        md5 = Mock()
        monkeypatch.setattr("drivecat.scanner.scanner.md5_file", md5)

        outcome = _scanner(db, media_tree).scan()

        assert outcome.stats.files_added == 0
        assert outcome.stats.files_updated == 4
        assert outcome.stats.files_deleted == 0
        md5.assert_not_called()

    def test_changed_file_is_rehashed(self, db: Database, media_tree: Path):
        _scanner(db, media_tree).scan()
        before = _files(db)["/notes.txt"]["md5_hash"]

        notes = media_tree / "notes.txt"
        notes.write_text("a much longer shopping list")
        os.utime(notes, (1_600_000_000, 1_600_000_000))
        _scanner(db, media_tree).scan()

        assert _files(db)["/notes.txt"]["md5_hash"] != before

    def test_no_md5_keeps_stored_hash(self, db: Database, media_tree: Path, monkeypatch):
        _scanner(db, media_tree).scan()
        before = _files(db)["/notes.txt"]["md5_hash"]
        (media_tree / "notes.txt").write_text("rewritten and longer")
        md5 = Mock()
        monkeypatch.setattr("drivecat.scanner.scanner.md5_file", md5)

        _scanner(db, media_tree, options=ScanOptions(calculate_md5=False)).scan()

        assert _files(db)["/notes.txt"]["md5_hash"] == before
        md5.assert_not_called()

    def test_removed_files_are_soft_deleted(self, db: Database, media_tree: Path):
        _scanner(db, media_tree).scan()
        (media_tree / "notes.txt").unlink()

        outcome = _scanner(db, media_tree).scan()

        assert outcome.stats.files_deleted == 1
        files = _files(db)
        assert files["/notes.txt"]["deleted_at"] is not None
        assert files["/photo.jpg"]["deleted_at"] is None

    def test_skip_existing(self, db: Database, media_tree: Path, monkeypatch):
        _scanner(db, media_tree).scan()
        monkeypatch.setattr("drivecat.scanner.scanner.read_stat", Mock(side_effect=AssertionError))

        outcome = _scanner(db, media_tree, options=ScanOptions(skip_existing=True)).scan()

        assert outcome.stats.files_added == 0
        assert outcome.stats.files_updated == 0
        assert outcome.stats.files_skipped == 4
        assert outcome.stats.files_deleted == 0
        assert {row["last_scan_id"] for row in _files(db).values()} == {outcome.session_id}

    def test_thumbnail_not_regenerated(self, db: Database, media_tree: Path, tmp_path: Path):
        thumbnails = ThumbnailGenerator(tmp_path / "thumbs")
        _scanner(db, media_tree, thumbnails=thumbnails).scan()

        outcome = _scanner(db, media_tree, thumbnails=thumbnails).scan()

        assert outcome.stats.thumbnails_created == 0
        assert _files(db)["/photo.jpg"]["thumbnail_path"] is not None


class TestInterruptAndResume:
    @pytest.mark.parametrize("commit_every", [1, 3])
    def test_resume_matches_uninterrupted_run(
        self, db: Database, tmp_path: Path, commit_every: int
    ):
        root = tmp_path / "mnt"
        root.mkdir()
        for name in "abcde":
            (root / f"{name}.txt").write_text(name)
        config = ScannerConfig(commit_every_items=commit_every)

        token = CancellationToken()

        def cancel_on_second(calls):
            if calls == 2:
                token.cancel()

        first = _scanner(
            db, root, config=config, cancel=token, pipeline=FakePipeline(cancel_on_second)
        ).scan()

        assert first.status is ScanStatus.INTERRUPTED
        session = get_session(db.conn, first.session_id)
        assert session.status is ScanStatus.INTERRUPTED
        if commit_every == 1:
            assert session.last_scanned_path == "/b.txt"
            assert session.items_scanned == 2
        else:
            assert session.last_scanned_path is None
            assert session.items_scanned == 0
        assert len(_files(db)) == session.items_scanned

        second = _scanner(db, root, config=config, options=ScanOptions(resume=True)).scan()

        assert second.session_id == first.session_id
        assert second.status is ScanStatus.COMPLETED
        assert second.stats.items_scanned == 5
        assert second.stats.files_added == 5
        assert second.stats.files_deleted == 0
        assert len(_files(db)) == 5

    def test_resume_without_interrupted_session_starts_fresh(self, db: Database, media_tree: Path):
        outcome = _scanner(db, media_tree, options=ScanOptions(resume=True)).scan()
        assert outcome.status is ScanStatus.COMPLETED
        assert outcome.stats.files_added == 4

    def test_resume_other_partition(self, db: Database, media_tree: Path):
        _interrupted_session(db, "/notes.txt", partition=2)
        with pytest.raises(ScanError, match="partition"):
            _scanner(db, media_tree, options=ScanOptions(resume=True)).scan()

    def test_checkpoint_not_reached(self, db: Database, media_tree: Path):
        session_id = _interrupted_session(db, "/vanished.txt")

        with pytest.raises(CheckpointNotReachedError):
            _scanner(db, media_tree, options=ScanOptions(resume=True)).scan()

        session = get_session(db.conn, session_id)
        assert session.status is ScanStatus.INTERRUPTED
        assert session.last_scanned_path == "/vanished.txt"
        assert _files(db) == {}


class TestSessionOwnership:
    def test_live_scan_blocks_second_scan(self, db: Database, media_tree: Path):
        create_session(db.conn, 1, 1, str(media_tree), os.getppid())
        with pytest.raises(ConcurrentScanError):
            _scanner(db, media_tree).scan()

    def test_dead_scan_is_demoted(self, db: Database, media_tree: Path, monkeypatch):
        stale = create_session(db.conn, 1, 1, str(media_tree), 999_999)
        monkeypatch.setattr("drivecat.scanner.scanner.pid_alive", lambda pid: False)

        outcome = _scanner(db, media_tree).scan()

        assert outcome.status is ScanStatus.COMPLETED
        assert get_session(db.conn, stale).status is ScanStatus.INTERRUPTED

    def test_dead_scan_can_be_resumed(self, db: Database, media_tree: Path, monkeypatch):
        stale = create_session(db.conn, 1, 1, str(media_tree), 999_999)
        monkeypatch.setattr("drivecat.scanner.scanner.pid_alive", lambda pid: False)

        outcome = _scanner(db, media_tree, options=ScanOptions(resume=True)).scan()

        assert outcome.session_id == stale
        assert outcome.status is ScanStatus.COMPLETED


class TestIoErrors:
    def test_recovers_and_counts_once(self, db: Database, flat_tree: Path, monkeypatch):
        calls = []

        def flaky_stat(path):
            calls.append(path)
            if len(calls) == 3:
                raise OSError(errno.EIO, "Input/output error")
            return read_stat(path)

        monkeypatch.setattr("drivecat.scanner.scanner.read_stat", flaky_stat)
        recovery = FakeRecovery()

        outcome = _scanner(db, flat_tree, recovery=recovery).scan()

        assert recovery.calls == 1
        assert outcome.status is ScanStatus.COMPLETED
        assert outcome.stats.items_scanned == 10
        assert outcome.stats.files_added == 10
        assert len(_files(db)) == 10

    def test_failed_recovery_aborts(self, db: Database, flat_tree: Path, monkeypatch):
        _scanner(db, flat_tree).scan()

        def broken_stat(path):
            raise OSError(errno.EIO, "Input/output error")

        monkeypatch.setattr("drivecat.scanner.scanner.read_stat", broken_stat)

        with pytest.raises(ScanAbortedError):
            _scanner(db, flat_tree, recovery=FakeRecovery(succeeds=False)).scan()

        latest = db.conn.execute(
            "SELECT status FROM scan_sessions ORDER BY id DESC LIMIT 1"
        ).fetchone()
        assert latest["status"] == "interrupted"
        assert all(row["deleted_at"] is None for row in _files(db).values())

    def test_no_recovery_configured_aborts(self, db: Database, flat_tree: Path, monkeypatch):
        monkeypatch.setattr(
            "drivecat.scanner.scanner.read_stat",
            Mock(side_effect=OSError(errno.EIO, "Input/output error")),
        )
        with pytest.raises(ScanAbortedError):
            _scanner(db, flat_tree).scan()

    def test_non_transient_error_skips_entry(self, db: Database, flat_tree: Path, monkeypatch):
        def stat(path):
            if path.name == "file04.txt":
                raise OSError(errno.ENAMETOOLONG, "File name too long")
            return read_stat(path)

        monkeypatch.setattr("drivecat.scanner.scanner.read_stat", stat)
        recovery = FakeRecovery()

        outcome = _scanner(db, flat_tree, recovery=recovery).scan()

        assert recovery.calls == 0
        assert outcome.status is ScanStatus.COMPLETED
        assert outcome.stats.items_scanned == 9
        assert "/file04.txt" not in _files(db)

    def test_permission_denied_on_file_is_recovered(
        self, db: Database, flat_tree: Path, monkeypatch
    ):
        real_md5 = md5_file
        failures = []

        def md5(path):
            if path.name == "file02.txt" and not failures:
                failures.append(path)
                raise PermissionError(errno.EACCES, "Permission denied")
            return real_md5(path)

        monkeypatch.setattr("drivecat.scanner.scanner.md5_file", md5)
        recovery = FakeRecovery()

        outcome = _scanner(db, flat_tree, recovery=recovery).scan()

        assert recovery.calls == 1
        assert outcome.stats.items_scanned == 10
        assert _files(db)["/file02.txt"]["md5_hash"] is not None


@pytest.fixture
def nested_tree(tmp_path: Path) -> Path:
    root = tmp_path / "nested"
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("a")
    (root / "sub" / "b.txt").write_text("b")
    (root / "sub" / "c.txt").write_text("c")
    (root / "z.txt").write_text("z")
    return root


def _failing_listing(monkeypatch, name: str, error: OSError, times: int | None = None) -> list:
    """Make listing directory ``name`` raise ``error``; ``times=None`` fails forever."""
    real_read = filesystem._read_entries
    failures = []

    def read_entries(directory, root, max_path_length):
        if directory.name == name and (times is None or len(failures) < times):
            failures.append(directory)
            raise error
        return real_read(directory, root, max_path_length)

    monkeypatch.setattr("drivecat.scanner.filesystem._read_entries", read_entries)
    return failures


class TestListingErrors:
    def test_transient_listing_error_recovers(self, db: Database, nested_tree: Path, monkeypatch):
        failures = _failing_listing(
            monkeypatch, "sub", OSError(errno.EIO, "Input/output error"), times=1
        )
        recovery = FakeRecovery()

        outcome = _scanner(db, nested_tree, recovery=recovery).scan()

        assert len(failures) == 1
        assert recovery.calls == 1
        assert outcome.status is ScanStatus.COMPLETED
        assert outcome.stats.items_scanned == 5
        assert outcome.stats.files_added == 5
        assert set(_files(db)) == {"/a.txt", "/sub", "/sub/b.txt", "/sub/c.txt", "/z.txt"}

    def test_unrecoverable_listing_error_aborts(
        self, db: Database, nested_tree: Path, monkeypatch
    ):
        _scanner(db, nested_tree).scan()
        _failing_listing(monkeypatch, "sub", OSError(errno.EIO, "Input/output error"))

        with pytest.raises(ScanAbortedError):
            _scanner(db, nested_tree, recovery=FakeRecovery(succeeds=False)).scan()

        statuses = [
            row["status"]
            for row in db.conn.execute("SELECT status FROM scan_sessions ORDER BY id")
        ]
        assert statuses == ["completed", "interrupted"]
        assert all(row["deleted_at"] is None for row in _files(db).values())

    def test_unreadable_directory_is_skipped(self, db: Database, nested_tree: Path, monkeypatch):
        _failing_listing(monkeypatch, "sub", PermissionError(errno.EACCES, "Permission denied"))
        recovery = FakeRecovery()

        outcome = _scanner(db, nested_tree, recovery=recovery).scan()

        assert recovery.calls == 0
        assert outcome.status is ScanStatus.COMPLETED
        assert set(_files(db)) == {"/a.txt", "/sub", "/z.txt"}

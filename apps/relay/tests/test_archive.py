import asyncio
from datetime import datetime, timedelta
import os
from pathlib import Path

import pytest

from backup_relay.services.archive import ArchiveError, LogArchive, archive_filename, run_retention_loop

RECEIVED_AT = datetime(2024, 5, 1, 2, 3, 4)


def _set_age(path: Path, now: datetime, *, days: float) -> None:
    timestamp = (now - timedelta(days=days)).timestamp()
    os.utime(path, (timestamp, timestamp))


def test_archive_filename_uses_second_granularity_timestamp() -> None:
    assert archive_filename(RECEIVED_AT) == "2024-05-01.02-03-04.log"


def test_store_creates_root_and_writes_raw_text(tmp_path: Path) -> None:
    archive = LogArchive(tmp_path / "logs", clock=lambda: RECEIVED_AT)

    filename = asyncio.run(archive.store("Details\n100  vm1  ok\n"))

    assert filename == "2024-05-01.02-03-04.log"
    assert (tmp_path / "logs" / filename).read_text(encoding="utf-8") == "Details\n100  vm1  ok\n"


def test_store_within_same_second_overwrites_previous_report(tmp_path: Path) -> None:
    archive = LogArchive(tmp_path, clock=lambda: RECEIVED_AT)

    first = archive.write("first report")
    second = archive.write("second report")

    assert first == second
    assert (tmp_path / second).read_text(encoding="utf-8") == "second report"
    assert len(list(tmp_path.iterdir())) == 1


def test_write_raises_archive_error_when_root_is_a_file(tmp_path: Path) -> None:
    blocker = tmp_path / "logs"
    blocker.write_text("not a directory", encoding="utf-8")
    archive = LogArchive(blocker, clock=lambda: RECEIVED_AT)

    with pytest.raises(ArchiveError, match="2024-05-01.02-03-04.log"):
        archive.write("report")


def test_resolve_rejects_paths_outside_root(tmp_path: Path) -> None:
    archive = LogArchive(tmp_path / "logs", clock=lambda: RECEIVED_AT)
    filename = archive.write("report")
    (tmp_path / "secret.txt").write_text("secret", encoding="utf-8")

    assert archive.resolve(filename) == tmp_path / "logs" / filename
    assert archive.resolve("../secret.txt") is None
    assert archive.resolve("missing.log") is None
    assert archive.resolve("") is None


def test_sweep_deletes_only_files_older_than_retention(tmp_path: Path) -> None:
    now = datetime(2024, 5, 10, 12, 0, 0)
    old = tmp_path / "2024-05-01.00-00-00.log"
    fresh = tmp_path / "2024-05-09.00-00-00.log"
    for path in (old, fresh):
        path.write_text("report", encoding="utf-8")
    _set_age(old, now, days=5)
    _set_age(fresh, now, days=1)
    (tmp_path / "nested").mkdir()

    summary = LogArchive(tmp_path).sweep(retention_days=3, now=now)

    assert summary.deleted == [old.name]
    assert summary.failed == []
    assert summary.scanned == 3
    assert not old.exists()
    assert fresh.exists()


def test_sweep_continues_after_per_file_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    now = datetime(2024, 5, 10, 12, 0, 0)
    stuck = tmp_path / "a-stuck.log"
    old = tmp_path / "b-old.log"
    for path in (stuck, old):
        path.write_text("report", encoding="utf-8")
        _set_age(path, now, days=10)

    original_unlink = Path.unlink

    def flaky_unlink(self: Path, missing_ok: bool = False) -> None:
        if self.name == stuck.name:
            raise PermissionError("read-only")
        original_unlink(self, missing_ok=missing_ok)

    monkeypatch.setattr(Path, "unlink", flaky_unlink)

    summary = LogArchive(tmp_path).sweep(retention_days=3, now=now)

    assert summary.failed == [stuck.name]
    assert summary.deleted == [old.name]
    assert stuck.exists()


def test_sweep_missing_root_is_noop(tmp_path: Path) -> None:
    summary = LogArchive(tmp_path / "absent").sweep(retention_days=3)

    assert summary.scanned == 0
    assert summary.deleted == []


def test_retention_loop_sweeps_until_stopped(tmp_path: Path) -> None:
    old = tmp_path / "old.log"
    old.write_text("report", encoding="utf-8")
    _set_age(old, datetime.now(), days=30)

    async def scenario() -> None:
        stop_event = asyncio.Event()
        task = asyncio.create_task(
            run_retention_loop(
                LogArchive(tmp_path),
                retention_days=3,
                interval_seconds=60,
                stop_event=stop_event,
            )
        )
        for _ in range(100):
            if not old.exists():
                break
            await asyncio.sleep(0.01)
        stop_event.set()
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(scenario())

    assert not old.exists()


def test_write_raises_archive_error_for_unencodable_text(tmp_path: Path) -> None:
    archive = LogArchive(tmp_path, clock=lambda: RECEIVED_AT)

    with pytest.raises(ArchiveError, match="2024-05-01.02-03-04.log"):
        archive.write("report \ud800 text")


def test_retention_loop_survives_unexpected_sweep_error() -> None:
    class FlakyArchive:
        def __init__(self) -> None:
            self.calls = 0

        def sweep(self, *, retention_days: int) -> None:
            del retention_days
            self.calls += 1
            if self.calls == 1:
                raise RuntimeError("sweep exploded")

    archive = FlakyArchive()

    async def scenario() -> None:
        stop_event = asyncio.Event()
        task = asyncio.create_task(
            run_retention_loop(
                archive,
                retention_days=3,
                interval_seconds=0.01,
                stop_event=stop_event,
            )
        )
        for _ in range(200):
            if archive.calls >= 2:
                break
            await asyncio.sleep(0.01)
        stop_event.set()
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(scenario())

    assert archive.calls >= 2

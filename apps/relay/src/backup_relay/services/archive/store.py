from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

import structlog

logger = structlog.get_logger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60
ARCHIVE_FILENAME_FORMAT = "%Y-%m-%d.%H-%M-%S.log"


class ArchiveError(RuntimeError):
    pass


@dataclass(frozen=True)
class SweepSummary:
    scanned: int
    deleted: list[str]
    failed: list[str]


def archive_filename(received_at: datetime) -> str:
    return received_at.strftime(ARCHIVE_FILENAME_FORMAT)


class LogArchive:
    """Flat directory of raw report texts, one file per second of receipt.

    Two reports stored within the same second share a filename and the
    later one replaces the earlier.
    """

    def __init__(self, root: Path, *, clock: Callable[[], datetime] = datetime.now) -> None:
        self.root = root
        self._clock = clock

    def write(self, text: str) -> str:
        filename = archive_filename(self._clock())
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / filename).write_text(text, encoding="utf-8")
        except (OSError, UnicodeError) as exc:
            raise ArchiveError(f"Failed to archive report as {filename}: {exc}") from exc

        logger.info("log file written", filename=filename)
        return filename

    async def store(self, text: str) -> str:
        return await asyncio.to_thread(self.write, text)

    def resolve(self, filename: str) -> Path | None:
        if not filename or Path(filename).name != filename or filename.startswith("."):
            return None
        path = self.root / filename
        if not path.is_file():
            return None
        return path

    def sweep(self, *, retention_days: int, now: datetime | None = None) -> SweepSummary:
        if not self.root.is_dir():
            logger.info("log directory missing, nothing to sweep", root=str(self.root))
            return SweepSummary(scanned=0, deleted=[], failed=[])

        reference = (now or self._clock()).timestamp()
        deleted: list[str] = []
        failed: list[str] = []
        paths = sorted(path for path in self.root.iterdir())

        for path in paths:
            try:
                if not path.is_file():
                    continue
                age_days = (reference - path.stat().st_mtime) / SECONDS_PER_DAY
                if age_days <= retention_days:
                    continue
                path.unlink()
            except OSError as exc:
                logger.warning("failed to sweep log file", filename=path.name, error=str(exc))
                failed.append(path.name)
                continue

            logger.info("deleted old log file", filename=path.name, age_days=round(age_days, 2))
            deleted.append(path.name)

        return SweepSummary(scanned=len(paths), deleted=deleted, failed=failed)


async def run_retention_loop(
    archive: LogArchive,
    *,
    retention_days: int,
    interval_seconds: float,
    stop_event: asyncio.Event,
) -> None:
    while not stop_event.is_set():
        try:
            await asyncio.to_thread(archive.sweep, retention_days=retention_days)
        except Exception as exc:
            logger.error("retention sweep failed", error=repr(exc))

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue

from backup_relay.services.archive.store import (
    ArchiveError,
    LogArchive,
    SweepSummary,
    archive_filename,
    run_retention_loop,
)

__all__ = ["ArchiveError", "LogArchive", "SweepSummary", "archive_filename", "run_retention_loop"]

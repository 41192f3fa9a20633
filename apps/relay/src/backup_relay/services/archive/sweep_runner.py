from __future__ import annotations

import argparse
from dataclasses import asdict
import json
from pathlib import Path
import sys

from backup_relay.config import get_settings
from backup_relay.services.archive.store import LogArchive


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="backup-relay-sweep",
        description="Delete archived report logs older than the retention period",
    )
    parser.add_argument(
        "--logs-dir",
        default=None,
        help="Archive directory (defaults to LOGS_DIR)",
    )
    parser.add_argument(
        "--retention-days",
        type=int,
        default=None,
        help="Retention period in days (defaults to LOG_RETENTION_DAYS)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    settings = get_settings()

    logs_dir = Path(args.logs_dir or settings.logs_dir)
    retention_days = (
        args.retention_days if args.retention_days is not None else settings.log_retention_days
    )
    if retention_days < 0:
        print("[backup-relay-sweep] failed: retention days must be >= 0", file=sys.stderr, flush=True)
        raise SystemExit(1)

    summary = LogArchive(logs_dir).sweep(retention_days=retention_days)
    print(json.dumps({"logs_dir": str(logs_dir), **asdict(summary)}), flush=True)
    if summary.failed:
        raise SystemExit(1)


if __name__ == "__main__":
    main()

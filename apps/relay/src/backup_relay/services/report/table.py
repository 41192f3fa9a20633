from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from backup_relay.services.report.types import JobRecord

CODE_FENCE = "```"
ELLIPSIS = "..."


@dataclass(frozen=True)
class TableProfile:
    """Which JobRecord attributes become table columns, in order."""

    name: str
    columns: tuple[str, ...]


FULL_PROFILE = TableProfile(name="full", columns=("vmid", "name", "status", "time", "size"))
COMPACT_PROFILE = TableProfile(name="compact", columns=("vmid", "name", "status"))

TABLE_PROFILES = {
    FULL_PROFILE.name: FULL_PROFILE,
    COMPACT_PROFILE.name: COMPACT_PROFILE,
}


def get_table_profile(name: str) -> TableProfile:
    try:
        return TABLE_PROFILES[name]
    except KeyError as exc:
        raise ValueError(
            f"Unknown table profile {name!r} (supported: {sorted(TABLE_PROFILES)})"
        ) from exc


def wrap_code_block(text: str) -> str:
    return f"{CODE_FENCE}\n{text}\n{CODE_FENCE}"


def is_code_block(text: str) -> bool:
    return (
        len(text) >= 2 * len(CODE_FENCE)
        and text.startswith(CODE_FENCE)
        and text.endswith(CODE_FENCE)
    )


def render_text_table(records: Sequence[JobRecord], profile: TableProfile = FULL_PROFILE) -> str:
    headers = list(profile.columns)
    rows = [[str(getattr(record, column) or "") for column in headers] for record in records]

    widths = [len(header) for header in headers]
    for row in rows:
        for index, cell in enumerate(row):
            widths[index] = max(widths[index], len(cell))

    header_row = " | ".join(header.ljust(width) for header, width in zip(headers, widths))
    separator = "-|-".join("-" * width for width in widths)
    data_rows = [
        " | ".join(cell.ljust(width) for cell, width in zip(row, widths))
        for row in rows
    ]

    return wrap_code_block("\n".join([header_row, separator, *data_rows]))


def _truncate_code_block(text: str, max_len: int) -> str:
    closing = f"\n{CODE_FENCE}"
    ellipsis_line = f"\n{ELLIPSIS}"
    budget = max_len - len(closing) - len(ellipsis_line)

    body = text[len(CODE_FENCE):-len(CODE_FENCE)].strip("\n")
    result = CODE_FENCE
    for line in body.split("\n"):
        candidate = f"{result}\n{line}"
        if len(candidate) > budget:
            break
        result = candidate

    return f"{result}{ellipsis_line}{closing}"


def _truncate_plain(text: str, max_len: int) -> str:
    cut = max_len - len(ELLIPSIS)
    if cut <= 0:
        return text[:max_len]

    head = text[:cut]
    boundary = max(head.rfind(" "), head.rfind("\n"), head.rfind("\t"))
    if boundary > 0:
        head = head[:boundary].rstrip()
    return f"{head}{ELLIPSIS}"


def truncate(text: str, max_len: int) -> str:
    """Shorten text to at most max_len characters.

    Code blocks keep their fences and are cut between whole lines; other
    text is cut at a word boundary. Both end with an ellipsis.
    """
    if len(text) <= max_len:
        return text
    if max_len <= 0:
        return ""

    smallest_block = len(CODE_FENCE) + len(f"\n{ELLIPSIS}") + len(f"\n{CODE_FENCE}")
    if is_code_block(text) and max_len >= smallest_block:
        return _truncate_code_block(text, max_len)
    return _truncate_plain(text, max_len)

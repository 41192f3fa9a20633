from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
import re

from backup_relay.services.report.types import JobRecord, ParsedReport, ReportSummary

DETAIL_FIELD_COUNT = 6


@dataclass(frozen=True)
class SplitPolicy:
    """Column delimiter used for rows of the Details section."""

    name: str
    pattern: re.Pattern[str]

    def split(self, line: str) -> list[str]:
        return self.pattern.split(line.strip())


DOUBLE_SPACE_POLICY = SplitPolicy(name="double", pattern=re.compile(r"\s{2,}"))
SINGLE_SPACE_POLICY = SplitPolicy(name="single", pattern=re.compile(r"\s+"))

SPLIT_POLICIES = {
    DOUBLE_SPACE_POLICY.name: DOUBLE_SPACE_POLICY,
    SINGLE_SPACE_POLICY.name: SINGLE_SPACE_POLICY,
}


def get_split_policy(name: str) -> SplitPolicy:
    try:
        return SPLIT_POLICIES[name]
    except KeyError as exc:
        raise ValueError(
            f"Unknown split policy {name!r} (supported: {sorted(SPLIT_POLICIES)})"
        ) from exc


class ReportSection(Enum):
    NONE = "none"
    DETAILS = "details"
    TOTAL = "total"
    LOGS = "logs"


@dataclass
class _ScanState:
    section: ReportSection = ReportSection.NONE
    records: list[JobRecord] = field(default_factory=list)
    current: JobRecord | None = None
    summary: ReportSummary = field(default_factory=ReportSummary)


def _is_skippable(stripped: str) -> bool:
    return not stripped or stripped.startswith("=")


def _value_after_colon(line: str) -> str | None:
    _, separator, value = line.partition(": ")
    if not separator:
        return None
    return value.strip()


def _scan_details(state: _ScanState, line: str, policy: SplitPolicy) -> _ScanState:
    stripped = line.strip()
    if "VMID" in line or _is_skippable(stripped):
        return state

    columns = policy.split(stripped)[:DETAIL_FIELD_COUNT]
    columns.extend([""] * (DETAIL_FIELD_COUNT - len(columns)))
    vmid, name, status, time, size, filename = columns
    if not vmid or not name:
        return state

    record = JobRecord(vmid=vmid, name=name, status=status, time=time, size=size, filename=filename)
    state.records.append(record)
    state.current = record
    return state


def _scan_total(state: _ScanState, line: str) -> _ScanState:
    if not line.strip():
        return state

    if "running time" in line:
        value = _value_after_colon(line)
        if value is not None:
            state.summary = replace(state.summary, running_time=value)
    elif "Total size" in line:
        value = _value_after_colon(line)
        if value is not None:
            state.summary = replace(state.summary, total_size=value)
    return state


def _scan_logs(state: _ScanState, line: str) -> _ScanState:
    stripped = line.strip()
    if _is_skippable(stripped) or "INFO:" not in stripped:
        return state

    candidate_vmid = stripped.split(":", 1)[0]
    for record in state.records:
        if record.vmid == candidate_vmid:
            record.logs.append(stripped)
            break
    return state


def _scan_line(state: _ScanState, line: str, policy: SplitPolicy) -> _ScanState:
    if line.startswith("Details"):
        state.section = ReportSection.DETAILS
        return state
    if line.startswith("Total"):
        # The Total header also carries data, so it falls through.
        state.section = ReportSection.TOTAL
    elif line.startswith("Logs"):
        state.section = ReportSection.LOGS
        return state

    if state.section is ReportSection.DETAILS:
        return _scan_details(state, line, policy)
    if state.section is ReportSection.TOTAL:
        return _scan_total(state, line)
    if state.section is ReportSection.LOGS:
        return _scan_logs(state, line)
    return state


def parse_report(text: str | None, *, policy: SplitPolicy = DOUBLE_SPACE_POLICY) -> ParsedReport:
    """Parse a vzdump-style backup report into job records and totals.

    Unrecognised or malformed input never raises; it yields an empty or
    partial report instead.
    """
    if not text or not text.strip():
        return ParsedReport()

    state = _ScanState()
    for line in text.strip().split("\n"):
        state = _scan_line(state, line, policy)

    return ParsedReport(records=tuple(state.records), summary=state.summary)

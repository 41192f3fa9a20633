from backup_relay.services.report.parser import SplitPolicy, get_split_policy, parse_report
from backup_relay.services.report.renderer import (
    RenderLimits,
    RenderOptions,
    render_fallback,
    render_report,
)
from backup_relay.services.report.table import TableProfile, get_table_profile, truncate
from backup_relay.services.report.types import (
    Embed,
    EmbedField,
    JobRecord,
    ParsedReport,
    RenderContext,
    ReportSummary,
    build_message_payload,
)

__all__ = [
    "Embed",
    "EmbedField",
    "JobRecord",
    "ParsedReport",
    "RenderContext",
    "RenderLimits",
    "RenderOptions",
    "ReportSummary",
    "SplitPolicy",
    "TableProfile",
    "build_message_payload",
    "get_split_policy",
    "get_table_profile",
    "parse_report",
    "render_fallback",
    "render_report",
    "truncate",
]

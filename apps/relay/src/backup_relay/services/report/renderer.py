from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from backup_relay.services.report.table import (
    FULL_PROFILE,
    TableProfile,
    render_text_table,
    truncate,
)
from backup_relay.services.report.types import (
    Embed,
    EmbedField,
    JobRecord,
    ParsedReport,
    RenderContext,
)

SUCCESS_COLOR = 2123412
FAILURE_COLOR = 15548997
DEFAULT_COLOR = SUCCESS_COLOR

SEVERITY_COLORS = {
    "info": SUCCESS_COLOR,
    "notice": 3447003,
    "warning": 16705372,
    "error": FAILURE_COLOR,
    "critical": FAILURE_COLOR,
}

MISSING_VALUE = "n/a"


@dataclass(frozen=True)
class RenderLimits:
    title: int = 256
    description: int = 4096
    field_name: int = 256
    field_value: int = 1024
    footer: int = 2048
    fields_per_embed: int = 25
    embeds_per_message: int = 10
    total_characters: int = 6000


@dataclass(frozen=True)
class RenderOptions:
    profile: TableProfile = FULL_PROFILE
    limits: RenderLimits = RenderLimits()


def severity_color(severity: str | None) -> int:
    if not severity:
        return DEFAULT_COLOR
    return SEVERITY_COLORS.get(severity.strip().lower(), DEFAULT_COLOR)


def report_color(parsed: ParsedReport) -> int:
    return SUCCESS_COLOR if parsed.all_ok else FAILURE_COLOR


def log_link(context: RenderContext, log_reference: str | None) -> str:
    if not log_reference:
        return "Full logs unavailable"
    return f"Full logs available [here]({context.link_prefix}{log_reference})"


def _field(name: str, value: str, limits: RenderLimits) -> EmbedField:
    return EmbedField(
        name=truncate(name, limits.field_name),
        value=truncate(value or MISSING_VALUE, limits.field_value),
    )


def _footer(context: RenderContext, limits: RenderLimits) -> str | None:
    if not context.node:
        return None
    return truncate(f"Node: {context.node}", limits.footer)


def _record_field(record: JobRecord, limits: RenderLimits) -> EmbedField:
    lines = [f"**Status:** {record.status or MISSING_VALUE}"]
    if record.time:
        lines.append(f"**Time:** {record.time}")
    if record.size:
        lines.append(f"**Size:** {record.size}")
    lines.extend(record.logs)
    return _field(f"{record.name} ({record.vmid})", "\n".join(lines), limits)


def _consolidated_field(records: Sequence[JobRecord], limits: RenderLimits) -> EmbedField:
    lines = [
        f"{record.name} ({record.vmid}): {record.status or MISSING_VALUE} - {record.size or MISSING_VALUE}"
        for record in records
    ]
    return _field(f"{len(records)} more jobs", "\n".join(lines), limits)


def _summary_embed(
    parsed: ParsedReport,
    log_reference: str | None,
    context: RenderContext,
    options: RenderOptions,
) -> Embed:
    limits = options.limits
    summary = parsed.summary
    totals = (
        f"**Total Time:** {summary.running_time or MISSING_VALUE}\n"
        f"**Total Size:** {summary.total_size or MISSING_VALUE}"
    )
    return Embed(
        title=truncate(f"Backup Summary ({len(parsed.records)} Jobs)", limits.title),
        color=report_color(parsed),
        fields=[
            _field("Details", render_text_table(parsed.records, options.profile), limits),
            _field("Totals", totals, limits),
            _field("Logs", log_link(context, log_reference), limits),
        ],
        footer=_footer(context, limits),
    )


class _EmbedBudget:
    """Tracks the per-message caps while embeds and fields are appended."""

    def __init__(self, embeds: list[Embed], limits: RenderLimits) -> None:
        self.embeds = embeds
        self.limits = limits
        self.used = sum(embed.char_count for embed in embeds)

    def _open_embed(self, template: Embed) -> Embed | None:
        last = self.embeds[-1]
        if last.title == template.title and len(last.fields) < self.limits.fields_per_embed:
            return last
        return None

    def try_add(self, embed_field: EmbedField, template: Embed) -> bool:
        target = self._open_embed(template)
        cost = embed_field.char_count
        if target is None:
            if len(self.embeds) >= self.limits.embeds_per_message:
                return False
            cost += template.char_count
        if self.used + cost > self.limits.total_characters:
            return False

        if target is None:
            target = Embed(title=template.title, color=template.color, footer=template.footer)
            self.embeds.append(target)
        target.fields.append(embed_field)
        self.used += cost
        return True


def _render_tabular(
    parsed: ParsedReport,
    log_reference: str | None,
    context: RenderContext,
    options: RenderOptions,
) -> list[Embed]:
    limits = options.limits
    embeds = [_summary_embed(parsed, log_reference, context, options)]
    budget = _EmbedBudget(embeds, limits)
    template = Embed(
        title=truncate("Job Details", limits.title),
        color=report_color(parsed),
        footer=_footer(context, limits),
    )

    records = parsed.records
    for index, record in enumerate(records):
        if budget.try_add(_record_field(record, limits), template):
            continue
        # Whatever no longer fits is collapsed into one summary field.
        budget.try_add(_consolidated_field(records[index:], limits), template)
        break

    return embeds


def _render_generic(
    message: str,
    log_reference: str | None,
    context: RenderContext,
    options: RenderOptions,
) -> list[Embed]:
    limits = options.limits
    return [
        Embed(
            title=truncate(context.title or "Notification", limits.title),
            color=severity_color(context.severity),
            fields=[
                _field("Message", message, limits),
                _field("Severity", context.severity, limits),
                _field("Logs", log_link(context, log_reference), limits),
            ],
            footer=_footer(context, limits),
        )
    ]


def render_report(
    parsed: ParsedReport,
    log_reference: str | None,
    context: RenderContext,
    *,
    message: str = "",
    options: RenderOptions | None = None,
) -> list[Embed]:
    """Build the embeds for one delivery attempt.

    Reports with job records get the table layout; anything else is
    forwarded as a generic message carrying the raw text.
    """
    options = options or RenderOptions()
    if parsed.records:
        return _render_tabular(parsed, log_reference, context, options)
    return _render_generic(message, log_reference, context, options)


def render_fallback(
    parsed: ParsedReport,
    log_reference: str | None,
    context: RenderContext,
    *,
    limits: RenderLimits | None = None,
) -> Embed:
    limits = limits or RenderLimits()
    color = report_color(parsed) if parsed.records else severity_color(context.severity)
    description = f"Backup completed for {len(parsed.records)} VMs."
    if log_reference:
        description += f" View full logs [here]({context.link_prefix}{log_reference})"
    return Embed(
        title="Backup Complete",
        description=truncate(description, limits.description),
        color=color,
    )

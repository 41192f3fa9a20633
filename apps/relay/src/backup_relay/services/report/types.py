from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class JobRecord:
    vmid: str
    name: str
    status: str = ""
    time: str = ""
    size: str = ""
    filename: str = ""
    logs: list[str] = field(default_factory=list)

    @property
    def is_ok(self) -> bool:
        return self.status.strip().lower() == "ok"


@dataclass(frozen=True)
class ReportSummary:
    running_time: str | None = None
    total_size: str | None = None


@dataclass(frozen=True)
class ParsedReport:
    records: tuple[JobRecord, ...] = ()
    summary: ReportSummary = field(default_factory=ReportSummary)

    @property
    def all_ok(self) -> bool:
        return all(record.is_ok for record in self.records)


@dataclass(frozen=True)
class RenderContext:
    title: str = ""
    severity: str = ""
    node: str = "pve"
    link_prefix: str = ""


@dataclass(frozen=True)
class EmbedField:
    name: str
    value: str
    inline: bool = False

    @property
    def char_count(self) -> int:
        return len(self.name) + len(self.value)

    def to_payload(self) -> dict[str, Any]:
        return {"name": self.name, "value": self.value, "inline": self.inline}


@dataclass
class Embed:
    """One notification document; serialises to a Discord embed object."""

    title: str
    color: int
    description: str | None = None
    fields: list[EmbedField] = field(default_factory=list)
    footer: str | None = None

    @property
    def char_count(self) -> int:
        total = len(self.title) + len(self.description or "") + len(self.footer or "")
        return total + sum(embed_field.char_count for embed_field in self.fields)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"title": self.title, "color": self.color}
        if self.description is not None:
            payload["description"] = self.description
        if self.fields:
            payload["fields"] = [embed_field.to_payload() for embed_field in self.fields]
        if self.footer is not None:
            payload["footer"] = {"text": self.footer}
        return payload


def build_message_payload(embeds: list[Embed]) -> dict[str, Any]:
    return {"content": "", "embeds": [embed.to_payload() for embed in embeds]}

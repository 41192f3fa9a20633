from dataclasses import dataclass
from functools import lru_cache
import os


def _to_int(value: str | None, *, default: int, minimum: int) -> int:
    if value is None or not value.strip():
        return default
    parsed = int(value)
    return max(minimum, parsed)


def _to_optional_str(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


@dataclass(frozen=True)
class Settings:
    discord_webhook_url: str | None
    port: int
    log_retention_days: int
    logs_dir: str
    log_sweep_interval_seconds: int
    table_profile: str
    split_policy: str


@lru_cache
def get_settings() -> Settings:
    return Settings(
        discord_webhook_url=_to_optional_str(os.getenv("DISCORD_WEBHOOK_URL")),
        port=_to_int(os.getenv("PORT"), default=80, minimum=1),
        log_retention_days=_to_int(os.getenv("LOG_RETENTION_DAYS"), default=3, minimum=0),
        logs_dir=os.getenv("LOGS_DIR", "logs"),
        log_sweep_interval_seconds=_to_int(
            os.getenv("LOG_SWEEP_INTERVAL_SECONDS"), default=24 * 60 * 60, minimum=1
        ),
        table_profile=os.getenv("RELAY_TABLE_PROFILE", "full").strip().lower(),
        split_policy=os.getenv("RELAY_SPLIT_POLICY", "double").strip().lower(),
    )

from backup_relay.config import get_settings


def test_settings_defaults(monkeypatch) -> None:
    for name in (
        "DISCORD_WEBHOOK_URL",
        "PORT",
        "LOG_RETENTION_DAYS",
        "LOGS_DIR",
        "LOG_SWEEP_INTERVAL_SECONDS",
        "RELAY_TABLE_PROFILE",
        "RELAY_SPLIT_POLICY",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()

    assert settings.discord_webhook_url is None
    assert settings.port == 80
    assert settings.log_retention_days == 3
    assert settings.logs_dir == "logs"
    assert settings.log_sweep_interval_seconds == 86400
    assert settings.table_profile == "full"
    assert settings.split_policy == "double"


def test_settings_read_explicit_env(monkeypatch) -> None:
    monkeypatch.setenv("DISCORD_WEBHOOK_URL", "  https://discord.test/hook  ")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("LOG_RETENTION_DAYS", "7")
    monkeypatch.setenv("RELAY_TABLE_PROFILE", "Compact")

    settings = get_settings()

    assert settings.discord_webhook_url == "https://discord.test/hook"
    assert settings.port == 8080
    assert settings.log_retention_days == 7
    assert settings.table_profile == "compact"


def test_settings_clamp_negative_retention_and_blank_webhook(monkeypatch) -> None:
    monkeypatch.setenv("LOG_RETENTION_DAYS", "-4")
    monkeypatch.setenv("DISCORD_WEBHOOK_URL", "   ")

    settings = get_settings()

    assert settings.log_retention_days == 0
    assert settings.discord_webhook_url is None

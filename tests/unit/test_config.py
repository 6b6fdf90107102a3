"""Tests for configuration validation."""

import pytest

from src.core.config import Settings, constants


@pytest.mark.unit
def test_require_credential_with_valid_value() -> None:
    """Test require_credential returns value when credential is set."""
    settings = Settings(push_gateway_api_key="relay-key")

    result = settings.require_credential("push_gateway_api_key", "Push relay")

    assert result == "relay-key"


@pytest.mark.unit
def test_require_credential_with_none_raises_error() -> None:
    """Test require_credential raises ValueError when credential is None."""
    settings = Settings(push_gateway_api_key=None)

    with pytest.raises(ValueError, match="Push relay credential not configured"):
        settings.require_credential("push_gateway_api_key", "Push relay")


@pytest.mark.unit
def test_require_credential_with_empty_string_raises_error() -> None:
    """Test require_credential raises ValueError when credential is empty."""
    settings = Settings(push_gateway_api_key="")

    with pytest.raises(ValueError, match="Push relay credential not configured"):
        settings.require_credential("push_gateway_api_key", "Push relay")


@pytest.mark.unit
def test_require_credential_error_message_includes_field_name() -> None:
    """Test error message includes the environment variable name."""
    settings = Settings(logfire_token=None)

    with pytest.raises(ValueError, match="LOGFIRE_TOKEN"):
        settings.require_credential("logfire_token", "Logfire")


@pytest.mark.unit
def test_settings_read_environment(monkeypatch) -> None:
    """Test settings are loaded from environment variables."""
    monkeypatch.setenv("APP_TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("SCHEDULER_TICK_SECONDS", "30")
    monkeypatch.setenv("PUSH_GATEWAY_URL", "https://relay.example.com/send")

    settings = Settings()

    assert settings.app_timezone == "Europe/Berlin"
    assert settings.scheduler_tick_seconds == 30
    assert settings.push_gateway_url == "https://relay.example.com/send"


@pytest.mark.unit
def test_defaults() -> None:
    """Test defaults that the progress and scheduling rules depend on."""
    settings = Settings(_env_file=None)

    assert settings.default_notification_time == "07:00"
    assert constants.DEFAULT_HAPPINESS == 50
    assert constants.HAPPINESS_PER_COMPLETION == 5
    assert constants.MAX_HAPPINESS == 100
    assert constants.TRACKER_DLQ_THRESHOLD == 3

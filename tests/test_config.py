import tempfile
from pathlib import Path

import pytest
from pydantic import ValidationError

from checkout.config import Settings, get_settings
from checkout.database import engine


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("PAYPAL_MODE", "live")
    monkeypatch.setenv("PAYMENT_CURRENCY", "eur")
    monkeypatch.setenv("PROVIDER_TIMEOUT", "2.5")

    settings = Settings(_env_file=None)

    assert settings.paypal_mode == "live"
    assert settings.paypal_base_url == "https://api-m.paypal.com"
    assert settings.payment_currency == "eur"
    assert settings.provider_timeout == 2.5


def test_sandbox_is_default_paypal_mode(monkeypatch):
    monkeypatch.delenv("PAYPAL_MODE", raising=False)

    settings = Settings(_env_file=None)

    assert settings.paypal_base_url == "https://api-m.sandbox.paypal.com"


def test_invalid_paypal_mode_rejected(monkeypatch):
    monkeypatch.setenv("PAYPAL_MODE", "production")

    with pytest.raises(ValidationError) as exc_info:
        Settings(_env_file=None)

    assert "paypal_mode" in str(exc_info.value)


def test_non_numeric_provider_timeout_rejected(monkeypatch):
    monkeypatch.setenv("PROVIDER_TIMEOUT", "ten")

    with pytest.raises(ValidationError) as exc_info:
        Settings(_env_file=None)

    assert "provider_timeout" in str(exc_info.value)


def test_cors_origins_parsed_as_json_list(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", '["http://a.example", "http://b.example"]')

    settings = Settings(_env_file=None)

    assert settings.cors_origins == ["http://a.example", "http://b.example"]


def test_database_url_is_required(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_app_engine_and_logs_use_test_locations():
    settings = get_settings()

    assert str(engine.url) == settings.database_url
    assert Path(settings.log_dir).is_relative_to(tempfile.gettempdir())

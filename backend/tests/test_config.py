"""
Tests de la configuración (pydantic-settings).
"""

from decimal import Decimal

from trois_quarts.core.config import Settings


def test_settings_read_environment_case_insensitive(monkeypatch):
    monkeypatch.setenv("delivery_fee", "4.50")
    monkeypatch.setenv("MAX_SUBMIT_RETRIES", "5")

    app_settings = Settings()

    assert app_settings.DELIVERY_FEE == Decimal("4.50")
    assert app_settings.MAX_SUBMIT_RETRIES == 5
    assert Settings.model_config["env_file"] == ".env"


def test_database_url_uses_asyncpg():
    assert Settings().DATABASE_URL.startswith("postgresql+asyncpg://")

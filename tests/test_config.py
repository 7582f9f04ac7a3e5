"""Tests for settings loading."""

from __future__ import annotations

import warnings

import pytest

from agentur_crm.config import Settings, get_settings, validate_production_settings


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    (tmp_path / "default.yaml").write_text(
        "finance:\n"
        "  default_tax_rate: 7.0\n"
        "api:\n"
        "  cors_origins:\n"
        "    - \"http://crm.local\"\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("CRM_CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("CRM_ENV", "testing")
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


class TestGetSettings:
    """Tests for get_settings."""

    def test_nested_sections_loaded_from_yaml(self, config_dir):
        settings = get_settings()

        assert settings.environment == "testing"
        assert settings.finance.default_tax_rate == 7.0
        assert settings.api.cors_origins == ["http://crm.local"]

    def test_loading_emits_no_deprecation_warnings(self, config_dir):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", DeprecationWarning)
            get_settings()

        messages = [str(w.message) for w in caught if issubclass(w.category, DeprecationWarning)]
        assert not [m for m in messages if "to_dict" in m]


class TestProductionValidation:
    """Tests for validate_production_settings."""

    def test_development_is_not_checked(self):
        assert validate_production_settings(Settings(environment="development", debug=True)) == []

    def test_debug_flagged_in_production(self):
        errors = validate_production_settings(Settings(environment="production", debug=True))

        assert "CRM_DEBUG must be false in production" in errors

"""Tests for settings validation."""

import pytest

from vanguard_engine.common.config import _INSECURE_DEFAULTS, VanguardSettings


class TestProductionValidation:
    def test_insecure_defaults_rejected_outside_development(self):
        settings = VanguardSettings(environment="production", **_INSECURE_DEFAULTS)
        with pytest.raises(RuntimeError, match="VANGUARD_SECRET_KEY"):
            settings.validate_for_production()

    def test_insecure_defaults_warn_in_development(self):
        settings = VanguardSettings(environment="development", **_INSECURE_DEFAULTS)
        with pytest.warns(UserWarning):
            settings.validate_for_production()

    def test_shared_secret_rejected(self):
        settings = VanguardSettings(
            environment="production", secret_key="same-value", qr_secret="same-value"
        )
        with pytest.raises(RuntimeError, match="must be different"):
            settings.validate_for_production()

    def test_secure_settings_pass(self):
        VanguardSettings(
            environment="production", secret_key="a" * 48, qr_secret="b" * 48
        ).validate_for_production()

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("VANGUARD_PUBLIC_SCAN_LIMIT", "3")
        assert VanguardSettings().public_scan_limit == 3

    def test_defaults(self):
        settings = VanguardSettings()
        assert settings.liveness_cache_ttl == 300
        assert settings.roles_cache_ttl == 600
        assert settings.active_visits_ttl == 30
        assert settings.public_scan_limit == 10
        assert settings.public_scan_window == 60

"""Tests for the offline CLI commands."""

import pytest
from typer.testing import CliRunner

from vanguard_engine.cli import app
from vanguard_engine.visits.tokens import generate_token, scan_url

QR_SECRET = "cli-qr-secret"

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(monkeypatch):
    monkeypatch.setenv("VANGUARD_SECRET_KEY", "cli-session-secret")
    monkeypatch.setenv("VANGUARD_QR_SECRET", QR_SECRET)
    from vanguard_engine.common.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestVerifyToken:
    def test_valid(self):
        token = generate_token("visit-123", QR_SECRET)
        result = runner.invoke(app, ["verify-token", token])
        assert result.exit_code == 0
        assert "VALID" in result.stdout
        assert "visit-123" in result.stdout

    def test_scan_url_accepted(self):
        token = generate_token("visit-123", QR_SECRET)
        result = runner.invoke(app, ["verify-token", scan_url("https://x.example.com", token)])
        assert result.exit_code == 0

    def test_invalid(self):
        token = generate_token("visit-123", "some-other-secret")
        result = runner.invoke(app, ["verify-token", token])
        assert result.exit_code == 1
        assert "INVALID" in result.stdout

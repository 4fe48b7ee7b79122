"""Vanguard-Engine configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "secret_key": "insecure-dev-key-change-me",
    "qr_secret": "insecure-qr-secret-change-me",
}


class VanguardSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="VANGUARD_")

    environment: str = "development"
    log_level: str = "INFO"

    # Session tokens and capability tokens are signed with separate secrets
    secret_key: str = "insecure-dev-key-change-me"
    qr_secret: str = "insecure-qr-secret-change-me"

    # Storage
    db_url: str = "sqlite+aiosqlite:///./data/vanguard.db"
    redis_url: str = "redis://localhost:6379/0"

    # API
    api_title: str = "Vanguard-Engine"
    api_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    app_url: str = "http://localhost:5173"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:4173"]

    # Sessions
    session_ttl: int = 86400  # 24 hours
    session_remember_ttl: int = 2592000  # 30 days
    bcrypt_rounds: int = 12

    # Cache TTLs (seconds)
    liveness_cache_ttl: int = 300
    roles_cache_ttl: int = 600
    active_visits_ttl: int = 30

    # Capability tokens
    qr_token_tag: str = "vv"
    qr_mac_length: int = 12
    public_scan_limit: int = 10
    public_scan_window: int = 60

    # Background role reconciliation
    role_sync_batch_size: int = 5

    # Pagination
    default_page_size: int = 25
    max_page_size: int = 100

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"VANGUARD_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default secrets, set VANGUARD_SECRET_KEY and "
                "VANGUARD_QR_SECRET for production",
                UserWarning,
                stacklevel=2,
            )

        if self.secret_key == self.qr_secret:
            raise RuntimeError(
                "VANGUARD_SECRET_KEY and VANGUARD_QR_SECRET must be different values"
            )


@lru_cache
def get_settings() -> VanguardSettings:
    settings = VanguardSettings()
    settings.validate_for_production()
    return settings

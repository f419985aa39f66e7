"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Relay settings with defaults for development."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: str = "development"
    debug: bool = True

    # Server
    chat_gateway_port: int = 8080
    # Comma-separated list of allowed origins (empty uses default localhost list)
    allowed_origins: str = ""

    # Identity
    name_max_length: int = 20
    default_name: str = "anon"
    # Comma-separated, compared case-insensitively; a reserved request falls back to default_name
    reserved_names: str = "admin,server,system"
    device_max_length: int = 128

    # Reconnection grace period
    grace_period_seconds: float = 10.0

    # Chat rate limiting (keyed by display name)
    chat_rate_max_messages: int = 5  # Max messages per window
    chat_rate_window_seconds: float = 10.0
    chat_rate_mute_seconds: float = 15.0  # Mute applied when the window is exceeded

    # History and message limits
    history_capacity: int = 100
    chat_max_message_length: int = 500

    # WebSocket
    ws_max_message_size: int = 16 * 1024  # 16 KB per inbound frame
    ws_receive_timeout: float = 90.0  # Close connection after this long without frames
    ws_heartbeat_timeout: float = 60.0  # Consider session stale after this many seconds
    heartbeat_cleanup_interval: float = 30.0
    ws_outbound_queue_size: int = 256  # Pending frames per connection before sends fail
    ws_max_total_connections: int = 1000

    # Admin surface
    admin_password: str = ""  # Empty disables /api/admin
    jwt_secret: str = "dev-secret-change-me-in-production"
    jwt_issuer: str = "chat-relay"
    jwt_audience: str = "chat-relay-admin"
    admin_token_expire_minutes: int = 60
    admin_login_rate_limit: str = "5/minute"

    @property
    def reserved_name_set(self) -> frozenset[str]:
        """Reserved display names, lowercased."""
        return frozenset(
            name.strip().lower() for name in self.reserved_names.split(",") if name.strip()
        )

    def validate_production_secrets(self) -> list[str]:
        """
        Validate that secrets are properly configured for production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        weak_secrets = {
            "dev-secret-change-me-in-production",
            "secret",
            "password",
            "changeme",
            "default",
        }

        if self.environment == "production":
            if self.jwt_secret in weak_secrets or len(self.jwt_secret) < 32:
                errors.append(
                    "JWT_SECRET must be at least 32 characters and not a default value in production"
                )

            if self.debug:
                errors.append("DEBUG must be False in production")

            if not self.admin_password:
                errors.append("ADMIN_PASSWORD must be set in production")
            elif self.admin_password in weak_secrets:
                errors.append("ADMIN_PASSWORD must not be a default value in production")

            if not self.allowed_origins:
                errors.append("ALLOWED_ORIGINS must be configured in production")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()

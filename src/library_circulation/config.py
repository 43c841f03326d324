"""Configuration management for the library circulation service.

Settings come from the environment (``LIBRARY_CIRCULATION_*``) or a ``.env``
file and are validated by Pydantic v2:
1. Service metadata used when the MCP surface announces itself
2. Persistence location
3. Circulation policy values (claim window, lock timeout)
4. Outbound email settings for hold notifications
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CirculationConfig(BaseSettings):
    """Circulation service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LIBRARY_CIRCULATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Service Metadata ===

    service_name: str = Field(
        default="library-circulation",
        description="Name announced to MCP clients",
        pattern=r"^[a-z0-9-]+$",
    )

    service_version: str = Field(
        default="0.1.0",
        description="Service version",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    transport: str = Field(
        default="stdio",
        description="MCP transport mechanism",
        pattern=r"^(stdio|streamable_http)$",
    )

    # === Database Configuration ===

    database_path: Path = Field(
        default=Path("data/library.db"),
        description="SQLite database file path",
    )

    # === Circulation Policy ===

    claim_window_hours: int = Field(
        default=24,
        description="Hours a first holder has to collect an item after being notified",
        ge=1,
        le=24 * 14,
    )

    lock_timeout_seconds: float = Field(
        default=5.0,
        description="Maximum wait for the per-asset lock before reporting a conflict",
        gt=0,
        le=60,
    )

    # === Notifications ===

    notifications_enabled: bool = Field(
        default=True,
        description="Send hold notification emails",
    )

    notification_queue_size: int = Field(
        default=1000,
        description="Maximum number of undelivered notifications held in memory",
        ge=1,
    )

    smtp_host: str | None = Field(default=None, description="SMTP server host")
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_user: str | None = Field(default=None)
    smtp_password: str | None = Field(
        default=None,
        repr=False,
    )
    smtp_from_email: str = Field(default="library@example.org")
    smtp_use_tls: bool = Field(default=True)

    # === Development Configuration ===

    debug: bool = Field(default=False)

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Resolve the database path and make sure its directory exists."""
        abs_path = v.absolute()
        abs_path.parent.mkdir(parents=True, exist_ok=True)

        if not abs_path.parent.is_dir():
            raise ValueError(f"Database directory {abs_path.parent} is not accessible")

        return abs_path

    @field_validator("service_name")
    @classmethod
    def validate_service_name(cls, v: str) -> str:
        if len(v) < 3:
            raise ValueError("Service name must be at least 3 characters")
        if len(v) > 50:
            raise ValueError("Service name must not exceed 50 characters")
        return v

    @property
    def is_development(self) -> bool:
        return self.debug or self.log_level == "DEBUG"

    @property
    def smtp_configured(self) -> bool:
        """Whether enough SMTP settings are present to attempt delivery."""
        return bool(self.smtp_host)

    def get_database_url(self) -> str:
        """Get SQLAlchemy database URL."""
        return f"sqlite:///{self.database_path}"


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: CirculationConfig | None = None


def get_config() -> CirculationConfig:
    """Get or create the global configuration instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = CirculationConfig()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]

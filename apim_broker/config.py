"""
Centralized configuration for the APIM service broker.

Every section is a Pydantic model whose defaults are read from
``APIM_BROKER_*`` environment variables, so ``AppConfig.from_env()`` builds
the full tree in one call. Values are validated on construction.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import EnvironmentVariable, LogLevel


def _env(name: EnvironmentVariable, default: str) -> str:
    return os.getenv(name.value, default)


def _env_bool(name: EnvironmentVariable, default: str) -> bool:
    return os.getenv(name.value, default).lower() == "true"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.LOG_LEVEL, LogLevel.INFO.value),
        description="Logging level",
    )
    file_path: Optional[str] = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_FILE.value),
        description="Optional log file, in addition to stdout",
    )

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class HTTPClientConfig(BaseModel):
    """Resilient invoker settings."""

    timeout: int = Field(
        default_factory=lambda: int(_env(EnvironmentVariable.CLIENT_TIMEOUT, "30")),
        description="Per-request timeout in seconds",
    )
    min_backoff: int = Field(
        default_factory=lambda: int(_env(EnvironmentVariable.CLIENT_MIN_BACKOFF, "1")),
        description="Minimum backoff between attempts in seconds",
    )
    max_backoff: int = Field(
        default_factory=lambda: int(_env(EnvironmentVariable.CLIENT_MAX_BACKOFF, "60")),
        description="Maximum backoff between attempts in seconds",
    )
    max_retries: int = Field(
        default_factory=lambda: int(_env(EnvironmentVariable.CLIENT_MAX_RETRIES, "3")),
        description="Maximum number of attempts per request",
    )
    insecure: bool = Field(
        default_factory=lambda: _env_bool(EnvironmentVariable.CLIENT_INSECURE, "true"),
        description="Skip TLS certificate verification",
    )

    @field_validator("max_retries")
    def validate_max_retries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_retries must be at least 1")
        return v

    @model_validator(mode="after")
    def validate_backoff_range(self) -> "HTTPClientConfig":
        if self.min_backoff > self.max_backoff:
            raise ValueError(
                f"min_backoff ({self.min_backoff}) cannot exceed max_backoff ({self.max_backoff})"
            )
        return self


class APIMConfig(BaseModel):
    """Remote API-management platform endpoints and admin credentials."""

    username: str = Field(default_factory=lambda: _env(EnvironmentVariable.APIM_USERNAME, "admin"))
    password: str = Field(default_factory=lambda: _env(EnvironmentVariable.APIM_PASSWORD, "admin"))
    token_endpoint: str = Field(
        default_factory=lambda: _env(
            EnvironmentVariable.APIM_TOKEN_ENDPOINT, "https://localhost:8243"
        )
    )
    dynamic_client_endpoint: str = Field(
        default_factory=lambda: _env(
            EnvironmentVariable.APIM_DYNAMIC_CLIENT_ENDPOINT, "https://localhost:9443"
        )
    )
    dynamic_client_registration_context: str = Field(
        default_factory=lambda: _env(
            EnvironmentVariable.APIM_DYNAMIC_CLIENT_CONTEXT, "/client-registration/v0.14/register"
        )
    )
    publisher_endpoint: str = Field(
        default_factory=lambda: _env(
            EnvironmentVariable.APIM_PUBLISHER_ENDPOINT, "https://localhost:9443"
        )
    )
    publisher_api_context: str = Field(
        default_factory=lambda: _env(
            EnvironmentVariable.APIM_PUBLISHER_API_CONTEXT, "/api/am/publisher/v0.14/apis"
        )
    )
    store_endpoint: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.APIM_STORE_ENDPOINT, "https://localhost:9443")
    )
    store_application_context: str = Field(
        default_factory=lambda: _env(
            EnvironmentVariable.APIM_STORE_APPLICATION_CONTEXT, "/api/am/store/v0.14/applications"
        )
    )
    store_subscription_context: str = Field(
        default_factory=lambda: _env(
            EnvironmentVariable.APIM_STORE_SUBSCRIPTION_CONTEXT, "/api/am/store/v0.14/subscriptions"
        )
    )
    store_multiple_subscription_context: str = Field(
        default_factory=lambda: _env(
            EnvironmentVariable.APIM_STORE_MULTIPLE_SUBSCRIPTION_CONTEXT,
            "/api/am/store/v0.14/subscriptions/multiple",
        )
    )
    generate_application_key_context: str = Field(
        default_factory=lambda: _env(
            EnvironmentVariable.APIM_GENERATE_KEY_CONTEXT,
            "/api/am/store/v0.14/applications/generate-keys",
        )
    )

    def __repr__(self) -> str:
        return (
            f"APIMConfig(username='{self.username}', password='***', "
            f"store_endpoint='{self.store_endpoint}', "
            f"publisher_endpoint='{self.publisher_endpoint}')"
        )


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    connection_string: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.DATABASE_URL, "sqlite:///./apim_broker.db"),
        description="SQLAlchemy database URL",
    )
    pool_size: int = Field(default=5, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Maximum overflow connections")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    echo: bool = Field(
        default_factory=lambda: _env_bool(EnvironmentVariable.DB_ECHO, "false"),
        description="Echo SQL statements",
    )


class ServerConfig(BaseModel):
    """Broker HTTP surface."""

    host: str = Field(default_factory=lambda: _env(EnvironmentVariable.SERVER_HOST, "0.0.0.0"))
    port: int = Field(default_factory=lambda: int(_env(EnvironmentVariable.SERVER_PORT, "8444")))
    username: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.SERVER_USERNAME, "admin")
    )
    password: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.SERVER_PASSWORD, "admin")
    )


class AppConfig(BaseModel):
    """Main application configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    http_client: HTTPClientConfig = Field(default_factory=HTTPClientConfig)
    apim: APIMConfig = Field(default_factory=APIMConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()


# Process-wide configuration, read by the logging layer
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None

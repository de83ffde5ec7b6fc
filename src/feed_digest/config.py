"""
Configuration management for Feed Digest.

Uses Pydantic for validation and pydantic-settings for environment variable support.
"""

from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    """SQLite database backing the key/value store.

    Only `path` is required. Use ":memory:" for a throwaway in-process database.
    Environment variable: DB_PATH
    """

    model_config = SettingsConfigDict(env_prefix="DB_")

    path: str = Field(default="data/feed_digest.db", description="Database file path (SQLite)")
    echo: bool = Field(default=False, description="Echo SQL statements")

    @field_validator("path")
    @classmethod
    def ensure_directory_exists(cls, v: str) -> str:
        """Ensure the database directory exists."""
        if v != ":memory:" and not v.startswith("sqlite://"):
            Path(v).parent.mkdir(parents=True, exist_ok=True)
        return v


class StoreConfig(BaseSettings):
    """Key/value store layout and expiry policy."""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    backend: str = Field(default="sqlite", description="Store backend: sqlite or memory")

    sources_key: str = Field(default="feeds:list", description="Key holding the source list")
    seen_prefix: str = Field(default="sent:", description="Prefix for seen-item markers")
    seen_ttl_seconds: int = Field(
        default=60 * 60 * 24 * 30,
        ge=1,
        description="How long a delivered item is remembered (30 days)",
    )

    # Cross-run advisory lock
    lock_enabled: bool = Field(default=True, description="Guard runs with a lock record")
    lock_key: str = Field(default="lock:run", description="Key of the run lock record")
    lock_ttl_seconds: int = Field(default=600, ge=1, description="Lock expiry in seconds")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate store backend."""
        v = v.lower().strip()
        valid_backends = ["sqlite", "memory"]
        if v not in valid_backends:
            raise ValueError(f"Invalid store backend: {v!r}. Must be one of {valid_backends}")
        return v


class FetcherConfig(BaseSettings):
    """HTTP fetcher configuration."""

    model_config = SettingsConfigDict(env_prefix="FETCHER_")

    timeout_seconds: int = Field(default=30, ge=1, le=300, description="Request timeout")
    user_agent: str = Field(
        default="Mozilla/5.0 (compatible; Feed-Digest/0.1)",
        description="User-Agent header"
    )
    feed_accept: str = Field(
        default="application/rss+xml, application/atom+xml, application/xml;q=0.9, text/xml;q=0.8",
        description="Accept header sent when fetching feeds",
    )

    # Retry settings
    max_retries: int = Field(default=1, ge=0, le=10)
    retry_delay_seconds: int = Field(default=2, ge=0)

    # Follow redirects
    follow_redirects: bool = Field(default=True)
    max_redirects: int = Field(default=5, ge=0, le=20)


class NotifierConfig(BaseSettings):
    """Mailgun notification channel configuration."""

    model_config = SettingsConfigDict(env_prefix="MAILGUN_")

    api_key: Optional[str] = Field(default=None, description="Mailgun API key")
    domain: Optional[str] = Field(default=None, description="Mailgun sending domain")
    from_address: str = Field(
        default="Feed Digest <digest@localhost>",
        validation_alias=AliasChoices("MAILGUN_FROM", "from_address"),
        description="Sender address",
    )
    recipient: Optional[str] = Field(default=None, description="Digest recipient")
    base_url: str = Field(default="https://api.mailgun.net/v3", description="Mailgun API base URL")
    timeout_seconds: int = Field(default=30, ge=1, le=300, description="Request timeout")


class SchedulerConfig(BaseSettings):
    """Periodic run configuration."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_")

    enabled: bool = Field(default=True, description="Enable scheduler")
    timezone: str = Field(default="UTC", description="Scheduler timezone")

    # Sources carry their own interval; this is only how often we look
    interval_minutes: int = Field(default=5, ge=1, description="Minutes between scheduled runs")
    misfire_grace_time: int = Field(default=300, ge=0, description="Misfire grace time in seconds")
    purge_interval_minutes: int = Field(default=60, ge=1, description="Minutes between expired-entry purges")


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        description="Log format"
    )

    # File logging
    file_enabled: bool = Field(default=True, description="Enable file logging")
    file_path: str = Field(default="logs/feed_digest.log", description="Log file path")
    rotation: str = Field(default="100 MB", description="Log rotation size")
    retention: str = Field(default="30 days", description="Log retention period")

    # Console logging
    console_enabled: bool = Field(default=True, description="Enable console logging")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v


class WebConfig(BaseSettings):
    """Web API configuration."""

    model_config = SettingsConfigDict(env_prefix="WEB_")

    host: str = Field(default="127.0.0.1", description="Web server host")
    port: int = Field(default=8000, ge=1, le=65535, description="Web server port")
    debug: bool = Field(default=False, description="Debug mode")
    admin_key: Optional[str] = Field(
        default=None,
        description="Shared secret expected in the X-Admin-Key header (unset = open)",
    )


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FEED_DIGEST_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    version: str = Field(default="0.1.0", description="Application version")
    app_name: str = Field(default="Feed Digest", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    # Sub-configurations
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    notifier: NotifierConfig = Field(default_factory=NotifierConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    web: WebConfig = Field(default_factory=WebConfig)


_NESTED_CONFIGS = {
    "database": DatabaseConfig,
    "store": StoreConfig,
    "fetcher": FetcherConfig,
    "notifier": NotifierConfig,
    "scheduler": SchedulerConfig,
    "logging": LoggingConfig,
    "web": WebConfig,
}

# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def set_config(config: Optional[Config]) -> None:
    """Replace the global configuration instance (None resets it)."""
    global _config
    _config = config


def load_config_from_yaml(yaml_path: str) -> Config:
    """Load configuration from a YAML file.

    Nested sections are built through their own settings classes, so
    environment variables still fill any value the file leaves out.

    Args:
        yaml_path: Path to the YAML configuration file.

    Returns:
        Config instance loaded from the file.
    """
    import yaml

    yaml_file = Path(yaml_path)
    if not yaml_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

    with yaml_file.open("r", encoding="utf-8") as f:
        config_dict = yaml.safe_load(f) or {}

    main_config = {}
    for key, value in config_dict.items():
        if key not in _NESTED_CONFIGS:
            main_config[key] = value

    for key, config_class in _NESTED_CONFIGS.items():
        main_config[key] = config_class(**(config_dict.get(key) or {}))

    return Config(**main_config)


def reload_config() -> Config:
    """Reload configuration from environment and YAML files."""
    global _config
    _config = None

    config_yaml = Path("config/config.yaml")
    if config_yaml.exists():
        _config = load_config_from_yaml(str(config_yaml))
    else:
        _config = Config()

    return _config

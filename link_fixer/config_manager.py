import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Tuple

import colorlog
from dotenv import load_dotenv

from .rules import DEFAULT_FORMATS


def load_environment(dotenv_path: Optional[str] = None) -> None:
    """Load ``.env`` without overriding variables already exported."""
    load_dotenv(dotenv_path, override=False)


# Load environment variables
load_environment()

"""
Configuration Management for the Download Link Fixer

This module provides centralized configuration with validation and
environment variable handling. Run settings such as the format set, the
per-rule limit and dry-run are resolved here and passed explicitly into the
fixer.
"""


def _set_driver_log_level(log_level: str) -> None:
    """Set log levels for MongoDB driver loggers to reduce noise."""
    driver_loggers = [
        "pymongo",
        "pymongo.command",
        "pymongo.connection",
        "pymongo.serverSelection",
        "pymongo.topology",
    ]
    # Driver logging should only appear at DEBUG level
    target_level = logging.DEBUG if log_level == "DEBUG" else logging.WARNING
    for name in driver_loggers:
        logging.getLogger(name).setLevel(target_level)


_TRUE_VALUES = ("true", "1", "yes")
_FALSE_VALUES = ("false", "0", "no")


def _env_flag(name: str, default: str) -> bool:
    """Read a boolean setting; anything unrecognised is rejected."""
    value = os.getenv(name, default).strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(
        f"{name} must be one of {', '.join(_TRUE_VALUES + _FALSE_VALUES)}, got {value!r}"
    )


def _env_formats() -> Tuple[str, ...]:
    raw = os.getenv("LINK_FIXER_FORMATS")
    if not raw:
        return DEFAULT_FORMATS
    return tuple(fmt.strip() for fmt in raw.split(",") if fmt.strip())


logger = logging.getLogger(__name__)


@dataclass
class MongoConfig:
    """Configuration for the MongoDB connection."""

    uri: str = field(
        default_factory=lambda: os.getenv(
            "MONGODB_BIND_ADDR", "mongodb://localhost:27017"
        )
    )
    database: str = field(
        default_factory=lambda: os.getenv("MONGODB_DATABASE", "datasets")
    )
    collection: str = field(
        default_factory=lambda: os.getenv("MONGODB_COLLECTION", "instances")
    )
    username: str = field(default_factory=lambda: os.getenv("MONGODB_USERNAME", ""))
    password: str = field(default_factory=lambda: os.getenv("MONGODB_PASSWORD", ""))
    is_ssl: bool = field(default_factory=lambda: _env_flag("MONGODB_IS_SSL", "false"))
    connect_timeout: int = field(
        default_factory=lambda: int(os.getenv("MONGODB_CONNECT_TIMEOUT", "5"))
    )
    query_timeout: int = field(
        default_factory=lambda: int(os.getenv("MONGODB_QUERY_TIMEOUT", "15"))
    )

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.uri or not self.uri.strip():
            raise ValueError("MongoDB URI is required")
        if not self.uri.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError("MongoDB URI must start with mongodb:// or mongodb+srv://")
        if not self.database:
            raise ValueError("MongoDB database is required")
        if not self.collection:
            raise ValueError("MongoDB collection is required")
        if self.password and not self.username:
            raise ValueError("MongoDB username is required when a password is set")
        if self.connect_timeout < 1:
            raise ValueError("MongoDB connect timeout must be at least 1 second")
        if self.query_timeout < 1:
            raise ValueError("MongoDB query timeout must be at least 1 second")

    def get_connection_string(self) -> str:
        """Get formatted connection string for logging (without password)."""
        host = self.uri.split("@")[-1]
        if "://" not in host:
            host = f"{self.uri.split('://')[0]}://{host}"
        user = self.username or "anonymous"
        return f"{host} (db: {self.database}, collection: {self.collection}, user: {user})"


@dataclass
class FixerConfig:
    """Configuration for a link fixing run."""

    formats: Sequence[str] = field(default_factory=_env_formats)
    limit: int = field(
        default_factory=lambda: int(os.getenv("LINK_FIXER_LIMIT", "10"))
    )
    dry_run: bool = field(
        default_factory=lambda: _env_flag("LINK_FIXER_DRY_RUN", "true")
    )
    skip_unchanged: bool = field(
        default_factory=lambda: _env_flag("LINK_FIXER_SKIP_UNCHANGED", "false")
    )
    repeat_until_clean: bool = field(
        default_factory=lambda: _env_flag("LINK_FIXER_REPEAT", "false")
    )
    max_passes: int = field(
        default_factory=lambda: int(os.getenv("LINK_FIXER_MAX_PASSES", "100"))
    )

    def __post_init__(self) -> None:
        """Validate fixer configuration and normalise the format set."""
        # Keep first-seen order, drop duplicates
        self.formats = tuple(dict.fromkeys(self.formats))
        if not self.formats:
            raise ValueError("At least one download format is required")
        if any(not fmt or "." in fmt or fmt.startswith("$") for fmt in self.formats):
            raise ValueError(f"Invalid download format in {list(self.formats)}")
        if self.limit < 1:
            raise ValueError("Limit must be at least 1")
        if self.max_passes < 1:
            raise ValueError("Max passes must be at least 1")


@dataclass
class LoggingConfig:
    """Configuration for logging behavior."""

    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    format: str = field(
        default_factory=lambda: os.getenv(
            "LOG_FORMAT", "%(log_color)s%(levelname)s:%(name)s:%(message)s"
        )
    )
    file_output: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE"))

    def __post_init__(self) -> None:
        """Validate logging configuration."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        self.level = self.level.upper()

    def get_log_level(self) -> int:
        """Convert string log level to logging constant."""
        level_attr = getattr(logging, self.level, None)
        if level_attr is None:
            raise ValueError(f"Invalid log level: {self.level}")
        return int(level_attr)


@dataclass
class LinkFixerConfig:
    """Main configuration class that aggregates all configuration sections."""

    mongo: MongoConfig = field(default_factory=MongoConfig)
    fixer: FixerConfig = field(default_factory=FixerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_environment(
        cls,
        limit: Optional[int] = None,
        formats: Optional[Sequence[str]] = None,
        dry_run: Optional[bool] = None,
        skip_unchanged: Optional[bool] = None,
        repeat_until_clean: Optional[bool] = None,
        max_passes: Optional[int] = None,
        mongo_uri: Optional[str] = None,
        database: Optional[str] = None,
        collection: Optional[str] = None,
        log_level: Optional[str] = None,
    ) -> "LinkFixerConfig":
        """
        Create configuration from environment variables.

        Explicit arguments override the environment; ``None`` keeps the
        environment (or built-in) value.

        Returns:
            LinkFixerConfig: Configured instance
        """
        config = cls()

        if limit is not None:
            config.fixer.limit = limit
        if formats:
            config.fixer.formats = tuple(formats)
        if dry_run is not None:
            config.fixer.dry_run = dry_run
        if skip_unchanged is not None:
            config.fixer.skip_unchanged = skip_unchanged
        if repeat_until_clean is not None:
            config.fixer.repeat_until_clean = repeat_until_clean
        if max_passes is not None:
            config.fixer.max_passes = max_passes
        if mongo_uri:
            config.mongo.uri = mongo_uri
        if database:
            config.mongo.database = database
        if collection:
            config.mongo.collection = collection
        if log_level:
            config.logging.level = log_level

        return config

    def validate_all(self) -> None:
        """Validate all configuration sections."""
        try:
            self.mongo.__post_init__()
            self.fixer.__post_init__()
            self.logging.__post_init__()
            logger.debug("Configuration validation successful")
        except Exception as e:
            logger.error(f"❌ Configuration validation failed: {e}")
            raise

    def log_configuration_summary(self) -> None:
        """Log a summary of the current configuration (without sensitive data)."""
        logger.info("=" * 60)
        logger.info("🔧 DOWNLOAD LINK FIXER CONFIGURATION")
        logger.info("=" * 60)
        logger.info(f"🗄️  MongoDB: {self.mongo.get_connection_string()}")
        logger.info("⚙️  Fixer:")
        logger.info(f"   - Formats: {', '.join(self.fixer.formats)}")
        logger.info(f"   - Limit per format/rule: {self.fixer.limit}")
        logger.info(f"   - Dry Run: {self.fixer.dry_run}")
        logger.info(f"   - Skip Unchanged: {self.fixer.skip_unchanged}")
        if self.fixer.repeat_until_clean:
            logger.info(f"   - Repeat Until Clean: max {self.fixer.max_passes} passes")
        logger.info(f"📝 Logging Level: {self.logging.level}")
        if self.logging.file_output:
            logger.info(f"📄 Log File: {self.logging.file_output}")
        logger.info("=" * 60)


def setup_logging(config: LoggingConfig) -> None:
    """
    Setup logging configuration based on config.
    """
    _set_driver_log_level(config.level.upper())

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.handlers.clear()  # Remove any existing handlers
    root_logger.setLevel(config.get_log_level())

    console_handler = colorlog.StreamHandler()
    console_handler.setFormatter(colorlog.ColoredFormatter(config.format))
    root_logger.addHandler(console_handler)

    # Add file handler if file output is configured
    if config.file_output:
        file_handler = logging.FileHandler(config.file_output)
        file_formatter = logging.Formatter(
            "%(asctime)s - %(levelname)s:%(name)s:%(message)s"
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

    logger.debug(
        f"📝 Logging configured: level={config.level}, file={config.file_output or 'console'}"
    )


def create_config_from_env(**overrides: Any) -> LinkFixerConfig:
    """
    Factory function to create and validate configuration from environment.

    Args:
        **overrides: Keyword overrides accepted by
            ``LinkFixerConfig.from_environment``

    Returns:
        LinkFixerConfig: Validated configuration instance

    Raises:
        ValueError: If configuration is invalid
    """
    config = LinkFixerConfig.from_environment(**overrides)
    config.validate_all()
    return config

"""
Centralized configuration management for the hot reload notifier and listener.
Provides type-safe configuration with validation, read from the environment and an optional .env file.
"""

import os
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse
from dataclasses import dataclass, field
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass
class NotifierConfig:
    """Watch-and-broadcast server configuration."""
    watch_root: str = "./src"
    host: str = "localhost"
    port: int = 8080
    debounce_ms: int = 100

    def __post_init__(self):
        if not self.watch_root:
            raise ValueError("HOT_RELOAD_WATCH_ROOT must not be empty")
        if self.port < 0 or self.port > 65535:
            raise ValueError(f"Invalid port number: {self.port}")
        if self.debounce_ms < 0:
            raise ValueError(f"Invalid debounce delay: {self.debounce_ms}ms")

    @property
    def debounce_delay(self) -> float:
        """Debounce delay in seconds."""
        return self.debounce_ms / 1000.0


@dataclass
class ListenerConfig:
    """Reconnecting client configuration."""
    url: str = "ws://localhost:8080"
    reconnect_delay_ms: int = 1000
    command: Optional[str] = None

    def __post_init__(self):
        scheme = urlparse(self.url).scheme
        if scheme not in ("ws", "wss"):
            raise ValueError(f"Invalid listener URL: {self.url}. Must use ws:// or wss://")
        if self.reconnect_delay_ms < 0:
            raise ValueError(f"Invalid reconnect delay: {self.reconnect_delay_ms}ms")

    @property
    def reconnect_delay(self) -> float:
        """Reconnect delay in seconds."""
        return self.reconnect_delay_ms / 1000.0


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "text"  # json or text
    log_file: Optional[str] = None
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5

    def __post_init__(self):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {self.level}. Must be one of {valid_levels}")
        self.level = self.level.upper()

        valid_formats = ["json", "text"]
        if self.format.lower() not in valid_formats:
            raise ValueError(f"Invalid log format: {self.format}. Must be one of {valid_formats}")
        self.format = self.format.lower()


@dataclass
class ApplicationConfig:
    """Main application configuration container."""
    notifier: NotifierConfig = field(default_factory=NotifierConfig)
    listener: ListenerConfig = field(default_factory=ListenerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_environment(cls, dotenv_path: Optional[Path] = None) -> "ApplicationConfig":
        """Create configuration from environment variables."""
        load_dotenv(dotenv_path=dotenv_path or Path.cwd() / ".env")

        try:
            notifier = NotifierConfig(
                watch_root=os.environ.get("HOT_RELOAD_WATCH_ROOT", "./src"),
                host=os.environ.get("HOT_RELOAD_HOST", "localhost"),
                port=int(os.environ.get("HOT_RELOAD_PORT", "8080")),
                debounce_ms=int(os.environ.get("HOT_RELOAD_DEBOUNCE_MS", "100"))
            )

            listener = ListenerConfig(
                url=os.environ.get("HOT_RELOAD_URL", "ws://localhost:8080"),
                reconnect_delay_ms=int(os.environ.get("HOT_RELOAD_RECONNECT_DELAY_MS", "1000")),
                command=os.environ.get("HOT_RELOAD_COMMAND") or None
            )

            logging_config = LoggingConfig(
                level=os.environ.get("LOG_LEVEL", "INFO"),
                format=os.environ.get("LOG_FORMAT", "text"),
                log_file=os.environ.get("LOG_FILE"),
                max_file_size=int(os.environ.get("LOG_MAX_FILE_SIZE", str(10 * 1024 * 1024))),
                backup_count=int(os.environ.get("LOG_BACKUP_COUNT", "5"))
            )

            return cls(notifier=notifier, listener=listener, logging=logging_config)

        except ValueError as e:
            logger.error(f"Invalid configuration value: {e}")
            raise

    def validate(self) -> None:
        """Validate the configuration."""
        if self.notifier.debounce_ms == 0:
            logger.warning("Debounce disabled; every filesystem event triggers its own reload")

        logger.info(f"Configuration loaded, watching {self.notifier.watch_root} on port {self.notifier.port}")


# Global configuration instance
config: Optional[ApplicationConfig] = None


def get_config() -> ApplicationConfig:
    """Get the global configuration instance."""
    global config
    if config is None:
        config = ApplicationConfig.from_environment()
    return config

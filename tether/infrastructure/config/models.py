"""
Configuration models and data structures.

This module defines the configuration models used by the application,
providing type safety and validation for configuration values.
"""

import signal
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

VALID_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = ("<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
                   "<level>{level: <8}</level> | "
                   "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
                   "<level>{message}</level>")
    log_directory: str = "logs"
    max_file_size: str = "10 MB"
    backup_count: int = 5
    console_enabled: bool = True
    file_enabled: bool = False
    intercept_standard_logging: bool = True


@dataclass
class LifeCycleConfig:
    """Life cycle observer ordering."""
    # Groups started last, in this order; other groups start first, by name
    orders: List[str] = field(default_factory=lambda: ["server"])
    # Start/stop members of one group concurrently
    parallel: bool = False


@dataclass
class ShutdownConfig:
    """Graceful shutdown settings used by ``Application.run``."""
    signals: List[str] = field(default_factory=lambda: ["SIGTERM", "SIGINT"])
    grace_period: Optional[float] = None


@dataclass
class ApplicationConfig:
    """Main application configuration."""

    # Basic application settings
    name: str = "tether"
    version: str = "0.1.0"
    debug: bool = False
    environment: str = "production"

    # Component configurations
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    lifecycle: LifeCycleConfig = field(default_factory=LifeCycleConfig)
    shutdown: ShutdownConfig = field(default_factory=ShutdownConfig)

    config_file_path: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate_logging()
        self._validate_lifecycle()
        self._validate_shutdown()

    def _validate_logging(self) -> None:
        level = self.logging.level.upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Log level must be one of {', '.join(VALID_LOG_LEVELS)}, got {self.logging.level}")
        self.logging.level = level
        if self.logging.backup_count < 0:
            raise ValueError(
                f"Log backup count must not be negative, got {self.logging.backup_count}")

    def _validate_lifecycle(self) -> None:
        for group in self.lifecycle.orders:
            if not isinstance(group, str):
                raise ValueError(f"Life cycle group names must be strings, got {group!r}")
        if len(set(self.lifecycle.orders)) != len(self.lifecycle.orders):
            raise ValueError(f"Duplicate life cycle groups in {self.lifecycle.orders}")

    def _validate_shutdown(self) -> None:
        for name in self.shutdown.signals:
            if not hasattr(signal, name):
                raise ValueError(f"Unknown shutdown signal: {name}")
        grace = self.shutdown.grace_period
        if grace is not None and grace <= 0:
            raise ValueError(f"Shutdown grace period must be positive, got {grace}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApplicationConfig':
        """Create configuration from dictionary."""
        return cls(
            name=data.get('name', 'tether'),
            version=str(data.get('version', '0.1.0')),
            debug=data.get('debug', False),
            environment=data.get('environment', 'production'),
            logging=LoggingConfig(**data.get('logging', {})),
            lifecycle=LifeCycleConfig(**data.get('lifecycle', {})),
            shutdown=ShutdownConfig(**data.get('shutdown', {})),
            config_file_path=data.get('config_file_path'),
        )

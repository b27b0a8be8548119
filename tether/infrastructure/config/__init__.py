"""
Configuration infrastructure: dataclass models and the file/environment loader.
"""

from .loader import ConfigLoader
from .models import ApplicationConfig, LifeCycleConfig, LoggingConfig, ShutdownConfig

__all__ = [
    "ConfigLoader",
    "ApplicationConfig",
    "LifeCycleConfig",
    "LoggingConfig",
    "ShutdownConfig",
]

"""Public API for shared Taskosaur configuration."""

from .loader import env_overrides, load_settings
from .models import (
    DEFAULT_CONFIG_PATH,
    ENV_PREFIX,
    LoggingSettings,
    PostgresSettings,
    TaskosaurSettings,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ENV_PREFIX",
    "LoggingSettings",
    "PostgresSettings",
    "TaskosaurSettings",
    "env_overrides",
    "load_settings",
]

"""Configuration."""

from .settings import (
    DEFAULT_KIND_POLICIES,
    AWSSettings,
    LifecycleSettings,
    LoggingSettings,
    PollPolicy,
    load_settings,
)

__all__ = [
    "DEFAULT_KIND_POLICIES",
    "AWSSettings",
    "LifecycleSettings",
    "LoggingSettings",
    "PollPolicy",
    "load_settings",
]

"""Cloud resource lifecycle orchestration: create, locate and delete with convergence polling."""

from lifecycle_orchestrator.application.services import (
    HomeRegionGuard,
    PathResolver,
    ResourceLifecycleOrchestrator,
    RuleSetMutator,
    StatePoller,
)
from lifecycle_orchestrator.config import LifecycleSettings, PollPolicy, load_settings

__version__ = "0.1.0"

__all__ = [
    "HomeRegionGuard",
    "LifecycleSettings",
    "PathResolver",
    "PollPolicy",
    "ResourceLifecycleOrchestrator",
    "RuleSetMutator",
    "StatePoller",
    "__version__",
    "load_settings",
]

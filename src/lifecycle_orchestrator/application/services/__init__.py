"""Application services."""

from .lifecycle_orchestrator import ResourceLifecycleOrchestrator
from .path_resolver import PathResolver
from .region_guard import HomeRegionGuard, with_home_region
from .rule_set_mutator import RuleSetMutator, rules_of
from .state_poller import StatePoller

__all__ = [
    "HomeRegionGuard",
    "PathResolver",
    "ResourceLifecycleOrchestrator",
    "RuleSetMutator",
    "StatePoller",
    "rules_of",
    "with_home_region",
]

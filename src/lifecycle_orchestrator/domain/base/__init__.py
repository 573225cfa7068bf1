"""Domain base: value objects, exceptions, events and ports."""

from lifecycle_orchestrator.domain.base.exceptions import (
    ConfigurationError,
    DomainException,
    LifecycleError,
    LostUpdateError,
    OperationCancelledError,
    PollTimeoutError,
    ProvisioningFailedError,
    ResourceInUseError,
    ResourceNotFoundError,
    UnavailableError,
    UnsupportedOperationError,
    ValidationError,
)
from lifecycle_orchestrator.domain.base.value_objects import (
    LifecycleState,
    ResourceHandle,
    ResourceKind,
    ResourcePath,
    ResourceQuery,
    ResourceSnapshot,
)

__all__ = [
    "ConfigurationError",
    "DomainException",
    "LifecycleError",
    "LifecycleState",
    "LostUpdateError",
    "OperationCancelledError",
    "PollTimeoutError",
    "ProvisioningFailedError",
    "ResourceHandle",
    "ResourceInUseError",
    "ResourceKind",
    "ResourceNotFoundError",
    "ResourcePath",
    "ResourceQuery",
    "ResourceSnapshot",
    "UnavailableError",
    "UnsupportedOperationError",
    "ValidationError",
]

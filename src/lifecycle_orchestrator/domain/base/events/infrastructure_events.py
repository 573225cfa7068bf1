"""Infrastructure events - resource lifecycle and operation tracking."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import Field

from .base_events import InfrastructureEvent

# =============================================================================
# RESOURCE EVENTS
# =============================================================================


class ResourceEvent(InfrastructureEvent):
    """Base class for resource-related infrastructure events."""

    resource_id: str
    resource_kind: str
    region: Optional[str] = None


class ResourceCreatedEvent(ResourceEvent):
    """Event raised when a resource reached its create target state."""

    state: str
    source_id: Optional[str] = None
    duration_seconds: Optional[float] = None
    creation_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ResourceUpdatedEvent(ResourceEvent):
    """Event raised when a collection-valued resource was replaced and converged."""

    changes: dict[str, Any] = Field(default_factory=dict)
    update_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ResourceDeletedEvent(ResourceEvent):
    """Event raised when a resource reached its terminal deleted state."""

    duration_seconds: Optional[float] = None
    deletion_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# =============================================================================
# OPERATION EVENTS
# =============================================================================


class OperationFailedEvent(InfrastructureEvent):
    """Event raised when an orchestrator operation fails."""

    operation_type: str
    resource_kind: str
    resource_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: str
    error_details: dict[str, Any] = Field(default_factory=dict)

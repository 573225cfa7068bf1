"""Domain events."""

from .base_events import DomainEvent, EventPublisher, InfrastructureEvent
from .infrastructure_events import (
    OperationFailedEvent,
    ResourceCreatedEvent,
    ResourceDeletedEvent,
    ResourceEvent,
    ResourceUpdatedEvent,
)

__all__ = [
    "DomainEvent",
    "EventPublisher",
    "InfrastructureEvent",
    "OperationFailedEvent",
    "ResourceCreatedEvent",
    "ResourceDeletedEvent",
    "ResourceEvent",
    "ResourceUpdatedEvent",
]

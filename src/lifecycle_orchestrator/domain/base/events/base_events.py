"""Base event types."""

import uuid
from datetime import datetime, timezone
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field


class DomainEvent(BaseModel):
    """Base class for all domain events."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def event_type(self) -> str:
        return self.__class__.__name__


class InfrastructureEvent(DomainEvent):
    """Base class for events raised by infrastructure operations."""


EventPublisher = Callable[[DomainEvent], None]

"""Core value objects shared by every layer."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class ResourceKind(str, Enum):
    """Kinds of provider resources the orchestrator manages."""

    COMPARTMENT = "compartment"
    INSTANCE = "instance"
    VOLUME = "volume"
    VOLUME_BACKUP = "volume_backup"
    NETWORK = "network"
    SUBNET = "subnet"
    INTERNET_GATEWAY = "internet_gateway"
    ROUTE_TABLE = "route_table"
    BUCKET = "bucket"

    def __str__(self) -> str:
        return self.value


class LifecycleState(str, Enum):
    """Provider-neutral lifecycle states. Adapters map raw SDK states onto these."""

    PROVISIONING = "provisioning"
    AVAILABLE = "available"
    UPDATING = "updating"
    STOPPING = "stopping"
    STOPPED = "stopped"
    TERMINATING = "terminating"
    TERMINATED = "terminated"
    FAULTED = "faulted"

    def __str__(self) -> str:
        return self.value


class ResourceHandle(BaseModel):
    """Opaque reference to a provider resource, stable across its lifetime."""

    model_config = ConfigDict(frozen=True)

    resource_id: str = Field(min_length=1)
    kind: ResourceKind
    parent_id: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.resource_id}"


class ResourceSnapshot(BaseModel):
    """Immutable point-in-time read of a resource.

    Snapshots are never updated in place, a newer read produces a new snapshot.
    ``attributes`` holds kind-specific data (for route tables the ``rules``
    key holds a tuple of ``RuleEntry``) and is read-only.
    """

    model_config = ConfigDict(frozen=True)

    handle: ResourceHandle
    state: LifecycleState
    name: Optional[str] = None
    attributes: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)
    observed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("attributes", mode="after")
    @classmethod
    def _read_only_attributes(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    @field_serializer("attributes")
    def _serialize_attributes(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return dict(value)

    @property
    def resource_id(self) -> str:
        return self.handle.resource_id

    @property
    def kind(self) -> ResourceKind:
        return self.handle.kind

    def attribute(self, key: str, default: Any = None) -> Any:
        """Get a kind-specific attribute."""
        return self.attributes.get(key, default)

    def with_state(self, state: LifecycleState) -> "ResourceSnapshot":
        """Return a new snapshot observed now with ``state`` replacing the current one."""
        return self.model_copy(update={"state": state, "observed_at": datetime.now(timezone.utc)})


class ResourceQuery(BaseModel):
    """Filter for locating a resource in a flat collection scoped to a parent."""

    model_config = ConfigDict(frozen=True)

    kind: ResourceKind
    parent_id: Optional[str] = None
    name: Optional[str] = None
    states: Optional[frozenset[LifecycleState]] = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("name must not be blank")
        return value


PATH_SEPARATOR = "/"


@dataclass(frozen=True)
class ResourcePath:
    """Hierarchical name path.

    A leading separator makes the path absolute: it is resolved from the root
    whatever start handle the caller passes. ``""`` is the empty relative path
    and ``"/"`` the empty absolute path. A single trailing separator is ignored.
    """

    segments: tuple[str, ...] = ()
    absolute: bool = False

    @classmethod
    def parse(cls, path: str, separator: str = PATH_SEPARATOR) -> "ResourcePath":
        if not path:
            return cls()
        parts = path.split(separator)
        absolute = parts[0] == ""
        if absolute:
            parts = parts[1:]
        if parts and parts[-1] == "":
            parts = parts[:-1]
        return cls(segments=tuple(parts), absolute=absolute)

    @property
    def is_empty(self) -> bool:
        return not self.segments

    def __str__(self) -> str:
        body = PATH_SEPARATOR.join(self.segments)
        return f"{PATH_SEPARATOR}{body}" if self.absolute else body

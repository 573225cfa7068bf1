"""Domain port for the cloud provider client."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, Optional, Sequence

from lifecycle_orchestrator.domain.base.value_objects import (
    ResourceHandle,
    ResourceQuery,
    ResourceSnapshot,
)
from lifecycle_orchestrator.domain.resource.rules import RuleEntry
from lifecycle_orchestrator.domain.resource.specs import ResourceSpec


class CloudProviderPort(ABC):
    """Create/get/list/update/delete operations over provider resources.

    Implementations translate provider errors into domain exceptions:
    ``ResourceNotFoundError`` for missing resources, ``ResourceInUseError``
    when dependents block a delete and ``UnavailableError`` for throttling and
    network failures.
    """

    @abstractmethod
    def get(self, handle: ResourceHandle) -> ResourceSnapshot:
        """Read the current snapshot. Raises ResourceNotFoundError if it does not exist."""

    @abstractmethod
    def list(self, parent_id: Optional[str], query: ResourceQuery) -> Iterator[ResourceSnapshot]:
        """Lazily list resources of ``query.kind`` under ``parent_id`` in provider order.

        Pages are fetched as the iterator advances. The iterator is finite and
        cannot be restarted mid-iteration.
        """

    @abstractmethod
    def create(self, spec: ResourceSpec) -> ResourceHandle:
        """Submit a creation request. The returned handle may still be provisioning."""

    @abstractmethod
    def create_from_existing(self, source: ResourceHandle, spec: ResourceSpec) -> ResourceHandle:
        """Submit a creation request cloning ``source``."""

    @abstractmethod
    def update(self, handle: ResourceHandle, rules: Sequence[RuleEntry]) -> None:
        """Replace the full rule set of ``handle``. There is no partial update."""

    @abstractmethod
    def delete(self, handle: ResourceHandle) -> None:
        """Submit a deletion request."""

    @abstractmethod
    def get_home_region(self) -> str:
        """Get the region in which home-region-only mutations must run."""

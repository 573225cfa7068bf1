"""AWS implementation of the cloud provider port."""

from __future__ import annotations

from typing import Any, Iterator, Optional, Sequence

from lifecycle_orchestrator.domain.base.ports import CloudProviderPort
from lifecycle_orchestrator.domain.base.value_objects import (
    ResourceHandle,
    ResourceKind,
    ResourceQuery,
    ResourceSnapshot,
)
from lifecycle_orchestrator.domain.resource.rules import RuleEntry
from lifecycle_orchestrator.domain.resource.specs import ResourceSpec
from lifecycle_orchestrator.infrastructure.logging.logger import get_logger
from lifecycle_orchestrator.providers.aws.infrastructure.aws_client import AWSClient
from lifecycle_orchestrator.providers.aws.infrastructure.handlers.base_handler import AWSHandler
from lifecycle_orchestrator.providers.aws.infrastructure.handlers.instance_handler import InstanceHandler
from lifecycle_orchestrator.providers.aws.infrastructure.handlers.network_handler import NetworkHandler
from lifecycle_orchestrator.providers.aws.infrastructure.handlers.organization_handler import (
    OrganizationHandler,
)
from lifecycle_orchestrator.providers.aws.infrastructure.handlers.storage_handler import StorageHandler
from lifecycle_orchestrator.providers.aws.infrastructure.handlers.volume_handler import (
    VolumeBackupHandler,
    VolumeHandler,
)

logger = get_logger(__name__)


class AWSProvider(CloudProviderPort):
    """
    AWS implementation of ``CloudProviderPort``.

    Operations are dispatched to one handler per resource kind. Handlers are
    created lazily on first use and share the provider's ``AWSClient``.
    """

    def __init__(self, aws_client: AWSClient, home_region: Optional[str] = None) -> None:
        self._aws_client = aws_client
        self._home_region = home_region or aws_client.settings.home_region
        self._handlers: dict[ResourceKind, AWSHandler] = {}

    @property
    def aws_client(self) -> AWSClient:
        return self._aws_client

    @property
    def handlers(self) -> dict[ResourceKind, AWSHandler]:
        """Get the AWS handlers with lazy initialization."""
        if not self._handlers:
            logger.debug("Creating AWS handlers on first access")
            for handler_class in (
                OrganizationHandler,
                InstanceHandler,
                VolumeHandler,
                VolumeBackupHandler,
                NetworkHandler,
                StorageHandler,
            ):
                handler = handler_class(self._aws_client)
                for kind in handler_class.kinds:
                    self._handlers[kind] = handler
        return self._handlers

    def handler_for(self, kind: ResourceKind) -> AWSHandler:
        return self.handlers[kind]

    @property
    def storage(self) -> StorageHandler:
        """Bucket handler, for object pass-throughs."""
        return self.handler_for(ResourceKind.BUCKET)

    def get(self, handle: ResourceHandle) -> ResourceSnapshot:
        return self.handler_for(handle.kind).get(handle)

    def list(self, parent_id: Optional[str], query: ResourceQuery) -> Iterator[ResourceSnapshot]:
        return self.handler_for(query.kind).list(parent_id, query)

    def create(self, spec: ResourceSpec) -> ResourceHandle:
        return self.handler_for(spec.kind).create(spec)

    def create_from_existing(self, source: ResourceHandle, spec: ResourceSpec) -> ResourceHandle:
        return self.handler_for(spec.kind).create_from_existing(source, spec)

    def update(self, handle: ResourceHandle, rules: Sequence[RuleEntry]) -> None:
        self.handler_for(handle.kind).update(handle, rules)

    def delete(self, handle: ResourceHandle) -> None:
        self.handler_for(handle.kind).delete(handle)

    def get_home_region(self) -> str:
        return self._home_region

    def put_object(self, bucket: str, key: str, body: bytes, content_type: Optional[str] = None) -> None:
        self.storage.put_object(bucket, key, body, content_type)

    def get_object(self, bucket: str, key: str) -> bytes:
        return self.storage.get_object(bucket, key)

    def delete_object(self, bucket: str, key: str) -> None:
        self.storage.delete_object(bucket, key)

    def list_objects(self, bucket: str, prefix: str = "") -> Iterator[dict[str, Any]]:
        return self.storage.list_objects(bucket, prefix)

    def list_prefixes(self, bucket: str, prefix: str = "", delimiter: str = "/") -> Iterator[str]:
        return self.storage.list_prefixes(bucket, prefix, delimiter)

    def delete_objects(self, bucket: str, prefix: str = "") -> int:
        return self.storage.delete_objects(bucket, prefix)

    def __repr__(self) -> str:
        return f"AWSProvider(region={self._aws_client.region_name}, home_region={self._home_region})"

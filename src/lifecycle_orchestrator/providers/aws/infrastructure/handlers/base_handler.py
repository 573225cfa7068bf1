"""
AWS handler base class.

Each handler owns one or more resource kinds and translates between boto3
responses and provider-neutral snapshots. Every AWS call goes through
``_call`` or ``_paginate`` so ``ClientError`` and connection failures always
surface as domain exceptions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, Iterable, Iterator, Mapping, Optional, Sequence, TypeVar

from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from lifecycle_orchestrator.config.settings import AWSSettings
from lifecycle_orchestrator.domain.base.exceptions import (
    UnavailableError,
    UnsupportedOperationError,
)
from lifecycle_orchestrator.domain.base.value_objects import (
    LifecycleState,
    ResourceHandle,
    ResourceKind,
    ResourceQuery,
    ResourceSnapshot,
)
from lifecycle_orchestrator.domain.resource.rules import RuleEntry
from lifecycle_orchestrator.domain.resource.specs import ResourceSpec
from lifecycle_orchestrator.infrastructure.logging.logger import get_logger
from lifecycle_orchestrator.providers.aws.exceptions.aws_exceptions import convert_client_error
from lifecycle_orchestrator.providers.aws.infrastructure.aws_client import AWSClient

T = TypeVar("T")

NAME_TAG = "Name"

_CONNECTION_ERRORS = (
    EndpointConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
    ConnectionClosedError,
)


class AWSHandler(ABC):
    """
    Base class for per-kind AWS handlers.

    Subclasses declare the kinds they serve in ``kinds`` and implement
    ``get``, ``list``, ``create`` and ``delete``. Cloning and rule-set
    replacement are optional and raise ``UnsupportedOperationError`` unless
    overridden.
    """

    kinds: ClassVar[tuple[ResourceKind, ...]] = ()

    def __init__(self, aws_client: AWSClient, settings: Optional[AWSSettings] = None) -> None:
        self.aws_client = aws_client
        self.settings = settings or aws_client.settings
        self._logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    @property
    def parent_tag_key(self) -> str:
        return self.settings.parent_tag_key

    @abstractmethod
    def get(self, handle: ResourceHandle) -> ResourceSnapshot:
        """Read a resource. Raises ResourceNotFoundError if it does not exist."""

    @abstractmethod
    def list(self, parent_id: Optional[str], query: ResourceQuery) -> Iterator[ResourceSnapshot]:
        """Lazily list resources of ``query.kind`` under ``parent_id``."""

    @abstractmethod
    def create(self, spec: ResourceSpec) -> ResourceHandle:
        """Submit a creation request."""

    @abstractmethod
    def delete(self, handle: ResourceHandle) -> None:
        """Submit a deletion request."""

    def create_from_existing(self, source: ResourceHandle, spec: ResourceSpec) -> ResourceHandle:
        raise UnsupportedOperationError(
            f"{spec.kind.value} cannot be created from {source.kind.value}",
            {"source": str(source)},
        )

    def update(self, handle: ResourceHandle, rules: Sequence[RuleEntry]) -> None:
        raise UnsupportedOperationError(
            f"{handle.kind.value} has no rule set", {"handle": str(handle)}
        )

    def _call(self, func: Callable[..., T], *args, **kwargs) -> T:
        """Invoke an AWS client method, converting failures to domain exceptions."""
        operation_name = getattr(func, "__name__", repr(func))
        self._logger.debug("Calling AWS operation %s", operation_name)
        try:
            return func(*args, **kwargs)
        except ClientError as e:
            raise convert_client_error(e, operation_name) from e
        except _CONNECTION_ERRORS as e:
            raise UnavailableError(
                f"AWS connection failed: {e}", {"operation": operation_name}
            ) from e

    def _paginate(
        self, client: Any, operation_name: str, result_key: str, **kwargs
    ) -> Iterator[dict[str, Any]]:
        """
        Lazily iterate the items of a paginated AWS operation.

        Pages are requested only as the iterator advances; abandoning the
        iterator stops fetching.
        """
        paginator = client.get_paginator(operation_name)
        pages = iter(paginator.paginate(**kwargs))
        while True:
            try:
                page = next(pages)
            except StopIteration:
                return
            except ClientError as e:
                raise convert_client_error(e, operation_name) from e
            except _CONNECTION_ERRORS as e:
                raise UnavailableError(
                    f"AWS connection failed: {e}", {"operation": operation_name}
                ) from e
            yield from page.get(result_key, [])

    @staticmethod
    def _tags_to_dict(tags: Optional[Iterable[Mapping[str, str]]]) -> dict[str, str]:
        return {tag["Key"]: tag["Value"] for tag in tags or ()}

    def _tag_list(self, spec: ResourceSpec, parent_id: Optional[str] = None) -> list[dict[str, str]]:
        """Name, parent and user tags in AWS ``[{"Key", "Value"}]`` form."""
        tags = dict(spec.tags)
        tags[NAME_TAG] = spec.name
        if parent_id:
            tags[self.parent_tag_key] = parent_id
        return [{"Key": key, "Value": value} for key, value in tags.items()]

    def _tag_specifications(
        self, resource_type: str, spec: ResourceSpec, parent_id: Optional[str] = None
    ) -> list[dict[str, Any]]:
        return [{"ResourceType": resource_type, "Tags": self._tag_list(spec, parent_id)}]

    def _scope_filters(self, parent_id: Optional[str], query: ResourceQuery) -> list[dict[str, Any]]:
        """EC2 describe filters for parent tag and name."""
        filters: list[dict[str, Any]] = []
        if parent_id:
            filters.append({"Name": f"tag:{self.parent_tag_key}", "Values": [parent_id]})
        if query.name:
            filters.append({"Name": f"tag:{NAME_TAG}", "Values": [query.name]})
        return filters

    @staticmethod
    def _state_filter(
        name: str,
        states: Optional[Iterable[LifecycleState]],
        state_map: Mapping[str, LifecycleState],
    ) -> list[dict[str, Any]]:
        """EC2 describe filter restricting raw states to those mapping onto ``states``."""
        if states is None:
            return []
        wanted = set(states)
        raw = sorted(raw for raw, state in state_map.items() if state in wanted)
        return [{"Name": name, "Values": raw}] if raw else []

    def _snapshot(
        self,
        resource_id: str,
        kind: ResourceKind,
        state: LifecycleState,
        tags: Optional[Mapping[str, str]] = None,
        parent_id: Optional[str] = None,
        name: Optional[str] = None,
        **attributes: Any,
    ) -> ResourceSnapshot:
        tags = dict(tags or {})
        if parent_id is None:
            parent_id = tags.get(self.parent_tag_key)
        return ResourceSnapshot(
            handle=ResourceHandle(resource_id=resource_id, kind=kind, parent_id=parent_id),
            state=state,
            name=name if name is not None else tags.get(NAME_TAG),
            attributes={"tags": tags, **attributes},
        )

    @staticmethod
    def _map_state(
        raw_state: Optional[str],
        state_map: Mapping[str, LifecycleState],
        default: LifecycleState = LifecycleState.FAULTED,
    ) -> LifecycleState:
        if raw_state is None:
            return default
        return state_map.get(raw_state, default)

"""Create, locate and delete workflows for every resource kind."""

import threading
import time
from typing import Callable, Iterable, Iterator, Optional, TypeVar, Union

from lifecycle_orchestrator.application.services.path_resolver import PathResolver
from lifecycle_orchestrator.application.services.region_guard import HomeRegionGuard
from lifecycle_orchestrator.application.services.rule_set_mutator import RuleSetMutator
from lifecycle_orchestrator.application.services.state_poller import StatePoller
from lifecycle_orchestrator.config.settings import LifecycleSettings
from lifecycle_orchestrator.domain.base.events import (
    DomainEvent,
    EventPublisher,
    OperationFailedEvent,
    ResourceCreatedEvent,
    ResourceDeletedEvent,
    ResourceUpdatedEvent,
)
from lifecycle_orchestrator.domain.base.exceptions import (
    LifecycleError,
    ProvisioningFailedError,
    ResourceNotFoundError,
    UnavailableError,
    ValidationError,
)
from lifecycle_orchestrator.domain.base.ports import CloudProviderPort, CredentialPort
from lifecycle_orchestrator.domain.base.value_objects import (
    ResourceHandle,
    ResourceKind,
    ResourcePath,
    ResourceQuery,
    ResourceSnapshot,
)
from lifecycle_orchestrator.domain.resource.lifecycle import LifecycleModel, lifecycle_for
from lifecycle_orchestrator.domain.resource.rules import (
    ALL_IPV4_CIDR,
    RuleDestinationType,
    RuleEntry,
    RuleKey,
)
from lifecycle_orchestrator.domain.resource.specs import ResourceSpec
from lifecycle_orchestrator.infrastructure.logging.logger import get_logger
from lifecycle_orchestrator.infrastructure.region_context import RegionContext

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_ROUTE_TABLE_ATTRIBUTE = "default_route_table_id"


class ResourceLifecycleOrchestrator:
    """
    Composes the state poller, path resolver, rule-set mutator and home region
    guard into create/locate/delete workflows.

    Creation is never retried automatically: duplicate-name semantics vary by
    provider, so a second create is not assumed to be safe. When polling is
    cancelled or times out the provider-side resource is left as is; issuing a
    compensating ``delete`` is up to the caller.
    """

    def __init__(
        self,
        provider: CloudProviderPort,
        credentials: CredentialPort,
        region_context: RegionContext,
        settings: Optional[LifecycleSettings] = None,
        poller: Optional[StatePoller] = None,
        event_publisher: Optional[EventPublisher] = None,
    ) -> None:
        self._provider = provider
        self._credentials = credentials
        self._region_context = region_context
        self._settings = settings or LifecycleSettings()
        self._poller = poller or StatePoller(self._settings.default_policy)
        self._event_publisher = event_publisher
        self._guard = HomeRegionGuard(region_context, self._resolve_home_region)
        self._mutator = RuleSetMutator(self._poller, on_commit=self._publish_rule_change)
        self._root: Optional[ResourceHandle] = None

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    def create(
        self,
        spec: ResourceSpec,
        cancel_token: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> ResourceSnapshot:
        """
        Submit ``spec`` and wait until the resource reaches its create target.

        Raises:
            ProvisioningFailedError: The resource entered a failure state.
            PollTimeoutError: The kind's poll budget elapsed.
        """
        return self._create(
            spec,
            lambda: self._provider.create(spec),
            "create",
            None,
            cancel_token,
            deadline,
        )

    def create_from_existing(
        self,
        source: ResourceHandle,
        spec: ResourceSpec,
        cancel_token: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> ResourceSnapshot:
        """Create a resource cloned from ``source``, with the same polling as ``create``."""
        return self._create(
            spec,
            lambda: self._provider.create_from_existing(source, spec),
            "create_from_existing",
            source,
            cancel_token,
            deadline,
        )

    def _create(
        self,
        spec: ResourceSpec,
        submit: Callable[[], ResourceHandle],
        operation_type: str,
        source: Optional[ResourceHandle],
        cancel_token: Optional[threading.Event],
        deadline: Optional[float],
    ) -> ResourceSnapshot:
        lifecycle = lifecycle_for(spec.kind)
        started = time.monotonic()

        def workflow() -> tuple[ResourceSnapshot, str]:
            handle = submit()
            logger.info(
                "Submitted %s of %s %r as %s",
                operation_type,
                spec.kind.value,
                spec.name,
                handle.resource_id,
                extra={"resource_id": handle.resource_id, "resource_kind": spec.kind.value},
            )
            try:
                snapshot = self._poller.await_state(
                    self._visible_getter(handle),
                    lifecycle.create_targets,
                    failure_states=lifecycle.failure_states,
                    policy=self._settings.policy_for(spec.kind),
                    cancel_token=cancel_token,
                    deadline=deadline,
                    handle=handle,
                    lifecycle=lifecycle,
                )
            except LifecycleError as e:
                e.details.setdefault("handle", str(handle))
                raise
            return snapshot, self._region_context.region

        snapshot, region = self._run(
            operation_type, spec.kind, None, lambda: self._in_region(lifecycle, workflow)
        )
        duration = time.monotonic() - started
        logger.info(
            "Created %s %s in state %s after %.1fs",
            spec.kind.value,
            snapshot.resource_id,
            snapshot.state.value,
            duration,
        )
        self._publish(
            ResourceCreatedEvent(
                resource_id=snapshot.resource_id,
                resource_kind=spec.kind.value,
                region=region,
                state=snapshot.state.value,
                source_id=source.resource_id if source is not None else None,
                duration_seconds=round(duration, 3),
            )
        )
        return snapshot

    def _visible_getter(self, handle: ResourceHandle) -> Callable[[], ResourceSnapshot]:
        """Getter that treats "not found yet" as transient while a new resource propagates."""

        def getter() -> ResourceSnapshot:
            try:
                return self._provider.get(handle)
            except ResourceNotFoundError as e:
                raise UnavailableError(
                    f"{handle} not visible yet", {"handle": str(handle), "cause": e.message}
                ) from e

        return getter

    # ------------------------------------------------------------------
    # delete
    # ------------------------------------------------------------------

    def delete(
        self,
        handle: ResourceHandle,
        cancel_token: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> None:
        """
        Delete ``handle`` and wait until it is terminated.

        A resource that is already gone counts as deleted. A resource that is
        faulted when the delete starts is waited on like any other; a failure
        state only ends the wait once the resource has been seen outside it.

        Raises:
            ResourceInUseError: Dependents block the delete (surfaced as is, not retried).
            ProvisioningFailedError: The resource faulted while being deleted.
            PollTimeoutError: The kind's poll budget elapsed.
        """
        lifecycle = lifecycle_for(handle.kind)
        started = time.monotonic()

        def workflow() -> str:
            region = self._region_context.region
            try:
                self._provider.delete(handle)
            except ResourceNotFoundError:
                logger.info("%s already deleted", handle)
                return region
            self._poller.await_state(
                self._deletion_getter(handle, lifecycle),
                lifecycle.delete_target,
                policy=self._settings.policy_for(handle.kind),
                cancel_token=cancel_token,
                deadline=deadline,
                handle=handle,
                lifecycle=lifecycle,
            )
            return region

        region = self._run(
            "delete", handle.kind, handle.resource_id, lambda: self._in_region(lifecycle, workflow)
        )
        duration = time.monotonic() - started
        logger.info("Deleted %s after %.1fs", handle, duration)
        self._publish(
            ResourceDeletedEvent(
                resource_id=handle.resource_id,
                resource_kind=handle.kind.value,
                region=region,
                duration_seconds=round(duration, 3),
            )
        )

    def _deletion_getter(
        self, handle: ResourceHandle, lifecycle: LifecycleModel
    ) -> Callable[[], ResourceSnapshot]:
        left_failure = False

        def getter() -> ResourceSnapshot:
            nonlocal left_failure
            try:
                snapshot = self._provider.get(handle)
            except ResourceNotFoundError:
                return ResourceSnapshot(handle=handle, state=lifecycle.delete_target)
            if snapshot.state not in lifecycle.failure_states:
                left_failure = True
            elif left_failure:
                raise ProvisioningFailedError(
                    f"{handle} entered failure state {snapshot.state.value} while being deleted",
                    {"handle": str(handle), "last_state": snapshot.state.value},
                )
            return snapshot

        return getter

    # ------------------------------------------------------------------
    # locate
    # ------------------------------------------------------------------

    def locate(
        self,
        query: Union[str, ResourcePath, ResourceQuery],
        start: Optional[ResourceHandle] = None,
    ) -> Optional[ResourceSnapshot]:
        """
        Find an active resource.

        A ``str`` or ``ResourcePath`` is resolved over the compartment tree
        (absolute paths from the root, relative ones from ``start``). A
        ``ResourceQuery`` lists the parent and returns the first active match
        in provider order.

        Returns:
            The matching snapshot, or None.
        """
        if isinstance(query, ResourceQuery):
            return self._first_active(query)
        return self._locate_by_path(query, start)

    def resolve_path(
        self,
        path: Union[str, ResourcePath],
        start: Optional[ResourceHandle] = None,
    ) -> Optional[ResourceHandle]:
        """Resolve a compartment path to a handle, or None."""
        return self._path_resolver(lambda snapshot: None).resolve(path, start)

    def _locate_by_path(
        self,
        path: Union[str, ResourcePath],
        start: Optional[ResourceHandle],
    ) -> Optional[ResourceSnapshot]:
        matched: dict[str, ResourceSnapshot] = {}
        resolver = self._path_resolver(lambda snapshot: matched.__setitem__(snapshot.resource_id, snapshot))
        handle = resolver.resolve(path, start)
        if handle is None:
            return None
        if handle.resource_id in matched:
            return matched[handle.resource_id]
        try:
            return self._provider.get(handle)
        except ResourceNotFoundError:
            return None

    def _path_resolver(self, on_match: Callable[[ResourceSnapshot], None]) -> PathResolver:
        def lookup_child(name: str, parent: ResourceHandle) -> Optional[ResourceHandle]:
            if not name.strip():
                return None
            snapshot = self._first_active(
                ResourceQuery(kind=ResourceKind.COMPARTMENT, parent_id=parent.resource_id, name=name)
            )
            if snapshot is None:
                return None
            on_match(snapshot)
            return snapshot.handle

        return PathResolver(lookup_child, self.root)

    def _first_active(self, query: ResourceQuery) -> Optional[ResourceSnapshot]:
        for snapshot in self._iter_active(query):
            return snapshot
        return None

    def _iter_active(self, query: ResourceQuery) -> Iterator[ResourceSnapshot]:
        lifecycle = lifecycle_for(query.kind)
        eligible = lifecycle.active_states
        if query.states is not None:
            eligible = eligible & query.states
        scoped = query.model_copy(update={"states": frozenset(eligible)})
        for snapshot in self._provider.list(query.parent_id, scoped):
            # Never trust the provider-side filter alone.
            if snapshot.state not in eligible:
                continue
            if query.name is not None and snapshot.name != query.name:
                continue
            yield snapshot

    def list_children(self, kind: ResourceKind, parent_id: Optional[str]) -> list[ResourceSnapshot]:
        """Active resources of ``kind`` under ``parent_id`` in provider order."""
        return list(self._iter_active(ResourceQuery(kind=kind, parent_id=parent_id)))

    def map_children(self, kind: ResourceKind, parent_id: Optional[str]) -> dict[str, ResourceSnapshot]:
        """Active resources of ``kind`` under ``parent_id`` keyed by name, first one wins."""
        mapped: dict[str, ResourceSnapshot] = {}
        for snapshot in self._iter_active(ResourceQuery(kind=kind, parent_id=parent_id)):
            if snapshot.name is not None:
                mapped.setdefault(snapshot.name, snapshot)
        return mapped

    def root(self) -> ResourceHandle:
        """Handle of the caller's root compartment."""
        if self._root is None:
            self._root = ResourceHandle(
                resource_id=self._credentials.get_caller_root_id(),
                kind=ResourceKind.COMPARTMENT,
            )
        return self._root

    def list_regions(self, exclude_home: bool = False, exclude: Iterable[str] = ()) -> list[str]:
        """Subscribed regions sorted by name, optionally without the home region."""
        skipped = set(exclude)
        if exclude_home:
            skipped.add(self._resolve_home_region())
        return self._credentials.list_regions(exclude=skipped)

    # ------------------------------------------------------------------
    # rule sets
    # ------------------------------------------------------------------

    def upsert_rule(
        self,
        route_table: ResourceHandle,
        entry: RuleEntry,
        cancel_token: Optional[threading.Event] = None,
    ) -> RuleEntry:
        """Ensure ``entry`` is in the route table; idempotent on the rule key."""
        self._require_kind(route_table, ResourceKind.ROUTE_TABLE)
        return self._run(
            "upsert_rule",
            route_table.kind,
            route_table.resource_id,
            lambda: self._mutator.upsert_rule(
                route_table,
                entry,
                lambda: self._provider.get(route_table),
                self._provider.update,
                policy=self._settings.policy_for(ResourceKind.ROUTE_TABLE),
                cancel_token=cancel_token,
            ),
        )

    def remove_rule(
        self,
        route_table: ResourceHandle,
        key: RuleKey,
        cancel_token: Optional[threading.Event] = None,
    ) -> bool:
        """Ensure no rule with ``key`` remains in the route table; False if there was none."""
        self._require_kind(route_table, ResourceKind.ROUTE_TABLE)
        return self._run(
            "remove_rule",
            route_table.kind,
            route_table.resource_id,
            lambda: self._mutator.remove_rule(
                route_table,
                key,
                lambda: self._provider.get(route_table),
                self._provider.update,
                policy=self._settings.policy_for(ResourceKind.ROUTE_TABLE),
                cancel_token=cancel_token,
            ),
        )

    def add_gateway_route(
        self,
        network: ResourceHandle,
        gateway: ResourceHandle,
        destination: str = ALL_IPV4_CIDR,
    ) -> RuleEntry:
        """Route ``destination`` through ``gateway`` in the network's default route table."""
        entry = RuleEntry(
            destination_type=RuleDestinationType.CIDR_BLOCK,
            destination=destination,
            target_id=gateway.resource_id,
        )
        return self.upsert_rule(self._default_route_table(network), entry)

    def remove_gateway_route(
        self,
        network: ResourceHandle,
        gateway: ResourceHandle,
        destination: str = ALL_IPV4_CIDR,
    ) -> bool:
        """Remove the ``destination`` route through ``gateway`` from the default route table."""
        key = RuleKey(RuleDestinationType.CIDR_BLOCK, destination, gateway.resource_id)
        return self.remove_rule(self._default_route_table(network), key)

    def _default_route_table(self, network: ResourceHandle) -> ResourceHandle:
        self._require_kind(network, ResourceKind.NETWORK)
        snapshot = self._provider.get(network)
        route_table_id = snapshot.attribute(DEFAULT_ROUTE_TABLE_ATTRIBUTE)
        if not route_table_id:
            raise ValidationError(
                f"{network} has no default route table",
                details={"handle": str(network)},
            )
        return ResourceHandle(
            resource_id=route_table_id,
            kind=ResourceKind.ROUTE_TABLE,
            parent_id=network.resource_id,
        )

    def _publish_rule_change(self, route_table: ResourceHandle, action: str, key: RuleKey) -> None:
        self._publish(
            ResourceUpdatedEvent(
                resource_id=route_table.resource_id,
                resource_kind=route_table.kind.value,
                region=self._region_context.region,
                changes={
                    action: {
                        "destination_type": key.destination_type.value,
                        "destination": key.destination,
                        "target_id": key.target_id,
                    }
                },
            )
        )

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _resolve_home_region(self) -> str:
        return self._settings.home_region or self._provider.get_home_region()

    def _in_region(self, lifecycle: LifecycleModel, workflow: Callable[[], T]) -> T:
        if lifecycle.home_region_only:
            return self._guard.run(workflow)
        return workflow()

    def _run(
        self,
        operation_type: str,
        kind: ResourceKind,
        resource_id: Optional[str],
        operation: Callable[[], T],
    ) -> T:
        try:
            return operation()
        except LifecycleError as e:
            logger.error(
                "%s of %s failed: %s",
                operation_type,
                kind.value,
                e,
                extra={"error_code": e.error_code, "details": e.details},
            )
            self._publish(
                OperationFailedEvent(
                    operation_type=operation_type,
                    resource_kind=kind.value,
                    resource_id=resource_id or e.details.get("handle"),
                    error_code=e.error_code,
                    error_message=e.message,
                    error_details={k: str(v) for k, v in e.details.items()},
                )
            )
            raise

    def _publish(self, event: DomainEvent) -> None:
        if self._event_publisher is not None:
            self._event_publisher(event)

    @staticmethod
    def _require_kind(handle: ResourceHandle, kind: ResourceKind) -> None:
        if handle.kind != kind:
            raise ValidationError(
                f"Expected a {kind.value} handle, got {handle.kind.value}",
                details={"handle": str(handle)},
            )

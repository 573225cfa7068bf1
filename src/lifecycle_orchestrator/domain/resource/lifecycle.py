"""Lifecycle models: the state graph each resource kind moves through."""

from dataclasses import dataclass, field
from typing import Mapping

from lifecycle_orchestrator.domain.base.value_objects import LifecycleState, ResourceKind

S = LifecycleState


@dataclass(frozen=True)
class LifecycleModel:
    """Transition graph and well-known state sets for one resource kind."""

    kind: ResourceKind
    transitions: Mapping[LifecycleState, frozenset[LifecycleState]]
    active_states: frozenset[LifecycleState]
    create_targets: frozenset[LifecycleState] = frozenset({S.AVAILABLE})
    delete_target: LifecycleState = S.TERMINATED
    failure_states: frozenset[LifecycleState] = frozenset({S.FAULTED})
    home_region_only: bool = False
    states: frozenset[LifecycleState] = field(init=False)

    def __post_init__(self) -> None:
        known = set(self.transitions)
        for targets in self.transitions.values():
            known.update(targets)
        object.__setattr__(self, "states", frozenset(known))

    def is_active(self, state: LifecycleState) -> bool:
        return state in self.active_states

    def can_transition(self, current: LifecycleState, new: LifecycleState) -> bool:
        """True when ``new`` is ``current`` or a forward move along the graph."""
        if current == new:
            return True
        return new in self._reachable_from(current)

    def _reachable_from(self, state: LifecycleState) -> frozenset[LifecycleState]:
        seen: set[LifecycleState] = set()
        pending = list(self.transitions.get(state, ()))
        while pending:
            nxt = pending.pop()
            if nxt in seen:
                continue
            seen.add(nxt)
            pending.extend(self.transitions.get(nxt, ()))
        return frozenset(seen)


def _graph(**edges: tuple[LifecycleState, ...]) -> dict[LifecycleState, frozenset[LifecycleState]]:
    return {S(name.lower()): frozenset(targets) for name, targets in edges.items()}


# Networks, subnets, gateways, buckets and compartments share a simple
# provision -> available -> terminate path.
_SIMPLE = _graph(
    PROVISIONING=(S.AVAILABLE, S.FAULTED, S.TERMINATING),
    AVAILABLE=(S.UPDATING, S.TERMINATING),
    UPDATING=(S.AVAILABLE, S.FAULTED, S.TERMINATING),
    TERMINATING=(S.TERMINATED, S.FAULTED),
    FAULTED=(S.TERMINATING,),
)

# Instances can also stop and start again, so AVAILABLE and STOPPED form a cycle.
# A cycle is a legal forward path, the poller only flags moves the graph cannot reach.
_INSTANCE = _graph(
    PROVISIONING=(S.AVAILABLE, S.FAULTED, S.TERMINATING),
    AVAILABLE=(S.STOPPING, S.TERMINATING),
    STOPPING=(S.STOPPED, S.TERMINATING),
    STOPPED=(S.PROVISIONING, S.TERMINATING),
    TERMINATING=(S.TERMINATED,),
    FAULTED=(S.TERMINATING,),
)

_ACTIVE = frozenset({S.PROVISIONING, S.AVAILABLE, S.UPDATING})

LIFECYCLE_MODELS: dict[ResourceKind, LifecycleModel] = {
    ResourceKind.COMPARTMENT: LifecycleModel(
        kind=ResourceKind.COMPARTMENT,
        transitions=_SIMPLE,
        active_states=frozenset({S.AVAILABLE}),
        home_region_only=True,
    ),
    ResourceKind.INSTANCE: LifecycleModel(
        kind=ResourceKind.INSTANCE,
        transitions=_INSTANCE,
        active_states=frozenset({S.PROVISIONING, S.AVAILABLE, S.STOPPING, S.STOPPED}),
    ),
    ResourceKind.VOLUME: LifecycleModel(
        kind=ResourceKind.VOLUME,
        transitions=_SIMPLE,
        active_states=_ACTIVE,
    ),
    ResourceKind.VOLUME_BACKUP: LifecycleModel(
        kind=ResourceKind.VOLUME_BACKUP,
        transitions=_SIMPLE,
        active_states=_ACTIVE,
    ),
    ResourceKind.NETWORK: LifecycleModel(
        kind=ResourceKind.NETWORK,
        transitions=_SIMPLE,
        active_states=_ACTIVE,
    ),
    ResourceKind.SUBNET: LifecycleModel(
        kind=ResourceKind.SUBNET,
        transitions=_SIMPLE,
        active_states=frozenset({S.AVAILABLE}),
    ),
    ResourceKind.INTERNET_GATEWAY: LifecycleModel(
        kind=ResourceKind.INTERNET_GATEWAY,
        transitions=_SIMPLE,
        active_states=frozenset({S.PROVISIONING, S.AVAILABLE}),
    ),
    ResourceKind.ROUTE_TABLE: LifecycleModel(
        kind=ResourceKind.ROUTE_TABLE,
        transitions=_SIMPLE,
        active_states=_ACTIVE,
    ),
    ResourceKind.BUCKET: LifecycleModel(
        kind=ResourceKind.BUCKET,
        transitions=_SIMPLE,
        active_states=frozenset({S.AVAILABLE}),
    ),
}


def lifecycle_for(kind: ResourceKind) -> LifecycleModel:
    """Get the lifecycle model for a resource kind."""
    return LIFECYCLE_MODELS[kind]

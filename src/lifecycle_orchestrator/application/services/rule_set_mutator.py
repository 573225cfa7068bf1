"""Read-modify-write of collection-valued resources such as route tables."""

import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Sequence

from lifecycle_orchestrator.application.services.state_poller import StatePoller
from lifecycle_orchestrator.config.settings import PollPolicy
from lifecycle_orchestrator.domain.base.exceptions import LostUpdateError
from lifecycle_orchestrator.domain.base.value_objects import (
    LifecycleState,
    ResourceHandle,
    ResourceSnapshot,
)
from lifecycle_orchestrator.domain.resource.lifecycle import lifecycle_for
from lifecycle_orchestrator.domain.resource.rules import (
    RULES_ATTRIBUTE,
    RuleEntry,
    RuleKey,
    RuleSet,
)
from lifecycle_orchestrator.infrastructure.logging.logger import get_logger

logger = get_logger(__name__)

CurrentSnapshotFn = Callable[[], ResourceSnapshot]
UpdateFn = Callable[[ResourceHandle, Sequence[RuleEntry]], None]
CommitListener = Callable[[ResourceHandle, str, RuleKey], None]


class _ParentLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


def rules_of(snapshot: ResourceSnapshot) -> RuleSet:
    """Rule set carried by a snapshot of a collection-valued resource."""
    return RuleSet(snapshot.attribute(RULES_ATTRIBUTE, ()))


class RuleSetMutator:
    """
    Idempotent add/remove of single rules on a set-replacing provider API.

    The provider only accepts a full replacement rule set, so each mutation
    reads the current set, computes the new one in memory, submits it whole
    and then waits for the parent to become available again.

    Mutations of the same parent are serialised within this process. Nothing
    protects against another process (or the console) changing the same rule
    set between our read and our write: that write would be lost. Such a lost
    update is detected after convergence and raised as ``LostUpdateError``,
    it is never prevented.
    """

    def __init__(
        self,
        poller: StatePoller,
        policy: Optional[PollPolicy] = None,
        on_commit: Optional[CommitListener] = None,
    ) -> None:
        self._poller = poller
        self._policy = policy
        self._on_commit = on_commit
        self._locks: dict[str, _ParentLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _locked(self, parent: ResourceHandle) -> Iterator[None]:
        """Hold the lock of ``parent``. The entry is dropped once no caller uses it."""
        key = parent.resource_id
        with self._locks_guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _ParentLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[key]

    def upsert_rule(
        self,
        parent: ResourceHandle,
        entry: RuleEntry,
        current_snapshot_fn: CurrentSnapshotFn,
        update_fn: UpdateFn,
        policy: Optional[PollPolicy] = None,
        cancel_token: Optional[threading.Event] = None,
    ) -> RuleEntry:
        """
        Ensure ``entry`` is part of the parent's rule set.

        Returns:
            The existing entry with the same key (no mutation issued), or
            ``entry`` once the replacement set has converged.

        Raises:
            LostUpdateError: The converged rule set does not contain the entry.
        """
        with self._locked(parent):
            current = rules_of(current_snapshot_fn())
            existing = current.find(entry.key)
            if existing is not None:
                logger.debug("Rule %s already present in %s", entry.key, parent)
                return existing

            replacement = current.add(entry)
            logger.info(
                "Adding rule to %s (%d -> %d rules)",
                parent,
                len(current),
                len(replacement),
                extra={"resource_id": parent.resource_id, "rule": entry.model_dump(mode="json")},
            )
            update_fn(parent, replacement.entries)
            committed = self._await_commit(parent, current_snapshot_fn, policy, cancel_token)

            if entry.key not in rules_of(committed):
                self._raise_lost_update(parent, entry.key, "added", committed)
            self._notify(parent, "added", entry.key)
            return entry

    def remove_rule(
        self,
        parent: ResourceHandle,
        key: RuleKey,
        current_snapshot_fn: CurrentSnapshotFn,
        update_fn: UpdateFn,
        policy: Optional[PollPolicy] = None,
        cancel_token: Optional[threading.Event] = None,
    ) -> bool:
        """
        Ensure no rule with ``key`` remains in the parent's rule set.

        Returns:
            False when no matching rule existed (no mutation issued), True once
            the rule has been removed and the parent converged.

        Raises:
            LostUpdateError: The converged rule set still contains the key.
        """
        with self._locked(parent):
            current = rules_of(current_snapshot_fn())
            if key not in current:
                logger.debug("Rule %s not present in %s, nothing to remove", key, parent)
                return False

            replacement = current.remove(key)
            logger.info(
                "Removing rule from %s (%d -> %d rules)",
                parent,
                len(current),
                len(replacement),
                extra={"resource_id": parent.resource_id},
            )
            update_fn(parent, replacement.entries)
            committed = self._await_commit(parent, current_snapshot_fn, policy, cancel_token)

            if key in rules_of(committed):
                self._raise_lost_update(parent, key, "removed", committed)
            self._notify(parent, "removed", key)
            return True

    def _notify(self, parent: ResourceHandle, action: str, key: RuleKey) -> None:
        if self._on_commit is not None:
            self._on_commit(parent, action, key)

    def _await_commit(
        self,
        parent: ResourceHandle,
        current_snapshot_fn: CurrentSnapshotFn,
        policy: Optional[PollPolicy],
        cancel_token: Optional[threading.Event],
    ) -> ResourceSnapshot:
        lifecycle = lifecycle_for(parent.kind)
        return self._poller.await_state(
            current_snapshot_fn,
            LifecycleState.AVAILABLE,
            failure_states=lifecycle.failure_states,
            policy=policy or self._policy,
            cancel_token=cancel_token,
            handle=parent,
            lifecycle=lifecycle,
        )

    @staticmethod
    def _raise_lost_update(
        parent: ResourceHandle,
        key: RuleKey,
        action: str,
        committed: ResourceSnapshot,
    ) -> None:
        logger.warning(
            "Rule %s was %s on %s but the committed rule set disagrees; "
            "a concurrent writer probably replaced it",
            key,
            action,
            parent,
        )
        raise LostUpdateError(
            f"Rule set of {parent} was overwritten after the rule was {action}",
            {
                "handle": str(parent),
                "rule_key": [key.destination_type.value, key.destination, key.target_id],
                "committed_rules": len(rules_of(committed)),
            },
        )

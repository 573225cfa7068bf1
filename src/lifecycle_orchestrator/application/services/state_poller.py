"""Generic poll-until-target-state primitive used by every create and delete."""

import threading
import time
from typing import Callable, Iterable, Optional, Union

from lifecycle_orchestrator.config.settings import PollPolicy
from lifecycle_orchestrator.domain.base.exceptions import (
    OperationCancelledError,
    PollTimeoutError,
    ProvisioningFailedError,
    UnavailableError,
)
from lifecycle_orchestrator.domain.base.value_objects import (
    LifecycleState,
    ResourceHandle,
    ResourceSnapshot,
)
from lifecycle_orchestrator.domain.resource.lifecycle import LifecycleModel
from lifecycle_orchestrator.infrastructure.logging.logger import get_logger

logger = get_logger(__name__)

SnapshotGetter = Callable[[], ResourceSnapshot]
StateTarget = Union[LifecycleState, Iterable[LifecycleState]]


def _as_state_set(states: StateTarget) -> frozenset[LifecycleState]:
    if isinstance(states, LifecycleState):
        return frozenset({states})
    return frozenset(states)


class StatePoller:
    """
    Repeatedly reads a resource until it reaches a target state.

    The poller is purely observational: it never mutates the resource and never
    rolls back provider-side work when it gives up or is cancelled. ``sleep``
    and ``clock`` are injectable so tests can run without real delays.
    """

    def __init__(
        self,
        default_policy: Optional[PollPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_policy = default_policy or PollPolicy()
        self._sleep = sleep
        self._clock = clock

    def await_state(
        self,
        getter: SnapshotGetter,
        target: StateTarget,
        failure_states: Iterable[LifecycleState] = (),
        policy: Optional[PollPolicy] = None,
        cancel_token: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
        handle: Optional[ResourceHandle] = None,
        lifecycle: Optional[LifecycleModel] = None,
    ) -> ResourceSnapshot:
        """
        Poll ``getter`` until the snapshot state is in ``target``.

        Args:
            getter: Reads the current snapshot. May raise UnavailableError for transient failures.
            target: State or states that end the loop successfully.
            failure_states: States that end the loop with ProvisioningFailedError.
            policy: Poll budget and pacing, defaults to the poller's default policy.
            cancel_token: Event checked between polls; when set the loop raises OperationCancelledError.
            deadline: Absolute deadline on the poller's clock, tightens ``policy.timeout``.
            handle: Resource being awaited, used for error context before the first read.
            lifecycle: When given, observed transitions are checked against its graph.

        Returns:
            The first snapshot whose state is in ``target``.

        Raises:
            ProvisioningFailedError: A failure state was observed.
            PollTimeoutError: The time or poll budget ran out.
            UnavailableError: Too many consecutive transient getter failures.
            OperationCancelledError: ``cancel_token`` was set.
        """
        targets = _as_state_set(target)
        failures = _as_state_set(failure_states) - targets
        policy = policy or self.default_policy

        started = self._clock()
        budget_end = started + policy.timeout
        if deadline is not None:
            budget_end = min(budget_end, deadline)

        polls = 0
        transient_errors = 0
        last: Optional[ResourceSnapshot] = None

        def context(**extra) -> dict:
            current = last.handle if last is not None else handle
            details = {
                "handle": str(current) if current is not None else None,
                "target_states": sorted(s.value for s in targets),
                "last_state": last.state.value if last is not None else None,
                "polls": polls,
                "elapsed_seconds": round(self._clock() - started, 3),
            }
            details.update(extra)
            return details

        while True:
            if cancel_token is not None and cancel_token.is_set():
                raise OperationCancelledError(
                    "Polling cancelled before target state was reached", context()
                )

            try:
                snapshot = getter()
            except UnavailableError as e:
                transient_errors += 1
                if transient_errors > policy.max_transient_errors:
                    logger.error(
                        "Giving up after %d consecutive transient errors: %s",
                        transient_errors,
                        e,
                        extra=context(),
                    )
                    raise UnavailableError(
                        f"Provider unavailable while polling: {e}",
                        context(transient_errors=transient_errors, cause=e.to_dict()),
                    ) from e
                logger.debug(
                    "Transient error while polling (%d/%d): %s",
                    transient_errors,
                    policy.max_transient_errors,
                    e,
                )
            else:
                transient_errors = 0
                polls += 1
                if lifecycle is not None and last is not None:
                    self._check_transition(lifecycle, last, snapshot)
                last = snapshot
                logger.debug(
                    "Poll %d for %s observed state %s",
                    polls,
                    snapshot.handle,
                    snapshot.state.value,
                )

                if snapshot.state in targets:
                    return snapshot
                if snapshot.state in failures:
                    raise ProvisioningFailedError(
                        f"{snapshot.handle} entered failure state {snapshot.state.value}",
                        context(),
                    )
                if policy.max_polls is not None and polls >= policy.max_polls:
                    raise PollTimeoutError(
                        f"{snapshot.handle} did not reach {sorted(s.value for s in targets)} "
                        f"within {polls} polls",
                        context(),
                    )

            now = self._clock()
            if now >= budget_end:
                raise PollTimeoutError(
                    f"Timed out after {now - started:.1f}s waiting for "
                    f"{sorted(s.value for s in targets)}",
                    context(),
                )
            delay = min(policy.interval_for(polls + transient_errors), budget_end - now)
            self._pause(delay, cancel_token, context)

    def _pause(
        self,
        delay: float,
        cancel_token: Optional[threading.Event],
        context: Callable[..., dict],
    ) -> None:
        if delay <= 0:
            return
        if cancel_token is None:
            self._sleep(delay)
            return
        if cancel_token.wait(delay):
            raise OperationCancelledError(
                "Polling cancelled before target state was reached", context()
            )

    @staticmethod
    def _check_transition(
        lifecycle: LifecycleModel,
        previous: ResourceSnapshot,
        current: ResourceSnapshot,
    ) -> None:
        if not lifecycle.can_transition(previous.state, current.state):
            logger.warning(
                "%s moved backwards from %s to %s",
                current.handle,
                previous.state.value,
                current.state.value,
                extra={
                    "resource_id": current.resource_id,
                    "previous_state": previous.state.value,
                    "new_state": current.state.value,
                },
            )

"""Tests for the state poller."""

import logging
import threading

import pytest

from lifecycle_orchestrator.application.services.state_poller import StatePoller
from lifecycle_orchestrator.config.settings import PollPolicy
from lifecycle_orchestrator.domain.base.exceptions import (
    OperationCancelledError,
    PollTimeoutError,
    ProvisioningFailedError,
    ResourceNotFoundError,
    UnavailableError,
)
from lifecycle_orchestrator.domain.base.value_objects import (
    LifecycleState,
    ResourceHandle,
    ResourceKind,
    ResourceSnapshot,
)
from lifecycle_orchestrator.domain.resource.lifecycle import lifecycle_for

S = LifecycleState
HANDLE = ResourceHandle(resource_id="vol-1", kind=ResourceKind.VOLUME)


class ScriptedGetter:
    """Returns scripted states (or raises scripted errors), repeating the last item."""

    def __init__(self, *items):
        self.items = list(items)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        item = self.items.pop(0) if len(self.items) > 1 else self.items[0]
        if isinstance(item, Exception):
            raise item
        return ResourceSnapshot(handle=HANDLE, state=item)


@pytest.mark.unit
class TestStatePoller:
    """Test StatePoller.await_state."""

    def test_returns_first_snapshot_in_target_state(self, poller, fake_clock):
        getter = ScriptedGetter(S.PROVISIONING, S.PROVISIONING, S.AVAILABLE)

        snapshot = poller.await_state(getter, S.AVAILABLE)

        assert snapshot.state == S.AVAILABLE
        assert getter.calls == 3
        assert fake_clock.sleeps == [1, 1]

    def test_accepts_a_set_of_targets(self, poller):
        getter = ScriptedGetter(S.PROVISIONING, S.STOPPED)

        snapshot = poller.await_state(getter, {S.AVAILABLE, S.STOPPED})

        assert snapshot.state == S.STOPPED

    def test_already_in_target_state_polls_once(self, poller, fake_clock):
        getter = ScriptedGetter(S.AVAILABLE)

        poller.await_state(getter, S.AVAILABLE)

        assert getter.calls == 1
        assert fake_clock.sleeps == []

    def test_max_polls_bounds_number_of_reads(self, poller):
        getter = ScriptedGetter(S.PROVISIONING)
        policy = PollPolicy(timeout=600, poll_interval=1, max_interval=1, max_polls=3)

        with pytest.raises(PollTimeoutError) as exc_info:
            poller.await_state(getter, S.AVAILABLE, policy=policy, handle=HANDLE)

        assert getter.calls == 3
        details = exc_info.value.details
        assert details["polls"] == 3
        assert details["last_state"] == "provisioning"
        assert details["target_states"] == ["available"]
        assert details["handle"] == "volume:vol-1"

    def test_time_budget_raises_timeout(self, fake_clock):
        poller = StatePoller(sleep=fake_clock.sleep, clock=fake_clock)
        getter = ScriptedGetter(S.PROVISIONING)
        policy = PollPolicy(timeout=5, poll_interval=1, backoff_factor=1.0, max_interval=1)
        started = fake_clock.now

        with pytest.raises(PollTimeoutError) as exc_info:
            poller.await_state(getter, S.AVAILABLE, policy=policy)

        assert isinstance(exc_info.value, TimeoutError)
        assert fake_clock.now - started == pytest.approx(5)
        assert exc_info.value.details["elapsed_seconds"] == pytest.approx(5)

    def test_deadline_tightens_timeout(self, poller, fake_clock):
        getter = ScriptedGetter(S.PROVISIONING)
        started = fake_clock.now

        with pytest.raises(PollTimeoutError):
            poller.await_state(getter, S.AVAILABLE, deadline=started + 2)

        assert fake_clock.now - started == pytest.approx(2)

    def test_failure_state_raises_provisioning_failed(self, poller):
        getter = ScriptedGetter(S.PROVISIONING, S.FAULTED)

        with pytest.raises(ProvisioningFailedError) as exc_info:
            poller.await_state(getter, S.AVAILABLE, failure_states={S.FAULTED})

        assert exc_info.value.details["last_state"] == "faulted"
        assert exc_info.value.error_code == "PROVISIONING_FAILED"

    def test_target_wins_over_failure_state(self, poller):
        getter = ScriptedGetter(S.FAULTED)

        snapshot = poller.await_state(getter, S.FAULTED, failure_states={S.FAULTED})

        assert snapshot.state == S.FAULTED

    def test_transient_errors_are_tolerated(self, poller):
        getter = ScriptedGetter(UnavailableError("throttled"), UnavailableError("throttled"), S.AVAILABLE)

        snapshot = poller.await_state(getter, S.AVAILABLE)

        assert snapshot.state == S.AVAILABLE
        assert getter.calls == 3

    def test_too_many_consecutive_transient_errors_escalate(self, poller):
        getter = ScriptedGetter(UnavailableError("throttled"))

        with pytest.raises(UnavailableError) as exc_info:
            poller.await_state(getter, S.AVAILABLE)

        # fast_policy tolerates 3 consecutive errors
        assert getter.calls == 4
        assert exc_info.value.details["transient_errors"] == 4

    def test_successful_read_resets_transient_error_count(self, poller):
        error = UnavailableError("throttled")
        getter = ScriptedGetter(
            error, error, error, S.PROVISIONING, error, error, error, S.AVAILABLE
        )

        snapshot = poller.await_state(getter, S.AVAILABLE)

        assert snapshot.state == S.AVAILABLE

    def test_non_transient_error_propagates_immediately(self, poller):
        getter = ScriptedGetter(ResourceNotFoundError("gone"))

        with pytest.raises(ResourceNotFoundError):
            poller.await_state(getter, S.AVAILABLE)

        assert getter.calls == 1

    def test_cancelled_before_first_read(self, poller):
        getter = ScriptedGetter(S.AVAILABLE)
        token = threading.Event()
        token.set()

        with pytest.raises(OperationCancelledError):
            poller.await_state(getter, S.AVAILABLE, cancel_token=token)

        assert getter.calls == 0

    def test_cancelled_between_reads(self, poller):
        token = threading.Event()
        getter = ScriptedGetter(S.PROVISIONING)

        def cancelling_getter():
            snapshot = getter()
            token.set()
            return snapshot

        with pytest.raises(OperationCancelledError) as exc_info:
            poller.await_state(cancelling_getter, S.AVAILABLE, cancel_token=token)

        assert getter.calls == 1
        assert exc_info.value.details["last_state"] == "provisioning"

    def test_backwards_transition_is_logged(self, poller, caplog):
        getter = ScriptedGetter(S.TERMINATING, S.PROVISIONING, S.TERMINATED)

        with caplog.at_level(logging.WARNING, logger="lifecycle_orchestrator"):
            poller.await_state(getter, S.TERMINATED, lifecycle=lifecycle_for(ResourceKind.VOLUME))

        assert any("moved backwards" in record.getMessage() for record in caplog.records)

    def test_forward_transitions_are_not_logged(self, poller, caplog):
        getter = ScriptedGetter(S.PROVISIONING, S.AVAILABLE)

        with caplog.at_level(logging.WARNING, logger="lifecycle_orchestrator"):
            poller.await_state(getter, S.AVAILABLE, lifecycle=lifecycle_for(ResourceKind.VOLUME))

        assert not caplog.records

    def test_backoff_grows_to_max_interval(self, fake_clock):
        poller = StatePoller(sleep=fake_clock.sleep, clock=fake_clock)
        getter = ScriptedGetter(S.PROVISIONING, S.PROVISIONING, S.PROVISIONING, S.PROVISIONING, S.AVAILABLE)
        policy = PollPolicy(timeout=600, poll_interval=1, backoff_factor=2.0, max_interval=5)

        poller.await_state(getter, S.AVAILABLE, policy=policy)

        assert fake_clock.sleeps == [1, 2, 4, 5]

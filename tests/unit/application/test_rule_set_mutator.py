"""Tests for idempotent rule-set mutation."""

import threading

import pytest

from lifecycle_orchestrator.application.services.rule_set_mutator import RuleSetMutator, rules_of
from lifecycle_orchestrator.domain.base.exceptions import LostUpdateError, ProvisioningFailedError
from lifecycle_orchestrator.domain.base.value_objects import LifecycleState, ResourceKind
from lifecycle_orchestrator.domain.resource.rules import RuleDestinationType, RuleEntry, RuleKey

S = LifecycleState

DEFAULT_ROUTE = RuleEntry(destination="0.0.0.0/0", target_id="igw-1")
PEER_ROUTE = RuleEntry(destination="10.1.0.0/16", target_id="pcx-1")


@pytest.mark.unit
class TestRuleSetMutator:
    """Test RuleSetMutator upsert/remove against the fake provider."""

    @pytest.fixture(autouse=True)
    def setup(self, fake_provider, poller):
        self.provider = fake_provider
        self.table = fake_provider.add(ResourceKind.ROUTE_TABLE, "main", parent_id="vpc-1")
        self.commits = []
        self.mutator = RuleSetMutator(poller, on_commit=lambda *args: self.commits.append(args))

    def upsert(self, entry):
        return self.mutator.upsert_rule(
            self.table, entry, lambda: self.provider.get(self.table), self.provider.update
        )

    def remove(self, key):
        return self.mutator.remove_rule(
            self.table, key, lambda: self.provider.get(self.table), self.provider.update
        )

    def test_upsert_adds_rule_and_waits_for_available(self):
        result = self.upsert(DEFAULT_ROUTE)

        assert result == DEFAULT_ROUTE
        assert self.provider.rules(self.table.resource_id) == (DEFAULT_ROUTE,)
        assert self.provider.count("update") == 1
        # read, then UPDATING, then AVAILABLE
        assert self.provider.count("get") == 3

    def test_upsert_twice_issues_one_update(self):
        self.upsert(DEFAULT_ROUTE)
        second = self.upsert(RuleEntry(destination="0.0.0.0/0", target_id="igw-1", description="again"))

        assert self.provider.count("update") == 1
        assert second == DEFAULT_ROUTE
        assert len(self.provider.rules(self.table.resource_id)) == 1

    def test_upsert_keeps_existing_rules(self):
        self.provider.set_rules(self.table.resource_id, [PEER_ROUTE])

        self.upsert(DEFAULT_ROUTE)

        assert self.provider.rules(self.table.resource_id) == (PEER_ROUTE, DEFAULT_ROUTE)

    def test_remove_missing_rule_is_a_no_op(self):
        removed = self.remove(DEFAULT_ROUTE.key)

        assert removed is False
        assert self.provider.count("update") == 0

    def test_remove_existing_rule(self):
        self.provider.set_rules(self.table.resource_id, [PEER_ROUTE, DEFAULT_ROUTE])

        removed = self.remove(DEFAULT_ROUTE.key)

        assert removed is True
        assert self.provider.rules(self.table.resource_id) == (PEER_ROUTE,)

    def test_rule_identity_includes_target(self):
        self.provider.set_rules(self.table.resource_id, [DEFAULT_ROUTE])

        removed = self.remove(RuleKey(RuleDestinationType.CIDR_BLOCK, "0.0.0.0/0", "igw-other"))

        assert removed is False
        assert self.provider.rules(self.table.resource_id) == (DEFAULT_ROUTE,)

    def test_overwritten_upsert_raises_lost_update(self):
        def concurrent_writer(handle):
            self.provider.set_rules(handle.resource_id, [PEER_ROUTE])

        self.provider.after_update = concurrent_writer

        with pytest.raises(LostUpdateError) as exc_info:
            self.upsert(DEFAULT_ROUTE)

        assert exc_info.value.details["handle"] == str(self.table)
        assert self.commits == []

    def test_overwritten_remove_raises_lost_update(self):
        self.provider.set_rules(self.table.resource_id, [DEFAULT_ROUTE])

        def concurrent_writer(handle):
            self.provider.set_rules(handle.resource_id, [DEFAULT_ROUTE])

        self.provider.after_update = concurrent_writer

        with pytest.raises(LostUpdateError):
            self.remove(DEFAULT_ROUTE.key)

    def test_faulted_parent_fails_mutation(self):
        self.provider.update_script = [S.UPDATING, S.FAULTED]

        with pytest.raises(ProvisioningFailedError):
            self.upsert(DEFAULT_ROUTE)

    def test_commit_listener_sees_changes_only(self):
        self.upsert(DEFAULT_ROUTE)
        self.upsert(DEFAULT_ROUTE)
        self.remove(DEFAULT_ROUTE.key)
        self.remove(DEFAULT_ROUTE.key)

        assert self.commits == [
            (self.table, "added", DEFAULT_ROUTE.key),
            (self.table, "removed", DEFAULT_ROUTE.key),
        ]

    def test_concurrent_upserts_on_same_parent_are_serialised(self):
        entries = [RuleEntry(destination=f"10.{i}.0.0/16", target_id=f"pcx-{i}") for i in range(5)]
        errors = []

        def worker(entry):
            try:
                self.upsert(entry)
            except Exception as e:  # surfaced through the errors list
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(entry,)) for entry in entries]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert errors == []
        assert {rule.key for rule in self.provider.rules(self.table.resource_id)} == {e.key for e in entries}
        assert self.mutator._locks == {}

    def test_parent_lock_released_after_mutation(self):
        self.upsert(DEFAULT_ROUTE)
        self.remove(DEFAULT_ROUTE.key)

        assert self.mutator._locks == {}

    def test_parent_lock_released_after_failure(self):
        self.provider.update_script = [S.FAULTED]

        with pytest.raises(ProvisioningFailedError):
            self.upsert(DEFAULT_ROUTE)

        assert self.mutator._locks == {}


@pytest.mark.unit
class TestRulesOf:
    """Test rules_of snapshot helper."""

    def test_snapshot_without_rules_is_empty(self, fake_provider):
        handle = fake_provider.add(ResourceKind.NETWORK, "net")

        assert len(rules_of(fake_provider.get(handle))) == 0

"""Tests for domain value objects, rule sets, lifecycle models and specs."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from lifecycle_orchestrator.domain.base.exceptions import (
    LifecycleError,
    PollTimeoutError,
    ResourceNotFoundError,
)
from lifecycle_orchestrator.domain.base.value_objects import (
    LifecycleState,
    ResourceHandle,
    ResourceKind,
    ResourceQuery,
    ResourceSnapshot,
)
from lifecycle_orchestrator.domain.resource.lifecycle import LIFECYCLE_MODELS, lifecycle_for
from lifecycle_orchestrator.domain.resource.rules import RuleDestinationType, RuleEntry, RuleKey, RuleSet
from lifecycle_orchestrator.domain.resource.specs import (
    BucketSpec,
    CompartmentSpec,
    InternetGatewaySpec,
    SubnetSpec,
    VolumeSpec,
)

S = LifecycleState


@pytest.mark.unit
class TestValueObjects:
    """Test handles, snapshots and queries."""

    def test_handle_is_immutable_and_hashable(self):
        handle = ResourceHandle(resource_id="vpc-1", kind=ResourceKind.NETWORK)

        with pytest.raises(PydanticValidationError):
            handle.resource_id = "vpc-2"
        assert {handle: 1}[ResourceHandle(resource_id="vpc-1", kind=ResourceKind.NETWORK)] == 1
        assert str(handle) == "network:vpc-1"

    def test_handle_requires_id(self):
        with pytest.raises(PydanticValidationError):
            ResourceHandle(resource_id="", kind=ResourceKind.NETWORK)

    def test_with_state_returns_new_snapshot(self):
        handle = ResourceHandle(resource_id="vol-1", kind=ResourceKind.VOLUME)
        snapshot = ResourceSnapshot(handle=handle, state=S.TERMINATING, name="data", attributes={"size_gb": 8})

        terminated = snapshot.with_state(S.TERMINATED)

        assert snapshot.state == S.TERMINATING
        assert terminated.state == S.TERMINATED
        assert terminated.attribute("size_gb") == 8
        assert terminated.attribute("missing", "default") == "default"
        assert terminated.observed_at >= snapshot.observed_at

    def test_query_rejects_blank_name(self):
        with pytest.raises(PydanticValidationError):
            ResourceQuery(kind=ResourceKind.INSTANCE, name="  ")

    def test_snapshot_attributes_are_read_only(self):
        source = {"size_gb": 8}
        handle = ResourceHandle(resource_id="vol-1", kind=ResourceKind.VOLUME)
        snapshot = ResourceSnapshot(handle=handle, state=S.AVAILABLE, attributes=source)

        with pytest.raises(TypeError):
            snapshot.attributes["size_gb"] = 16
        with pytest.raises(TypeError):
            ResourceSnapshot(handle=handle, state=S.AVAILABLE).attributes["x"] = 1
        source["size_gb"] = 32
        assert snapshot.attribute("size_gb") == 8
        assert snapshot.model_dump()["attributes"] == {"size_gb": 8}


@pytest.mark.unit
class TestRuleSet:
    """Test rule identity and set operations."""

    def test_key_ignores_description(self):
        first = RuleEntry(destination="0.0.0.0/0", target_id="igw-1", description="internet")
        second = RuleEntry(destination="0.0.0.0/0", target_id="igw-1")

        assert first.key == second.key == RuleKey(RuleDestinationType.CIDR_BLOCK, "0.0.0.0/0", "igw-1")

    def test_duplicates_keep_first(self):
        first = RuleEntry(destination="0.0.0.0/0", target_id="igw-1", description="first")
        second = RuleEntry(destination="0.0.0.0/0", target_id="igw-1", description="second")

        rules = RuleSet([first, second])

        assert len(rules) == 1
        assert rules.find(first.key).description == "first"

    def test_add_and_remove_return_new_sets(self):
        entry = RuleEntry(destination="10.0.0.0/8", target_id="pcx-1")
        empty = RuleSet()

        added = empty.add(entry)
        removed = added.remove(entry.key)

        assert len(empty) == 0
        assert entry.key in added
        assert removed == empty

    def test_add_existing_key_is_identity(self):
        entry = RuleEntry(destination="10.0.0.0/8", target_id="pcx-1")
        rules = RuleSet([entry])

        assert rules.add(RuleEntry(destination="10.0.0.0/8", target_id="pcx-1")) is rules
        assert rules.remove(RuleKey(RuleDestinationType.CIDR_BLOCK, "1.1.1.1/32", "x")) is rules


@pytest.mark.unit
class TestLifecycleModels:
    """Test lifecycle graphs."""

    def test_every_kind_has_a_model(self):
        assert set(LIFECYCLE_MODELS) == set(ResourceKind)

    def test_only_compartments_are_home_region_only(self):
        pinned = {kind for kind, model in LIFECYCLE_MODELS.items() if model.home_region_only}

        assert pinned == {ResourceKind.COMPARTMENT}

    def test_forward_and_backward_transitions(self):
        model = lifecycle_for(ResourceKind.VOLUME)

        assert model.can_transition(S.PROVISIONING, S.AVAILABLE)
        assert model.can_transition(S.PROVISIONING, S.TERMINATED)
        assert model.can_transition(S.AVAILABLE, S.AVAILABLE)
        assert not model.can_transition(S.TERMINATED, S.AVAILABLE)
        assert not model.can_transition(S.TERMINATING, S.PROVISIONING)

    def test_instances_can_restart(self):
        model = lifecycle_for(ResourceKind.INSTANCE)

        assert model.can_transition(S.STOPPED, S.AVAILABLE)
        assert model.is_active(S.STOPPED)
        assert not model.is_active(S.TERMINATED)

    def test_terminal_states_are_never_active(self):
        for model in LIFECYCLE_MODELS.values():
            assert not model.is_active(model.delete_target)
            assert not model.active_states & model.failure_states


@pytest.mark.unit
class TestSpecs:
    """Test creation requests."""

    def test_subnet_requires_parent(self):
        with pytest.raises(PydanticValidationError):
            SubnetSpec(name="web", cidr_block="10.0.1.0/24")

        assert SubnetSpec(name="web", cidr_block="10.0.1.0/24", parent_id="vpc-1").kind == ResourceKind.SUBNET

    def test_gateway_requires_parent(self):
        with pytest.raises(PydanticValidationError):
            InternetGatewaySpec(name="igw")

    def test_unknown_fields_rejected(self):
        with pytest.raises(PydanticValidationError):
            CompartmentSpec(name="dev", colour="blue")

    def test_compartment_default_description(self):
        assert CompartmentSpec(name="dev").description == "Not provided"

    def test_bucket_name_must_be_valid(self):
        with pytest.raises(PydanticValidationError):
            BucketSpec(name="Not_A_Bucket")

    def test_volume_size_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            VolumeSpec(name="data", availability_zone="eu-west-1a", size_gb=0)


@pytest.mark.unit
class TestExceptions:
    """Test exception hierarchy and serialisation."""

    def test_timeout_is_also_builtin_timeout(self):
        error = PollTimeoutError("too slow", {"polls": 3})

        assert isinstance(error, LifecycleError)
        assert isinstance(error, TimeoutError)
        assert error.to_dict() == {
            "error_type": "PollTimeoutError",
            "error_code": "POLL_TIMEOUT",
            "message": "too slow",
            "details": {"polls": 3},
        }

    def test_details_default_to_empty_dict(self):
        assert ResourceNotFoundError("gone").details == {}

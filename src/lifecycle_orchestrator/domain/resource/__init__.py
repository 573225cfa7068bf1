"""Resource lifecycle models, creation requests and rule sets."""

from lifecycle_orchestrator.domain.resource.lifecycle import (
    LIFECYCLE_MODELS,
    LifecycleModel,
    lifecycle_for,
)
from lifecycle_orchestrator.domain.resource.rules import (
    ALL_IPV4_CIDR,
    RULES_ATTRIBUTE,
    RuleDestinationType,
    RuleEntry,
    RuleKey,
    RuleSet,
)
from lifecycle_orchestrator.domain.resource.specs import (
    BucketSpec,
    CompartmentSpec,
    InstanceSpec,
    InternetGatewaySpec,
    NetworkSpec,
    ResourceSpec,
    SubnetSpec,
    VolumeBackupSpec,
    VolumeSpec,
)

__all__ = [
    "ALL_IPV4_CIDR",
    "LIFECYCLE_MODELS",
    "RULES_ATTRIBUTE",
    "BucketSpec",
    "CompartmentSpec",
    "InstanceSpec",
    "InternetGatewaySpec",
    "LifecycleModel",
    "NetworkSpec",
    "ResourceSpec",
    "RuleDestinationType",
    "RuleEntry",
    "RuleKey",
    "RuleSet",
    "SubnetSpec",
    "VolumeBackupSpec",
    "VolumeSpec",
    "lifecycle_for",
]

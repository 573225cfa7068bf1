"""Creation requests, one immutable model per resource kind."""

from typing import ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lifecycle_orchestrator.domain.base.value_objects import ResourceKind


class ResourceSpec(BaseModel):
    """Fields common to every creation request.

    ``parent_id`` is the container the resource is created in: a compartment
    for most kinds, the network for subnets and internet gateways.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ClassVar[ResourceKind]
    requires_parent: ClassVar[bool] = False

    name: str = Field(min_length=1, max_length=255)
    parent_id: Optional[str] = None
    tags: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_parent(self) -> "ResourceSpec":
        if self.requires_parent and not self.parent_id:
            raise ValueError(f"{self.kind.value} requires a parent_id")
        return self


class CompartmentSpec(ResourceSpec):
    """Hierarchical grouping resource. Created and deleted in the home region only."""

    kind: ClassVar[ResourceKind] = ResourceKind.COMPARTMENT

    description: str = "Not provided"


class InstanceSpec(ResourceSpec):
    """Compute instance launch request."""

    kind: ClassVar[ResourceKind] = ResourceKind.INSTANCE

    image_id: str
    instance_type: str
    subnet_id: Optional[str] = None
    availability_zone: Optional[str] = None
    key_name: Optional[str] = None
    security_group_ids: tuple[str, ...] = ()
    user_data: Optional[str] = None


class VolumeSpec(ResourceSpec):
    """Block volume request. ``size_gb`` may be omitted when cloning from a backup."""

    kind: ClassVar[ResourceKind] = ResourceKind.VOLUME

    availability_zone: str
    size_gb: Optional[int] = Field(default=None, gt=0)
    volume_type: str = "gp3"


class VolumeBackupSpec(ResourceSpec):
    """Point-in-time backup of a volume, only created from an existing volume."""

    kind: ClassVar[ResourceKind] = ResourceKind.VOLUME_BACKUP

    description: Optional[str] = None


class NetworkSpec(ResourceSpec):
    """Virtual network request."""

    kind: ClassVar[ResourceKind] = ResourceKind.NETWORK

    cidr_block: str


class SubnetSpec(ResourceSpec):
    """Subnet inside a network."""

    kind: ClassVar[ResourceKind] = ResourceKind.SUBNET
    requires_parent: ClassVar[bool] = True

    cidr_block: str
    availability_zone: Optional[str] = None


class InternetGatewaySpec(ResourceSpec):
    """Internet gateway attached to a network."""

    kind: ClassVar[ResourceKind] = ResourceKind.INTERNET_GATEWAY
    requires_parent: ClassVar[bool] = True


class BucketSpec(ResourceSpec):
    """Object storage bucket."""

    kind: ClassVar[ResourceKind] = ResourceKind.BUCKET

    name: str = Field(min_length=3, max_length=63, pattern=r"^[a-z0-9][a-z0-9.\-]*[a-z0-9]$")

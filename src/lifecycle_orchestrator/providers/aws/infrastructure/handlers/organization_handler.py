"""Compartments backed by AWS Organizations organizational units."""

from __future__ import annotations

from typing import Any, Iterator, Optional

from lifecycle_orchestrator.domain.base.exceptions import (
    ResourceNotFoundError,
    UnsupportedOperationError,
)
from lifecycle_orchestrator.domain.base.value_objects import (
    LifecycleState,
    ResourceHandle,
    ResourceKind,
    ResourceQuery,
    ResourceSnapshot,
)
from lifecycle_orchestrator.domain.resource.specs import CompartmentSpec, ResourceSpec
from lifecycle_orchestrator.providers.aws.infrastructure.handlers.base_handler import AWSHandler

ROOT_ID_PREFIX = "r-"
DESCRIPTION_TAG = "Description"


def is_root_id(resource_id: str) -> bool:
    return resource_id.startswith(ROOT_ID_PREFIX)


class OrganizationHandler(AWSHandler):
    """
    Organizational units as compartments.

    OUs have no provisioning phase: an OU that can be described is available.
    The organization root is treated as the top compartment and cannot be
    created or deleted.
    """

    kinds = (ResourceKind.COMPARTMENT,)

    @property
    def _client(self):
        return self.aws_client.organizations_client

    def root_id(self) -> str:
        roots = self._call(self._client.list_roots).get("Roots", [])
        if not roots:
            raise ResourceNotFoundError("Organization has no root")
        return roots[0]["Id"]

    def get(self, handle: ResourceHandle) -> ResourceSnapshot:
        if is_root_id(handle.resource_id):
            for root in self._paginate(self._client, "list_roots", "Roots"):
                if root["Id"] == handle.resource_id:
                    return self._from_unit(root, parent_id=None)
            raise ResourceNotFoundError(f"Root {handle.resource_id} not found")

        response = self._call(
            self._client.describe_organizational_unit, OrganizationalUnitId=handle.resource_id
        )
        parent_id = handle.parent_id or self._parent_of(handle.resource_id)
        return self._from_unit(response["OrganizationalUnit"], parent_id)

    def list(self, parent_id: Optional[str], query: ResourceQuery) -> Iterator[ResourceSnapshot]:
        parent_id = parent_id or self.root_id()
        for unit in self._paginate(
            self._client,
            "list_organizational_units_for_parent",
            "OrganizationalUnits",
            ParentId=parent_id,
        ):
            if query.name is not None and unit.get("Name") != query.name:
                continue
            yield self._from_unit(unit, parent_id)

    def create(self, spec: ResourceSpec) -> ResourceHandle:
        if not isinstance(spec, CompartmentSpec):
            raise TypeError(f"OrganizationHandler cannot create {type(spec).__name__}")
        parent_id = spec.parent_id or self.root_id()
        tags = [{"Key": key, "Value": value} for key, value in spec.tags.items()]
        tags.append({"Key": DESCRIPTION_TAG, "Value": spec.description})
        response = self._call(
            self._client.create_organizational_unit,
            ParentId=parent_id,
            Name=spec.name,
            Tags=tags,
        )
        unit = response["OrganizationalUnit"]
        self._logger.info("Created organizational unit %s (%s) under %s", unit["Id"], spec.name, parent_id)
        return ResourceHandle(resource_id=unit["Id"], kind=ResourceKind.COMPARTMENT, parent_id=parent_id)

    def delete(self, handle: ResourceHandle) -> None:
        if is_root_id(handle.resource_id):
            raise UnsupportedOperationError(
                "The organization root cannot be deleted", {"handle": str(handle)}
            )
        self._call(self._client.delete_organizational_unit, OrganizationalUnitId=handle.resource_id)
        self._logger.info("Deleted organizational unit %s", handle.resource_id)

    def _parent_of(self, child_id: str) -> Optional[str]:
        parents = self._call(self._client.list_parents, ChildId=child_id).get("Parents", [])
        return parents[0]["Id"] if parents else None

    def _from_unit(self, unit: dict[str, Any], parent_id: Optional[str]) -> ResourceSnapshot:
        return self._snapshot(
            unit["Id"],
            ResourceKind.COMPARTMENT,
            LifecycleState.AVAILABLE,
            parent_id=parent_id,
            name=unit.get("Name"),
            arn=unit.get("Arn"),
        )

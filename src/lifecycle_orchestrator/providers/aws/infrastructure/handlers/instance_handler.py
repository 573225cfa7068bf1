"""EC2 instances."""

from __future__ import annotations

from typing import Any, Iterator, Optional

from lifecycle_orchestrator.domain.base.exceptions import ResourceNotFoundError
from lifecycle_orchestrator.domain.base.value_objects import (
    LifecycleState,
    ResourceHandle,
    ResourceKind,
    ResourceQuery,
    ResourceSnapshot,
)
from lifecycle_orchestrator.domain.resource.specs import InstanceSpec, ResourceSpec
from lifecycle_orchestrator.providers.aws.infrastructure.handlers.base_handler import AWSHandler

INSTANCE_STATES: dict[str, LifecycleState] = {
    "pending": LifecycleState.PROVISIONING,
    "running": LifecycleState.AVAILABLE,
    "stopping": LifecycleState.STOPPING,
    "stopped": LifecycleState.STOPPED,
    "shutting-down": LifecycleState.TERMINATING,
    "terminated": LifecycleState.TERMINATED,
}


class InstanceHandler(AWSHandler):
    """Launch, describe and terminate single EC2 instances."""

    kinds = (ResourceKind.INSTANCE,)

    @property
    def _client(self):
        return self.aws_client.ec2_client

    def get(self, handle: ResourceHandle) -> ResourceSnapshot:
        response = self._call(self._client.describe_instances, InstanceIds=[handle.resource_id])
        for reservation in response.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                return self._from_instance(instance)
        raise ResourceNotFoundError(
            f"Instance {handle.resource_id} not found", {"handle": str(handle)}
        )

    def list(self, parent_id: Optional[str], query: ResourceQuery) -> Iterator[ResourceSnapshot]:
        filters = self._scope_filters(parent_id, query)
        filters += self._state_filter("instance-state-name", query.states, INSTANCE_STATES)
        kwargs: dict[str, Any] = {"Filters": filters} if filters else {}
        for reservation in self._paginate(self._client, "describe_instances", "Reservations", **kwargs):
            for instance in reservation.get("Instances", []):
                yield self._from_instance(instance)

    def create(self, spec: ResourceSpec) -> ResourceHandle:
        if not isinstance(spec, InstanceSpec):
            raise TypeError(f"InstanceHandler cannot create {type(spec).__name__}")
        params: dict[str, Any] = {
            "ImageId": spec.image_id,
            "InstanceType": spec.instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            "TagSpecifications": self._tag_specifications("instance", spec, spec.parent_id),
        }
        if spec.subnet_id:
            params["SubnetId"] = spec.subnet_id
        if spec.availability_zone:
            params["Placement"] = {"AvailabilityZone": spec.availability_zone}
        if spec.key_name:
            params["KeyName"] = spec.key_name
        if spec.security_group_ids:
            params["SecurityGroupIds"] = list(spec.security_group_ids)
        if spec.user_data:
            params["UserData"] = spec.user_data

        response = self._call(self._client.run_instances, **params)
        instance_id = response["Instances"][0]["InstanceId"]
        self._logger.info("Launched instance %s (%s)", instance_id, spec.name)
        return ResourceHandle(resource_id=instance_id, kind=ResourceKind.INSTANCE, parent_id=spec.parent_id)

    def delete(self, handle: ResourceHandle) -> None:
        self._call(self._client.terminate_instances, InstanceIds=[handle.resource_id])
        self._logger.info("Terminating instance %s", handle.resource_id)

    def _from_instance(self, instance: dict[str, Any]) -> ResourceSnapshot:
        raw_state = instance.get("State", {}).get("Name")
        return self._snapshot(
            instance["InstanceId"],
            ResourceKind.INSTANCE,
            self._map_state(raw_state, INSTANCE_STATES),
            tags=self._tags_to_dict(instance.get("Tags")),
            raw_state=raw_state,
            instance_type=instance.get("InstanceType"),
            image_id=instance.get("ImageId"),
            subnet_id=instance.get("SubnetId"),
            vpc_id=instance.get("VpcId"),
            availability_zone=instance.get("Placement", {}).get("AvailabilityZone"),
            private_ip=instance.get("PrivateIpAddress"),
            public_ip=instance.get("PublicIpAddress"),
        )

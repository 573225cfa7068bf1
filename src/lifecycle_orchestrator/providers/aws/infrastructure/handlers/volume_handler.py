"""EBS volumes and snapshots (volume backups)."""

from __future__ import annotations

from typing import Any, Iterator, Optional

from lifecycle_orchestrator.domain.base.exceptions import (
    ResourceNotFoundError,
    UnsupportedOperationError,
    ValidationError,
)
from lifecycle_orchestrator.domain.base.value_objects import (
    LifecycleState,
    ResourceHandle,
    ResourceKind,
    ResourceQuery,
    ResourceSnapshot,
)
from lifecycle_orchestrator.domain.resource.specs import (
    ResourceSpec,
    VolumeBackupSpec,
    VolumeSpec,
)
from lifecycle_orchestrator.providers.aws.infrastructure.handlers.base_handler import AWSHandler

VOLUME_STATES: dict[str, LifecycleState] = {
    "creating": LifecycleState.PROVISIONING,
    "available": LifecycleState.AVAILABLE,
    "in-use": LifecycleState.AVAILABLE,
    "deleting": LifecycleState.TERMINATING,
    "deleted": LifecycleState.TERMINATED,
    "error": LifecycleState.FAULTED,
}

SNAPSHOT_STATES: dict[str, LifecycleState] = {
    "pending": LifecycleState.PROVISIONING,
    "completed": LifecycleState.AVAILABLE,
    "recovering": LifecycleState.PROVISIONING,
    "recoverable": LifecycleState.FAULTED,
    "error": LifecycleState.FAULTED,
}


class VolumeHandler(AWSHandler):
    """EBS volumes. A volume can be cloned from a volume backup (EBS snapshot)."""

    kinds = (ResourceKind.VOLUME,)

    @property
    def _client(self):
        return self.aws_client.ec2_client

    def get(self, handle: ResourceHandle) -> ResourceSnapshot:
        response = self._call(self._client.describe_volumes, VolumeIds=[handle.resource_id])
        volumes = response.get("Volumes", [])
        if not volumes:
            raise ResourceNotFoundError(f"Volume {handle.resource_id} not found", {"handle": str(handle)})
        return self._from_volume(volumes[0])

    def list(self, parent_id: Optional[str], query: ResourceQuery) -> Iterator[ResourceSnapshot]:
        filters = self._scope_filters(parent_id, query)
        filters += self._state_filter("status", query.states, VOLUME_STATES)
        kwargs: dict[str, Any] = {"Filters": filters} if filters else {}
        for volume in self._paginate(self._client, "describe_volumes", "Volumes", **kwargs):
            yield self._from_volume(volume)

    def create(self, spec: ResourceSpec) -> ResourceHandle:
        spec = self._volume_spec(spec)
        if spec.size_gb is None:
            raise ValidationError("size_gb is required unless cloning from a backup", {"name": spec.name})
        return self._create_volume(spec, Size=spec.size_gb)

    def create_from_existing(self, source: ResourceHandle, spec: ResourceSpec) -> ResourceHandle:
        spec = self._volume_spec(spec)
        if source.kind != ResourceKind.VOLUME_BACKUP:
            return super().create_from_existing(source, spec)
        params: dict[str, Any] = {"SnapshotId": source.resource_id}
        if spec.size_gb is not None:
            params["Size"] = spec.size_gb
        return self._create_volume(spec, **params)

    def delete(self, handle: ResourceHandle) -> None:
        self._call(self._client.delete_volume, VolumeId=handle.resource_id)
        self._logger.info("Deleting volume %s", handle.resource_id)

    @staticmethod
    def _volume_spec(spec: ResourceSpec) -> VolumeSpec:
        if not isinstance(spec, VolumeSpec):
            raise TypeError(f"VolumeHandler cannot create {type(spec).__name__}")
        return spec

    def _create_volume(self, spec: VolumeSpec, **params: Any) -> ResourceHandle:
        response = self._call(
            self._client.create_volume,
            AvailabilityZone=spec.availability_zone,
            VolumeType=spec.volume_type,
            TagSpecifications=self._tag_specifications("volume", spec, spec.parent_id),
            **params,
        )
        volume_id = response["VolumeId"]
        self._logger.info("Creating volume %s (%s)", volume_id, spec.name)
        return ResourceHandle(resource_id=volume_id, kind=ResourceKind.VOLUME, parent_id=spec.parent_id)

    def _from_volume(self, volume: dict[str, Any]) -> ResourceSnapshot:
        raw_state = volume.get("State")
        return self._snapshot(
            volume["VolumeId"],
            ResourceKind.VOLUME,
            self._map_state(raw_state, VOLUME_STATES),
            tags=self._tags_to_dict(volume.get("Tags")),
            raw_state=raw_state,
            size_gb=volume.get("Size"),
            volume_type=volume.get("VolumeType"),
            availability_zone=volume.get("AvailabilityZone"),
            snapshot_id=volume.get("SnapshotId") or None,
            attached=bool(volume.get("Attachments")),
        )


class VolumeBackupHandler(AWSHandler):
    """EBS snapshots as volume backups, created only from an existing volume.

    Snapshots vanish from ``describe_snapshots`` once deleted, so deletion is
    observed as not-found rather than a terminal state.
    """

    kinds = (ResourceKind.VOLUME_BACKUP,)

    @property
    def _client(self):
        return self.aws_client.ec2_client

    def get(self, handle: ResourceHandle) -> ResourceSnapshot:
        response = self._call(self._client.describe_snapshots, SnapshotIds=[handle.resource_id])
        snapshots = response.get("Snapshots", [])
        if not snapshots:
            raise ResourceNotFoundError(f"Snapshot {handle.resource_id} not found", {"handle": str(handle)})
        return self._from_ebs_snapshot(snapshots[0])

    def list(self, parent_id: Optional[str], query: ResourceQuery) -> Iterator[ResourceSnapshot]:
        filters = self._scope_filters(parent_id, query)
        filters += self._state_filter("status", query.states, SNAPSHOT_STATES)
        kwargs: dict[str, Any] = {"OwnerIds": ["self"]}
        if filters:
            kwargs["Filters"] = filters
        for ebs_snapshot in self._paginate(self._client, "describe_snapshots", "Snapshots", **kwargs):
            yield self._from_ebs_snapshot(ebs_snapshot)

    def create(self, spec: ResourceSpec) -> ResourceHandle:
        raise UnsupportedOperationError(
            "A volume backup can only be created from an existing volume",
            {"name": spec.name},
        )

    def create_from_existing(self, source: ResourceHandle, spec: ResourceSpec) -> ResourceHandle:
        if not isinstance(spec, VolumeBackupSpec):
            raise TypeError(f"VolumeBackupHandler cannot create {type(spec).__name__}")
        if source.kind != ResourceKind.VOLUME:
            return super().create_from_existing(source, spec)
        params: dict[str, Any] = {
            "VolumeId": source.resource_id,
            "TagSpecifications": self._tag_specifications("snapshot", spec, spec.parent_id),
        }
        if spec.description:
            params["Description"] = spec.description
        response = self._call(self._client.create_snapshot, **params)
        snapshot_id = response["SnapshotId"]
        self._logger.info("Creating snapshot %s of %s (%s)", snapshot_id, source.resource_id, spec.name)
        return ResourceHandle(
            resource_id=snapshot_id, kind=ResourceKind.VOLUME_BACKUP, parent_id=spec.parent_id
        )

    def delete(self, handle: ResourceHandle) -> None:
        self._call(self._client.delete_snapshot, SnapshotId=handle.resource_id)
        self._logger.info("Deleting snapshot %s", handle.resource_id)

    def _from_ebs_snapshot(self, ebs_snapshot: dict[str, Any]) -> ResourceSnapshot:
        raw_state = ebs_snapshot.get("State")
        return self._snapshot(
            ebs_snapshot["SnapshotId"],
            ResourceKind.VOLUME_BACKUP,
            self._map_state(raw_state, SNAPSHOT_STATES),
            tags=self._tags_to_dict(ebs_snapshot.get("Tags")),
            raw_state=raw_state,
            volume_id=ebs_snapshot.get("VolumeId"),
            size_gb=ebs_snapshot.get("VolumeSize"),
            progress=ebs_snapshot.get("Progress"),
            description=ebs_snapshot.get("Description"),
        )

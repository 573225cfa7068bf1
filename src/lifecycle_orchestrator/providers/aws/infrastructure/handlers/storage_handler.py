"""S3 buckets and object pass-throughs."""

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
from lifecycle_orchestrator.domain.resource.specs import BucketSpec, ResourceSpec
from lifecycle_orchestrator.providers.aws.exceptions.aws_exceptions import InfrastructureError
from lifecycle_orchestrator.providers.aws.infrastructure.handlers.base_handler import AWSHandler

# Regions where create_bucket must not be given a LocationConstraint.
_NO_LOCATION_CONSTRAINT = frozenset({"us-east-1"})

# DeleteObjects accepts at most this many keys per request.
DELETE_BATCH_SIZE = 1000


class StorageHandler(AWSHandler):
    """
    Buckets as resources, identified by bucket name.

    A bucket that answers ``head_bucket`` is available. The parent and name
    tags are kept in the bucket tagging, since S3 has no native container.
    """

    kinds = (ResourceKind.BUCKET,)

    @property
    def _client(self):
        return self.aws_client.s3_client

    def get(self, handle: ResourceHandle) -> ResourceSnapshot:
        self._call(self._client.head_bucket, Bucket=handle.resource_id)
        return self._from_bucket(handle.resource_id, self._bucket_tags(handle.resource_id))

    def list(self, parent_id: Optional[str], query: ResourceQuery) -> Iterator[ResourceSnapshot]:
        buckets = self._call(self._client.list_buckets).get("Buckets", [])
        for bucket in buckets:
            name = bucket["Name"]
            if query.name is not None and name != query.name:
                continue
            try:
                tags = self._bucket_tags(name)
            except ResourceNotFoundError:
                # Deleted between listing and tagging lookup.
                continue
            if parent_id and tags.get(self.parent_tag_key) != parent_id:
                continue
            yield self._from_bucket(name, tags, created_at=bucket.get("CreationDate"))

    def create(self, spec: ResourceSpec) -> ResourceHandle:
        if not isinstance(spec, BucketSpec):
            raise TypeError(f"StorageHandler cannot create {type(spec).__name__}")
        params: dict[str, Any] = {"Bucket": spec.name}
        region = self.aws_client.region_name
        if region not in _NO_LOCATION_CONSTRAINT:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        self._call(self._client.create_bucket, **params)
        self._call(
            self._client.put_bucket_tagging,
            Bucket=spec.name,
            Tagging={"TagSet": self._tag_list(spec, spec.parent_id)},
        )
        self._logger.info("Created bucket %s in %s", spec.name, region)
        return ResourceHandle(resource_id=spec.name, kind=ResourceKind.BUCKET, parent_id=spec.parent_id)

    def delete(self, handle: ResourceHandle) -> None:
        self._call(self._client.delete_bucket, Bucket=handle.resource_id)
        self._logger.info("Deleted bucket %s", handle.resource_id)

    def put_object(self, bucket: str, key: str, body: bytes, content_type: Optional[str] = None) -> None:
        params: dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": body}
        if content_type:
            params["ContentType"] = content_type
        self._call(self._client.put_object, **params)

    def get_object(self, bucket: str, key: str) -> bytes:
        response = self._call(self._client.get_object, Bucket=bucket, Key=key)
        return response["Body"].read()

    def delete_object(self, bucket: str, key: str) -> None:
        self._call(self._client.delete_object, Bucket=bucket, Key=key)

    def list_objects(self, bucket: str, prefix: str = "") -> Iterator[dict[str, Any]]:
        """Lazily list object summaries (``Key``, ``Size``, ``LastModified``) under ``prefix``."""
        yield from self._paginate(self._client, "list_objects_v2", "Contents", Bucket=bucket, Prefix=prefix)

    def list_prefixes(self, bucket: str, prefix: str = "", delimiter: str = "/") -> Iterator[str]:
        """Lazily list the common prefixes one level below ``prefix``."""
        for item in self._paginate(
            self._client,
            "list_objects_v2",
            "CommonPrefixes",
            Bucket=bucket,
            Prefix=prefix,
            Delimiter=delimiter,
        ):
            yield item["Prefix"]

    def delete_objects(self, bucket: str, prefix: str = "") -> int:
        """
        Delete every object under ``prefix`` in batches.

        Returns the number of keys submitted. Raises ``InfrastructureError`` if S3
        reports a per-key failure.
        """
        deleted = 0
        batch: list[dict[str, str]] = []
        for summary in self.list_objects(bucket, prefix):
            batch.append({"Key": summary["Key"]})
            if len(batch) == DELETE_BATCH_SIZE:
                deleted += self._delete_batch(bucket, batch)
                batch = []
        if batch:
            deleted += self._delete_batch(bucket, batch)
        self._logger.info("Deleted %d objects from %s under %r", deleted, bucket, prefix)
        return deleted

    def _delete_batch(self, bucket: str, batch: list[dict[str, str]]) -> int:
        response = self._call(
            self._client.delete_objects, Bucket=bucket, Delete={"Objects": batch, "Quiet": True}
        )
        errors = response.get("Errors") or []
        if errors:
            raise InfrastructureError(
                f"Failed to delete {len(errors)} objects from {bucket}",
                {"bucket": bucket, "errors": [e.get("Key") for e in errors]},
            )
        return len(batch)

    def _bucket_tags(self, bucket: str) -> dict[str, str]:
        try:
            response = self._call(self._client.get_bucket_tagging, Bucket=bucket)
        except ResourceNotFoundError as e:
            if e.details.get("aws_error_code") == "NoSuchTagSet":
                return {}
            raise
        return self._tags_to_dict(response.get("TagSet"))

    def _from_bucket(self, name: str, tags: dict[str, str], **attributes: Any) -> ResourceSnapshot:
        return self._snapshot(
            name,
            ResourceKind.BUCKET,
            LifecycleState.AVAILABLE,
            tags=tags,
            name=name,
            **attributes,
        )

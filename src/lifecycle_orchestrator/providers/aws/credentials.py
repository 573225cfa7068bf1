"""Caller identity for the AWS provider."""

import threading
from typing import Iterable, Optional

from botocore.exceptions import ClientError

from lifecycle_orchestrator.domain.base.ports import CredentialPort
from lifecycle_orchestrator.infrastructure.logging.logger import get_logger
from lifecycle_orchestrator.providers.aws.exceptions.aws_exceptions import convert_client_error
from lifecycle_orchestrator.providers.aws.infrastructure.aws_client import AWSClient
from lifecycle_orchestrator.providers.aws.infrastructure.handlers.organization_handler import (
    OrganizationHandler,
)

logger = get_logger(__name__)


class AWSCredentialProvider(CredentialPort):
    """Region of the boto3 session and the organization root as the caller's root compartment."""

    def __init__(self, aws_client: AWSClient, home_region: Optional[str] = None) -> None:
        self._aws_client = aws_client
        self._home_region = home_region or aws_client.settings.home_region
        self._organizations = OrganizationHandler(aws_client)
        self._root_id: Optional[str] = None
        self._lock = threading.Lock()

    def get_region(self) -> str:
        return self._aws_client.session.region_name or self._aws_client.region_name

    def get_caller_root_id(self) -> str:
        with self._lock:
            if self._root_id is None:
                self._root_id = self._organizations.root_id()
                logger.debug("Caller root resolved to %s", self._root_id)
            return self._root_id

    def list_regions(self, exclude_home: bool = False, exclude: Iterable[str] = ()) -> list[str]:
        """Regions enabled for the account, as reported by EC2 ``DescribeRegions``."""
        skipped = set(exclude)
        if exclude_home:
            skipped.add(self._home_region)
        try:
            response = self._aws_client.ec2_client.describe_regions()
        except ClientError as e:
            raise convert_client_error(e, "describe_regions") from e
        regions = sorted(region["RegionName"] for region in response.get("Regions", []))
        return [region for region in regions if region not in skipped]

"""AWS client wrapper bound to the shared region context."""

import threading
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ProfileNotFound

from lifecycle_orchestrator.config.settings import AWSSettings
from lifecycle_orchestrator.infrastructure.logging.logger import get_logger
from lifecycle_orchestrator.infrastructure.region_context import RegionContext
from lifecycle_orchestrator.providers.aws.exceptions.aws_exceptions import AWSConfigurationError

logger = get_logger(__name__)


class AWSClient:
    """Wrapper for AWS service clients.

    Clients are created lazily in the region held by ``region_context`` and
    dropped whenever that region changes, so the next call builds a client for
    the new region.
    """

    def __init__(
        self,
        settings: AWSSettings,
        region_context: RegionContext,
        session: Optional[boto3.Session] = None,
    ) -> None:
        """
        Initialize AWS client wrapper.

        Args:
            settings: Retry, timeout, profile and endpoint settings
            region_context: Shared current region
            session: Pre-built boto3 session, mainly for tests
        """
        self.settings = settings
        self._region_context = region_context
        self._clients: dict[str, Any] = {}
        self._lock = threading.RLock()

        try:
            self.session = session or boto3.Session(
                region_name=region_context.region, profile_name=settings.profile
            )
        except ProfileNotFound as e:
            raise AWSConfigurationError(
                f"AWS client initialization failed: {e}", {"profile": settings.profile}
            ) from e
        except BotoCoreError as e:
            raise AWSConfigurationError(f"AWS client initialization failed: {e}") from e

        region_context.add_listener(self._on_region_change)

        logger.info(
            "AWS client initialized with region: %s, profile: %s, retries: %d, timeouts: connect=%ds, read=%ds",
            region_context.region,
            settings.profile or "default",
            settings.max_retries,
            settings.connect_timeout,
            settings.read_timeout,
        )

    @property
    def region_name(self) -> str:
        return self._region_context.region

    def boto_config(self, region: str) -> Config:
        """botocore config with adaptive retries for ``region``."""
        return Config(
            region_name=region,
            retries={"max_attempts": self.settings.max_retries, "mode": "adaptive"},
            connect_timeout=self.settings.connect_timeout,
            read_timeout=self.settings.read_timeout,
        )

    def client(self, service_name: str):
        """Get the cached client for ``service_name``, creating it on first use."""
        with self._lock:
            client = self._clients.get(service_name)
            if client is None:
                region = self._region_context.region
                logger.debug("Initializing %s client in %s on first use", service_name, region)
                kwargs: dict[str, Any] = {"config": self.boto_config(region)}
                if self.settings.endpoint_url:
                    kwargs["endpoint_url"] = self.settings.endpoint_url
                client = self.session.client(service_name, **kwargs)
                self._clients[service_name] = client
            return client

    @property
    def ec2_client(self):
        """Lazy initialization of EC2 client."""
        return self.client("ec2")

    @property
    def s3_client(self):
        """Lazy initialization of S3 client."""
        return self.client("s3")

    @property
    def organizations_client(self):
        """Lazy initialization of Organizations client."""
        return self.client("organizations")

    def _on_region_change(self, region: str) -> None:
        with self._lock:
            if self._clients:
                logger.debug(
                    "Region changed to %s, dropping %d cached clients", region, len(self._clients)
                )
            self._clients.clear()

"""Wiring of the orchestrator with the AWS provider."""

from typing import Optional

import boto3
from botocore.exceptions import ProfileNotFound

from lifecycle_orchestrator.application.services.lifecycle_orchestrator import (
    ResourceLifecycleOrchestrator,
)
from lifecycle_orchestrator.application.services.state_poller import StatePoller
from lifecycle_orchestrator.config.settings import LifecycleSettings, load_settings
from lifecycle_orchestrator.domain.base.events import EventPublisher
from lifecycle_orchestrator.domain.base.exceptions import ConfigurationError
from lifecycle_orchestrator.infrastructure.logging.logger import get_logger, setup_logging
from lifecycle_orchestrator.infrastructure.region_context import RegionContext
from lifecycle_orchestrator.providers.aws.aws_provider import AWSProvider
from lifecycle_orchestrator.providers.aws.credentials import AWSCredentialProvider
from lifecycle_orchestrator.providers.aws.infrastructure.aws_client import AWSClient

logger = get_logger(__name__)


def create_aws_orchestrator(
    settings: Optional[LifecycleSettings] = None,
    event_publisher: Optional[EventPublisher] = None,
    session: Optional[boto3.Session] = None,
    configure_logging: bool = True,
) -> ResourceLifecycleOrchestrator:
    """
    Build an orchestrator backed by AWS.

    Settings default to ``load_settings()``. The starting region is the
    configured one, falling back to the boto3 session's default region.

    :raises ConfigurationError: If no region can be determined.
    """
    settings = settings or load_settings()
    if configure_logging:
        log = settings.logging
        setup_logging(log.level, log.destination, log.log_dir, log.filename, log.json_format)

    if session is None:
        try:
            session = boto3.Session(profile_name=settings.aws.profile)
        except ProfileNotFound as e:
            raise ConfigurationError(str(e), details={"profile": settings.aws.profile}) from e
    region = settings.aws.region or session.region_name
    if not region:
        raise ConfigurationError(
            "No AWS region configured; set aws.region or a default region for the profile"
        )

    region_context = RegionContext(region)
    aws_client = AWSClient(settings.aws, region_context, session=session)
    provider = AWSProvider(aws_client, home_region=settings.home_region)
    logger.info("Orchestrator wired for region %s (home region %s)", region, provider.get_home_region())

    return ResourceLifecycleOrchestrator(
        provider,
        AWSCredentialProvider(aws_client, home_region=provider.get_home_region()),
        region_context,
        settings=settings,
        poller=StatePoller(settings.default_policy),
        event_publisher=event_publisher,
    )

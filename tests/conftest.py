"""Global test configuration and fixtures."""

import logging
import os
import sys
from pathlib import Path

import pytest

# Add src and the repository root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from lifecycle_orchestrator.application.services.lifecycle_orchestrator import (  # noqa: E402
    ResourceLifecycleOrchestrator,
)
from lifecycle_orchestrator.application.services.state_poller import StatePoller  # noqa: E402
from lifecycle_orchestrator.config.settings import LifecycleSettings, PollPolicy  # noqa: E402
from lifecycle_orchestrator.domain.base.value_objects import ResourceKind  # noqa: E402
from lifecycle_orchestrator.infrastructure.region_context import RegionContext  # noqa: E402
from tests.fixtures.fake_provider import FakeClock, FakeCredentials, FakeProvider  # noqa: E402


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mocked AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("AWS_PROFILE", raising=False)


@pytest.fixture(autouse=True)
def clean_lifecycle_env(monkeypatch):
    """Keep LIFECYCLE_* variables from the developer's shell out of tests."""
    for key in list(os.environ):
        if key.startswith("LIFECYCLE_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def propagate_package_logs():
    """Let caplog see package records even after setup_logging disabled propagation."""
    package_logger = logging.getLogger("lifecycle_orchestrator")
    yield
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fast_policy():
    """Short, bounded poll policy for tests."""
    return PollPolicy(timeout=60, poll_interval=1, backoff_factor=1.0, max_interval=1, max_transient_errors=3)


@pytest.fixture
def poller(fake_clock, fast_policy):
    return StatePoller(fast_policy, sleep=fake_clock.sleep, clock=fake_clock)


@pytest.fixture
def fake_provider():
    return FakeProvider(home_region="us-east-1")


@pytest.fixture
def fake_credentials():
    return FakeCredentials(region="eu-west-1", root_id="root")


@pytest.fixture
def region_context():
    return RegionContext("eu-west-1")


@pytest.fixture
def settings(fast_policy):
    return LifecycleSettings(default_policy=fast_policy, policies={kind: fast_policy for kind in ResourceKind})


@pytest.fixture
def published_events():
    return []


@pytest.fixture
def orchestrator(fake_provider, fake_credentials, region_context, settings, poller, published_events):
    return ResourceLifecycleOrchestrator(
        fake_provider,
        fake_credentials,
        region_context,
        settings=settings,
        poller=poller,
        event_publisher=published_events.append,
    )

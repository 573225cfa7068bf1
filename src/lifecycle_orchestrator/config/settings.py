"""Orchestrator configuration: poll policies, AWS client settings and logging."""

from typing import Any, Optional, Sequence

from dynaconf import Dynaconf
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic import model_validator

from lifecycle_orchestrator.domain.base.exceptions import ConfigurationError
from lifecycle_orchestrator.domain.base.value_objects import ResourceKind

ENVVAR_PREFIX = "LIFECYCLE"
ENV_SWITCHER = "LIFECYCLE_ENV"


class PollPolicy(BaseModel):
    """Budget and pacing for one poll loop.

    ``timeout`` bounds wall-clock time, ``max_polls`` (when set) bounds the
    number of successful reads. Intervals grow by ``backoff_factor`` up to
    ``max_interval``. Up to ``max_transient_errors`` consecutive transient
    failures are tolerated before the loop gives up.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout: float = Field(default=300.0, gt=0)
    poll_interval: float = Field(default=2.0, ge=0)
    backoff_factor: float = Field(default=1.5, ge=1.0)
    max_interval: float = Field(default=30.0, ge=0)
    max_polls: Optional[int] = Field(default=None, ge=1)
    max_transient_errors: int = Field(default=5, ge=0)

    @model_validator(mode="after")
    def _check_intervals(self) -> "PollPolicy":
        if self.max_interval < self.poll_interval:
            raise ValueError("max_interval must be >= poll_interval")
        return self

    def interval_for(self, poll_number: int) -> float:
        """Delay to wait after the ``poll_number``-th read (1-based)."""
        delay = self.poll_interval * (self.backoff_factor ** max(poll_number - 1, 0))
        return min(delay, self.max_interval)


# Different kinds converge at different natural rates.
DEFAULT_KIND_POLICIES: dict[ResourceKind, PollPolicy] = {
    ResourceKind.COMPARTMENT: PollPolicy(timeout=300, poll_interval=2, max_interval=15),
    ResourceKind.INSTANCE: PollPolicy(timeout=900, poll_interval=5, max_interval=30),
    ResourceKind.VOLUME: PollPolicy(timeout=600, poll_interval=3, max_interval=20),
    ResourceKind.VOLUME_BACKUP: PollPolicy(timeout=1800, poll_interval=10, max_interval=60),
    ResourceKind.NETWORK: PollPolicy(timeout=300, poll_interval=2, max_interval=10),
    ResourceKind.SUBNET: PollPolicy(timeout=300, poll_interval=2, max_interval=10),
    ResourceKind.INTERNET_GATEWAY: PollPolicy(timeout=300, poll_interval=2, max_interval=10),
    ResourceKind.ROUTE_TABLE: PollPolicy(timeout=300, poll_interval=1, max_interval=10),
    ResourceKind.BUCKET: PollPolicy(timeout=120, poll_interval=1, max_interval=5),
}


class AWSSettings(BaseModel):
    """Settings for the boto3-backed provider."""

    model_config = ConfigDict(extra="ignore")

    region: Optional[str] = None
    profile: Optional[str] = None
    home_region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    max_retries: int = Field(default=3, ge=0, le=10)
    connect_timeout: int = Field(default=5, gt=0)
    read_timeout: int = Field(default=10, gt=0)
    parent_tag_key: str = "lifecycle:parent"


class LoggingSettings(BaseModel):
    """Settings passed to ``setup_logging``."""

    model_config = ConfigDict(extra="ignore")

    level: str = "INFO"
    destination: str = "stdout"
    log_dir: Optional[str] = None
    filename: str = "lifecycle_orchestrator.log"
    json_format: bool = False


class LifecycleSettings(BaseModel):
    """Top-level orchestrator configuration."""

    model_config = ConfigDict(extra="ignore")

    default_policy: PollPolicy = Field(default_factory=PollPolicy)
    policies: dict[ResourceKind, PollPolicy] = Field(default_factory=dict)
    home_region: Optional[str] = None
    aws: AWSSettings = Field(default_factory=AWSSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def policy_for(self, kind: ResourceKind) -> PollPolicy:
        """Configured policy for ``kind``, then a configured default, then the kind default."""
        if kind in self.policies:
            return self.policies[kind]
        if "default_policy" in self.model_fields_set:
            return self.default_policy
        return DEFAULT_KIND_POLICIES.get(kind, self.default_policy)


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lower_keys(v) for v in value]
    return value


def load_settings(
    settings_files: Optional[Sequence[str]] = None,
    environment: Optional[str] = None,
) -> LifecycleSettings:
    """
    Load settings from files and ``LIFECYCLE_*`` environment variables.

    Files use dynaconf environments: values go under ``[default]`` or a named
    environment selected with ``LIFECYCLE_ENV`` (or ``environment``). Nested
    values can be set from the environment with ``__``, for example
    ``LIFECYCLE_AWS__REGION=eu-west-1``.

    :raises ConfigurationError: If the merged settings fail validation.
    """
    options: dict[str, Any] = {
        "envvar_prefix": ENVVAR_PREFIX,
        "settings_files": list(settings_files or []),
        "environments": True,
        "env_switcher": ENV_SWITCHER,
        "merge_enabled": True,
        "load_dotenv": False,
    }
    if environment:
        options["env"] = environment
    raw = Dynaconf(**options)
    data = _lower_keys(raw.as_dict())
    try:
        return LifecycleSettings.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid orchestrator settings: {e}",
            details={"errors": e.errors(include_url=False)},
        ) from e

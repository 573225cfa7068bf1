"""AWS-specific exceptions and ClientError translation."""

from typing import Any, Optional

from botocore.exceptions import ClientError

from lifecycle_orchestrator.domain.base.exceptions import (
    ConfigurationError,
    DomainException,
    LifecycleError,
    ResourceInUseError,
    ResourceNotFoundError,
    UnavailableError,
    ValidationError,
)

NOT_FOUND_CODES = frozenset(
    {
        "404",
        "NotFound",
        "NoSuchBucket",
        "NoSuchKey",
        "NoSuchTagSet",
        "ResourceNotFound",
        "OrganizationalUnitNotFoundException",
        "ParentNotFoundException",
        "ChildNotFoundException",
        "AWSOrganizationsNotInUseException",
    }
)

IN_USE_CODES = frozenset(
    {
        "DependencyViolation",
        "ResourceInUse",
        "VolumeInUse",
        "InvalidSnapshot.InUse",
        "OrganizationalUnitNotEmptyException",
        "BucketNotEmpty",
    }
)

TRANSIENT_CODES = frozenset(
    {
        "RequestLimitExceeded",
        "Throttling",
        "ThrottlingException",
        "TooManyRequestsException",
        "SlowDown",
        "RequestTimeout",
        "ServiceUnavailable",
        "ServiceUnavailableException",
        "InternalError",
        "InternalFailure",
        "ConcurrentModificationException",
    }
)

AUTHORIZATION_CODES = frozenset(
    {
        "UnauthorizedOperation",
        "AccessDenied",
        "AccessDeniedException",
        "AuthFailure",
        "InvalidClientTokenId",
        "ExpiredToken",
    }
)

VALIDATION_CODES = frozenset(
    {
        "ValidationError",
        "ValidationException",
        "InvalidParameterValue",
        "InvalidParameterCombination",
        "MissingParameter",
        "InvalidInputException",
        "DuplicateOrganizationalUnitException",
        "BucketAlreadyExists",
        "BucketAlreadyOwnedByYou",
    }
)

QUOTA_CODES = frozenset(
    {
        "LimitExceeded",
        "InstanceLimitExceeded",
        "VolumeLimitExceeded",
        "VpcLimitExceeded",
        "ConstraintViolationException",
        "TooManyBuckets",
    }
)


class AWSConfigurationError(ConfigurationError):
    """Raised when the boto3 session cannot be configured."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, "AWS_CONFIGURATION_ERROR", details)


class AuthorizationError(LifecycleError):
    """Raised when AWS rejects the caller's credentials or permissions."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, "AWS_AUTHORIZATION_ERROR", details)


class AWSValidationError(ValidationError):
    """Raised when AWS rejects request parameters."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, "AWS_VALIDATION_ERROR", details)


class QuotaExceededError(LifecycleError):
    """Raised when an account or service limit blocks a request."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, "AWS_QUOTA_EXCEEDED", details)


class InfrastructureError(LifecycleError):
    """Raised for AWS errors with no more specific mapping."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, "AWS_INFRASTRUCTURE_ERROR", details)


def error_code_of(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def convert_client_error(error: ClientError, operation_name: str = "unknown") -> DomainException:
    """Convert an AWS ClientError to the matching domain exception."""
    error_code = error_code_of(error)
    error_message = error.response.get("Error", {}).get("Message") or str(error)
    details = {"operation": operation_name, "aws_error_code": error_code}

    if error_code in NOT_FOUND_CODES or error_code.endswith(".NotFound"):
        return ResourceNotFoundError(error_message, details)
    if error_code in IN_USE_CODES:
        return ResourceInUseError(error_message, details)
    if error_code in TRANSIENT_CODES:
        return UnavailableError(error_message, details)
    if error_code in AUTHORIZATION_CODES:
        return AuthorizationError(error_message, details)
    if error_code in VALIDATION_CODES or error_code.startswith("Invalid"):
        return AWSValidationError(error_message, details)
    if error_code in QUOTA_CODES:
        return QuotaExceededError(error_message, details)
    return InfrastructureError(f"AWS Error: {error_code} - {error_message}", details)

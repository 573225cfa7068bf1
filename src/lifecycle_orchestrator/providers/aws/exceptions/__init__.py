"""AWS provider exceptions."""

from .aws_exceptions import (
    AuthorizationError,
    AWSConfigurationError,
    AWSValidationError,
    InfrastructureError,
    QuotaExceededError,
    convert_client_error,
)

__all__ = [
    "AuthorizationError",
    "AWSConfigurationError",
    "AWSValidationError",
    "InfrastructureError",
    "QuotaExceededError",
    "convert_client_error",
]

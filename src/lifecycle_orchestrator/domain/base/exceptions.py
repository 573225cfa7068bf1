"""Domain exceptions for resource lifecycle orchestration.

Every exception carries a machine readable ``error_code`` and a ``details``
dictionary holding enough context (handle, target state, last observed state,
poll count, elapsed seconds) to diagnose a failure without re-querying the
provider.
"""

from typing import Any, Optional


class DomainException(Exception):
    """Base class for all domain exceptions."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return self.message


class ValidationError(DomainException):
    """Raised when input fails domain validation."""


class ConfigurationError(DomainException):
    """Raised when configuration cannot be loaded or is invalid."""


class LifecycleError(DomainException):
    """Base class for errors raised while driving a resource lifecycle."""


class ResourceNotFoundError(LifecycleError):
    """Raised by a provider ``get`` when the resource does not exist."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, "RESOURCE_NOT_FOUND", details)


class ProvisioningFailedError(LifecycleError):
    """Raised when an awaited resource enters a terminal failure state."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, "PROVISIONING_FAILED", details)


class PollTimeoutError(LifecycleError, TimeoutError):
    """Raised when the poll budget elapses before the target state is reached."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, "POLL_TIMEOUT", details)


class ResourceInUseError(LifecycleError):
    """Raised when a delete is rejected because the resource still has dependents."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, "RESOURCE_IN_USE", details)


class UnavailableError(LifecycleError):
    """Raised for transient provider or network failures."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, "PROVIDER_UNAVAILABLE", details)


class LostUpdateError(LifecycleError):
    """Raised when a committed rule set no longer reflects the mutation just written.

    Rule sets are replaced wholesale without a conditional write, so a
    concurrent writer can overwrite our change between read and write. This is
    only detected after the fact, it is never prevented.
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, "LOST_UPDATE", details)


class OperationCancelledError(LifecycleError):
    """Raised when a caller cancels a poll loop. Provider-side work is not rolled back."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, "OPERATION_CANCELLED", details)


class UnsupportedOperationError(LifecycleError):
    """Raised when a provider cannot perform an operation for a resource kind."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, "UNSUPPORTED_OPERATION", details)

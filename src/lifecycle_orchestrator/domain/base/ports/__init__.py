"""Domain ports."""

from .credential_port import CredentialPort
from .provider_port import CloudProviderPort

__all__ = ["CloudProviderPort", "CredentialPort"]

"""AWS provider: boto3-backed implementations of the provider and credential ports."""

from .aws_provider import AWSProvider
from .credentials import AWSCredentialProvider
from .infrastructure.aws_client import AWSClient

__all__ = ["AWSClient", "AWSCredentialProvider", "AWSProvider"]

"""Processor credentials from SSM Parameter Store.

Secrets are SecureStrings under ``/casaora/{environment}/...`` and are read
once per process; rotating one means resetting ``get_ssm_service``.
"""

from functools import lru_cache
from typing import Any, Optional

import boto3
from botocore.exceptions import ClientError

from ..utils.logging import get_logger

logger = get_logger(__name__)


class SSMServiceError(Exception):
    """A secret could not be read from SSM."""


def stripe_secret_key_path(environment: str) -> str:
    return f"/casaora/{environment}/stripe/secret_key"


class SSMService:
    """Decrypting SecureString reader with an in-process cache."""

    def __init__(self, client: Optional[Any] = None) -> None:
        self._client = client or boto3.client("ssm")
        self._secrets: dict[str, str] = {}

    def get_secure_string(self, name: str) -> str:
        """Decrypted value of the SecureString at ``name``.

        Raises:
            SSMServiceError: If the parameter is missing or unreadable
        """
        if name in self._secrets:
            return self._secrets[name]

        try:
            response = self._client.get_parameter(Name=name, WithDecryption=True)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error("Cannot read SSM parameter %s: %s", name, error_code)
            raise SSMServiceError(f"Cannot read SSM parameter {name}: {error_code}") from e

        logger.info("Loaded SSM parameter %s", name)
        self._secrets[name] = response["Parameter"]["Value"]
        return self._secrets[name]


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    """Get the shared SSMService instance."""
    return SSMService()

"""
boto3 client factory.

Credentials come from the standard AWS chain (environment, profile, role).
"""

from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..core.errors import ConfigError


def make_client(
    service: str,
    region: Optional[str] = None,
    endpoint_url: Optional[str] = None,
    max_attempts: int = 1,
) -> Any:
    """
    Create a boto3 client.

    Args:
        service: Service name ("events", "logs", "sqs")
        region: AWS region (None = default chain)
        endpoint_url: Endpoint override (localstack, etc.)
        max_attempts: Total attempts per call; 1 disables SDK retries so
            publish happens exactly once per invocation

    Raises:
        ConfigError: If client creation fails
    """
    config = Config(retries={"max_attempts": max_attempts, "mode": "standard"})
    try:
        return boto3.client(service, region_name=region, endpoint_url=endpoint_url, config=config)
    except (BotoCoreError, ClientError, ValueError) as e:
        raise ConfigError(f"Failed to create {service} client: {e}") from e


def error_code(e: Exception) -> str:
    """Error code of a botocore ClientError ("Unknown" for other errors)."""
    if isinstance(e, ClientError):
        return e.response.get("Error", {}).get("Code", "Unknown")
    return "Unknown"

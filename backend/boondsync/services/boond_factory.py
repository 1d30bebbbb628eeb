"""
BoondManager Client Factory.
Builds environment-scoped clients from the configured credentials.
"""

import logging
from typing import Optional, Union

import httpx

from boondsync.core.config import Settings, get_settings
from boondsync.core.environment import Environment, parse_environment
from boondsync.integrations.boondmanager.client import BoondManagerClient
from boondsync.integrations.boondmanager.errors import BoondConfigError

logger = logging.getLogger(__name__)


def create_client(
    environment: Union[Environment, str, None] = None,
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BoondManagerClient:
    """
    Factory function to build a client for one environment.

    Only the credentials of the requested environment are read, so a
    client never carries the other environment's secrets.

    Args:
        environment: Target environment (None -> BOOND_DEFAULT_ENVIRONMENT)
        settings: Settings to use (defaults to the cached application settings)
        transport: Optional httpx transport override

    Returns:
        Configured BoondManagerClient (use as async context manager)

    Raises:
        BoondValidationError: Unknown environment name
        BoondConfigError: Credentials for the environment are missing

    Example:
        >>> async with create_client("sandbox") as client:
        ...     page = await client.list(ResourceType.CANDIDATE)
    """
    settings = settings or get_settings()
    env = parse_environment(environment, settings.boond_default_environment)

    credentials = settings.get_boond_credentials(env)
    if not credentials.is_complete:
        prefix = f"BOOND_{env.value.upper()}"
        raise BoondConfigError(
            f"{prefix}_USER_TOKEN, {prefix}_CLIENT_TOKEN and {prefix}_CLIENT_KEY must be configured"
        )

    logger.debug(f"🔌 Creating BoondManager client for {env.value}")

    return BoondManagerClient(
        environment=env,
        credentials=credentials,
        api_base_url=settings.boond_api_base_url,
        timeout=settings.boond_timeout_seconds,
        token_ttl_seconds=settings.boond_token_ttl_seconds,
        allow_production_writes=settings.boond_allow_production_writes,
        retry_attempts=settings.boond_retry_attempts,
        retry_base_delay=settings.boond_retry_base_delay,
        retry_max_delay=settings.boond_retry_max_delay,
        transport=transport,
    )

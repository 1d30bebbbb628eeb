"""
BoondManager environments.

Production and sandbox are two isolated CRM instances. Every client and
sync operation is scoped to exactly one of them.
"""

import enum
from typing import Optional


class Environment(str, enum.Enum):
    """One of the two isolated BoondManager instances."""

    PRODUCTION = "production"
    SANDBOX = "sandbox"


def parse_environment(value: Optional[str], default: Environment) -> Environment:
    """
    Parse a caller-supplied environment name.

    Args:
        value: Raw value (e.g. the ``env`` query parameter), may be None
        default: Environment used when no value is given

    Returns:
        Parsed Environment

    Raises:
        BoondValidationError: If the value names no known environment
    """
    if isinstance(value, Environment):
        return value
    if value is None or not value.strip():
        return default

    try:
        return Environment(value.strip().lower())
    except ValueError:
        from boondsync.integrations.boondmanager.errors import BoondValidationError

        raise BoondValidationError(
            f"Unknown environment '{value}'. Expected 'production' or 'sandbox'"
        ) from None

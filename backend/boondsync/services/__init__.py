# Business logic services
from .boond_factory import create_client

__all__ = [
    "create_client",
]

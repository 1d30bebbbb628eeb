"""
BoondManager Integration.

Environment-scoped client for the BoondManager REST API.
"""

from .client import BoondManagerClient
from .errors import (
    BoondAuthError,
    BoondConfigError,
    BoondError,
    BoondNotFoundError,
    BoondPermissionError,
    BoondValidationError,
    RemoteServiceError,
    TransientNetworkError,
    WriteForbiddenError,
)
from .models import (
    DocumentContent,
    DocumentMeta,
    EntityDetail,
    EntityPage,
    EntityRecord,
    EntityReference,
    ListFilters,
    ListMeta,
)
from .schema import DetailView, ResourceType

__all__ = [
    "BoondManagerClient",
    "BoondError",
    "BoondAuthError",
    "BoondConfigError",
    "BoondNotFoundError",
    "BoondPermissionError",
    "BoondValidationError",
    "RemoteServiceError",
    "TransientNetworkError",
    "WriteForbiddenError",
    "DocumentContent",
    "DocumentMeta",
    "EntityDetail",
    "EntityPage",
    "EntityRecord",
    "EntityReference",
    "ListFilters",
    "ListMeta",
    "DetailView",
    "ResourceType",
]

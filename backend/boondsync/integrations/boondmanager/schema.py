"""
BoondManager Schema Mapping Configuration.

Defines the resource types we read and replicate, their API paths,
the fields used to build comparison keys and the fields tracked when
deciding whether a sandbox record needs an update.
"""

import enum
from typing import Any, Dict, List, Optional


class ResourceType(str, enum.Enum):
    """Entity types exposed by the BoondManager API."""

    CANDIDATE = "candidate"
    RESOURCE = "resource"
    PROJECT = "project"
    DOCUMENT = "document"
    COMPANY = "company"
    CONTACT = "contact"
    OPPORTUNITY = "opportunity"


class DetailView(str, enum.Enum):
    """Sub-views (tabs) of a single record."""

    INFORMATION = "information"
    ACTIONS = "actions"
    DELIVERIES = "deliveries"
    BATCHES_MARKERS = "batches-markers"
    POSITIONINGS = "positionings"
    CONTACTS = "contacts"
    OPPORTUNITIES = "opportunities"
    PROJECTS = "projects"


# Path suffix appended to /<type>/<id> for each view
DETAIL_VIEW_PATHS: Dict[DetailView, str] = {
    DetailView.INFORMATION: "information",
    DetailView.ACTIONS: "actions",
    DetailView.DELIVERIES: "deliveries-groupments",
    DetailView.BATCHES_MARKERS: "batches-markers",
    DetailView.POSITIONINGS: "positionings",
    DetailView.CONTACTS: "contacts",
    DetailView.OPPORTUNITIES: "opportunities",
    DetailView.PROJECTS: "projects",
}

# Fields the API computes itself; never sent back on create/update
COMMON_READ_ONLY_FIELDS = ["id", "creationDate", "updateDate", "stateLabel", "thumbnail"]

SCHEMA_MAPPING: Dict[ResourceType, Dict[str, Any]] = {
    ResourceType.CANDIDATE: {
        "endpoint": "/candidates",
        "listable": True,
        "writable": True,
        "name_fields": ["firstName", "lastName"],
        "email_fields": ["email"],
        "phone_fields": ["phone1", "phone2"],
        "company_field": None,
        "requires_contact": True,
        "tracked_fields": [
            "civility", "firstName", "lastName", "email", "phone1", "phone2",
            "title", "state", "origin", "address", "postcode", "town", "country",
        ],
        "read_only_fields": ["resumes", "lastActivityDate"],
        "views": [DetailView.INFORMATION, DetailView.ACTIONS],
    },
    ResourceType.RESOURCE: {
        "endpoint": "/resources",
        "listable": True,
        "writable": True,
        "name_fields": ["firstName", "lastName"],
        "email_fields": ["email"],
        "phone_fields": ["phone1", "phone2"],
        "company_field": None,
        "requires_contact": True,
        "tracked_fields": [
            "civility", "firstName", "lastName", "email", "phone1", "phone2",
            "title", "state",
        ],
        "read_only_fields": ["resumes"],
        "views": [DetailView.INFORMATION, DetailView.ACTIONS],
    },
    ResourceType.COMPANY: {
        "endpoint": "/companies",
        "listable": True,
        "writable": True,
        "name_fields": ["name"],
        "name_is_company": True,
        "email_fields": ["email"],
        "phone_fields": ["phone1", "phone2"],
        "company_field": None,
        "requires_contact": False,
        "tracked_fields": [
            "name", "phone1", "email", "website", "address", "postcode",
            "town", "country", "state", "staff",
        ],
        "read_only_fields": [],
        "views": [
            DetailView.INFORMATION, DetailView.CONTACTS,
            DetailView.OPPORTUNITIES, DetailView.PROJECTS,
        ],
    },
    ResourceType.CONTACT: {
        "endpoint": "/contacts",
        "listable": True,
        "writable": True,
        "name_fields": ["firstName", "lastName"],
        "email_fields": ["email"],
        "phone_fields": ["phone1", "phone2"],
        "company_field": "companyName",
        "requires_contact": True,
        "tracked_fields": [
            "civility", "firstName", "lastName", "email", "phone1", "phone2",
            "position", "state",
        ],
        "read_only_fields": ["companyName"],
        "views": [DetailView.INFORMATION, DetailView.ACTIONS],
    },
    ResourceType.OPPORTUNITY: {
        "endpoint": "/opportunities",
        "listable": True,
        "writable": True,
        "name_fields": ["title"],
        "email_fields": [],
        "phone_fields": [],
        "company_field": None,
        "requires_contact": False,
        "tracked_fields": [
            "title", "reference", "state", "mode", "typeOf", "description",
            "startDate", "endDate", "averageDailyPriceExcludingTax",
        ],
        "read_only_fields": ["closedDate"],
        "views": [DetailView.INFORMATION, DetailView.ACTIONS, DetailView.POSITIONINGS],
    },
    ResourceType.PROJECT: {
        "endpoint": "/projects",
        "listable": True,
        "writable": True,
        "name_fields": ["title"],
        "email_fields": [],
        "phone_fields": [],
        "company_field": None,
        "requires_contact": False,
        "tracked_fields": [
            "title", "reference", "state", "typeOf", "mode", "startDate",
            "endDate", "description", "amount", "currency",
        ],
        "read_only_fields": [],
        "views": [
            DetailView.INFORMATION, DetailView.ACTIONS,
            DetailView.BATCHES_MARKERS, DetailView.DELIVERIES,
        ],
    },
    ResourceType.DOCUMENT: {
        "endpoint": "/documents",
        "listable": False,
        "writable": False,
        "name_fields": ["name"],
        "email_fields": [],
        "phone_fields": [],
        "company_field": None,
        "requires_contact": False,
        "tracked_fields": ["name"],
        "read_only_fields": [],
        "views": [],
    },
}

# Replication order: referenced types first so relationships can be remapped
SYNC_ORDER: List[ResourceType] = [
    ResourceType.COMPANY,
    ResourceType.CONTACT,
    ResourceType.CANDIDATE,
    ResourceType.RESOURCE,
    ResourceType.OPPORTUNITY,
    ResourceType.PROJECT,
]


def get_schema_config(resource_type: ResourceType) -> Dict[str, Any]:
    """Get schema configuration for a resource type."""
    return SCHEMA_MAPPING[ResourceType(resource_type)]


def get_endpoint(resource_type: ResourceType) -> str:
    """Get the API collection path for a resource type."""
    return get_schema_config(resource_type)["endpoint"]


def get_listable_types() -> List[ResourceType]:
    """Get all resource types that support paginated listing."""
    return [rtype for rtype, config in SCHEMA_MAPPING.items() if config["listable"]]


def get_tracked_fields(resource_type: ResourceType) -> List[str]:
    """Get the fields compared when deciding between update and skip."""
    return get_schema_config(resource_type)["tracked_fields"]


def get_read_only_fields(resource_type: ResourceType) -> List[str]:
    """Get all fields that must never be written back."""
    return COMMON_READ_ONLY_FIELDS + get_schema_config(resource_type)["read_only_fields"]


def resolve_detail_view(resource_type: ResourceType, tab: Optional[str]) -> Optional[DetailView]:
    """
    Resolve a raw tab name into a view supported by the resource type.

    Returns None for the base record (no tab).

    Raises:
        BoondValidationError: If the tab is unknown or unsupported for the type
    """
    from boondsync.integrations.boondmanager.errors import BoondValidationError

    if tab is None or tab == "":
        return None

    try:
        view = DetailView(tab)
    except ValueError:
        raise BoondValidationError(f"Unknown detail view '{tab}'") from None

    if view not in get_schema_config(resource_type)["views"]:
        raise BoondValidationError(
            f"View '{view.value}' is not available for {ResourceType(resource_type).value}"
        )
    return view


def resource_type_from_api(type_name: Optional[str]) -> Optional[ResourceType]:
    """Map an API ``type`` string (e.g. in relationships) to a ResourceType."""
    if not type_name:
        return None
    try:
        return ResourceType(type_name)
    except ValueError:
        return None

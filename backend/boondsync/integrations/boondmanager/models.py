"""
Typed payloads exchanged with the BoondManager API.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from boondsync.core.environment import Environment
from boondsync.integrations.boondmanager.schema import ResourceType


@dataclass(frozen=True)
class EntityReference:
    """Environment-scoped identifier of one CRM record."""
    environment: Environment
    resource_type: ResourceType
    external_id: int

    def __str__(self) -> str:
        return f"{self.environment.value}:{self.resource_type.value}:{self.external_id}"


class EntityRecord(BaseModel):
    """One record as returned by the API (JSON:API style)."""

    model_config = ConfigDict(extra="ignore")

    id: int
    type: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)
    relationships: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("attributes", "relationships", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return value or {}

    def attr(self, name: str, default: Any = None) -> Any:
        """Attribute shorthand."""
        value = self.attributes.get(name)
        return default if value is None else value


class EntityDetail(BaseModel):
    """A detail fetch: the primary data (record or tab listing) plus the side-table."""

    # Base record and most tabs are a single object; listing tabs (actions, ...) are arrays
    data: Union[EntityRecord, List[EntityRecord], Dict[str, Any], List[Dict[str, Any]]]
    included: List[Dict[str, Any]] = Field(default_factory=list)


class ListMeta(BaseModel):
    page: int
    max_results: int
    total_rows: Optional[int] = None
    page_count: Optional[int] = None
    # items in the response body, including malformed ones left out of records
    returned_rows: Optional[int] = None


class EntityPage(BaseModel):
    records: List[EntityRecord] = Field(default_factory=list)
    meta: ListMeta


class ListFilters(BaseModel):
    """Query filters for a paginated listing."""

    model_config = ConfigDict(extra="forbid")

    page: int = Field(default=1, ge=1)
    max_results: int = Field(default=30, ge=1, le=500)
    keywords: Optional[str] = None
    state: Optional[int] = None
    company: Optional[int] = Field(default=None, ge=1)
    sort: str = "-updateDate"

    def to_query_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "page": self.page,
            "maxResults": self.max_results,
            "sort": self.sort,
        }
        if self.keywords:
            params["keywords"] = self.keywords
        if self.state is not None:
            params["state"] = self.state
        if self.company is not None:
            params["company"] = self.company
        return params


class DocumentMeta(BaseModel):
    id: int
    name: str = ""
    parent_type: Optional[str] = None
    parent_id: Optional[int] = None
    mime_type: Optional[str] = None
    size: Optional[int] = None


@dataclass
class DocumentContent:
    """Raw document bytes plus what is needed for pass-through delivery."""
    content: bytes
    filename: str
    mime_type: str

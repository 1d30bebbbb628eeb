"""
Shared fixtures for BoondSync tests.

FakeBoondClient stands in for an environment-scoped BoondManagerClient:
same async API, records held in memory.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

import pytest

from boondsync.core.config import Settings
from boondsync.core.environment import Environment
from boondsync.integrations.boondmanager.errors import BoondNotFoundError, BoondPermissionError
from boondsync.integrations.boondmanager.models import (
    DocumentContent,
    DocumentMeta,
    EntityDetail,
    EntityPage,
    EntityRecord,
    ListMeta,
)
from boondsync.integrations.boondmanager.schema import ResourceType, get_listable_types
from boondsync.services.boond_sync import BoondSyncService

CREDENTIALS = {
    "BOOND_PRODUCTION_USER_TOKEN": "prod-user",
    "BOOND_PRODUCTION_CLIENT_TOKEN": "prod-client",
    "BOOND_PRODUCTION_CLIENT_KEY": "prod-key",
    "BOOND_SANDBOX_USER_TOKEN": "sandbox-user",
    "BOOND_SANDBOX_CLIENT_TOKEN": "sandbox-client",
    "BOOND_SANDBOX_CLIENT_KEY": "sandbox-key",
}


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = dict(CREDENTIALS)
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeBoondClient:
    """In-memory BoondManager environment."""

    def __init__(self, environment: Environment):
        self.environment = Environment(environment)
        self.records: Dict[ResourceType, List[EntityRecord]] = {
            rtype: [] for rtype in get_listable_types()
        }
        self.resumes: Dict[Tuple[ResourceType, int], List[DocumentMeta]] = {}
        self.documents: Dict[int, DocumentContent] = {}
        self.forbidden_documents: Set[int] = set()
        self.created: List[Tuple[ResourceType, Dict[str, Any], Optional[Dict[str, Any]]]] = []
        self.updated: List[Tuple[ResourceType, int, Dict[str, Any]]] = []
        self.uploaded: List[Tuple[str, int, str]] = []
        self.list_errors: Dict[ResourceType, Exception] = {}
        self.on_create: Optional[Callable[[], Awaitable[None]]] = None
        self._next_id = 1000

    def add(self, resource_type: ResourceType, record_id: int, **attributes: Any) -> EntityRecord:
        record = EntityRecord(id=record_id, type=resource_type.value, attributes=attributes)
        self.records[resource_type].append(record)
        return record

    def add_resume(self, resource_type: ResourceType, record_id: int, document_id: int, name: str, content: bytes = b"%PDF"):
        self.resumes.setdefault((resource_type, record_id), []).append(
            DocumentMeta(id=document_id, name=name, parent_type=resource_type.value, parent_id=record_id)
        )
        self.documents[document_id] = DocumentContent(
            content=content, filename=name, mime_type="application/pdf"
        )

    async def list(self, resource_type, filters=None):
        records = self.records[ResourceType(resource_type)]
        return EntityPage(
            records=list(records),
            meta=ListMeta(page=1, max_results=30, total_rows=len(records), page_count=1),
        )

    async def get(self, resource_type, external_id, tab=None):
        for record in self.records[ResourceType(resource_type)]:
            if record.id == int(external_id):
                return EntityDetail(data=record, included=[])
        raise BoondNotFoundError(f"BoondManager API error: 404 on /{resource_type.value}/{external_id}")

    async def fetch_all(self, resource_type, page_size=100, max_pages=100, filters=None):
        if resource_type in self.list_errors:
            raise self.list_errors[resource_type]
        return list(self.records[ResourceType(resource_type)])

    async def create(self, resource_type, attributes, relationships=None):
        if self.on_create is not None:
            await self.on_create()
        self._next_id += 1
        self.created.append((resource_type, dict(attributes), relationships))
        return self.add(resource_type, self._next_id, **attributes)

    async def update(self, resource_type, external_id, attributes, relationships=None):
        self.updated.append((resource_type, external_id, dict(attributes)))
        items = self.records[resource_type]
        for index, record in enumerate(items):
            if record.id == external_id:
                merged = {**record.attributes, **attributes}
                items[index] = record.model_copy(update={"attributes": merged})
                return items[index]
        raise AssertionError(f"update of unknown {resource_type.value} {external_id}")

    async def get_resumes(self, resource_type, external_id):
        return list(self.resumes.get((ResourceType(resource_type), int(external_id)), []))

    async def download_document(self, document_id):
        document_id = int(document_id)
        if document_id in self.forbidden_documents:
            raise BoondPermissionError(
                f"BoondManager API error: 403 on /documents/{document_id}",
                endpoint=f"/documents/{document_id}",
            )
        return self.documents[document_id]

    async def upload_document(self, parent_type, parent_id, filename, content, mime_type="application/octet-stream"):
        self._next_id += 1
        self.uploaded.append((parent_type, parent_id, filename))
        self.add_resume(ResourceType(parent_type), parent_id, self._next_id, filename, content)
        return self.resumes[(ResourceType(parent_type), parent_id)][-1]

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def production() -> FakeBoondClient:
    return FakeBoondClient(Environment.PRODUCTION)


@pytest.fixture
def sandbox() -> FakeBoondClient:
    return FakeBoondClient(Environment.SANDBOX)


@pytest.fixture
def sync_service(settings, production, sandbox) -> BoondSyncService:
    clients = {Environment.PRODUCTION: production, Environment.SANDBOX: sandbox}
    return BoondSyncService(settings=settings, client_factory=lambda env: clients[env])

"""
Tests for BoondManagerClient.

HTTP is served by httpx.MockTransport; retry waits are zeroed.
"""

import json

import httpx
import jwt
import pytest

from boondsync.core.config import BoondCredentials
from boondsync.core.environment import Environment
from boondsync.integrations.boondmanager.client import (
    JWT_HEADER,
    BoondManagerClient,
    parse_content_disposition,
)
from boondsync.integrations.boondmanager.errors import (
    BoondAuthError,
    BoondConfigError,
    BoondNotFoundError,
    BoondPermissionError,
    BoondValidationError,
    TransientNetworkError,
    WriteForbiddenError,
)
from boondsync.integrations.boondmanager.models import EntityRecord
from boondsync.integrations.boondmanager.schema import ResourceType

BASE_URL = "https://boond.test/api"
CREDENTIALS = BoondCredentials(user_token="user", client_token="client", client_key="test-client-key-0123456789abcdef")


def make_client(handler, environment=Environment.SANDBOX, **kwargs) -> BoondManagerClient:
    return BoondManagerClient(
        environment=environment,
        credentials=CREDENTIALS,
        api_base_url=BASE_URL,
        retry_base_delay=0,
        retry_max_delay=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def candidate_json(record_id, **attributes):
    return {"id": record_id, "type": "candidate", "attributes": attributes}


class Recorder:
    """Handler serving a fixed list of responses, recording requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses[min(len(self.requests), len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response


def test_incomplete_credentials_rejected():
    with pytest.raises(BoondConfigError):
        BoondManagerClient(
            environment=Environment.SANDBOX,
            credentials=BoondCredentials(user_token="user", client_token="", client_key="test-client-key-0123456789abcdef"),
        )


def test_parse_content_disposition():
    assert parse_content_disposition('attachment; filename="cv.pdf"') == "cv.pdf"
    assert parse_content_disposition("inline; filename*=UTF-8''r%C3%A9sum%C3%A9.pdf") == "résumé.pdf"
    assert parse_content_disposition(None) is None


@pytest.mark.asyncio
class TestReads:
    """Tests for list / get / fetch_all / resumes / documents."""

    async def test_list_sends_jwt_and_filters(self):
        handler = Recorder(httpx.Response(200, json={
            "data": [candidate_json(1, firstName="Alice")],
            "meta": {"totals": {"rows": 61}},
        }))

        async with make_client(handler) as client:
            page = await client.list(ResourceType.CANDIDATE, {"page": 2, "keywords": "java"})

        request = handler.requests[0]
        assert request.url.path == "/api/candidates"
        assert request.url.params["page"] == "2"
        assert request.url.params["maxResults"] == "30"
        assert request.url.params["keywords"] == "java"

        payload = jwt.decode(request.headers[JWT_HEADER], CREDENTIALS.client_key, algorithms=["HS256"])
        assert payload["userToken"] == "user"
        assert payload["clientToken"] == "client"
        assert payload["mode"] == "normal"

        assert page.records[0].attr("firstName") == "Alice"
        assert page.meta.total_rows == 61
        assert page.meta.page_count == 3

    async def test_page_past_end_is_empty(self):
        handler = Recorder(httpx.Response(200, json={"data": [], "meta": {"totals": {"rows": 4}}}))

        async with make_client(handler) as client:
            page = await client.list(ResourceType.CANDIDATE, {"page": 99})

        assert page.records == []

    async def test_invalid_filters_rejected_without_request(self):
        handler = Recorder(httpx.Response(200, json={"data": []}))

        async with make_client(handler) as client:
            with pytest.raises(BoondValidationError):
                await client.list(ResourceType.CANDIDATE, {"page": 0})
            with pytest.raises(BoondValidationError):
                await client.list(ResourceType.DOCUMENT)

        assert handler.requests == []

    async def test_get_detail_view_path(self):
        handler = Recorder(httpx.Response(200, json={
            "data": {"id": 5, "type": "project", "attributes": {"title": "ERP"}},
            "included": [{"id": 2, "type": "company"}],
        }))

        async with make_client(handler) as client:
            detail = await client.get(ResourceType.PROJECT, 5, tab="deliveries")

        assert handler.requests[0].url.path == "/api/projects/5/deliveries-groupments"
        assert isinstance(detail.data, EntityRecord)
        assert detail.included == [{"id": 2, "type": "company"}]

    async def test_get_rejects_bad_id_and_view(self):
        handler = Recorder(httpx.Response(200, json={}))

        async with make_client(handler) as client:
            with pytest.raises(BoondValidationError):
                await client.get(ResourceType.CANDIDATE, "abc")
            with pytest.raises(BoondValidationError):
                await client.get(ResourceType.CANDIDATE, 1, tab="positionings")
            with pytest.raises(BoondValidationError):
                await client.get(ResourceType.CANDIDATE, 1, tab="bogus")

        assert handler.requests == []

    async def test_get_unknown_id_is_not_found(self):
        handler = Recorder(httpx.Response(404, json={"errors": [{"detail": "not found"}]}))

        async with make_client(handler) as client:
            with pytest.raises(BoondNotFoundError):
                await client.get(ResourceType.CANDIDATE, 424242)

        assert len(handler.requests) == 1

    async def test_fetch_all_stops_on_short_page(self):
        handler = Recorder(
            httpx.Response(200, json={"data": [candidate_json(1), candidate_json(2)]}),
            httpx.Response(200, json={"data": [candidate_json(3), candidate_json(4)]}),
            httpx.Response(200, json={"data": [candidate_json(5)]}),
        )

        async with make_client(handler) as client:
            records = await client.fetch_all(ResourceType.CANDIDATE, page_size=2)

        assert [r.id for r in records] == [1, 2, 3, 4, 5]
        assert [req.url.params["page"] for req in handler.requests] == ["1", "2", "3"]

    async def test_fetch_all_respects_page_limit(self):
        handler = Recorder(httpx.Response(200, json={"data": [candidate_json(1), candidate_json(2)]}))

        async with make_client(handler) as client:
            records = await client.fetch_all(ResourceType.CANDIDATE, page_size=2, max_pages=3)

        assert len(records) == 6
        assert len(handler.requests) == 3

    async def test_malformed_items_do_not_fail_listing(self):
        handler = Recorder(httpx.Response(200, json={"data": [
            candidate_json(1, lastName="Martin"),
            {"id": "abc", "type": "candidate", "attributes": {"lastName": "Durand"}},
            {"id": 3, "type": "candidate", "attributes": ["not", "a", "mapping"]},
            "garbage",
            candidate_json(4, lastName="Petit"),
        ]}))

        async with make_client(handler) as client:
            page = await client.list(ResourceType.CANDIDATE)

        assert [r.id for r in page.records] == [1, 3, 4]
        assert page.records[1].attributes == {}
        assert page.meta.returned_rows == 5

    async def test_fetch_all_pages_past_dropped_items(self):
        handler = Recorder(
            httpx.Response(200, json={"data": [candidate_json(1), {"id": None}]}),
            httpx.Response(200, json={"data": [candidate_json(3)]}),
        )

        async with make_client(handler) as client:
            records = await client.fetch_all(ResourceType.CANDIDATE, page_size=2)

        assert [r.id for r in records] == [1, 3]
        assert len(handler.requests) == 2

    async def test_get_resumes(self):
        handler = Recorder(httpx.Response(200, json={"data": {
            "id": 7,
            "type": "candidate",
            "attributes": {"resumes": [{"id": 70, "name": "cv.pdf"}, {"name": "no id"}]},
        }}))

        async with make_client(handler) as client:
            resumes = await client.get_resumes(ResourceType.CANDIDATE, 7)

        assert handler.requests[0].url.path == "/api/candidates/7/information"
        assert [(doc.id, doc.name, doc.parent_id) for doc in resumes] == [(70, "cv.pdf", 7)]

    async def test_download_document(self):
        handler = Recorder(httpx.Response(
            200,
            content=b"%PDF-1.4",
            headers={
                "content-type": "application/pdf; charset=binary",
                "content-disposition": 'attachment; filename="cv.pdf"',
            },
        ))

        async with make_client(handler) as client:
            document = await client.download_document(12)

        assert document.content == b"%PDF-1.4"
        assert document.filename == "cv.pdf"
        assert document.mime_type == "application/pdf"

    async def test_download_document_defaults(self):
        handler = Recorder(httpx.Response(200, content=b"raw"))

        async with make_client(handler) as client:
            document = await client.download_document(12)

        assert document.filename == "document-12"
        assert document.mime_type == "application/octet-stream"


@pytest.mark.asyncio
class TestErrorHandling:
    """Tests for retries, auth refresh and status classification."""

    async def test_transient_read_retried_exactly_three_times(self):
        handler = Recorder(httpx.Response(503, text="unavailable"))

        async with make_client(handler) as client:
            with pytest.raises(TransientNetworkError):
                await client.list(ResourceType.CANDIDATE)

        assert len(handler.requests) == 3

    async def test_transient_read_recovers(self):
        handler = Recorder(
            httpx.Response(429),
            httpx.Response(200, json={"data": [candidate_json(1)]}),
        )

        async with make_client(handler) as client:
            page = await client.list(ResourceType.CANDIDATE)

        assert [r.id for r in page.records] == [1]
        assert len(handler.requests) == 2

    async def test_permission_error_not_retried(self):
        handler = Recorder(httpx.Response(403, json={"errors": [{"detail": "forbidden"}]}))

        async with make_client(handler) as client:
            with pytest.raises(BoondPermissionError) as exc_info:
                await client.download_document(99)

        assert exc_info.value.permission_error is True
        assert exc_info.value.status_code == 403
        assert len(handler.requests) == 1

    async def test_401_remints_token_once(self):
        handler = Recorder(
            httpx.Response(401),
            httpx.Response(200, json={"data": []}),
        )

        async with make_client(handler) as client:
            page = await client.list(ResourceType.CANDIDATE)

        assert page.records == []
        assert len(handler.requests) == 2

    async def test_second_401_is_auth_error(self):
        handler = Recorder(httpx.Response(401))

        async with make_client(handler) as client:
            with pytest.raises(BoondAuthError):
                await client.list(ResourceType.CANDIDATE)

        assert len(handler.requests) == 2

    async def test_write_not_retried_on_ambiguous_failure(self):
        handler = Recorder(httpx.Response(500))

        async with make_client(handler) as client:
            with pytest.raises(TransientNetworkError):
                await client.create(ResourceType.CANDIDATE, {"lastName": "Martin"})

        assert len(handler.requests) == 1

    async def test_write_retried_when_never_sent(self):
        handler = Recorder(
            httpx.ConnectError("connection refused"),
            httpx.Response(200, json={"data": candidate_json(55, lastName="Martin")}),
        )

        async with make_client(handler) as client:
            created = await client.create(ResourceType.CANDIDATE, {"lastName": "Martin"})

        assert created.id == 55
        assert len(handler.requests) == 2
        body = json.loads(handler.requests[-1].content)
        assert body == {"data": {"type": "candidate", "attributes": {"lastName": "Martin"}}}

    async def test_production_is_read_only(self):
        handler = Recorder(httpx.Response(200, json={"data": candidate_json(1)}))

        async with make_client(handler, environment=Environment.PRODUCTION) as client:
            with pytest.raises(WriteForbiddenError):
                await client.create(ResourceType.CANDIDATE, {"lastName": "Martin"})
            with pytest.raises(WriteForbiddenError):
                await client.update(ResourceType.CANDIDATE, 1, {"lastName": "Martin"})
            with pytest.raises(WriteForbiddenError):
                await client.upload_document("candidate", 1, "cv.pdf", b"%PDF")

        assert handler.requests == []

    async def test_update_puts_information_tab(self):
        handler = Recorder(httpx.Response(200, json={"data": candidate_json(8, title="Senior")}))

        async with make_client(handler) as client:
            updated = await client.update(ResourceType.CANDIDATE, 8, {"title": "Senior"})

        request = handler.requests[0]
        assert request.method == "PUT"
        assert request.url.path == "/api/candidates/8/information"
        assert updated.attr("title") == "Senior"

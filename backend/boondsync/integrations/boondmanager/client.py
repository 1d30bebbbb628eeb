"""
BoondManager API Client with client-JWT authentication.
Handles token minting, retries, status classification and HTTP requests
for exactly one environment (production or sandbox).
"""

import logging
import math
import re
import time
from typing import Any, Dict, List, Optional, Union
from urllib.parse import unquote

import httpx
import jwt
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from boondsync.core.config import BOOND_DEFAULT_BASE_URL, BoondCredentials
from boondsync.core.environment import Environment
from boondsync.integrations.boondmanager.errors import (
    BoondAuthError,
    BoondConfigError,
    BoondNotFoundError,
    BoondPermissionError,
    BoondValidationError,
    RemoteServiceError,
    TransientNetworkError,
    WriteForbiddenError,
)
from boondsync.integrations.boondmanager.models import (
    DocumentContent,
    DocumentMeta,
    EntityDetail,
    EntityPage,
    EntityRecord,
    ListFilters,
    ListMeta,
)
from boondsync.integrations.boondmanager.schema import (
    DETAIL_VIEW_PATHS,
    ResourceType,
    get_endpoint,
    get_schema_config,
    resolve_detail_view,
)

logger = logging.getLogger(__name__)

JWT_HEADER = "X-Jwt-Client-BoondManager"
IDEMPOTENT_METHODS = {"GET", "HEAD", "OPTIONS"}
RESUME_PARENT_TYPES = {ResourceType.CANDIDATE, ResourceType.RESOURCE}

_FILENAME_STAR_RE = re.compile(r"filename\*\s*=\s*(?:[\w-]+)?'[^']*'([^;]+)", re.IGNORECASE)
_FILENAME_RE = re.compile(r'filename\s*=\s*"?([^";]+)"?', re.IGNORECASE)


def _is_retryable_read(exc: BaseException) -> bool:
    return isinstance(exc, TransientNetworkError)


def _is_retryable_write(exc: BaseException) -> bool:
    # Only retry writes the server certainly never applied
    return isinstance(exc, TransientNetworkError) and exc.not_applied


def _validate_id(value: Any, label: str = "id") -> int:
    if isinstance(value, bool):
        raise BoondValidationError(f"Invalid {label}: {value!r}")
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise BoondValidationError(f"Invalid {label}: {value!r}") from None
    if parsed <= 0 or str(parsed) != str(value).strip():
        raise BoondValidationError(f"Invalid {label}: {value!r}")
    return parsed


def parse_content_disposition(header: Optional[str]) -> Optional[str]:
    """Extract the filename from a Content-Disposition header."""
    if not header:
        return None
    match = _FILENAME_STAR_RE.search(header)
    if match:
        return unquote(match.group(1).strip())
    match = _FILENAME_RE.search(header)
    if match:
        return match.group(1).strip()
    return None


class BoondManagerClient:
    """
    BoondManager REST API Client scoped to one environment.

    Authenticates with a client JWT signed by the environment's client key.
    The token is cached until its TTL expires and re-minted once when the
    API answers 401. Transient failures (network, timeout, 5xx, 429) are
    retried with bounded exponential backoff; writes are only retried when
    the request is known not to have been applied.
    """

    def __init__(
        self,
        environment: Environment,
        credentials: BoondCredentials,
        api_base_url: str = BOOND_DEFAULT_BASE_URL,
        timeout: float = 30.0,
        token_ttl_seconds: int = 3600,
        allow_production_writes: bool = False,
        retry_attempts: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 8.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize BoondManager client.

        Args:
            environment: Environment the credentials belong to
            credentials: User token, client token and client key of that environment
            api_base_url: API base URL
            timeout: HTTP request timeout in seconds
            token_ttl_seconds: Lifetime of a minted JWT
            allow_production_writes: Whether create/update/upload may target production
            retry_attempts: Maximum attempts per call (including the first)
            retry_base_delay: First backoff wait in seconds, doubled per attempt
            retry_max_delay: Cap of a single backoff wait in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        if not credentials.is_complete:
            raise BoondConfigError(
                f"Incomplete BoondManager credentials for {Environment(environment).value}"
            )

        self.environment = Environment(environment)
        self._credentials = credentials
        self.api_base_url = api_base_url.rstrip("/")
        self.token_ttl_seconds = token_ttl_seconds
        self.allow_production_writes = allow_production_writes
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay

        # Token cache
        self._token: Optional[str] = None
        self._token_expires_at: float = 0

        # HTTP client
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

        logger.info(f"BoondManagerClient initialized (env: {self.environment.value})")

    # =========================================================================
    # Authentication
    # =========================================================================

    def _mint_token(self) -> str:
        """Sign a fresh client JWT."""
        payload = {
            "userToken": self._credentials.user_token,
            "clientToken": self._credentials.client_token,
            "time": int(time.time()),
            "mode": "normal",
        }
        token = jwt.encode(payload, self._credentials.client_key, algorithm="HS256")
        self._token = token
        self._token_expires_at = time.time() + self.token_ttl_seconds
        logger.debug(f"🔑 Minted BoondManager JWT (env: {self.environment.value})")
        return token

    def _get_token(self) -> str:
        if self._token and time.time() < self._token_expires_at:
            return self._token
        return self._mint_token()

    def invalidate_token(self) -> None:
        self._token = None
        self._token_expires_at = 0

    # =========================================================================
    # Transport
    # =========================================================================

    def _raise_for_status(self, response: httpx.Response, endpoint: str) -> None:
        """Classify an error response into the error taxonomy."""
        status = response.status_code
        if status < 400:
            return

        detail = response.text[:500] if response.text else ""
        message = f"BoondManager API error: {status} on {endpoint}"
        if detail:
            message = f"{message} - {detail}"

        if status == 403:
            raise BoondPermissionError(message, status_code=status, endpoint=endpoint)
        if status == 404:
            raise BoondNotFoundError(message, status_code=status, endpoint=endpoint)
        if status in (400, 422):
            raise BoondValidationError(message, status_code=status, endpoint=endpoint)
        if status == 429:
            raise TransientNetworkError(message, status_code=status, endpoint=endpoint, not_applied=True)
        if status >= 500:
            raise TransientNetworkError(message, status_code=status, endpoint=endpoint)
        raise RemoteServiceError(message, status_code=status, endpoint=endpoint)

    async def _send(
        self,
        method: str,
        endpoint: str,
        auth_state: Dict[str, bool],
        **kwargs: Any,
    ) -> httpx.Response:
        """One HTTP exchange, re-minting the token once per call chain on 401."""
        url = f"{self.api_base_url}{endpoint}"

        while True:
            token = self._get_token()
            try:
                response = await self._client.request(
                    method=method,
                    url=url,
                    headers={JWT_HEADER: token},
                    **kwargs,
                )
            except (httpx.ConnectError, httpx.ConnectTimeout) as e:
                raise TransientNetworkError(
                    f"Connection failed: {e}", endpoint=endpoint, not_applied=True
                ) from e
            except httpx.RequestError as e:
                raise TransientNetworkError(f"Network error: {e}", endpoint=endpoint) from e

            if response.status_code != 401:
                self._raise_for_status(response, endpoint)
                return response

            if auth_state["refreshed"]:
                raise BoondAuthError(
                    f"BoondManager rejected a refreshed token on {endpoint}",
                    status_code=401,
                    endpoint=endpoint,
                )

            logger.warning(f"🔄 401 on {endpoint}, re-minting token (env: {self.environment.value})")
            auth_state["refreshed"] = True
            self.invalidate_token()

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Makes an authenticated request to the BoondManager API.

        Args:
            method: HTTP method (GET, POST, PUT, ...)
            endpoint: API endpoint (e.g., "/candidates")
            params: Query parameters
            json: JSON body for POST/PUT
            data: Form fields for multipart uploads
            files: Multipart files

        Returns:
            The successful httpx.Response

        Raises:
            BoondError: Classified failure after the retry budget is spent
        """
        method = method.upper()
        is_read = method in IDEMPOTENT_METHODS
        auth_state = {"refreshed": False}

        kwargs: Dict[str, Any] = {}
        if params:
            kwargs["params"] = params
        if json is not None:
            kwargs["json"] = json
        if data is not None:
            kwargs["data"] = data
        if files is not None:
            kwargs["files"] = files

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_base_delay, max=self.retry_max_delay),
            retry=retry_if_exception(_is_retryable_read if is_read else _is_retryable_write),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                return await self._send(method, endpoint, auth_state, **kwargs)

        # AsyncRetrying always returns or reraises
        raise TransientNetworkError(f"Retry budget exhausted on {endpoint}", endpoint=endpoint)

    async def request_json(self, method: str, endpoint: str, **kwargs: Any) -> Dict[str, Any]:
        """Request shorthand returning the decoded JSON body (empty body -> {})."""
        response = await self.request(method, endpoint, **kwargs)
        if not response.content or not response.text.strip():
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise RemoteServiceError(
                f"Invalid JSON from BoondManager on {endpoint}: {e}", endpoint=endpoint
            ) from e

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(
        self,
        resource_type: ResourceType,
        external_id: Union[int, str],
        tab: Optional[str] = None,
    ) -> EntityDetail:
        """
        Fetch one record, or one of its detail views.

        Args:
            resource_type: Type of the record
            external_id: Positive CRM id
            tab: Optional detail view name (see DetailView)

        Raises:
            BoondValidationError: Bad id, unknown or unsupported view
            BoondNotFoundError: No such record in this environment
        """
        resource_type = ResourceType(resource_type)
        record_id = _validate_id(external_id)
        if resource_type == ResourceType.DOCUMENT:
            raise BoondValidationError("Documents are binary; use download_document()")

        view = resolve_detail_view(resource_type, tab)
        endpoint = f"{get_endpoint(resource_type)}/{record_id}"
        if view is not None:
            endpoint = f"{endpoint}/{DETAIL_VIEW_PATHS[view]}"

        body = await self.request_json("GET", endpoint)
        raw = body.get("data")
        if raw is None:
            raise BoondNotFoundError(f"Empty response for {endpoint}", endpoint=endpoint)

        data: Any
        if isinstance(raw, list):
            data = [EntityRecord.model_validate(item) if "id" in item else item for item in raw]
        elif isinstance(raw, dict) and "id" in raw:
            data = EntityRecord.model_validate(raw)
        else:
            data = raw

        return EntityDetail(data=data, included=body.get("included") or [])

    @staticmethod
    def _salvage_record(item: Any) -> Optional[EntityRecord]:
        """Keep the id of a malformed item, emptying the parts that do not validate."""
        if not isinstance(item, dict):
            return None
        kept: Dict[str, Any] = {"id": item.get("id")}
        if isinstance(item.get("type"), str):
            kept["type"] = item["type"]
        for key in ("attributes", "relationships"):
            if isinstance(item.get(key), dict):
                kept[key] = item[key]
        try:
            return EntityRecord.model_validate(kept)
        except ValidationError:
            return None

    def _parse_records(self, resource_type: ResourceType, raw_records: List[Any]) -> List[EntityRecord]:
        records: List[EntityRecord] = []
        for item in raw_records:
            try:
                records.append(EntityRecord.model_validate(item))
                continue
            except ValidationError as e:
                error_count = e.error_count()

            salvaged = self._salvage_record(item)
            if salvaged is None:
                logger.warning(
                    f"⚠️ Dropped malformed {resource_type.value} item in {self.environment.value} "
                    f"({error_count} validation errors, no usable id)"
                )
                continue
            logger.warning(
                f"⚠️ Malformed {resource_type.value} {salvaged.id} in {self.environment.value}: "
                f"kept with unreadable fields emptied"
            )
            records.append(salvaged)
        return records

    async def list(
        self,
        resource_type: ResourceType,
        filters: Optional[Union[ListFilters, Dict[str, Any]]] = None,
    ) -> EntityPage:
        """
        Fetch one page of a listing.

        Pages are 1-indexed. A page past the end yields an empty page.

        Raises:
            BoondValidationError: Invalid filters or non-listable type
        """
        resource_type = ResourceType(resource_type)
        if not get_schema_config(resource_type)["listable"]:
            raise BoondValidationError(f"{resource_type.value} cannot be listed")

        if filters is None:
            filters = ListFilters()
        elif not isinstance(filters, ListFilters):
            try:
                filters = ListFilters.model_validate(filters)
            except ValidationError as e:
                raise BoondValidationError(f"Invalid list filters: {e}") from e

        endpoint = get_endpoint(resource_type)
        body = await self.request_json("GET", endpoint, params=filters.to_query_params())

        raw_records = body.get("data") or []
        records = self._parse_records(resource_type, raw_records)

        totals = (body.get("meta") or {}).get("totals") or {}
        total_rows = totals.get("rows")
        page_count = math.ceil(total_rows / filters.max_results) if total_rows is not None else None

        return EntityPage(
            records=records,
            meta=ListMeta(
                page=filters.page,
                max_results=filters.max_results,
                total_rows=total_rows,
                page_count=page_count,
                returned_rows=len(raw_records),
            ),
        )

    async def fetch_all(
        self,
        resource_type: ResourceType,
        page_size: int = 100,
        max_pages: int = 100,
        filters: Optional[ListFilters] = None,
    ) -> List[EntityRecord]:
        """
        Fetch all records of a type with automatic pagination.

        Stops on a short page, when the reported total is reached, or at
        the max_pages safety limit.
        """
        base = filters or ListFilters()
        all_records: List[EntityRecord] = []
        rows_seen = 0

        for page in range(1, max_pages + 1):
            page_filters = base.model_copy(update={"page": page, "max_results": page_size})
            result = await self.list(resource_type, page_filters)
            all_records.extend(result.records)
            returned = result.meta.returned_rows
            if returned is None:
                returned = len(result.records)
            rows_seen += returned

            logger.debug(
                f"Fetched {len(result.records)} {resource_type.value} records "
                f"(page {page}, total so far: {len(all_records)})"
            )

            if returned < page_size:
                break
            if result.meta.total_rows is not None and rows_seen >= result.meta.total_rows:
                break
        else:
            logger.warning(
                f"⚠️ Reached page limit ({max_pages}) for {resource_type.value} "
                f"in {self.environment.value}"
            )

        return all_records

    async def get_resumes(
        self,
        resource_type: ResourceType,
        external_id: Union[int, str],
    ) -> List[DocumentMeta]:
        """List the resumes attached to a candidate or resource."""
        resource_type = ResourceType(resource_type)
        if resource_type not in RESUME_PARENT_TYPES:
            raise BoondValidationError(f"{resource_type.value} has no resumes")

        record_id = _validate_id(external_id)
        detail = await self.get(resource_type, record_id, tab="information")
        attributes = detail.data.attributes if isinstance(detail.data, EntityRecord) else {}

        documents: List[DocumentMeta] = []
        for item in attributes.get("resumes") or []:
            if not isinstance(item, dict) or item.get("id") is None:
                continue
            nested = item.get("attributes") or {}
            try:
                documents.append(
                    DocumentMeta(
                        id=int(item["id"]),
                        name=item.get("name") or nested.get("name") or nested.get("originalName") or "",
                        parent_type=resource_type.value,
                        parent_id=record_id,
                        mime_type=item.get("mimeType") or nested.get("mimeType"),
                        size=item.get("size") or nested.get("size"),
                    )
                )
            except (TypeError, ValueError):
                logger.warning(f"⚠️ Skipping malformed resume entry on {resource_type.value} {record_id}")
        return documents

    async def download_document(self, document_id: Union[int, str]) -> DocumentContent:
        """
        Download a document's binary content.

        Raises:
            BoondPermissionError: The credential cannot read this document
            BoondNotFoundError: No such document
        """
        doc_id = _validate_id(document_id, label="document id")
        response = await self.request("GET", f"/documents/{doc_id}")

        filename = parse_content_disposition(response.headers.get("content-disposition"))
        content_type = response.headers.get("content-type", "").split(";")[0].strip()

        return DocumentContent(
            content=response.content,
            filename=filename or f"document-{doc_id}",
            mime_type=content_type or "application/octet-stream",
        )

    # =========================================================================
    # Writes
    # =========================================================================

    def _assert_can_write(self, operation: str) -> None:
        if self.environment == Environment.PRODUCTION and not self.allow_production_writes:
            raise WriteForbiddenError(f"{operation} refused: production is read-only")

    def _assert_writable(self, resource_type: ResourceType) -> None:
        if not get_schema_config(resource_type)["writable"]:
            raise BoondValidationError(f"{resource_type.value} records cannot be written directly")

    async def create(
        self,
        resource_type: ResourceType,
        attributes: Dict[str, Any],
        relationships: Optional[Dict[str, Any]] = None,
    ) -> EntityRecord:
        """Create a record. Retried only when the request never reached the server."""
        resource_type = ResourceType(resource_type)
        self._assert_can_write(f"create {resource_type.value}")
        self._assert_writable(resource_type)

        payload: Dict[str, Any] = {"type": resource_type.value, "attributes": attributes}
        if relationships:
            payload["relationships"] = relationships

        body = await self.request_json("POST", get_endpoint(resource_type), json={"data": payload})
        raw = body.get("data")
        if not isinstance(raw, dict) or raw.get("id") is None:
            raise RemoteServiceError(
                f"Create {resource_type.value} returned no id", endpoint=get_endpoint(resource_type)
            )
        return EntityRecord.model_validate(raw)

    async def update(
        self,
        resource_type: ResourceType,
        external_id: Union[int, str],
        attributes: Dict[str, Any],
        relationships: Optional[Dict[str, Any]] = None,
    ) -> EntityRecord:
        """Update the information tab of a record with the given attributes."""
        resource_type = ResourceType(resource_type)
        self._assert_can_write(f"update {resource_type.value}")
        self._assert_writable(resource_type)
        record_id = _validate_id(external_id)

        payload: Dict[str, Any] = {
            "id": record_id,
            "type": resource_type.value,
            "attributes": attributes,
        }
        if relationships:
            payload["relationships"] = relationships

        endpoint = f"{get_endpoint(resource_type)}/{record_id}/information"
        body = await self.request_json("PUT", endpoint, json={"data": payload})
        raw = body.get("data")
        if isinstance(raw, dict) and raw.get("id") is not None:
            return EntityRecord.model_validate(raw)
        return EntityRecord(id=record_id, type=resource_type.value, attributes=attributes)

    async def upload_document(
        self,
        parent_type: str,
        parent_id: Union[int, str],
        filename: str,
        content: bytes,
        mime_type: str = "application/octet-stream",
    ) -> DocumentMeta:
        """Attach a document (multipart upload) to a candidate or resource."""
        self._assert_can_write("upload document")
        parent = _validate_id(parent_id, label="parent id")

        body = await self.request_json(
            "POST",
            "/documents",
            data={"parentId": str(parent), "parentType": parent_type},
            files={"file": (filename, content, mime_type)},
        )
        raw = body.get("data") or {}
        if raw.get("id") is None:
            raise RemoteServiceError("Document upload returned no id", endpoint="/documents")
        attributes = raw.get("attributes") or {}
        return DocumentMeta(
            id=int(raw["id"]),
            name=attributes.get("name") or filename,
            parent_type=parent_type,
            parent_id=parent,
            mime_type=attributes.get("mimeType") or mime_type,
            size=attributes.get("size") or len(content),
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def close(self):
        """Closes the HTTP client."""
        await self._client.aclose()
        logger.info(f"BoondManagerClient closed (env: {self.environment.value})")

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

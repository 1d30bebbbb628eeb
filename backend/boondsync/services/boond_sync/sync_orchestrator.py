"""
BoondManager Sync Orchestrator.

Coordinates snapshot fetching, quality analysis and one-way
production -> sandbox reconciliation.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from boondsync.core.config import Settings, get_settings
from boondsync.core.environment import Environment, parse_environment
from boondsync.integrations.boondmanager.client import BoondManagerClient
from boondsync.integrations.boondmanager.errors import BoondError, BoondValidationError
from boondsync.integrations.boondmanager.models import EntityRecord
from boondsync.integrations.boondmanager.schema import (
    SYNC_ORDER,
    ResourceType,
    get_listable_types,
    get_schema_config,
    get_tracked_fields,
)
from boondsync.services.boond_factory import create_client
from boondsync.services.boond_sync.attribute_mapper import AttributeMapper, IdMap, clean_records
from boondsync.services.boond_sync.documents import DocumentReplicator, DocumentSyncResult
from boondsync.services.boond_sync.error_tracker import ErrorTracker
from boondsync.services.boond_sync.exporters import export_to_csv, export_to_json
from boondsync.services.boond_sync.matching import SandboxIndex
from boondsync.services.boond_sync.record_reconciler import (
    RecordLocks,
    RecordOutcome,
    RecordReconciler,
    TypeSyncResult,
)
from boondsync.services.boond_sync.run_tracker import SyncPhase, SyncRunTracker
from boondsync.services.boond_sync.snapshot import Snapshot
from boondsync.services.data_quality.analyzer import QualityReport, build_quality_report

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Environment], BoondManagerClient]

DOCUMENT_PARENT_TYPES = (ResourceType.CANDIDATE, ResourceType.RESOURCE)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SyncResult:
    """Result of a production -> sandbox sync run."""
    status: str
    started_at: str
    completed_at: str
    types: Dict[str, TypeSyncResult] = field(default_factory=dict)
    documents: DocumentSyncResult = field(default_factory=DocumentSyncResult)
    message: str = ""
    errors: List[str] = field(default_factory=list)

    @property
    def totals(self) -> Dict[str, int]:
        keys = ("total", "created", "updated", "skipped", "failed", "not_attempted")
        return {key: sum(getattr(t, key) for t in self.types.values()) for key in keys}

    @property
    def is_success(self) -> bool:
        """Check if sync was fully successful."""
        return self.status == "success" and len(self.errors) == 0

    def to_dict(self) -> Dict[str, Any]:
        totals = self.totals
        return {
            "status": self.status,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "message": self.message,
            "totals": {
                "total": totals["total"],
                "created": totals["created"],
                "updated": totals["updated"],
                "skipped": totals["skipped"],
                "failed": totals["failed"],
                "notAttempted": totals["not_attempted"],
            },
            "entities": {name: result.to_dict() for name, result in self.types.items()},
            "documents": self.documents.to_dict(),
            "errors": self.errors,
        }


class BoondSyncService:
    """
    Sync service for BoondManager environments.

    Built once at application start and shared by reference. Owns the
    client factory, a run tracker and the per-record locks; never caches
    environment data between calls.

    Responsibilities:
    - Fetch full snapshots of one environment
    - Analyze data quality of one environment
    - Reconcile production into sandbox (create / update / skip)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        """
        Initialize sync service.

        Args:
            settings: Application settings (defaults to the cached settings)
            client_factory: Builds an environment-scoped client (defaults to create_client)
        """
        self.settings = settings or get_settings()
        self._client_factory = client_factory or (lambda env: create_client(env, self.settings))
        self.run_tracker = SyncRunTracker()
        self.locks = RecordLocks()

    def client_for(self, environment: Union[Environment, str, None] = None) -> BoondManagerClient:
        """Build a client for one environment (None -> configured default)."""
        env = parse_environment(environment, self.settings.boond_default_environment)
        return self._client_factory(env)

    # =========================================================================
    # Snapshots
    # =========================================================================

    async def _fetch_records(
        self,
        client: BoondManagerClient,
        resource_types: Sequence[ResourceType],
    ) -> Tuple[Dict[ResourceType, List[EntityRecord]], Dict[ResourceType, Exception]]:
        """Page every requested type concurrently; failures are returned per type."""
        results = await asyncio.gather(
            *(
                client.fetch_all(
                    rtype,
                    page_size=self.settings.boond_page_size,
                    max_pages=self.settings.boond_max_pages,
                )
                for rtype in resource_types
            ),
            return_exceptions=True,
        )

        records: Dict[ResourceType, List[EntityRecord]] = {}
        failures: Dict[ResourceType, Exception] = {}
        for rtype, result in zip(resource_types, results):
            if isinstance(result, Exception):
                failures[rtype] = result
            elif isinstance(result, BaseException):
                raise result
            else:
                records[rtype] = result
        return records, failures

    async def _fetch_documents(self, client: BoondManagerClient, snapshot: Snapshot):
        """Attach resume metadata of candidates and resources. Unreadable ones are omitted."""
        for rtype in DOCUMENT_PARENT_TYPES:
            for record in snapshot.records_of(rtype):
                try:
                    documents = await client.get_resumes(rtype, record.id)
                except BoondError as e:
                    logger.warning(f"⚠️ Resumes of {rtype.value} {record.id} omitted: {e.message}")
                    continue
                if documents:
                    snapshot.documents[f"{rtype.value}:{record.id}"] = documents

    async def fetch_all_data(
        self,
        environment: Union[Environment, str, None] = None,
        include_documents: bool = False,
    ) -> Snapshot:
        """
        Fetch every listable resource type of one environment.

        Args:
            environment: Environment to read (None -> configured default)
            include_documents: Also list resumes of candidates and resources

        Returns:
            Snapshot of the environment

        Raises:
            BoondError: If any resource type cannot be listed
        """
        env = parse_environment(environment, self.settings.boond_default_environment)
        listable = get_listable_types()
        logger.info(f"📥 Fetching full snapshot of {env.value}")

        async with self._client_factory(env) as client:
            records, failures = await self._fetch_records(client, listable)
            if failures:
                rtype, error = next(iter(failures.items()))
                logger.error(f"❌ Snapshot of {env.value} failed on {rtype.value}: {error}")
                raise error

            snapshot = Snapshot(environment=env, fetched_at=_now(), records=records)
            if include_documents:
                await self._fetch_documents(client, snapshot)

        logger.info(f"✅ Snapshot of {env.value}: {snapshot.stats}")
        return snapshot

    async def analyze_all_data_quality(
        self,
        environment: Union[Environment, str, None] = None,
    ) -> QualityReport:
        """Fetch a fresh snapshot and analyze every type. Read-only."""
        snapshot = await self.fetch_all_data(environment)
        return build_quality_report(
            snapshot.environment,
            snapshot.records,
            self.settings.boond_phone_country_code,
        )

    # =========================================================================
    # Reconciliation
    # =========================================================================

    @staticmethod
    def _resolve_sync_types(resource_types: Optional[Iterable[Union[ResourceType, str]]]) -> List[ResourceType]:
        if resource_types is None:
            return list(SYNC_ORDER)

        requested = set()
        for value in resource_types:
            try:
                rtype = ResourceType(value)
            except ValueError:
                raise BoondValidationError(f"Unknown resource type '{value}'") from None
            if rtype not in SYNC_ORDER:
                raise BoondValidationError(f"{rtype.value} records are not synchronized directly")
            requested.add(rtype)

        return [rtype for rtype in SYNC_ORDER if rtype in requested]

    def _record_progress(self, outcome: RecordOutcome, count: int):
        self.run_tracker.record_outcome(outcome.value, count)

    def _fail_all(
        self,
        rtype: ResourceType,
        records: List[EntityRecord],
        error: Exception,
        error_tracker: ErrorTracker,
    ) -> TypeSyncResult:
        """Sandbox listing unavailable: matching is impossible, every record fails."""
        result = TypeSyncResult(resource_type=rtype, total=len(records), failed=len(records))
        for record in records:
            result.errors.append(error_tracker.track_record_error(rtype.value, record.id, "match", error))
        self.run_tracker.record_outcome(RecordOutcome.FAILED.value, len(records))
        return result

    async def _sync_documents(
        self,
        production: BoondManagerClient,
        sandbox: BoondManagerClient,
        types: Sequence[ResourceType],
        prod_records: Dict[ResourceType, List[EntityRecord]],
        id_map: IdMap,
        type_results: Dict[str, TypeSyncResult],
        error_tracker: ErrorTracker,
    ) -> DocumentSyncResult:
        replicator = DocumentReplicator(production, sandbox, error_tracker)
        totals = DocumentSyncResult()

        for rtype in types:
            if rtype not in DOCUMENT_PARENT_TYPES:
                continue
            for record in prod_records.get(rtype, []):
                if self.run_tracker.cancel_requested:
                    return totals
                sandbox_id = id_map.get((rtype, record.id))
                if sandbox_id is None:
                    continue

                errors_before = len(error_tracker.record_errors)
                result = await replicator.sync_documents(rtype, record.id, sandbox_id)
                totals.merge(result)
                type_results[rtype.value].errors.extend(error_tracker.record_errors[errors_before:])
                self.run_tracker.record_documents(result.copied, result.failed)

        return totals

    async def sync_prod_to_sandbox(
        self,
        resource_types: Optional[Iterable[Union[ResourceType, str]]] = None,
    ) -> SyncResult:
        """
        Replicate production into sandbox.

        Workflow:
        1. Fetch production and sandbox snapshots (concurrently)
        2. Per type, in dependency order: index sandbox, then create / update / skip
        3. Copy missing resumes of synced candidates and resources
        4. Return the aggregated result (never aborts on a single record)

        Args:
            resource_types: Types to sync (default: all synchronized types)

        Returns:
            SyncResult with per-type counts and record errors

        Raises:
            SyncInProgressError: Another run is active
            BoondValidationError: Unknown or non-synchronized resource type
        """
        types = self._resolve_sync_types(resource_types)
        self.run_tracker.start_run([rtype.value for rtype in types])

        started_at = _now()
        error_tracker = ErrorTracker()
        type_results: Dict[str, TypeSyncResult] = {}
        documents = DocumentSyncResult()

        logger.info(f"🔄 Sync production -> sandbox: {', '.join(t.value for t in types)}")

        try:
            async with self._client_factory(Environment.PRODUCTION) as production, \
                    self._client_factory(Environment.SANDBOX) as sandbox:

                # === PHASE 1: Fetch snapshots ===
                (prod_records, prod_failures), (sandbox_records, sandbox_failures) = await asyncio.gather(
                    self._fetch_records(production, types),
                    self._fetch_records(sandbox, types),
                )
                for env, fetched in ((Environment.PRODUCTION, prod_records), (Environment.SANDBOX, sandbox_records)):
                    for rtype, items in fetched.items():
                        self.run_tracker.update_fetching(env.value, rtype.value, len(items))

                # === PHASE 2: Reconcile each type ===
                self.run_tracker.update_phase(SyncPhase.RECONCILING, "Reconciling records...")
                id_map: IdMap = {}

                for rtype in types:
                    if rtype in prod_failures:
                        error_tracker.track_type_error(rtype.value, "fetch_production", prod_failures[rtype])
                        type_results[rtype.value] = TypeSyncResult(resource_type=rtype)
                        continue

                    records = prod_records[rtype]

                    if self.run_tracker.cancel_requested:
                        type_results[rtype.value] = TypeSyncResult(
                            resource_type=rtype, total=len(records), not_attempted=len(records)
                        )
                        self._record_progress(RecordOutcome.NOT_ATTEMPTED, len(records))
                        continue

                    if rtype in sandbox_failures:
                        error_tracker.track_type_error(rtype.value, "fetch_sandbox", sandbox_failures[rtype])
                        type_results[rtype.value] = self._fail_all(
                            rtype, records, sandbox_failures[rtype], error_tracker
                        )
                        continue

                    self.run_tracker.start_type(rtype.value, len(records))
                    reconciler = RecordReconciler(
                        resource_type=rtype,
                        sandbox=sandbox,
                        index=SandboxIndex(
                            rtype,
                            sandbox_records[rtype],
                            xref_field=self.settings.boond_xref_field,
                            default_country_code=self.settings.boond_phone_country_code,
                        ),
                        mapper=AttributeMapper(rtype, xref_field=self.settings.boond_xref_field),
                        id_map=id_map,
                        locks=self.locks,
                        error_tracker=error_tracker,
                        on_outcome=self._record_progress,
                    )
                    type_results[rtype.value] = await reconciler.process_records(
                        records,
                        batch_size=self.settings.boond_sync_batch_size,
                        is_cancelled=lambda: self.run_tracker.cancel_requested,
                    )

                # === PHASE 3: Documents ===
                if self.settings.boond_sync_documents and not self.run_tracker.cancel_requested:
                    self.run_tracker.update_phase(SyncPhase.DOCUMENTS, "Copying resumes...")
                    documents = await self._sync_documents(
                        production, sandbox, types, prod_records, id_map, type_results, error_tracker
                    )

        except asyncio.CancelledError:
            self.run_tracker.complete_run(SyncPhase.CANCELLED, "Sync task cancelled")
            raise
        except Exception as e:
            logger.error(f"❌ Sync failed: {e}", exc_info=True)
            message = e.message if isinstance(e, BoondError) else str(e)
            self.run_tracker.add_error(message)
            self.run_tracker.complete_run(SyncPhase.ERROR, f"Sync failed: {message}")
            return SyncResult(
                status="error",
                started_at=started_at,
                completed_at=_now(),
                types=type_results,
                documents=documents,
                message=f"Sync failed: {message}",
                errors=[message],
            )

        # === PHASE 4: Build result ===
        result = self._build_result(started_at, type_results, documents, error_tracker)
        for message in result.errors:
            self.run_tracker.add_error(message)
        self.run_tracker.complete_run(
            SyncPhase.CANCELLED if result.status == "cancelled" else SyncPhase.COMPLETED,
            result.message,
        )
        return result

    def _build_result(
        self,
        started_at: str,
        type_results: Dict[str, TypeSyncResult],
        documents: DocumentSyncResult,
        error_tracker: ErrorTracker,
    ) -> SyncResult:
        result = SyncResult(
            status="success",
            started_at=started_at,
            completed_at=_now(),
            types=type_results,
            documents=documents,
            errors=error_tracker.get_summary().get_error_messages(),
        )
        totals = result.totals

        if self.run_tracker.cancel_requested:
            result.status = "cancelled"
        elif error_tracker.has_errors():
            result.status = "partial_success"

        result.message = (
            f"Sync {result.status}: {totals['created']} created, {totals['updated']} updated, "
            f"{totals['skipped']} skipped, {totals['failed']} failed"
        )
        if totals["not_attempted"]:
            result.message += f", {totals['not_attempted']} not attempted"
        if documents.copied or documents.failed:
            result.message += f"; documents: {documents.copied} copied, {documents.failed} failed"

        return result

    def cancel_sync(self) -> bool:
        """Request cancellation of the active run (effective between records)."""
        return self.run_tracker.request_cancel()

    def get_status(self) -> Dict[str, Any]:
        return self.run_tracker.get_status()

    # =========================================================================
    # Cleaning & export
    # =========================================================================

    def clean_snapshot(self, snapshot: Snapshot) -> Snapshot:
        """Return a copy of the snapshot with display-normalized contact fields."""
        cleaned = {
            rtype: clean_records(records, rtype, self.settings.boond_phone_country_code)
            for rtype, records in snapshot.records.items()
        }
        return Snapshot(
            environment=snapshot.environment,
            fetched_at=_now(),
            records=cleaned,
            documents=dict(snapshot.documents),
        )

    def export_to_json(self, snapshot: Snapshot) -> str:
        return export_to_json(snapshot)

    def export_to_csv(
        self,
        records: Sequence[EntityRecord],
        fields: Optional[Sequence[str]] = None,
        resource_type: Optional[ResourceType] = None,
    ) -> str:
        """
        Export records as CSV.

        Without explicit fields, the type's name/contact fields followed by
        its tracked fields are used.
        """
        if fields is None:
            if resource_type is None:
                raise BoondValidationError("CSV export needs fields or a resource type")
            config = get_schema_config(resource_type)
            ordered = config["name_fields"] + config["email_fields"] + config["phone_fields"]
            ordered += get_tracked_fields(resource_type)
            fields = list(dict.fromkeys(ordered))
        return export_to_csv(records, fields)

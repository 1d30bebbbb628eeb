"""
Record Reconciler for Production -> Sandbox Sync.

Decides create / update / skip for each production record of one
resource type and writes the outcome into sandbox.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from boondsync.core.environment import Environment
from boondsync.integrations.boondmanager.client import BoondManagerClient
from boondsync.integrations.boondmanager.models import EntityRecord
from boondsync.integrations.boondmanager.schema import ResourceType
from boondsync.services.boond_sync.attribute_mapper import AttributeMapper, IdMap
from boondsync.services.boond_sync.error_tracker import ErrorTracker, SyncRecordError
from boondsync.services.boond_sync.matching import SandboxIndex, UnmatchableRecordError

logger = logging.getLogger(__name__)

LockKey = Tuple[Environment, ResourceType, int]


class RecordOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"
    NOT_ATTEMPTED = "not_attempted"


@dataclass
class TypeSyncResult:
    """Per-resource-type outcome counts."""
    resource_type: ResourceType
    total: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    not_attempted: int = 0
    errors: List[SyncRecordError] = field(default_factory=list)

    def count(self, outcome: RecordOutcome, amount: int = 1):
        setattr(self, outcome.value, getattr(self, outcome.value) + amount)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resourceType": self.resource_type.value,
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "notAttempted": self.not_attempted,
            "errors": [err.to_dict() for err in self.errors],
        }


class RecordLocks:
    """
    One asyncio.Lock per (sandbox, resource type, production id).

    Guards the match/decide/write window so two concurrent passes can not
    both create the same record. An entry lives only while someone holds
    or waits for it.
    """

    def __init__(self):
        self._locks: Dict[LockKey, asyncio.Lock] = {}
        self._users: Dict[LockKey, int] = {}

    @asynccontextmanager
    async def hold(self, resource_type: ResourceType, production_id: int):
        key = (Environment.SANDBOX, resource_type, production_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class RecordReconciler:
    """
    Reconciles the production records of one resource type into sandbox.

    Features:
    - Records processed in listing order, in fixed-size batches
    - Per-record lock around the decide/write window
    - Per-record error capture (never aborts the pass)
    - Cancellation checked between batches
    """

    def __init__(
        self,
        resource_type: ResourceType,
        sandbox: BoondManagerClient,
        index: SandboxIndex,
        mapper: AttributeMapper,
        id_map: IdMap,
        locks: RecordLocks,
        error_tracker: ErrorTracker,
        on_outcome: Optional[Callable[[RecordOutcome, int], None]] = None,
    ):
        self.resource_type = ResourceType(resource_type)
        self.sandbox = sandbox
        self.index = index
        self.mapper = mapper
        self.id_map = id_map
        self.locks = locks
        self.error_tracker = error_tracker
        self.on_outcome = on_outcome

    async def reconcile(self, record: EntityRecord) -> RecordOutcome:
        """
        Create, update or skip one production record.

        Returns:
            The record's terminal outcome (FAILED on any error)
        """
        type_name = self.resource_type.value
        operation = "match"

        try:
            async with self.locks.hold(self.resource_type, record.id):
                found = self.index.match(record)

                if found is None:
                    if not self.index.can_match(record):
                        raise UnmatchableRecordError(
                            "unmatchable: no cross-reference and empty name, email and phone"
                        )
                    operation = "create"
                    created = await self.sandbox.create(
                        self.resource_type,
                        self.mapper.writable_attributes(record),
                        self.mapper.remap_relationships(record.relationships, self.id_map) or None,
                    )
                    self.index.claim(created.id)
                    self.id_map[(self.resource_type, record.id)] = created.id
                    logger.debug(f"➕ Created sandbox {type_name} {created.id} from production {record.id}")
                    return RecordOutcome.CREATED

                counterpart, kind = found
                self.id_map[(self.resource_type, record.id)] = counterpart.id

                changes = self.mapper.diff(record, counterpart)
                if not changes:
                    return RecordOutcome.SKIPPED

                operation = "update"
                await self.sandbox.update(self.resource_type, counterpart.id, changes)
                logger.debug(
                    f"✏️ Updated sandbox {type_name} {counterpart.id} "
                    f"(matched by {kind.value}, fields: {', '.join(changes)})"
                )
                return RecordOutcome.UPDATED

        except Exception as e:
            logger.debug(f"Reconcile failed for {type_name} {record.id}", exc_info=True)
            self.error_tracker.track_record_error(
                type_name,
                record.id,
                operation,
                e,
                context={"attributes": sorted(record.attributes)},
            )
            return RecordOutcome.FAILED

    async def process_records(
        self,
        records: Sequence[EntityRecord],
        batch_size: int = 1,
        is_cancelled: Optional[Callable[[], bool]] = None,
    ) -> TypeSyncResult:
        """
        Reconcile all records of the type.

        Args:
            records: Production records in listing order
            batch_size: Records reconciled concurrently
            is_cancelled: Checked before each batch; remaining records are not attempted

        Returns:
            TypeSyncResult with per-outcome counts and record errors
        """
        result = TypeSyncResult(resource_type=self.resource_type, total=len(records))
        errors_before = len(self.error_tracker.record_errors)
        batch_size = max(1, batch_size)

        for start in range(0, len(records), batch_size):
            if is_cancelled is not None and is_cancelled():
                remaining = len(records) - start
                result.count(RecordOutcome.NOT_ATTEMPTED, remaining)
                if self.on_outcome:
                    self.on_outcome(RecordOutcome.NOT_ATTEMPTED, remaining)
                logger.warning(
                    f"🛑 {self.resource_type.value}: cancelled, {remaining} records not attempted"
                )
                break

            batch = records[start:start + batch_size]
            outcomes = await asyncio.gather(*(self.reconcile(record) for record in batch))

            for outcome in outcomes:
                result.count(outcome)
                if self.on_outcome:
                    self.on_outcome(outcome, 1)

        result.errors = self.error_tracker.record_errors[errors_before:]

        logger.info(
            f"  ✅ {self.resource_type.value}: {result.created} created, {result.updated} updated, "
            f"{result.skipped} skipped, {result.failed} failed"
            + (f", {result.not_attempted} not attempted" if result.not_attempted else "")
        )
        return result

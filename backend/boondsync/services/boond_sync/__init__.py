"""
BoondManager Sync Services.

Modular services for snapshotting environments and replicating
production into sandbox.
"""

from .attribute_mapper import AttributeMapper, clean_record, clean_records
from .documents import DocumentReplicator, DocumentSyncResult
from .error_tracker import ErrorSummary, ErrorTracker, SyncRecordError
from .exporters import export_to_csv, export_to_json
from .matching import MatchKind, SandboxIndex, UnmatchableRecordError
from .record_reconciler import RecordLocks, RecordOutcome, RecordReconciler, TypeSyncResult
from .run_tracker import SyncInProgressError, SyncPhase, SyncRunTracker
from .snapshot import Snapshot
from .sync_orchestrator import BoondSyncService, SyncResult

__all__ = [
    "AttributeMapper",
    "clean_record",
    "clean_records",
    "DocumentReplicator",
    "DocumentSyncResult",
    "ErrorSummary",
    "ErrorTracker",
    "SyncRecordError",
    "export_to_csv",
    "export_to_json",
    "MatchKind",
    "SandboxIndex",
    "UnmatchableRecordError",
    "RecordLocks",
    "RecordOutcome",
    "RecordReconciler",
    "TypeSyncResult",
    "SyncInProgressError",
    "SyncPhase",
    "SyncRunTracker",
    "Snapshot",
    "BoondSyncService",
    "SyncResult",
]

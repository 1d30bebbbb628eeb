"""
Sync Run Tracking.
Allows monitoring (and cancelling) the current production -> sandbox run via API.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class SyncInProgressError(Exception):
    """Raised when a sync run is requested while another one is active."""
    pass


class SyncPhase(str, Enum):
    """Sync phases."""
    IDLE = "idle"
    FETCHING = "fetching"
    RECONCILING = "reconciling"
    DOCUMENTS = "documents"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"


FINISHED_PHASES = {SyncPhase.IDLE, SyncPhase.COMPLETED, SyncPhase.CANCELLED, SyncPhase.ERROR}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _empty_progress() -> Dict[str, Any]:
    return {
        "records_fetched": {},
        "records_processed": 0,
        "created": 0,
        "updated": 0,
        "skipped": 0,
        "failed": 0,
        "not_attempted": 0,
        "documents_copied": 0,
        "documents_failed": 0,
        "current_resource_type": None,
    }


class SyncRunTracker:
    """
    Tracks the status of the current (or last) sync run.

    One tracker is owned by each sync service; it is never shared through
    module-level state.
    """

    def __init__(self):
        self._cancel_requested = False
        self.status: Dict[str, Any] = {
            "phase": SyncPhase.IDLE,
            "started_at": None,
            "current_step": "Waiting to start...",
            "resource_types": [],
            "progress": _empty_progress(),
            "errors": [],
            "completed_at": None,
            "duration_seconds": 0,
        }

    def start_run(self, resource_types: List[str]):
        """
        Mark a run as started.

        Raises:
            SyncInProgressError: If a run is already active
        """
        if self.is_running():
            raise SyncInProgressError("A sync run is already in progress")

        self._cancel_requested = False
        self.status = {
            "phase": SyncPhase.FETCHING,
            "started_at": _now(),
            "current_step": "Fetching production and sandbox snapshots...",
            "resource_types": list(resource_types),
            "progress": _empty_progress(),
            "errors": [],
            "completed_at": None,
            "duration_seconds": 0,
        }
        logger.info(f"🚀 SYNC STARTED - types: {', '.join(resource_types)}")

    def update_phase(self, phase: SyncPhase, step: str):
        self.status["phase"] = phase
        self.status["current_step"] = step
        logger.info(f"📍 PHASE: {phase.value.upper()} - {step}")

    def update_fetching(self, environment: str, resource_type: str, count: int):
        self.status["progress"]["records_fetched"][f"{environment}.{resource_type}"] = count
        logger.info(f"📥 FETCHED: {environment} {resource_type} - {count} records")

    def start_type(self, resource_type: str, total: int):
        self.status["progress"]["current_resource_type"] = resource_type
        self.status["current_step"] = f"Reconciling {total} {resource_type} records..."

    def record_outcome(self, outcome: str, count: int = 1):
        """Count a per-record outcome (created/updated/skipped/failed/not_attempted)."""
        progress = self.status["progress"]
        progress[outcome] = progress.get(outcome, 0) + count
        if outcome != "not_attempted":
            progress["records_processed"] += count

    def record_documents(self, copied: int, failed: int):
        self.status["progress"]["documents_copied"] += copied
        self.status["progress"]["documents_failed"] += failed

    def add_error(self, error: str):
        self.status["errors"].append({"timestamp": _now(), "error": error})

    # =========================================================================
    # Cancellation
    # =========================================================================

    def request_cancel(self) -> bool:
        """
        Request cancellation of the active run.

        Takes effect between records. Returns False when nothing is running.
        """
        if not self.is_running():
            return False
        self._cancel_requested = True
        self.status["current_step"] = "Cancellation requested..."
        logger.warning("🛑 SYNC CANCELLATION REQUESTED")
        return True

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def complete_run(self, phase: SyncPhase = SyncPhase.COMPLETED, message: Optional[str] = None):
        """Mark the run as finished (completed, cancelled or error)."""
        self.status["phase"] = phase
        self.status["completed_at"] = _now()

        if self.status["started_at"]:
            start = datetime.fromisoformat(self.status["started_at"])
            end = datetime.fromisoformat(self.status["completed_at"])
            self.status["duration_seconds"] = (end - start).total_seconds()

        progress = self.status["progress"]
        self.status["current_step"] = message or f"Sync {phase.value}"

        if phase == SyncPhase.ERROR:
            logger.error(f"❌ SYNC FAILED - {self.status['current_step']}")
        else:
            logger.info(f"✅ SYNC {phase.value.upper()} - Duration: {self.status['duration_seconds']:.1f}s")
            logger.info(
                f"📊 FINAL STATS: {progress['created']} created, {progress['updated']} updated, "
                f"{progress['skipped']} skipped, {progress['failed']} failed, "
                f"{progress['not_attempted']} not attempted"
            )

    def get_status(self) -> Dict[str, Any]:
        status = dict(self.status)
        status["progress"] = dict(self.status["progress"])
        status["phase"] = self.status["phase"].value
        status["is_running"] = self.is_running()
        status["cancel_requested"] = self._cancel_requested
        return status

    def is_running(self) -> bool:
        return self.status["phase"] not in FINISHED_PHASES

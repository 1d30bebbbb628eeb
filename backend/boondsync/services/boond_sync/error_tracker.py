"""
Error Tracker for BoondManager Sync Runs.

Every per-record failure is downgraded to a SyncRecordError entry so a
single record can never abort the run.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from boondsync.integrations.boondmanager.errors import BoondError, BoondPermissionError

logger = logging.getLogger(__name__)


@dataclass
class SyncRecordError:
    """Failure attached to one production record (or one of its documents)."""
    resource_type: str
    record_id: int
    operation: str
    reason: str
    error_type: str
    permission_error: bool = False
    document_id: Optional[int] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "resourceType": self.resource_type,
            "recordId": self.record_id,
            "operation": self.operation,
            "reason": self.reason,
            "errorType": self.error_type,
            "permissionError": self.permission_error,
        }
        if self.document_id is not None:
            payload["documentId"] = self.document_id
        return payload


@dataclass
class StageError:
    """Failure affecting a whole resource type (e.g. listing unavailable)."""
    resource_type: str
    stage: str
    error: str


@dataclass
class ErrorSummary:
    """Summary of all errors during a sync run."""
    record_errors: List[SyncRecordError]
    type_errors: List[StageError]

    def get_error_messages(self, limit: int = 15) -> List[str]:
        """
        Get formatted error messages for API response.

        Args:
            limit: Maximum number of error messages to return

        Returns:
            List of formatted error messages
        """
        messages = []

        for err in self.type_errors[:5]:
            messages.append(f"{err.resource_type} ({err.stage}): {err.error}")

        remaining = limit - len(messages)
        for err in self.record_errors[:remaining]:
            target = f"{err.resource_type} {err.record_id}"
            if err.document_id is not None:
                target = f"{target} document {err.document_id}"
            messages.append(f"{target} [{err.operation}]: {err.reason}")

        return messages[:limit]


class ErrorTracker:
    """
    Tracks errors during one sync run.

    Features:
    - Record-level errors (create / update / document)
    - Type-level errors (listing failures)
    - Permission errors flagged distinctly
    """

    def __init__(self):
        self.record_errors: List[SyncRecordError] = []
        self.type_errors: List[StageError] = []

    def track_record_error(
        self,
        resource_type: str,
        record_id: int,
        operation: str,
        error: Exception,
        document_id: Optional[int] = None,
        context: Dict[str, Any] = None,
    ) -> SyncRecordError:
        """
        Track an individual record error.

        Args:
            resource_type: Resource type value (e.g. "candidate")
            record_id: Production id of the record
            operation: What was attempted ("create", "update", "document", ...)
            error: Exception that occurred
            document_id: Document id for document copy failures
            context: Additional context
        """
        reason = error.message if isinstance(error, BoondError) else str(error)
        record_error = SyncRecordError(
            resource_type=resource_type,
            record_id=record_id,
            operation=operation,
            reason=reason or type(error).__name__,
            error_type=type(error).__name__,
            permission_error=isinstance(error, BoondPermissionError),
            document_id=document_id,
            context=context or {},
        )
        self.record_errors.append(record_error)

        logger.error(
            f"❌ Record error: {resource_type} {record_id} [{operation}]: {record_error.reason}",
            extra={
                "resource_type": resource_type,
                "record_id": record_id,
                "operation": operation,
                "document_id": document_id,
                "context": context,
            },
        )
        return record_error

    def track_type_error(self, resource_type: str, stage: str, error: Exception):
        """Track a failure affecting a whole resource type."""
        message = error.message if isinstance(error, BoondError) else str(error)
        self.type_errors.append(StageError(resource_type=resource_type, stage=stage, error=message))

        logger.error(
            f"❌ Type error: {resource_type} ({stage}): {message}",
            extra={"resource_type": resource_type, "stage": stage},
        )

    def get_summary(self) -> ErrorSummary:
        return ErrorSummary(
            record_errors=self.record_errors,
            type_errors=self.type_errors,
        )

    def has_errors(self) -> bool:
        return len(self.record_errors) > 0 or len(self.type_errors) > 0

    def clear(self):
        self.record_errors.clear()
        self.type_errors.clear()

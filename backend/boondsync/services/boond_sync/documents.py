"""
Document Replicator.

Copies production resumes onto the sandbox counterpart of a candidate or
resource. A document the credential cannot read is recorded as a failed
document, never as a failed run.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

from boondsync.integrations.boondmanager.client import BoondManagerClient
from boondsync.integrations.boondmanager.errors import BoondError
from boondsync.integrations.boondmanager.schema import ResourceType
from boondsync.services.boond_sync.error_tracker import ErrorTracker

logger = logging.getLogger(__name__)


@dataclass
class DocumentSyncResult:
    """Document copy statistics."""
    copied: int = 0
    skipped: int = 0
    failed: int = 0

    def merge(self, other: "DocumentSyncResult"):
        self.copied += other.copied
        self.skipped += other.skipped
        self.failed += other.failed

    def to_dict(self) -> Dict[str, Any]:
        return {"copied": self.copied, "skipped": self.skipped, "failed": self.failed}


class DocumentReplicator:
    """Copies resumes missing (by filename) from sandbox."""

    def __init__(
        self,
        production: BoondManagerClient,
        sandbox: BoondManagerClient,
        error_tracker: ErrorTracker,
    ):
        self.production = production
        self.sandbox = sandbox
        self.error_tracker = error_tracker

    async def sync_documents(
        self,
        resource_type: ResourceType,
        production_id: int,
        sandbox_id: int,
    ) -> DocumentSyncResult:
        """
        Copy the resumes of one production record to its sandbox counterpart.

        Args:
            resource_type: candidate or resource
            production_id: Id of the record in production
            sandbox_id: Id of its counterpart in sandbox

        Returns:
            DocumentSyncResult for this record
        """
        result = DocumentSyncResult()
        type_name = ResourceType(resource_type).value

        try:
            source_documents = await self.production.get_resumes(resource_type, production_id)
            existing = await self.sandbox.get_resumes(resource_type, sandbox_id)
        except BoondError as e:
            self.error_tracker.track_record_error(type_name, production_id, "list_documents", e)
            result.failed += 1
            return result

        existing_names = {doc.name.strip().lower() for doc in existing if doc.name}

        for document in source_documents:
            if document.name and document.name.strip().lower() in existing_names:
                result.skipped += 1
                continue

            try:
                content = await self.production.download_document(document.id)
                filename = document.name or content.filename
                await self.sandbox.upload_document(
                    parent_type=type_name,
                    parent_id=sandbox_id,
                    filename=filename,
                    content=content.content,
                    mime_type=content.mime_type,
                )
            except BoondError as e:
                # permission errors included: flagged on the record error, the run goes on
                self.error_tracker.track_record_error(
                    type_name, production_id, "document", e, document_id=document.id
                )
                result.failed += 1
                continue

            existing_names.add(filename.strip().lower())
            result.copied += 1
            logger.info(f"📎 Copied document '{filename}' to sandbox {type_name} {sandbox_id}")

        return result

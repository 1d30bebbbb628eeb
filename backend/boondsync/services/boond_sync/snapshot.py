"""
Environment Snapshot.

The full record set of one environment as fetched for a single run.
Held in memory for the duration of that run only.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from boondsync.core.environment import Environment
from boondsync.integrations.boondmanager.models import DocumentMeta, EntityRecord
from boondsync.integrations.boondmanager.schema import ResourceType


@dataclass
class Snapshot:
    environment: Environment
    fetched_at: str
    records: Dict[ResourceType, List[EntityRecord]] = field(default_factory=dict)
    # "<type>:<id>" -> resumes of that record
    documents: Dict[str, List[DocumentMeta]] = field(default_factory=dict)

    @property
    def stats(self) -> Dict[str, int]:
        stats = {rtype.value: len(items) for rtype, items in self.records.items()}
        if self.documents:
            stats["documents"] = sum(len(docs) for docs in self.documents.values())
        return stats

    def records_of(self, resource_type: ResourceType) -> List[EntityRecord]:
        return self.records.get(ResourceType(resource_type), [])

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "environment": self.environment.value,
            "exportedAt": self.fetched_at,
            "entities": {
                rtype.value: [record.model_dump() for record in items]
                for rtype, items in self.records.items()
            },
            "stats": self.stats,
        }
        if self.documents:
            payload["documents"] = {
                parent: [doc.model_dump() for doc in docs]
                for parent, docs in self.documents.items()
            }
        return payload

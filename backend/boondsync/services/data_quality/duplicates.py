"""
Duplicate Detector.

Groups records of one environment and resource type that share a
Normalized Key. Groups are recomputed from scratch on every call.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from boondsync.core.environment import Environment
from boondsync.integrations.boondmanager.models import EntityRecord, EntityReference
from boondsync.integrations.boondmanager.schema import ResourceType
from boondsync.utils.normalization import (
    DEFAULT_COUNTRY_CODE,
    NormalizedKey,
    build_normalized_key,
)

logger = logging.getLogger(__name__)


@dataclass
class DuplicateGroup:
    """Two or more records sharing a Normalized Key."""
    key: NormalizedKey
    members: List[EntityReference] = field(default_factory=list)

    @property
    def record_ids(self) -> List[int]:
        return [member.external_id for member in self.members]

    @property
    def size(self) -> int:
        return len(self.members)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key._asdict(),
            "recordIds": self.record_ids,
            "size": self.size,
        }


def find_duplicates(
    records: Sequence[EntityRecord],
    resource_type: ResourceType,
    environment: Environment,
    default_country_code: str = DEFAULT_COUNTRY_CODE,
) -> List[DuplicateGroup]:
    """
    Partition records into duplicate groups.

    Groups are ordered by the first appearance of their key and members
    keep input order. Records with an empty key never join a group, and
    a record id seen twice only counts once.

    Args:
        records: Records of a single resource type and environment
        resource_type: Their type
        environment: Their environment
        default_country_code: Country code assumed for national phone numbers

    Returns:
        Duplicate groups of size >= 2
    """
    resource_type = ResourceType(resource_type)
    buckets: Dict[NormalizedKey, List[EntityReference]] = {}
    seen_ids = set()

    for record in records:
        if record.id in seen_ids:
            continue
        seen_ids.add(record.id)

        key = build_normalized_key(record, resource_type, default_country_code)
        if key.is_empty:
            continue

        # dict preserves first-insertion order of keys
        buckets.setdefault(key, []).append(
            EntityReference(environment=environment, resource_type=resource_type, external_id=record.id)
        )

    groups = [DuplicateGroup(key=key, members=members) for key, members in buckets.items() if len(members) > 1]

    if groups:
        logger.info(
            f"🔍 Found {len(groups)} duplicate groups in {len(records)} "
            f"{resource_type.value} records ({environment.value})"
        )
    return groups

"""
Sandbox Matching Index.

Finds the sandbox counterpart of a production record. Keys are tried in
precedence order:

1. cross-reference attribute (production id stored on the sandbox record)
2. normalized email
3. normalized name + phone
4. normalized name + company
5. normalized name, only when the production record has no email or phone
   to disagree on (or the type has no contact fields at all)

Each sandbox record can be claimed by at most one production record per run.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Tuple

from boondsync.integrations.boondmanager.models import EntityRecord
from boondsync.integrations.boondmanager.schema import ResourceType
from boondsync.utils.normalization import (
    DEFAULT_COUNTRY_CODE,
    NormalizedKey,
    build_normalized_key,
)

logger = logging.getLogger(__name__)


class UnmatchableRecordError(Exception):
    """Production record has no key a later run could find its copy by."""


class MatchKind(str, Enum):
    XREF = "xref"
    EMAIL = "email"
    NAME_PHONE = "name_phone"
    NAME_COMPANY = "name_company"
    NAME = "name"


class SandboxIndex:
    """Lookup of one resource type's sandbox records."""

    def __init__(
        self,
        resource_type: ResourceType,
        records: Sequence[EntityRecord],
        xref_field: Optional[str] = None,
        default_country_code: str = DEFAULT_COUNTRY_CODE,
    ):
        self.resource_type = ResourceType(resource_type)
        self.xref_field = xref_field
        self.default_country_code = default_country_code

        self._claimed: Set[int] = set()
        self._xref_of: Dict[int, str] = {}
        self._by_kind: Dict[MatchKind, Dict[Tuple[str, ...], List[EntityRecord]]] = {
            kind: {} for kind in MatchKind
        }

        for record in records:
            self.add(record)

        logger.debug(f"Indexed {len(records)} sandbox {self.resource_type.value} records")

    def _keys(self, record: EntityRecord, key: NormalizedKey) -> Dict[MatchKind, Tuple[str, ...]]:
        keys: Dict[MatchKind, Tuple[str, ...]] = {}

        if self.xref_field:
            xref = record.attributes.get(self.xref_field)
            if xref is not None and str(xref).strip():
                keys[MatchKind.XREF] = (str(xref).strip(),)

        if key.email:
            keys[MatchKind.EMAIL] = (key.email,)
        if key.name and key.phone:
            keys[MatchKind.NAME_PHONE] = (key.name, key.phone)
        if key.name and key.company_name:
            keys[MatchKind.NAME_COMPANY] = (key.name, key.company_name)
        if key.name:
            keys[MatchKind.NAME] = (key.name,)

        return keys

    def add(self, record: EntityRecord):
        """Index a sandbox record under every key it has."""
        key = build_normalized_key(record, self.resource_type, self.default_country_code)
        keys = self._keys(record, key)
        if MatchKind.XREF in keys:
            self._xref_of[record.id] = keys[MatchKind.XREF][0]
        for kind, value in keys.items():
            self._by_kind[kind].setdefault(value, []).append(record)

    def _production_keys(self, record: EntityRecord) -> List[Tuple[MatchKind, Tuple[str, ...]]]:
        key = build_normalized_key(record, self.resource_type, self.default_country_code)
        candidates: List[Tuple[MatchKind, Tuple[str, ...]]] = []

        if self.xref_field:
            candidates.append((MatchKind.XREF, (str(record.id),)))
        if key.email:
            candidates.append((MatchKind.EMAIL, (key.email,)))
        if key.name and key.phone:
            candidates.append((MatchKind.NAME_PHONE, (key.name, key.phone)))
        if key.name and key.company_name:
            candidates.append((MatchKind.NAME_COMPANY, (key.name, key.company_name)))
        if key.name and not key.email and not key.phone:
            candidates.append((MatchKind.NAME, (key.name,)))

        return candidates

    def can_match(self, record: EntityRecord) -> bool:
        """True when a copy of the record could be found again on a later run."""
        return bool(self._production_keys(record))

    def match(self, record: EntityRecord) -> Optional[Tuple[EntityRecord, MatchKind]]:
        """
        Find and claim the sandbox counterpart of a production record.

        Returns:
            (sandbox record, how it matched) or None when nothing unclaimed matches
        """
        for kind, value in self._production_keys(record):
            for candidate in self._by_kind[kind].get(value, []):
                if candidate.id in self._claimed:
                    continue
                # a record already linked to another production id is not up for fuzzy matching
                linked_to = self._xref_of.get(candidate.id)
                if kind != MatchKind.XREF and linked_to is not None and linked_to != str(record.id):
                    continue
                self._claimed.add(candidate.id)
                return candidate, kind
        return None

    def claim(self, sandbox_id: int):
        """Mark a sandbox record (e.g. one created this run) as taken."""
        self._claimed.add(sandbox_id)

    @property
    def claimed_count(self) -> int:
        return len(self._claimed)

"""
Quality Analyzer.

Flags incomplete, invalid and duplicated records of one environment.
Read-only: never writes to the CRM, never drops a record from the report.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from boondsync.core.environment import Environment
from boondsync.integrations.boondmanager.models import EntityRecord
from boondsync.integrations.boondmanager.schema import ResourceType, get_schema_config
from boondsync.services.data_quality.duplicates import DuplicateGroup, find_duplicates
from boondsync.utils.normalization import (
    DEFAULT_COUNTRY_CODE,
    build_normalized_key,
    is_valid_email,
    is_valid_phone,
)

logger = logging.getLogger(__name__)


class QualityIssue(str, Enum):
    """Issues a single record can carry."""
    MISSING_NAME = "missing_name"
    MISSING_CONTACT = "missing_contact"
    INVALID_EMAIL = "invalid_email"
    INVALID_PHONE = "invalid_phone"
    DUPLICATE = "duplicate"


INCOMPLETE_ISSUES = {QualityIssue.MISSING_NAME, QualityIssue.MISSING_CONTACT}


@dataclass
class RecordQuality:
    """Issues found on one record."""
    record_id: int
    display_name: str
    issues: List[QualityIssue] = field(default_factory=list)
    duplicate_group: Optional[int] = None

    @property
    def is_incomplete(self) -> bool:
        return any(issue in INCOMPLETE_ISSUES for issue in self.issues)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.record_id,
            "name": self.display_name,
            "issues": [issue.value for issue in self.issues],
            "incomplete": self.is_incomplete,
            "duplicateGroup": self.duplicate_group,
        }


@dataclass
class TypeQualityReport:
    """Quality figures for one resource type."""
    resource_type: ResourceType
    environment: Environment
    total: int = 0
    duplicate_records: int = 0
    incomplete_records: int = 0
    invalid_emails: int = 0
    invalid_phones: int = 0
    records: List[RecordQuality] = field(default_factory=list)
    duplicate_groups: List[DuplicateGroup] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resourceType": self.resource_type.value,
            "environment": self.environment.value,
            "total": self.total,
            "duplicateRecords": self.duplicate_records,
            "incompleteRecords": self.incomplete_records,
            "invalidEmails": self.invalid_emails,
            "invalidPhones": self.invalid_phones,
            "duplicateGroups": [group.to_dict() for group in self.duplicate_groups],
            "records": [record.to_dict() for record in self.records],
        }


@dataclass
class QualityReport:
    """Environment-level quality report. Produced fresh on every call."""
    environment: Environment
    generated_at: str
    types: Dict[str, TypeQualityReport] = field(default_factory=dict)

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "totalRecords": sum(t.total for t in self.types.values()),
            "duplicateRecords": sum(t.duplicate_records for t in self.types.values()),
            "incompleteRecords": sum(t.incomplete_records for t in self.types.values()),
            "duplicateGroups": sum(len(t.duplicate_groups) for t in self.types.values()),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "environment": self.environment.value,
            "generatedAt": self.generated_at,
            "summary": self.summary,
            "types": {name: report.to_dict() for name, report in self.types.items()},
        }


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _record_issues(
    record: EntityRecord,
    config: Dict[str, Any],
    name: str,
    country_code: str,
) -> List[QualityIssue]:
    attributes = record.attributes
    issues: List[QualityIssue] = []

    if not name:
        issues.append(QualityIssue.MISSING_NAME)

    raw_emails = [attributes.get(f) for f in config["email_fields"] if _has_value(attributes.get(f))]
    raw_phones = [attributes.get(f) for f in config["phone_fields"] if _has_value(attributes.get(f))]

    valid_email = any(is_valid_email(value) for value in raw_emails)
    valid_phone = any(is_valid_phone(value, country_code) for value in raw_phones)

    if config["requires_contact"] and not valid_email and not valid_phone:
        issues.append(QualityIssue.MISSING_CONTACT)
    if raw_emails and not valid_email:
        issues.append(QualityIssue.INVALID_EMAIL)
    if raw_phones and not valid_phone:
        issues.append(QualityIssue.INVALID_PHONE)

    return issues


def analyze_data_quality(
    records: Sequence[EntityRecord],
    resource_type: ResourceType,
    environment: Environment,
    default_country_code: str = DEFAULT_COUNTRY_CODE,
) -> TypeQualityReport:
    """
    Analyze completeness and duplication of one type's records.

    A record is incomplete when it has no name, or, for person-like types,
    neither a valid email nor a valid phone.

    Args:
        records: All records of the type in one environment
        resource_type: Their type
        environment: Their environment
        default_country_code: Country code assumed for national phone numbers

    Returns:
        TypeQualityReport listing every record that has at least one issue
    """
    resource_type = ResourceType(resource_type)
    config = get_schema_config(resource_type)

    groups = find_duplicates(records, resource_type, environment, default_country_code)
    group_of: Dict[int, int] = {}
    for index, group in enumerate(groups):
        for member in group.members:
            group_of[member.external_id] = index

    report = TypeQualityReport(
        resource_type=resource_type,
        environment=environment,
        total=len(records),
        duplicate_groups=groups,
    )

    for record in records:
        key = build_normalized_key(record, resource_type, default_country_code)
        issues = _record_issues(record, config, key.name, default_country_code)

        group_index = group_of.get(record.id)
        if group_index is not None:
            issues.append(QualityIssue.DUPLICATE)

        if not issues:
            continue

        entry = RecordQuality(
            record_id=record.id,
            display_name=key.name,
            issues=issues,
            duplicate_group=group_index,
        )
        report.records.append(entry)

        if entry.is_incomplete:
            report.incomplete_records += 1
        if QualityIssue.INVALID_EMAIL in issues:
            report.invalid_emails += 1
        if QualityIssue.INVALID_PHONE in issues:
            report.invalid_phones += 1

    report.duplicate_records = sum(group.size for group in groups)

    logger.info(
        f"📊 Quality {resource_type.value} ({environment.value}): {report.total} records, "
        f"{report.incomplete_records} incomplete, {report.duplicate_records} in duplicate groups"
    )
    return report


def build_quality_report(
    environment: Environment,
    records_by_type: Dict[ResourceType, Sequence[EntityRecord]],
    default_country_code: str = DEFAULT_COUNTRY_CODE,
) -> QualityReport:
    """Analyze every type of a snapshot into one environment report."""
    report = QualityReport(
        environment=environment,
        generated_at=datetime.now(timezone.utc).isoformat(),
    )
    for resource_type, records in records_by_type.items():
        report.types[resource_type.value] = analyze_data_quality(
            records, resource_type, environment, default_country_code
        )
    return report

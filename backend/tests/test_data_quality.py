"""
Tests for duplicate detection and the quality analyzer.
"""

from boondsync.core.environment import Environment
from boondsync.integrations.boondmanager.models import EntityRecord
from boondsync.integrations.boondmanager.schema import ResourceType
from boondsync.services.data_quality import (
    QualityIssue,
    analyze_data_quality,
    build_quality_report,
    find_duplicates,
)


def record(record_id, **attributes):
    return EntityRecord(id=record_id, type="candidate", attributes=attributes)


class TestFindDuplicates:
    """Tests for find_duplicates."""

    def test_groups_case_and_spacing_variants(self):
        records = [
            record(1, firstName="Alice", lastName="Martin", email="alice@x.com"),
            record(2, firstName="ALICE ", lastName="martin", email=" Alice@X.com"),
            record(3, firstName="Bob", lastName="Durand", email="bob@x.com"),
        ]

        groups = find_duplicates(records, ResourceType.CANDIDATE, Environment.PRODUCTION)

        assert len(groups) == 1
        assert groups[0].record_ids == [1, 2]
        assert groups[0].members[0].environment == Environment.PRODUCTION

    def test_groups_phone_format_variants(self):
        records = [
            record(1, firstName="Léa", lastName="Roux", phone1="06 12 34 56 78"),
            record(2, firstName="Lea", lastName="Roux", phone1="+33 6 12 34 56 78"),
        ]

        groups = find_duplicates(records, ResourceType.CANDIDATE, Environment.SANDBOX)

        assert [group.record_ids for group in groups] == [[1, 2]]

    def test_empty_keys_never_grouped(self):
        records = [record(1), record(2), record(3, lastName="  ")]

        assert find_duplicates(records, ResourceType.CANDIDATE, Environment.SANDBOX) == []

    def test_same_id_counted_once(self):
        alice = record(1, firstName="Alice", lastName="Martin", email="alice@x.com")

        groups = find_duplicates([alice, alice], ResourceType.CANDIDATE, Environment.SANDBOX)

        assert groups == []

    def test_different_email_not_grouped(self):
        records = [
            record(1, firstName="Alice", lastName="Martin", email="alice@x.com"),
            record(2, firstName="Alice", lastName="Martin", email="alice.martin@y.com"),
        ]

        assert find_duplicates(records, ResourceType.CANDIDATE, Environment.SANDBOX) == []

    def test_group_order_follows_first_appearance(self):
        records = [
            record(5, firstName="Bob", lastName="Durand", email="bob@x.com"),
            record(1, firstName="Alice", lastName="Martin", email="alice@x.com"),
            record(7, firstName="Bob", lastName="Durand", email="bob@x.com"),
            record(3, firstName="Alice", lastName="Martin", email="alice@x.com"),
        ]

        groups = find_duplicates(records, ResourceType.CANDIDATE, Environment.SANDBOX)

        assert [group.record_ids for group in groups] == [[5, 7], [1, 3]]


class TestAnalyzeDataQuality:
    """Tests for analyze_data_quality."""

    def test_candidate_report(self):
        records = [
            record(1, firstName="Alice", lastName="Martin", email="alice@x.com"),
            record(2, firstName="Bob", lastName="Durand"),
            record(3, firstName="Carl", lastName="Petit", email="not-an-email"),
            record(4, firstName="Dana", lastName="Blanc", phone1="06 12 34 56 78"),
            record(5, firstName="alice", lastName="MARTIN", email="Alice@x.com"),
        ]

        report = analyze_data_quality(records, ResourceType.CANDIDATE, Environment.PRODUCTION)

        assert report.total == 5
        assert report.incomplete_records == 2
        assert report.duplicate_records == 2
        assert report.invalid_emails == 1
        assert len(report.duplicate_groups) == 1

        by_id = {entry.record_id: entry for entry in report.records}
        assert set(by_id) == {1, 2, 3, 5}
        assert by_id[2].issues == [QualityIssue.MISSING_CONTACT]
        assert QualityIssue.INVALID_EMAIL in by_id[3].issues
        assert by_id[3].is_incomplete
        assert by_id[1].issues == [QualityIssue.DUPLICATE]
        assert by_id[1].duplicate_group == by_id[5].duplicate_group == 0

    def test_project_without_title_is_incomplete(self):
        records = [
            EntityRecord(id=1, attributes={"title": "Migration ERP"}),
            EntityRecord(id=2, attributes={"title": "  "}),
        ]

        report = analyze_data_quality(records, ResourceType.PROJECT, Environment.SANDBOX)

        assert report.incomplete_records == 1
        assert report.records[0].record_id == 2
        assert report.records[0].issues == [QualityIssue.MISSING_NAME]

    def test_company_without_contact_is_complete(self):
        records = [EntityRecord(id=1, attributes={"name": "Acme SARL"})]

        report = analyze_data_quality(records, ResourceType.COMPANY, Environment.SANDBOX)

        assert report.incomplete_records == 0
        assert report.records == []

    def test_environment_report_summary(self):
        report = build_quality_report(
            Environment.SANDBOX,
            {
                ResourceType.CANDIDATE: [record(1, firstName="Bob", lastName="Durand")],
                ResourceType.PROJECT: [EntityRecord(id=9, attributes={"title": "Audit"})],
            },
        )

        payload = report.to_dict()
        assert payload["environment"] == "sandbox"
        assert payload["summary"]["totalRecords"] == 2
        assert payload["summary"]["incompleteRecords"] == 1
        assert set(payload["types"]) == {"candidate", "project"}

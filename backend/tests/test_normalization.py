"""
Tests for normalization utilities.

Normalizers must be total (never raise) and idempotent.
"""

import pytest

from boondsync.integrations.boondmanager.models import EntityRecord
from boondsync.integrations.boondmanager.schema import ResourceType
from boondsync.utils.normalization import (
    build_normalized_key,
    format_company_name,
    format_display_name,
    is_valid_email,
    is_valid_phone,
    normalize_company_name,
    normalize_email,
    normalize_name,
    normalize_phone,
)


class TestNormalizePhone:
    """Tests for normalize_phone."""

    @pytest.mark.parametrize("raw", [
        "06 12 34 56 78",
        "06.12.34.56.78",
        "0033 6 12 34 56 78",
        "+33 6 12 34 56 78",
        "33612345678",
        "612345678",
    ])
    def test_french_variants_collapse(self, raw):
        """All writings of one French mobile number share a canonical form."""
        assert normalize_phone(raw) == "+33612345678"

    def test_foreign_international_number_kept(self):
        assert normalize_phone("+352 123 456") == "+352123456"

    def test_other_country_code(self):
        assert normalize_phone("030 1234567", default_country_code="49") == "+49301234567"

    @pytest.mark.parametrize("raw", [None, "", "   ", "abc", {"number": "0612"}, True])
    def test_malformed_input_is_empty(self, raw):
        assert normalize_phone(raw) == ""

    @pytest.mark.parametrize("raw", ["06 12 34 56 78", "0033 6 12 34 56 78", "+352 123 456", "12345", "abc", ""])
    def test_idempotent(self, raw):
        once = normalize_phone(raw)
        assert normalize_phone(once) == once


class TestNormalizeText:
    """Tests for name, email and company normalization."""

    def test_name_folds_accents_and_whitespace(self):
        assert normalize_name("  Jérôme   DUPONT ") == "jerome dupont"

    @pytest.mark.parametrize("raw", ["Éloïse  Müller", "  Jérôme DUPONT ", "O'Brien-Smith", ""])
    def test_name_idempotent(self, raw):
        once = normalize_name(raw)
        assert normalize_name(once) == once

    def test_email_trimmed_and_lowercased(self):
        assert normalize_email("  Alice@Example.COM ") == "alice@example.com"

    def test_email_non_string(self):
        assert normalize_email(None) == ""

    @pytest.mark.parametrize("raw", ["  Alice@Example.COM ", "bob@y.fr", ""])
    def test_email_idempotent(self, raw):
        once = normalize_email(raw)
        assert normalize_email(once) == once

    @pytest.mark.parametrize("raw, expected", [
        ("Acme, Inc.", "acme"),
        ("Société Générale S.A.", "societe generale"),
        ("Dupont & Fils GmbH", "dupont fils"),
        ("Conseil  Ouest SARL", "conseil ouest"),
        ("SARL", "sarl"),
    ])
    def test_company_suffixes_and_punctuation(self, raw, expected):
        assert normalize_company_name(raw) == expected

    @pytest.mark.parametrize("raw", ["Acme Consulting Ltd.", "Société Générale S.A.", "SARL", "Dupont & Fils GmbH", ""])
    def test_company_idempotent(self, raw):
        once = normalize_company_name(raw)
        assert normalize_company_name(once) == once


class TestValidators:
    """Tests for email / phone validators."""

    @pytest.mark.parametrize("value, expected", [
        ("alice@example.com", True),
        (" alice@example.com ", True),
        ("alice@example", False),
        ("alice example@test.fr", False),
        ("not-an-email", False),
        ("", False),
        (None, False),
    ])
    def test_is_valid_email(self, value, expected):
        assert is_valid_email(value) is expected

    @pytest.mark.parametrize("value, expected", [
        ("06 12 34 56 78", True),
        ("+44 20 7946 0958", True),
        ("+352 123 456", True),
        ("abc", False),
        ("123", False),
        ("", False),
        (None, False),
    ])
    def test_is_valid_phone(self, value, expected):
        assert is_valid_phone(value) is expected


class TestDisplayFormatting:
    """Tests for the display formatters used by snapshot cleaning."""

    def test_display_name(self):
        assert format_display_name("  jean-pierre   DUPONT ") == "Jean-Pierre Dupont"

    def test_company_legal_token_uppercased(self):
        assert format_company_name("acme   sarl") == "acme SARL"

    def test_empty(self):
        assert format_display_name(None) == ""
        assert format_company_name("") == ""


class TestNormalizedKey:
    """Tests for build_normalized_key."""

    def test_candidate_key(self):
        record = EntityRecord(id=1, attributes={
            "firstName": "Jérôme",
            "lastName": "Dupont",
            "email": " J.Dupont@Mail.com ",
            "phone1": "",
            "phone2": "06 12 34 56 78",
        })

        key = build_normalized_key(record, ResourceType.CANDIDATE)

        assert key.name == "jerome dupont"
        assert key.email == "j.dupont@mail.com"
        assert key.phone == "+33612345678"
        assert key.company_name == ""

    def test_company_name_uses_company_normalization(self):
        record = EntityRecord(id=2, attributes={"name": "Acme SAS"})

        key = build_normalized_key(record, ResourceType.COMPANY)

        assert key.name == "acme"

    def test_contact_company(self):
        record = {"id": 3, "attributes": {"firstName": "Ana", "lastName": "Lee", "companyName": "Acme SARL"}}

        key = build_normalized_key(record, ResourceType.CONTACT)

        assert key.name == "ana lee"
        assert key.company_name == "acme"

    def test_empty_record(self):
        key = build_normalized_key(EntityRecord(id=4), ResourceType.CANDIDATE)

        assert key.is_empty

"""
Normalization Utilities for Cross-Environment Matching.

Maps raw contact and company fields to canonical comparable strings.
Every function is total: absent or malformed input normalizes to "",
nothing raises.
"""

import logging
import re
from typing import Any, Dict, Iterable, NamedTuple, Optional, Union

from unidecode import unidecode

from boondsync.integrations.boondmanager.models import EntityRecord
from boondsync.integrations.boondmanager.schema import ResourceType, get_schema_config

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY_CODE = "33"

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?\d{9,15}$")

_WHITESPACE_RE = re.compile(r"\s+")
_PHONE_STRIP_RE = re.compile(r"[^\d+]")
_COMPANY_PUNCT_RE = re.compile(r"[^a-z0-9\s]")

# Trailing legal-entity tokens removed from company names
LEGAL_SUFFIXES = frozenset({
    "inc", "incorporated", "ltd", "limited", "llc", "llp", "plc", "corp",
    "corporation", "co", "gmbh", "ag", "kg", "sa", "sas", "sasu", "sarl",
    "eurl", "snc", "sci", "gie", "bv", "nv", "srl", "spa", "oy", "ab",
})

# Displayed upper-case by format_company_name
UPPERCASE_ABBREVIATIONS = frozenset({
    "sa", "sas", "sarl", "sasu", "snc", "eurl", "gie", "sci", "esn", "ssii",
})


class NormalizedKey(NamedTuple):
    """Comparison tuple derived from one record. Never stored."""
    name: str
    email: str
    phone: str
    company_name: str

    @property
    def is_empty(self) -> bool:
        return not (self.name or self.email or self.phone)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def normalize_phone(value: Any, default_country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Normalize a phone number to a compact international form.

    Examples:
        >>> normalize_phone("06 12 34 56 78")
        '+33612345678'
        >>> normalize_phone("0033 6 12 34 56 78")
        '+33612345678'
        >>> normalize_phone("+352 123 456")
        '+352123456'
    """
    text = _as_text(value).strip()
    if not text:
        return ""

    has_plus = text.startswith("+")
    digits = _PHONE_STRIP_RE.sub("", text).replace("+", "")
    if not digits:
        return ""

    if has_plus:
        return f"+{digits}"
    if digits.startswith("00"):
        return f"+{digits[2:]}" if len(digits) > 2 else ""

    cc = default_country_code or ""
    if cc:
        if len(digits) == 10 and digits.startswith("0"):
            return f"+{cc}{digits[1:]}"
        if digits.startswith(cc) and len(digits) >= len(cc) + 9:
            return f"+{digits}"
        if len(digits) == 9:
            return f"+{cc}{digits}"

    return digits


def normalize_name(value: Any) -> str:
    """Fold diacritics, lower-case and collapse whitespace."""
    text = _as_text(value)
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", unidecode(text).lower()).strip()


def normalize_email(value: Any) -> str:
    return _as_text(value).strip().lower()


def normalize_company_name(value: Any) -> str:
    """
    Normalize a company name.

    Folds diacritics, drops punctuation and strips trailing legal-entity
    tokens (SARL, GmbH, Inc, ...). A name made only of such a token is kept.

    Examples:
        >>> normalize_company_name("Acme, Inc.")
        'acme'
        >>> normalize_company_name("Société Générale S.A.")
        'societe generale'
    """
    text = _as_text(value)
    if not text:
        return ""

    folded = unidecode(text).lower().replace(".", "")
    folded = _COMPANY_PUNCT_RE.sub(" ", folded)
    tokens = _WHITESPACE_RE.sub(" ", folded).strip().split(" ")

    while len(tokens) > 1 and tokens[-1] in LEGAL_SUFFIXES:
        tokens.pop()

    return " ".join(token for token in tokens if token)


def is_valid_email(value: Any) -> bool:
    text = _as_text(value).strip()
    return bool(text) and EMAIL_RE.match(text) is not None


def is_valid_phone(value: Any, default_country_code: str = DEFAULT_COUNTRY_CODE) -> bool:
    normalized = normalize_phone(value, default_country_code)
    return bool(normalized) and PHONE_RE.match(normalized) is not None


def format_display_name(value: Any) -> str:
    """
    Title-case a person name for display, keeping hyphenated parts joined.

    Examples:
        >>> format_display_name("  jean-pierre   DUPONT ")
        'Jean-Pierre Dupont'
    """
    text = _WHITESPACE_RE.sub(" ", _as_text(value)).strip()
    if not text:
        return ""
    words = []
    for word in text.split(" "):
        parts = [part[:1].upper() + part[1:].lower() for part in word.split("-")]
        words.append("-".join(parts))
    return " ".join(words)


def format_company_name(value: Any) -> str:
    """Collapse whitespace and upper-case legal-entity tokens ("acme sarl" -> "acme SARL")."""
    text = _WHITESPACE_RE.sub(" ", _as_text(value)).strip()
    if not text:
        return ""
    words = [word.upper() if word.lower() in UPPERCASE_ABBREVIATIONS else word for word in text.split(" ")]
    return " ".join(words)


def _attributes_of(record: Union[EntityRecord, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(record, EntityRecord):
        return record.attributes
    if isinstance(record, dict):
        attributes = record.get("attributes")
        return attributes if isinstance(attributes, dict) else record
    return {}


def _first_non_empty(values: Iterable[str]) -> str:
    for value in values:
        if value:
            return value
    return ""


def build_normalized_key(
    record: Union[EntityRecord, Dict[str, Any]],
    resource_type: ResourceType,
    default_country_code: str = DEFAULT_COUNTRY_CODE,
) -> NormalizedKey:
    """
    Derive the comparison key of a record from its type's schema fields.

    Args:
        record: EntityRecord or raw API dict
        resource_type: Type whose schema says which fields hold name/email/phone
        default_country_code: Country code assumed for national phone numbers

    Returns:
        NormalizedKey (possibly empty)
    """
    config = get_schema_config(resource_type)
    attributes = _attributes_of(record)

    raw_name = " ".join(
        _as_text(attributes.get(field)).strip() for field in config["name_fields"]
    )
    if config.get("name_is_company"):
        name = normalize_company_name(raw_name)
    else:
        name = normalize_name(raw_name)

    email = _first_non_empty(
        normalize_email(attributes.get(field)) for field in config["email_fields"]
    )
    phone = _first_non_empty(
        normalize_phone(attributes.get(field), default_country_code)
        for field in config["phone_fields"]
    )

    company_field: Optional[str] = config.get("company_field")
    company_name = normalize_company_name(attributes.get(company_field)) if company_field else ""

    return NormalizedKey(name=name, email=email, phone=phone, company_name=company_name)

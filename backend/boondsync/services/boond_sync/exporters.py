"""
Snapshot exporters (JSON and CSV) for manual import elsewhere.
"""

import csv
import io
import json
from typing import Any, Iterable, Sequence

from boondsync.integrations.boondmanager.models import EntityRecord
from boondsync.services.boond_sync.snapshot import Snapshot


def export_to_json(snapshot: Snapshot) -> str:
    """Serialize a snapshot as indented JSON."""
    return json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False, default=str)


def _csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def export_to_csv(records: Iterable[EntityRecord], fields: Sequence[str]) -> str:
    """
    Export records as CSV: an ``id`` column followed by the given attributes.

    Values containing a comma, quote or newline are quoted with doubled
    inner quotes. Absent values are empty cells.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)

    writer.writerow(["id", *fields])
    for record in records:
        writer.writerow([record.id, *(_csv_value(record.attributes.get(f)) for f in fields)])

    return buffer.getvalue().rstrip("\n")

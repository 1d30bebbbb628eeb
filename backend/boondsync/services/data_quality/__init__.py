"""
Data Quality Services.

Duplicate detection and completeness analysis over one environment's records.
"""

from .duplicates import DuplicateGroup, find_duplicates
from .analyzer import (
    QualityIssue,
    QualityReport,
    RecordQuality,
    TypeQualityReport,
    analyze_data_quality,
    build_quality_report,
)

__all__ = [
    "DuplicateGroup",
    "find_duplicates",
    "QualityIssue",
    "QualityReport",
    "RecordQuality",
    "TypeQualityReport",
    "analyze_data_quality",
    "build_quality_report",
]

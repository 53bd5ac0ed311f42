# PATH: monitoring/__init__.py
"""
Monitoring package for CycleScan: opportunity and paper-run reports.
"""

from monitoring.report import (
    PaperReport,
    ReportWriter,
    build_insights,
    SCHEMA_VERSION,
)

__all__ = [
    "PaperReport",
    "ReportWriter",
    "build_insights",
    "SCHEMA_VERSION",
]

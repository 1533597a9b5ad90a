"""
singlecov reporting.

JSON coverage report for the declared files.
"""

from singlecov.reporting.json_report import build_report, write_report

__all__ = ["build_report", "write_report"]

"""
singlecov coverage engine.

Raw coverage models, the uncovered-location diff engine and coverage.py adapters.
"""

from singlecov.coverage.adapters import (
    RawCoverageMap,
    collect,
    from_coverage_json,
    load_coverage_json,
    load_raw_map,
)
from singlecov.coverage.engine import (
    UNCOVERED_COMMENT_MARKER,
    CoverageDiffEngine,
    suppress_marked,
    uncovered_branches,
    uncovered_lines,
    uncovered_locations,
)
from singlecov.coverage.models import (
    BranchSite,
    Diagnostic,
    DiagnosticSeverity,
    FileVerdict,
    RawFileCoverage,
    UncoveredLocation,
    VerdictKind,
)

__all__ = [
    "UNCOVERED_COMMENT_MARKER",
    "BranchSite",
    "CoverageDiffEngine",
    "Diagnostic",
    "DiagnosticSeverity",
    "FileVerdict",
    "RawCoverageMap",
    "RawFileCoverage",
    "UncoveredLocation",
    "VerdictKind",
    "collect",
    "from_coverage_json",
    "load_coverage_json",
    "load_raw_map",
    "suppress_marked",
    "uncovered_branches",
    "uncovered_lines",
    "uncovered_locations",
]

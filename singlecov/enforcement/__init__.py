"""
singlecov enforcement.

Declared expectations, the end-of-run audit and repository completeness checks.
"""

from singlecov.enforcement.auditor import (
    MAX_OUTPUT,
    TRUNCATION_NOTICE,
    AuditResult,
    EnforcementAuditor,
    loaded_as_module,
    snapshot_loaded_modules,
)
from singlecov.enforcement.completeness import (
    DEFAULT_PRODUCTION_PATTERNS,
    DEFAULT_TEST_PATTERNS,
    check_completeness,
    check_declarations_used,
    check_full_coverage,
    fully_covered_tests,
    glob_files,
)
from singlecov.enforcement.registry import CoverageExpectation, CoverageRegistry

__all__ = [
    "DEFAULT_PRODUCTION_PATTERNS",
    "DEFAULT_TEST_PATTERNS",
    "MAX_OUTPUT",
    "TRUNCATION_NOTICE",
    "AuditResult",
    "CoverageExpectation",
    "CoverageRegistry",
    "EnforcementAuditor",
    "check_completeness",
    "check_declarations_used",
    "check_full_coverage",
    "fully_covered_tests",
    "glob_files",
    "loaded_as_module",
    "snapshot_loaded_modules",
]

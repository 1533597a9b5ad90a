"""
Repository completeness checks.

Set comparisons between production files and test files: every production
file has a test, every test declares what it covers, and the list of fully
covered test files is kept current.
"""

import re
from collections.abc import Iterable
from pathlib import Path

import structlog

from singlecov.errors import (
    FullCoverageDriftError,
    MissingTestsError,
    StaleAllowListError,
    UndeclaredTestsError,
)
from singlecov.resolution.resolver import PathResolver

log = structlog.get_logger()

DEFAULT_PRODUCTION_PATTERNS = ("app/**/*.py", "lib/**/*.py")
DEFAULT_TEST_PATTERNS = (
    "test/**/*_test.py",
    "test/**/test_*.py",
    "tests/**/*_test.py",
    "tests/**/test_*.py",
    "spec/**/*_spec.py",
)

DECLARATION_PATTERN = re.compile(r"\b(?:not_)?covered\(")
COVERED_CALL = re.compile(r"^[^#\n]*\bcovered\(([^)\n]*)\)", re.MULTILINE)
UNCOVERED_ARGUMENT = re.compile(r"\buncovered\s*=\s*\d+")


def glob_files(root: str | Path, patterns: Iterable[str]) -> list[str]:
    """
    Collect files matching glob patterns, relative to root.

    Args:
        root: Directory the patterns are evaluated in
        patterns: pathlib glob patterns

    Returns:
        Sorted, unique relative paths
    """
    root = Path(root)
    found = {
        path.relative_to(root).as_posix()
        for pattern in patterns
        for path in root.glob(pattern)
        if path.is_file() and path.name != "__init__.py"
    }
    return sorted(found)


def check_completeness(
    production_files: Iterable[str],
    test_files: Iterable[str],
    allowed_untested: Iterable[str],
    resolver: PathResolver,
) -> None:
    """
    Verify every production file has a test file.

    Args:
        production_files: Production files relative to the root
        test_files: Test files relative to the root
        allowed_untested: Production files known to have no test
        resolver: Maps test files to the production files they cover

    Raises:
        StaleAllowListError: If an allowed-untested file has a test now.
        MissingTestsError: If production files have no test.
    """
    tested = {resolver.guess(test) for test in test_files}
    allowed = list(dict.fromkeys(allowed_untested))
    missing = [f for f in dict.fromkeys(production_files) if f not in tested]

    fixed = [f for f in allowed if f not in missing]
    missing = [f for f in missing if f not in allowed]

    if fixed:
        raise StaleAllowListError(fixed)
    if missing:
        raise MissingTestsError(missing)
    log.debug("completeness_checked", tested=len(tested), allowed_untested=len(allowed))


def check_declarations_used(test_files: Iterable[str], root: str | Path) -> None:
    """
    Verify every test file declares what it covers.

    Raises:
        UndeclaredTestsError: If test files call neither covered() nor not_covered().
    """
    root = Path(root)
    bad = [
        test
        for test in test_files
        if not DECLARATION_PATTERN.search((root / test).read_text(encoding="utf-8"))
    ]
    if bad:
        raise UndeclaredTestsError(bad)


def fully_covered_tests(test_files: Iterable[str], root: str | Path) -> list[str]:
    """Test files that declare coverage without an uncovered count."""
    root = Path(root)
    complete = []
    for test in test_files:
        calls = COVERED_CALL.findall((root / test).read_text(encoding="utf-8"))
        if calls and not any(UNCOVERED_ARGUMENT.search(args) for args in calls):
            complete.append(test)
    return complete


def check_full_coverage(
    test_files: Iterable[str],
    currently_complete: Iterable[str],
    root: str | Path,
) -> None:
    """
    Verify the list of fully covered test files is current.

    Test files using not_covered() count as neither complete nor incomplete;
    a count in a comment (`# uncovered=3`) is ignored.

    Raises:
        FullCoverageDriftError: If files became fully covered or lost coverage.
    """
    test_files = list(test_files)
    actual = fully_covered_tests(test_files, root)
    expected = list(dict.fromkeys(currently_complete))

    newly_complete = [f for f in actual if f not in expected]
    lost_coverage = [f for f in expected if f not in actual]
    if newly_complete or lost_coverage:
        raise FullCoverageDriftError(newly_complete, lost_coverage)

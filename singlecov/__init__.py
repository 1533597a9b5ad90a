"""
singlecov - per-file test coverage enforcement.

Every production file is covered by exactly one test file, and the number of
lines and branches it leaves uncovered never grows silently.

Usage:
    singlecov.covered()             # in a test module, guessing the covered file
    pytest --single-cov             # audit declarations at the end of the run
    singlecov tested                # every production file has a test
    singlecov audit coverage.json   # audit a coverage.py JSON report
"""

from singlecov.session import (
    SingleCov,
    covered,
    disable,
    get_session,
    not_covered,
    rewrite,
    set_session,
)

__version__ = "0.1.0"

__all__ = [
    "SingleCov",
    "covered",
    "disable",
    "get_session",
    "not_covered",
    "rewrite",
    "set_session",
]

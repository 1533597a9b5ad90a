"""
Coverage report artifact.

Writes the raw coverage of the declared files as JSON so other tools can
merge or display it:

    {"pytest": {"coverage": {"/abs/lib/a.py": [null, 1, 0]}, "timestamp": 1700000000}}
"""

import json
import os
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

from singlecov.coverage.models import RawFileCoverage

log = structlog.get_logger()


def build_report(
    raw_coverage: dict[str, Any],
    declared_paths: Iterable[str],
    key: str = "pytest",
    lines_only: bool = False,
    timestamp: int | None = None,
) -> dict[str, Any]:
    """
    Build the report document.

    Args:
        raw_coverage: Mapping from absolute path to raw coverage
        declared_paths: Absolute paths of declared files; all others are left out
        key: Top-level key of the document
        lines_only: Flatten records to their line arrays
        timestamp: Unix timestamp (defaults to now)

    Returns:
        JSON-serializable report
    """
    declared = set(declared_paths)
    coverage = {
        path: RawFileCoverage.from_raw(record).to_dict(lines_only=lines_only)
        for path, record in sorted(raw_coverage.items())
        if path in declared
    }
    return {
        key: {
            "coverage": coverage,
            "timestamp": int(time.time()) if timestamp is None else timestamp,
        }
    }


def write_report(
    path: str | Path,
    raw_coverage: dict[str, Any],
    declared_paths: Iterable[str],
    key: str = "pytest",
    lines_only: bool = False,
) -> Path:
    """
    Write the report, creating parent folders and replacing any existing file.

    Returns:
        Path the report was written to
    """
    path = Path(path)
    report = build_report(raw_coverage, declared_paths, key=key, lines_only=lines_only)
    os.makedirs(path.parent, exist_ok=True)
    path.write_text(json.dumps(report, indent=2))
    log.info("report_written", path=str(path), files=len(report[key]["coverage"]))
    return path

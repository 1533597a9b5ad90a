"""
Adapters from coverage.py data to raw per-file coverage.

coverage.py reports executed and missing lines plus executed and missing
branch arcs (from_line, to_line). Each source line with arcs becomes one
branch group, each arc one leaf.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from singlecov.coverage.models import BranchMap, BranchSite, RawFileCoverage

if TYPE_CHECKING:
    from coverage import Coverage

log = structlog.get_logger()

RawCoverageMap = dict[str, RawFileCoverage]


def _lines_from_report(file_data: dict[str, Any]) -> list[int | None]:
    executed = file_data.get("executed_lines", [])
    missing = file_data.get("missing_lines", [])
    excluded = file_data.get("excluded_lines", [])
    size = max([0, *executed, *missing, *excluded])

    lines: list[int | None] = [None] * size
    for number in executed:
        lines[number - 1] = 1
    for number in missing:
        lines[number - 1] = 0
    return lines


def _branches_from_report(file_data: dict[str, Any]) -> BranchMap:
    missing_lines = set(file_data.get("missing_lines", []))
    arcs = [(tuple(arc), 1) for arc in file_data.get("executed_branches", [])]
    # an arc into a missing line is already reported by that line
    arcs += [
        (tuple(arc), 0)
        for arc in file_data.get("missing_branches", [])
        if arc[1] not in missing_lines
    ]

    branches: BranchMap = {}
    for index, ((from_line, to_line), hits) in enumerate(sorted(arcs)):
        # negative targets are exits from the code object
        end_line = to_line if to_line > 0 else from_line
        group = BranchSite("branch", from_line, from_line, 0, from_line, 0)
        leaf = BranchSite("arc", index, from_line, 0, end_line, 0)
        branches.setdefault(group, {})[leaf] = hits
    return branches


def from_coverage_json(data: dict[str, Any], base: str | Path | None = None) -> RawCoverageMap:
    """
    Convert a coverage.py JSON report into a raw coverage map.

    Args:
        data: Parsed output of `coverage json`
        base: Directory relative file names in the report are based on
            (defaults to the current directory)

    Returns:
        Mapping from absolute file path to RawFileCoverage
    """
    base_dir = os.path.abspath(base or os.getcwd())
    with_branches = bool(data.get("meta", {}).get("branch_coverage"))

    result: RawCoverageMap = {}
    for name, file_data in data.get("files", {}).items():
        path = os.path.normpath(os.path.join(base_dir, name))
        has_arcs = "executed_branches" in file_data or "missing_branches" in file_data
        branches = _branches_from_report(file_data) if with_branches or has_arcs else None
        result[path] = RawFileCoverage(lines=_lines_from_report(file_data), branches=branches)
    return result


def load_coverage_json(path: str | Path, base: str | Path | None = None) -> RawCoverageMap:
    """
    Load a coverage.py JSON report from disk.

    Args:
        path: Path to the JSON report
        base: Directory relative file names are based on

    Returns:
        Mapping from absolute file path to RawFileCoverage
    """
    path = Path(path)
    if not path.exists():
        msg = f"Coverage report not found: {path}"
        raise FileNotFoundError(msg)

    with path.open() as f:
        data = json.load(f)
    return from_coverage_json(data, base=base)


def load_raw_map(data: dict[str, Any]) -> RawCoverageMap:
    """Convert an already raw `{abs_path: lines | record}` mapping."""
    return {path: RawFileCoverage.from_raw(record) for path, record in data.items()}


def collect(cov: "Coverage", files: list[str]) -> RawCoverageMap:
    """
    Collect raw coverage for files from a stopped coverage.py session.

    Files coverage.py never measured are left out so they can be reported
    as not recorded.

    Args:
        cov: Coverage instance that has been stopped
        files: Absolute paths of the files of interest

    Returns:
        Mapping from absolute file path to RawFileCoverage
    """
    measured = {os.path.normpath(f) for f in cov.get_data().measured_files()}
    morfs = [f for f in files if os.path.normpath(f) in measured]
    if not morfs:
        log.debug("no_measured_files", requested=len(files))
        return {}

    with tempfile.TemporaryDirectory() as tmp:
        outfile = Path(tmp) / "coverage.json"
        cov.json_report(morfs=morfs, outfile=str(outfile))
        data = json.loads(outfile.read_text())
    return from_coverage_json(data)

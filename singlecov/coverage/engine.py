"""
Coverage diff engine.

Turns one file's raw line/branch coverage into a deterministic list of
uncovered locations and classifies it against the declared number of
uncovered locations.
"""

import re
from collections.abc import Callable, Sequence
from pathlib import Path

import structlog

from singlecov.coverage.models import (
    BranchMap,
    Diagnostic,
    DiagnosticSeverity,
    FileVerdict,
    RawFileCoverage,
    UncoveredLocation,
    VerdictKind,
)

log = structlog.get_logger()

UNCOVERED_COMMENT_MARKER = r"#.*uncovered"

SourceReader = Callable[[str], Sequence[str]]


def uncovered_lines(lines: Sequence[int | None]) -> list[int]:
    """Line numbers with a hit count of exactly 0.

    [None, 1, 0, 1, 0] -> [3, 5]
    """
    return [index + 1 for index, hits in enumerate(lines) if hits == 0]


def uncovered_branches(branches: BranchMap) -> list[UncoveredLocation]:
    """Branch outcomes that never ran, deduplicated by position.

    Leaves sharing a position are summed across all groups first, so an
    outcome counts as covered when any of its duplicates ran.
    """
    sums: dict[tuple[int, int, int, int], int] = {}
    for leaves in branches.values():
        for leaf, hits in leaves.items():
            sums[leaf.span] = sums.get(leaf.span, 0) + hits

    return [
        UncoveredLocation(start_line, start_column + 1, end_line, end_column + 1)
        for (start_line, start_column, end_line, end_column), total in sums.items()
        if total == 0
    ]


def uncovered_locations(raw: RawFileCoverage) -> list[UncoveredLocation]:
    """All uncovered lines and branches of a file, sorted by position.

    Branches starting on an uncovered line are dropped since the line
    already reports that gap.
    """
    line_numbers = uncovered_lines(raw.lines)
    locations = [UncoveredLocation(n) for n in line_numbers]

    if raw.branches:
        dead = set(line_numbers)
        locations.extend(
            loc for loc in uncovered_branches(raw.branches) if loc.start_line not in dead
        )

    locations.sort(key=lambda loc: loc.sort_key)
    return locations


def suppress_marked(
    locations: list[UncoveredLocation],
    source_lines: Sequence[str],
    marker: str = UNCOVERED_COMMENT_MARKER,
) -> list[UncoveredLocation]:
    """Drop locations whose starting source line carries the uncovered marker."""
    pattern = re.compile(marker)
    kept = []
    for loc in locations:
        index = loc.start_line - 1
        if 0 <= index < len(source_lines) and pattern.search(source_lines[index]):
            continue
        kept.append(loc)
    return kept


def read_source_lines(path: str) -> list[str]:
    """Default source reader."""
    return Path(path).read_text(encoding="utf-8").splitlines()


class CoverageDiffEngine:
    """
    Compare raw coverage of declared files with their expected uncovered count.

    Never raises for coverage findings: every outcome is returned as a
    FileVerdict carrying its diagnostics.
    """

    def __init__(
        self,
        root: str | Path,
        source_reader: SourceReader | None = None,
        marker: str = UNCOVERED_COMMENT_MARKER,
    ):
        """
        Initialize the engine.

        Args:
            root: Project root that declared relative paths are based on
            source_reader: Returns the text lines of an absolute path
            marker: Regex marking a source line as intentionally uncovered
        """
        self.root = Path(root)
        self.source_reader = source_reader or read_source_lines
        self.marker = marker

    def evaluate(
        self,
        file: str,
        expected_uncovered: int,
        raw: RawFileCoverage | None,
        running_single_file: bool = True,
        preloaded: bool = False,
    ) -> FileVerdict:
        """
        Evaluate one declared file.

        Args:
            file: Path relative to the project root
            expected_uncovered: Number of uncovered locations the test declared
            raw: Raw coverage for the file, or None when nothing was recorded
            running_single_file: Whether only one file was declared in this run;
                decides if an improvement is reported as a warning
            preloaded: Whether the file was loaded before recording started

        Returns:
            FileVerdict for the file
        """
        if raw is None:
            return FileVerdict(
                file=file,
                kind=VerdictKind.NO_COVERAGE,
                expected_uncovered=expected_uncovered,
                diagnostics=[Diagnostic(self._no_coverage_message(file, preloaded))],
            )

        locations = uncovered_locations(raw)
        if locations:
            source_lines = self.source_reader(str(self.root / file))
            locations = suppress_marked(locations, source_lines, self.marker)

        actual = len(locations)
        verdict = FileVerdict(
            file=file,
            kind=VerdictKind.MATCHED,
            expected_uncovered=expected_uncovered,
            locations=locations,
        )
        log.debug("evaluated_file", file=file, expected=expected_uncovered, actual=actual)

        if actual == expected_uncovered:
            return verdict

        details = f"({actual} current vs {expected_uncovered} configured)"
        if actual < expected_uncovered:
            verdict.kind = VerdictKind.IMPROVED
            # a run declaring several files may not exercise this one fully
            if running_single_file:
                verdict.diagnostics.append(
                    Diagnostic(
                        f"{file} has less uncovered lines {details}, decrement configured uncovered",
                        DiagnosticSeverity.WARNING,
                    )
                )
            return verdict

        verdict.kind = VerdictKind.REGRESSED
        verdict.diagnostics.append(Diagnostic(f"{file} new uncovered lines introduced {details}"))
        verdict.diagnostics.append(Diagnostic("Lines missing coverage:"))
        verdict.diagnostics.extend(Diagnostic(loc.format(file)) for loc in locations)
        return verdict

    @staticmethod
    def _no_coverage_message(file: str, preloaded: bool) -> str:
        if preloaded:
            return (
                f"{file} was expected to be covered, but was already loaded before "
                "coverage started, which makes it uncoverable."
            )
        return f"{file} was expected to be covered, but was never loaded."

"""
Coverage data models.

Raw per-file coverage as recorded by an instrumentation layer, the uncovered
locations derived from it, and the per-file verdict produced by comparing
those locations against a declared expectation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NamedTuple


class BranchSite(NamedTuple):
    """Position of one branch decision (group) or one of its outcomes (leaf).

    Columns are 0-based, as recorded by the instrumentation layer.
    """

    label: str
    id: int
    start_line: int
    start_column: int
    end_line: int
    end_column: int

    @property
    def span(self) -> tuple[int, int, int, int]:
        """Positional part of the site, without label and id."""
        return (self.start_line, self.start_column, self.end_line, self.end_column)

    def to_key(self) -> str:
        """Encode as a JSON-safe mapping key."""
        return ":".join(str(part) for part in self)

    @classmethod
    def from_key(cls, key: str | list[Any] | tuple[Any, ...]) -> "BranchSite":
        """Decode from `to_key()` output or a 6-item sequence."""
        parts = key.split(":") if isinstance(key, str) else list(key)
        if len(parts) != 6:
            raise ValueError(f"Branch site needs 6 parts, got {len(parts)}: {key!r}")
        label, *numbers = parts
        return cls(str(label), *(int(n) for n in numbers))


BranchMap = dict[BranchSite, dict[BranchSite, int]]


@dataclass
class RawFileCoverage:
    """Raw coverage of one production file.

    `lines[i]` is the hit count of line `i + 1`: None for non-executable
    lines, 0 for executable lines that never ran.
    """

    lines: list[int | None]
    branches: BranchMap | None = None

    @property
    def has_branches(self) -> bool:
        return self.branches is not None

    @classmethod
    def from_raw(cls, data: "RawFileCoverage | list[int | None] | dict[str, Any]") -> "RawFileCoverage":
        """Build from a flat line list or a `{"lines": ..., "branches": ...}` record."""
        if isinstance(data, RawFileCoverage):
            return data
        if isinstance(data, list):
            return cls(lines=list(data))
        if "lines" not in data:
            raise ValueError("Coverage record needs a 'lines' entry")

        branches_data = data.get("branches")
        branches: BranchMap | None = None
        if branches_data is not None:
            branches = {
                BranchSite.from_key(group): {
                    BranchSite.from_key(leaf): int(hits) for leaf, hits in leaves.items()
                }
                for group, leaves in branches_data.items()
            }
        return cls(lines=list(data["lines"]), branches=branches)

    def to_dict(self, lines_only: bool = False) -> list[int | None] | dict[str, Any]:
        """Convert to the JSON shape accepted by `from_raw`."""
        if lines_only or self.branches is None:
            return list(self.lines)
        return {
            "lines": list(self.lines),
            "branches": {
                group.to_key(): {leaf.to_key(): hits for leaf, hits in leaves.items()}
                for group, leaves in self.branches.items()
            },
        }


@dataclass(frozen=True)
class UncoveredLocation:
    """A line, or a branch range, that never executed.

    Line locations carry no columns; branch locations carry all four
    positional fields (1-based columns).
    """

    start_line: int
    start_column: int | None = None
    end_line: int | None = None
    end_column: int | None = None

    def __post_init__(self) -> None:
        extra = (self.start_column, self.end_line, self.end_column)
        if any(v is None for v in extra) and any(v is not None for v in extra):
            raise ValueError(
                "Branch locations need start_column, end_line and end_column; "
                f"got {extra!r} for line {self.start_line}"
            )

    @property
    def is_branch(self) -> bool:
        return self.start_column is not None

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.start_line, self.start_column or 0)

    def format(self, file: str) -> str:
        """Human-readable `file:line[:col-[line:]col]` position."""
        if not self.is_branch:
            return f"{file}:{self.start_line}"
        if self.start_line == self.end_line:
            return f"{file}:{self.start_line}:{self.start_column}-{self.end_column}"
        return f"{file}:{self.start_line}:{self.start_column}-{self.end_line}:{self.end_column}"


class VerdictKind(str, Enum):
    """Outcome of comparing one file's coverage with its expectation."""

    MATCHED = "matched"
    REGRESSED = "regressed"
    IMPROVED = "improved"
    NO_COVERAGE = "no_coverage"


class DiagnosticSeverity(str, Enum):
    """Whether a diagnostic fails the audit."""

    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    """One line of audit output."""

    message: str
    severity: DiagnosticSeverity = DiagnosticSeverity.ERROR

    @property
    def is_warning(self) -> bool:
        return self.severity == DiagnosticSeverity.WARNING

    def __str__(self) -> str:
        return self.message


@dataclass
class FileVerdict:
    """Result of evaluating one declared file."""

    file: str
    kind: VerdictKind
    expected_uncovered: int
    locations: list[UncoveredLocation] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def actual_uncovered(self) -> int:
        return len(self.locations)

    @property
    def is_failure(self) -> bool:
        return any(not d.is_warning for d in self.diagnostics)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "file": self.file,
            "kind": self.kind.value,
            "expected_uncovered": self.expected_uncovered,
            "actual_uncovered": self.actual_uncovered,
            "locations": [loc.format(self.file) for loc in self.locations],
            "diagnostics": [d.message for d in self.diagnostics],
        }

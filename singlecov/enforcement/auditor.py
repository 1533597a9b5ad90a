"""
EnforcementAuditor - compare every declared file with recorded coverage.

Findings are accumulated across all files and returned together; nothing
here decides the process exit status.
"""

import os
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from singlecov.coverage.adapters import RawCoverageMap
from singlecov.coverage.engine import UNCOVERED_COMMENT_MARKER, CoverageDiffEngine, SourceReader
from singlecov.coverage.models import Diagnostic, FileVerdict, RawFileCoverage
from singlecov.enforcement.registry import CoverageRegistry

log = structlog.get_logger()

MAX_OUTPUT = 40
TRUNCATION_NOTICE = "... coverage output truncated"

PreloadCheck = Callable[[str], bool]


def _normalized(path: str) -> str:
    return os.path.normcase(os.path.realpath(path))


def _module_files() -> set[str]:
    files = set()
    for module in list(sys.modules.values()):
        module_file = getattr(module, "__file__", None)
        if module_file:
            files.add(_normalized(module_file))
    return files


def loaded_as_module(path: str) -> bool:
    """Whether any imported module was loaded from `path`."""
    return _normalized(path) in _module_files()


def snapshot_loaded_modules() -> PreloadCheck:
    """
    Freeze the set of files imported so far.

    Taken right before recording starts, the returned check tells which
    files were loaded too early to ever be covered.
    """
    loaded = frozenset(_module_files())

    def is_preloaded(path: str) -> bool:
        return _normalized(path) in loaded

    return is_preloaded


@dataclass
class AuditResult:
    """Outcome of one audit pass."""

    passed: bool
    diagnostics: list[Diagnostic] = field(default_factory=list)
    verdicts: list[FileVerdict] = field(default_factory=list)
    truncated: bool = False
    skipped: bool = False

    @property
    def failures(self) -> list[FileVerdict]:
        return [v for v in self.verdicts if v.is_failure]

    @property
    def messages(self) -> list[str]:
        return [d.message for d in self.diagnostics]

    def render(self) -> str:
        """Newline-delimited diagnostics."""
        return "\n".join(self.messages)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "passed": self.passed,
            "skipped": self.skipped,
            "truncated": self.truncated,
            "diagnostics": self.messages,
            "verdicts": [v.to_dict() for v in self.verdicts],
        }


class EnforcementAuditor:
    """
    Audit a CoverageRegistry against a raw coverage map.

    The audit passes when every diagnostic is a warning. Output is cut at
    `max_output` diagnostics; the verdict is computed on the full list.

    An `is_preloaded` check is authoritative: files it reports were imported
    before recording started and are never judged on their partial coverage.
    Without one, only files with no recorded coverage are looked up in
    `sys.modules`.
    """

    def __init__(
        self,
        root: str | Path,
        source_reader: SourceReader | None = None,
        is_preloaded: PreloadCheck | None = None,
        max_output: int = MAX_OUTPUT,
        marker: str = UNCOVERED_COMMENT_MARKER,
    ):
        """
        Initialize the auditor.

        Args:
            root: Project root declared files are relative to
            source_reader: Returns the text lines of an absolute path
            is_preloaded: Whether an absolute path was loaded before recording
                started, usually from `snapshot_loaded_modules`
            max_output: Maximum number of diagnostics to return
            marker: Regex marking a source line as intentionally uncovered
        """
        self.root = os.path.normpath(os.path.abspath(root))
        self.engine = CoverageDiffEngine(self.root, source_reader=source_reader, marker=marker)
        self.is_preloaded = is_preloaded
        self.max_output = max_output

    def audit(
        self,
        registry: CoverageRegistry,
        raw_coverage: RawCoverageMap | dict[str, Any],
    ) -> AuditResult:
        """
        Evaluate every expectation in the registry.

        Args:
            registry: Declared expectations
            raw_coverage: Mapping from absolute file path to raw coverage

        Returns:
            AuditResult with the combined verdict
        """
        if not registry.is_owner():
            log.debug("audit_skipped", reason="not_owner", owner=registry.owner)
            return AuditResult(passed=True, skipped=True)

        single_file = registry.running_single_file
        verdicts = []
        for expectation in registry:
            path = os.path.join(self.root, expectation.file)
            record = raw_coverage.get(path)
            raw = RawFileCoverage.from_raw(record) if record is not None else None
            if self.is_preloaded is not None:
                preloaded = self.is_preloaded(path)
            else:
                preloaded = raw is None and loaded_as_module(path)
            if preloaded:
                # only the lines run after import were recorded
                raw = None
            verdicts.append(
                self.engine.evaluate(
                    expectation.file,
                    expectation.expected_uncovered,
                    raw,
                    running_single_file=single_file,
                    preloaded=preloaded,
                )
            )

        diagnostics = [d for verdict in verdicts for d in verdict.diagnostics]
        passed = all(d.is_warning for d in diagnostics)

        truncated = len(diagnostics) >= self.max_output
        if truncated:
            diagnostics = diagnostics[: self.max_output]
            diagnostics.append(Diagnostic(TRUNCATION_NOTICE))

        log.info(
            "audit_finished",
            files=len(verdicts),
            passed=passed,
            diagnostics=len(diagnostics),
        )
        return AuditResult(
            passed=passed,
            diagnostics=diagnostics,
            verdicts=verdicts,
            truncated=truncated,
        )

"""
SingleCov session - the declaration API and its lifecycle.

A session owns the resolver, the registry of declarations and the auditor.
Test modules declare into it while they load; the test runner audits it
once at the end:

    import singlecov

    singlecov.covered()                       # tests/models/test_widget.py -> app/models/widget.py
    singlecov.covered(uncovered=2)            # two known gaps
    singlecov.covered(file="lib/legacy.py")   # unconventional layout
    singlecov.not_covered()                   # covers nothing on its own
"""

import inspect
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog

from singlecov.config import SingleCovConfig
from singlecov.coverage.engine import SourceReader
from singlecov.enforcement.auditor import AuditResult, EnforcementAuditor, PreloadCheck
from singlecov.enforcement.registry import CoverageRegistry, IdentityProvider
from singlecov.reporting.json_report import write_report
from singlecov.resolution.resolver import PathRewriter

log = structlog.get_logger()


def caller_file(depth: int = 1) -> str:
    """File name of the frame `depth` levels above the caller of this function."""
    frame = inspect.currentframe()
    try:
        for _ in range(depth + 1):
            if frame is None:
                break
            frame = frame.f_back
        if frame is None:
            raise RuntimeError("Unable to determine calling file")
        return frame.f_code.co_filename
    finally:
        del frame


class SingleCov:
    """Declarations and audit of one test process."""

    def __init__(
        self,
        config: SingleCovConfig | None = None,
        identity_provider: IdentityProvider | None = None,
        source_reader: SourceReader | None = None,
        is_preloaded: PreloadCheck | None = None,
    ):
        """
        Initialize a session.

        Args:
            config: Settings (defaults rooted at the current directory)
            identity_provider: Identity of the current process, for fork detection
            source_reader: Returns the text lines of an absolute path
            is_preloaded: Whether an absolute path was loaded before recording
        """
        self.registry = CoverageRegistry(identity_provider)
        self._source_reader = source_reader
        self._is_preloaded = is_preloaded
        self.disabled = False
        self.configure(config or SingleCovConfig())

    def configure(self, config: SingleCovConfig) -> None:
        """Apply new settings, keeping declarations and the rewriter."""
        previous = getattr(self, "resolver", None)
        self.config = config
        self.resolver = config.build_resolver()
        if previous is not None:
            self.resolver.set_rewriter(previous.rewriter)
        self.auditor = EnforcementAuditor(
            config.root,
            source_reader=self._source_reader,
            is_preloaded=self._is_preloaded,
            max_output=config.max_output,
            marker=config.uncovered_marker,
        )

    @property
    def root(self) -> Path:
        return Path(self.resolver.root)

    def rewrite(
        self, rewriter: PathRewriter | Callable[[str], str] | None
    ) -> PathRewriter | Callable[[str], str] | None:
        """Register the final override for guessed paths; usable as a decorator."""
        self.resolver.set_rewriter(rewriter)
        return rewriter

    def covered(self, file: str | None = None, uncovered: int = 0, caller: str | None = None) -> str:
        """
        Declare the file covered by the calling test module.

        Args:
            file: Covered file relative to the root; guessed from the caller when None
            uncovered: Number of locations allowed to stay uncovered
            caller: Path of the declaring test file (defaults to the calling frame)

        Returns:
            The declared file, relative to the root

        Raises:
            ResolutionError: If the covered file cannot be determined.
        """
        if file is not None:
            file = self.resolver.resolve_explicit(file)
        else:
            file = self.resolver.resolve(caller or caller_file())
        self.registry.declare(file, uncovered)
        return file

    def set_preload_check(self, is_preloaded: PreloadCheck | None) -> None:
        """Tell the audit which files were imported before recording started."""
        self._is_preloaded = is_preloaded
        self.auditor.is_preloaded = is_preloaded

    def not_covered(self) -> None:
        """Declare that the calling test module covers no file of its own."""
        self.registry.claim()

    def disable(self) -> None:
        """Skip the audit in this process, e.g. in a forked worker."""
        self.disabled = True

    def declared_paths(self) -> list[str]:
        """Absolute paths of all declared files."""
        return [os.path.join(self.resolver.root, f) for f in self.registry.files()]

    def audit(self, raw_coverage: dict[str, Any]) -> AuditResult:
        """Audit all declarations against raw coverage keyed by absolute path."""
        if self.disabled:
            log.debug("audit_skipped", reason="disabled")
            return AuditResult(passed=True, skipped=True)
        return self.auditor.audit(self.registry, raw_coverage)

    def write_report(self, raw_coverage: dict[str, Any], path: str | Path | None = None) -> Path | None:
        """Write the coverage report of the declared files when a path is configured."""
        target = path or self.config.report_path
        if not target:
            return None
        target = Path(target)
        if not target.is_absolute():
            target = self.root / target
        return write_report(
            target,
            raw_coverage,
            self.declared_paths(),
            key=self.config.report_key,
            lines_only=self.config.report_lines_only,
        )

    def reset(self) -> None:
        """Forget declarations and re-enable auditing."""
        self.registry.clear()
        self.disabled = False


_session: SingleCov | None = None


def get_session() -> SingleCov:
    """The process-wide default session."""
    global _session
    if _session is None:
        _session = SingleCov()
    return _session


def set_session(session: SingleCov | None) -> None:
    """Replace the process-wide default session."""
    global _session
    _session = session


def covered(file: str | None = None, uncovered: int = 0) -> str:
    """Declare the file covered by the calling test module on the default session."""
    return get_session().covered(file=file, uncovered=uncovered, caller=None if file else caller_file())


def not_covered() -> None:
    """Declare that the calling test module covers no file of its own."""
    get_session().not_covered()


def rewrite(rewriter: PathRewriter | Callable[[str], str] | None) -> PathRewriter | Callable[[str], str] | None:
    """Register the final override for guessed paths on the default session."""
    return get_session().rewrite(rewriter)


def disable() -> None:
    """Skip the audit of the default session in this process."""
    get_session().disable()

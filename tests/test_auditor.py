"""
Tests for EnforcementAuditor.
"""

import os
import sys
import types

import pytest

from singlecov.coverage import BranchSite, DiagnosticSeverity, RawFileCoverage, VerdictKind
from singlecov.enforcement import (
    TRUNCATION_NOTICE,
    CoverageRegistry,
    EnforcementAuditor,
    loaded_as_module,
    snapshot_loaded_modules,
)


@pytest.fixture
def root(tmp_path):
    lib = tmp_path / "lib"
    lib.mkdir()
    (lib / "a.py").write_text("a = 1\nb = 2\nc = 3\nd = 4\ne = 5\n")
    (lib / "b.py").write_text("a = 1\nb = 2  # uncovered\n")
    return tmp_path


@pytest.fixture
def auditor(root):
    return EnforcementAuditor(root, is_preloaded=lambda path: False)


def path(root, file):
    return os.path.join(str(root), file)


class TestEnforcementAuditor:
    """Test auditing a registry."""

    def test_passes_when_everything_matches(self, auditor, root):
        """Test a fully covered declared file."""
        registry = CoverageRegistry()
        registry.declare("lib/a.py")

        result = auditor.audit(registry, {path(root, "lib/a.py"): [None, 1, 1, 1, None]})

        assert result.passed is True
        assert result.diagnostics == []
        assert result.verdicts[0].kind == VerdictKind.MATCHED

    def test_fails_on_regression(self, auditor, root):
        """Test that new uncovered lines fail the audit."""
        registry = CoverageRegistry()
        registry.declare("lib/a.py")

        result = auditor.audit(registry, {path(root, "lib/a.py"): [None, 1, 0, 1, None]})

        assert result.passed is False
        assert result.messages[-1] == "lib/a.py:3"
        assert result.render().splitlines()[0].startswith("lib/a.py new uncovered lines")

    def test_improvement_only_warns(self, auditor, root):
        """Test that fewer uncovered lines than declared never fail."""
        registry = CoverageRegistry()
        registry.declare("lib/a.py", 1)

        result = auditor.audit(registry, {path(root, "lib/a.py"): [1, 1, 1]})

        assert result.passed is True
        assert [d.severity for d in result.diagnostics] == [DiagnosticSeverity.WARNING]

    def test_improvement_silent_with_several_files(self, auditor, root):
        """Test that multi-file runs do not warn about improvements."""
        registry = CoverageRegistry()
        registry.declare("lib/a.py", 1)
        registry.declare("lib/b.py")

        raw = {path(root, "lib/a.py"): [1, 1], path(root, "lib/b.py"): [1, 1]}
        result = auditor.audit(registry, raw)

        assert result.passed is True
        assert result.diagnostics == []
        assert result.verdicts[0].kind == VerdictKind.IMPROVED

    def test_collects_all_failures(self, auditor, root):
        """Test that one failing file does not stop the others."""
        registry = CoverageRegistry()
        registry.declare("lib/a.py")
        registry.declare("lib/b.py")

        result = auditor.audit(registry, {path(root, "lib/a.py"): [0, 1]})

        assert result.passed is False
        assert [v.kind for v in result.verdicts] == [VerdictKind.REGRESSED, VerdictKind.NO_COVERAGE]
        assert len(result.failures) == 2
        assert result.messages[-1] == "lib/b.py was expected to be covered, but was never loaded."

    def test_preloaded_file(self, root):
        """Test files imported before recording started."""
        auditor = EnforcementAuditor(root, is_preloaded=lambda p: p == path(root, "lib/a.py"))
        registry = CoverageRegistry()
        registry.declare("lib/a.py")

        result = auditor.audit(registry, {})

        assert "already loaded before coverage started" in result.messages[0]

    def test_preloaded_file_with_recorded_lines(self, root):
        """Test that partial coverage of a file imported too early is not judged."""
        auditor = EnforcementAuditor(root, is_preloaded=lambda p: p == path(root, "lib/a.py"))
        registry = CoverageRegistry()
        registry.declare("lib/a.py")

        result = auditor.audit(registry, {path(root, "lib/a.py"): [0, 1, 1, 1, 1]})

        assert result.passed is False
        assert result.verdicts[0].kind == VerdictKind.NO_COVERAGE
        assert "already loaded before coverage started" in result.messages[0]
        assert "new uncovered lines" not in result.render()

    def test_preload_check_replaces_module_lookup(self, root, monkeypatch):
        """Test that a given check wins over the modules loaded at audit time."""
        module = types.ModuleType("lib_a")
        module.__file__ = path(root, "lib/a.py")
        monkeypatch.setitem(sys.modules, "lib_a", module)
        registry = CoverageRegistry()
        registry.declare("lib/a.py")

        checked = EnforcementAuditor(root, is_preloaded=lambda p: False).audit(registry, {})
        unchecked = EnforcementAuditor(root).audit(registry, {})

        assert checked.messages == ["lib/a.py was expected to be covered, but was never loaded."]
        assert "already loaded before coverage started" in unchecked.messages[0]

    def test_suppression_comment(self, auditor, root):
        """Test that marked lines count as covered."""
        registry = CoverageRegistry()
        registry.declare("lib/b.py")

        assert auditor.audit(registry, {path(root, "lib/b.py"): [1, 0]}).passed is True

    def test_duplicate_declarations_checked_independently(self, auditor, root):
        """Test that both declarations of a file are evaluated."""
        registry = CoverageRegistry()
        registry.declare("lib/a.py", 1)
        registry.declare("lib/a.py", 0)

        result = auditor.audit(registry, {path(root, "lib/a.py"): [0, 1]})

        assert [v.kind for v in result.verdicts] == [VerdictKind.MATCHED, VerdictKind.REGRESSED]
        assert result.passed is False

    def test_branch_records(self, auditor, root):
        """Test raw records with branch data."""
        registry = CoverageRegistry()
        registry.declare("lib/a.py")
        record = {
            "lines": [1, 1, 1, 1],
            "branches": {
                BranchSite("if", 0, 4, 0, 4, 30).to_key(): {
                    BranchSite("then", 1, 4, 4, 4, 10).to_key(): 1,
                    BranchSite("else", 2, 4, 18, 4, 22).to_key(): 0,
                }
            },
        }

        result = auditor.audit(registry, {path(root, "lib/a.py"): record})

        assert result.messages == [
            "lib/a.py new uncovered lines introduced (1 current vs 0 configured)",
            "Lines missing coverage:",
            "lib/a.py:4:19-23",
        ]

    def test_truncates_output(self, root):
        """Test that diagnostics are cut at the maximum."""
        auditor = EnforcementAuditor(root, max_output=3, is_preloaded=lambda p: False)
        registry = CoverageRegistry()
        registry.declare("lib/a.py")

        result = auditor.audit(registry, {path(root, "lib/a.py"): [0, 0, 0, 0, 0]})

        assert result.truncated is True
        assert len(result.diagnostics) == 4
        assert result.messages[-1] == TRUNCATION_NOTICE
        assert result.passed is False

    def test_idempotent(self, auditor, root):
        """Test that auditing twice gives the same result."""
        registry = CoverageRegistry()
        registry.declare("lib/a.py")
        raw = {path(root, "lib/a.py"): [None, 1, 0, 1, None]}

        first = auditor.audit(registry, raw)
        second = auditor.audit(registry, raw)

        assert first.to_dict() == second.to_dict()

    def test_skips_when_not_owner(self, auditor, root):
        """Test that forked processes do not audit."""
        identity = {"pid": 1}
        registry = CoverageRegistry(identity_provider=lambda: identity["pid"])
        registry.declare("lib/a.py")
        identity["pid"] = 2

        result = auditor.audit(registry, {})

        assert result.skipped is True
        assert result.passed is True
        assert result.verdicts == []


class TestLoadedAsModule:
    """Test the default preload check."""

    def test_imported_module(self):
        """Test a file that was imported."""
        assert loaded_as_module(os.__file__) is True

    def test_unknown_file(self, tmp_path):
        """Test a file that was never imported."""
        assert loaded_as_module(str(tmp_path / "nope.py")) is False


class TestSnapshotLoadedModules:
    """Test freezing the modules imported before recording."""

    def test_modules_imported_later_are_not_preloaded(self, root, monkeypatch):
        """Test that only modules present at snapshot time count."""
        early = types.ModuleType("lib_a")
        early.__file__ = path(root, "lib/a.py")
        monkeypatch.setitem(sys.modules, "lib_a", early)
        is_preloaded = snapshot_loaded_modules()

        late = types.ModuleType("lib_b")
        late.__file__ = path(root, "lib/b.py")
        monkeypatch.setitem(sys.modules, "lib_b", late)

        assert is_preloaded(path(root, "lib/a.py")) is True
        assert is_preloaded(path(root, "lib/b.py")) is False
        assert is_preloaded(path(root, "lib/../lib/a.py")) is True

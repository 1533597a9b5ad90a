"""
Tests for the JSON coverage report.
"""

import json

from singlecov.coverage import BranchSite, RawFileCoverage
from singlecov.reporting import build_report, write_report

RAW = {
    "/x/lib/a.py": RawFileCoverage(
        lines=[None, 1, 1, 1, None, None],
        branches={BranchSite("if", 0, 2, 0, 2, 9): {BranchSite("then", 1, 2, 2, 2, 4): 1}},
    ),
    "/x/lib/other.py": [1],
}


class TestBuildReport:
    """Test building the report document."""

    def test_only_declared_files(self):
        """Test that undeclared files are left out."""
        report = build_report(RAW, ["/x/lib/a.py"], timestamp=123)

        assert list(report) == ["pytest"]
        assert report["pytest"]["timestamp"] == 123
        assert list(report["pytest"]["coverage"]) == ["/x/lib/a.py"]
        assert report["pytest"]["coverage"]["/x/lib/a.py"] == {
            "lines": [None, 1, 1, 1, None, None],
            "branches": {"if:0:2:0:2:9": {"then:1:2:2:2:4": 1}},
        }

    def test_lines_only(self):
        """Test forcing line coverage."""
        report = build_report(RAW, ["/x/lib/a.py"], key="Minitest", lines_only=True)
        assert report["Minitest"]["coverage"] == {"/x/lib/a.py": [None, 1, 1, 1, None, None]}

    def test_timestamp_defaults_to_now(self):
        """Test the default timestamp."""
        assert build_report({}, [])["pytest"]["timestamp"] > 0


class TestWriteReport:
    """Test writing the report."""

    def test_creates_folders(self, tmp_path):
        """Test that parent folders are created."""
        target = tmp_path / "coverage" / ".resultset.json"
        write_report(target, RAW, ["/x/lib/other.py"])

        data = json.loads(target.read_text())
        assert data["pytest"]["coverage"] == {"/x/lib/other.py": [1]}

    def test_replaces_existing_file(self, tmp_path):
        """Test that an unreadable existing report is overwritten."""
        target = tmp_path / "report.json"
        target.write_text("NOT-JSON")

        write_report(target, RAW, [])

        assert json.loads(target.read_text())["pytest"]["coverage"] == {}

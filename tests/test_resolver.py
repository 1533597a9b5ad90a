"""
Tests for PathResolver.
"""

import pytest

from singlecov.errors import (
    ExplicitFileError,
    GuessedFileMissingError,
    NoTestMarkerError,
    PathOutsideRootError,
    ResolutionError,
    UnresolvableTestNameError,
)
from singlecov.resolution import IdentityRewriter, PathResolver, PathRewriter, as_rewriter


@pytest.fixture
def resolver(tmp_path):
    return PathResolver(tmp_path)


class TestGuess:
    """Test convention-based guessing."""

    @pytest.mark.parametrize(
        ("test", "file"),
        [
            ("test/models/xyz_test.py", "app/models/xyz.py"),
            ("test/lib/xyz_test.py", "lib/xyz.py"),
            ("spec/lib/xyz_spec.py", "lib/xyz.py"),
            ("test/xyz_test.py", "lib/xyz.py"),
            ("test/test_xyz.py", "lib/xyz.py"),
            ("tests/test_xyz.py", "lib/xyz.py"),
            ("tests/jobs/test_sync.py", "app/jobs/sync.py"),
            ("plugins/foo/test/lib/xyz_test.py", "plugins/foo/lib/xyz.py"),
            ("plugins/foo/test/models/xyz_test.py", "plugins/foo/app/models/xyz.py"),
        ],
    )
    def test_maps_path(self, resolver, tmp_path, test, file):
        """Test mapping an absolute test path with call-site junk."""
        assert resolver.guess(f"{tmp_path}/{test}:34 in test_foobar") == file

    def test_relative_paths_are_based_on_root(self, resolver):
        """Test that relative test paths are resolved against the root."""
        assert resolver.guess("test/models/widget_test.py") == "app/models/widget.py"
        assert resolver.guess("test/lib/widget_test.py") == "lib/widget.py"

    def test_other_extension(self, tmp_path):
        """Test a resolver configured for another source extension."""
        resolver = PathResolver(tmp_path, extension=".rb")
        assert resolver.guess("test/models/widget_test.rb") == "app/models/widget.rb"
        assert resolver.guess("test/lib/widget_test.rb") == "lib/widget.rb"

    def test_framework_folder_only_checked_first(self, resolver):
        """Test that deeper framework folder names are not searched for."""
        assert resolver.guess("test/public/models/xyz_test.py") == "lib/public/models/xyz.py"

    def test_prefixes_to_ignore(self, tmp_path):
        """Test that ignored leading folders stay in front of app/lib."""
        resolver = PathResolver(tmp_path, prefixes_to_ignore=["public"])
        assert (
            resolver.guess("component/foo/test/public/models/xyz_test.py")
            == "component/foo/public/app/models/xyz.py"
        )
        assert resolver.guess("test/models/xyz_test.py") == "app/models/xyz.py"

    def test_no_test_folder(self, resolver):
        """Test paths without a test folder."""
        with pytest.raises(NoTestMarkerError) as exc_info:
            resolver.guess("oops_test.py")
        assert "oops_test.py includes neither 'test' nor 'tests' nor 'spec' folder" in str(exc_info.value)

    def test_no_test_name(self, resolver):
        """Test files without a test naming convention."""
        with pytest.raises(UnresolvableTestNameError) as exc_info:
            resolver.guess("test/oops.py")
        assert str(exc_info.value) == (
            "Unable to remove test extension from test/oops.py ... "
            "/test_, _test.py and _spec.py are supported"
        )

    def test_outside_root(self, resolver):
        """Test test files outside of the root."""
        with pytest.raises(PathOutsideRootError, match="not relative to the root"):
            resolver.guess("/elsewhere/test/a_test.py")

    def test_errors_are_value_errors(self, resolver):
        """Test the error hierarchy."""
        with pytest.raises(ValueError):
            resolver.guess("oops_test.py")
        with pytest.raises(ResolutionError):
            resolver.guess("test/oops.py")


class TestRewriter:
    """Test the final rewrite hook."""

    def test_function_rewriter(self, tmp_path):
        """Test a plain function as rewriter."""
        resolver = PathResolver(tmp_path, rewriter=lambda path: path.replace("lib/", "src/"))
        assert resolver.guess("test/xyz_test.py") == "src/xyz.py"

    def test_protocol_rewriter(self, tmp_path):
        """Test an object implementing PathRewriter."""

        class Upper:
            def rewrite(self, path: str) -> str:
                return path.upper()

        resolver = PathResolver(tmp_path, rewriter=Upper())
        assert isinstance(resolver.rewriter, PathRewriter)
        assert resolver.guess("test/xyz_test.py") == "LIB/XYZ.PY"

    def test_reset_to_identity(self, tmp_path):
        """Test that None restores the identity rewriter."""
        resolver = PathResolver(tmp_path, rewriter=lambda path: "x")
        resolver.set_rewriter(None)
        assert isinstance(resolver.rewriter, IdentityRewriter)
        assert resolver.guess("test/xyz_test.py") == "lib/xyz.py"

    def test_as_rewriter_keeps_protocol_objects(self):
        """Test that rewriters are not wrapped twice."""
        rewriter = IdentityRewriter()
        assert as_rewriter(rewriter) is rewriter


class TestResolve:
    """Test resolving with existence checks."""

    def test_existing_file(self, resolver, tmp_path):
        """Test resolving to a file that exists."""
        (tmp_path / "lib").mkdir()
        (tmp_path / "lib" / "a.py").write_text("")
        assert resolver.resolve(tmp_path / "test" / "a_test.py") == "lib/a.py"

    def test_missing_file(self, resolver, tmp_path):
        """Test resolving to a file that does not exist."""
        with pytest.raises(GuessedFileMissingError) as exc_info:
            resolver.resolve(tmp_path / "test" / "b_test.py")
        message = str(exc_info.value)
        assert "Tried to guess covered file as lib/b.py, but it does not exist." in message
        assert "covered(file='target_file.py')" in message

    def test_rewrite_to_absolute_path(self, tmp_path):
        """Test that a rewriter may not leave the root."""
        resolver = PathResolver(tmp_path, rewriter=lambda path: "/oops/foo.py")
        with pytest.raises(PathOutsideRootError, match="/oops/foo.py"):
            resolver.resolve("test/a_test.py")

    def test_explicit_file(self, resolver, tmp_path):
        """Test an explicit relative file."""
        (tmp_path / "lib").mkdir()
        (tmp_path / "lib" / "a.py").write_text("")
        assert resolver.resolve_explicit("lib/a.py") == "lib/a.py"

    def test_explicit_file_is_normalized(self, resolver, tmp_path):
        """Test that explicit files match the keys of recorded coverage."""
        (tmp_path / "lib").mkdir()
        (tmp_path / "lib" / "a.py").write_text("")
        assert resolver.resolve_explicit("./lib/a.py") == "lib/a.py"
        assert resolver.resolve_explicit("lib/../lib/a.py") == "lib/a.py"

    def test_explicit_file_outside_root(self, tmp_path):
        """Test that explicit files may not leave the root."""
        (tmp_path / "project").mkdir()
        (tmp_path / "outside.py").write_text("")
        resolver = PathResolver(tmp_path / "project")
        with pytest.raises(PathOutsideRootError, match="not relative to the root"):
            resolver.resolve_explicit("../outside.py")

    def test_explicit_absolute_file(self, resolver, tmp_path):
        """Test that explicit files must be relative."""
        with pytest.raises(ExplicitFileError, match="use paths relative to project root"):
            resolver.resolve_explicit(str(tmp_path / "lib" / "a.py"))

    def test_explicit_missing_file(self, resolver):
        """Test that explicit files must exist."""
        with pytest.raises(ExplicitFileError, match="does not exist"):
            resolver.resolve_explicit("lib/nope.py")

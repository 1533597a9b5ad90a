"""
Exceptions raised by singlecov.

Resolution errors stop a declaration immediately; completeness errors fail a
repository check. Coverage findings are never raised, they are reported by the
audit.
"""


class SingleCovError(Exception):
    """Base class for all singlecov errors."""


# =============================================================================
# Resolution
# =============================================================================

EXPLICIT_FILE_HINT = "Use `singlecov.covered(file='target_file.py')` to set covered file location."


class ResolutionError(SingleCovError, ValueError):
    """A test file could not be mapped to the production file it covers."""


class PathOutsideRootError(ResolutionError):
    """The test file lives outside of the project root."""

    def __init__(self, path: str, root: str) -> None:
        self.path = path
        self.root = root
        super().__init__(
            f"Found file {path} which is not relative to the root {root}.\n{EXPLICIT_FILE_HINT}"
        )


class NoTestMarkerError(ResolutionError):
    """The test path contains no test folder segment."""

    def __init__(self, path: str, markers: tuple[str, ...]) -> None:
        self.path = path
        self.markers = markers
        names = " nor ".join(f"'{m}'" for m in markers)
        super().__init__(f"{path} includes neither {names} folder ... unable to resolve")


class UnresolvableTestNameError(ResolutionError):
    """The test file name follows none of the supported naming conventions."""

    def __init__(self, path: str, extension: str) -> None:
        self.path = path
        super().__init__(
            f"Unable to remove test extension from {path} ... "
            f"/test_, _test{extension} and _spec{extension} are supported"
        )


class GuessedFileMissingError(ResolutionError):
    """The guessed production file does not exist."""

    def __init__(self, guessed: str) -> None:
        self.guessed = guessed
        super().__init__(
            f"Tried to guess covered file as {guessed}, but it does not exist.\n{EXPLICIT_FILE_HINT}"
        )


class ExplicitFileError(ResolutionError):
    """An explicitly declared file is absolute or missing."""

    def __init__(self, file: str, reason: str) -> None:
        self.file = file
        self.reason = reason
        super().__init__(f"{file}: {reason}, use paths relative to project root.")


# =============================================================================
# Completeness
# =============================================================================


class CompletenessError(SingleCovError):
    """The repository is not fully matched up between production and test files."""

    def __init__(self, message: str, files: list[str]) -> None:
        self.files = files
        super().__init__(message)


class StaleAllowListError(CompletenessError):
    """Files allowed to be untested now have a test."""

    def __init__(self, files: list[str]) -> None:
        super().__init__(f"Remove {files!r} from untested!", files)


class MissingTestsError(CompletenessError):
    """Production files without a corresponding test file."""

    def __init__(self, files: list[str]) -> None:
        super().__init__("\n".join(f"missing test for {f}" for f in files), files)


class UndeclaredTestsError(CompletenessError):
    """Test files that never declare what they cover."""

    def __init__(self, files: list[str]) -> None:
        super().__init__(
            "\n".join(f"{f}: needs to use singlecov.covered() or singlecov.not_covered()" for f in files),
            files,
        )


class FullCoverageDriftError(CompletenessError):
    """The list of fully covered test files is out of date."""

    def __init__(self, newly_complete: list[str], lost_coverage: list[str]) -> None:
        self.newly_complete = newly_complete
        self.lost_coverage = lost_coverage
        parts = []
        if newly_complete:
            parts.append(f"Add {newly_complete!r} to currently complete, they are fully covered now")
        if lost_coverage:
            parts.append(f"Remove {lost_coverage!r} from currently complete, they lost coverage")
        super().__init__("\n".join(parts), newly_complete + lost_coverage)

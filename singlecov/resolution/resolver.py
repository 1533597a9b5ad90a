"""
PathResolver - map a test file to the production file it covers.

Convention over configuration: `test/models/widget_test.py` covers
`app/models/widget.py`, `test/widget_test.py` covers `lib/widget.py`.
Layouts that do not follow the convention register a PathRewriter or
declare the covered file explicitly.
"""

import os
import re
from collections.abc import Callable
from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

from singlecov.errors import (
    ExplicitFileError,
    GuessedFileMissingError,
    NoTestMarkerError,
    PathOutsideRootError,
    UnresolvableTestNameError,
)

log = structlog.get_logger()

DEFAULT_TEST_MARKERS = ("test", "tests", "spec")
DEFAULT_FRAMEWORK_FOLDERS = (
    "models",
    "serializers",
    "helpers",
    "controllers",
    "mailers",
    "views",
    "jobs",
    "channels",
)


@runtime_checkable
class PathRewriter(Protocol):
    """Final override applied to every guessed path."""

    def rewrite(self, path: str) -> str:
        """Return the path to use instead of the guessed one."""
        ...


class IdentityRewriter:
    """Leave guessed paths unchanged."""

    def rewrite(self, path: str) -> str:
        return path


class FunctionRewriter:
    """Adapt a plain `str -> str` callable to a PathRewriter."""

    def __init__(self, func: Callable[[str], str]):
        self.func = func

    def rewrite(self, path: str) -> str:
        return self.func(path)


def as_rewriter(rewriter: PathRewriter | Callable[[str], str] | None) -> PathRewriter:
    """Coerce None, a callable or a PathRewriter into a PathRewriter."""
    if rewriter is None:
        return IdentityRewriter()
    if isinstance(rewriter, PathRewriter):
        return rewriter
    return FunctionRewriter(rewriter)


class PathResolver:
    """
    Derive production file paths from test file paths.

    Guessing is a pure string transformation; only `resolve` touches the
    filesystem to check the guess exists.
    """

    def __init__(
        self,
        root: str | Path,
        extension: str = ".py",
        test_markers: tuple[str, ...] | list[str] = DEFAULT_TEST_MARKERS,
        framework_folders: tuple[str, ...] | list[str] = DEFAULT_FRAMEWORK_FOLDERS,
        app_folder: str = "app",
        lib_folder: str = "lib",
        prefixes_to_ignore: tuple[str, ...] | list[str] = (),
        rewriter: PathRewriter | Callable[[str], str] | None = None,
    ):
        """
        Initialize the resolver.

        Args:
            root: Project root all paths are relative to
            extension: Source file extension, including the dot
            test_markers: Folder names that hold tests
            framework_folders: Leading folders that live under `app_folder`
            app_folder: Root folder for framework-convention code
            lib_folder: Root folder for everything else
            prefixes_to_ignore: Leading folders kept in front of app/lib
            rewriter: Final override for guessed paths
        """
        self.root = os.path.normpath(os.path.abspath(root))
        self.extension = extension
        self.test_markers = tuple(test_markers)
        self.framework_folders = tuple(framework_folders)
        self.app_folder = app_folder
        self.lib_folder = lib_folder
        self.prefixes_to_ignore = tuple(prefixes_to_ignore)
        self.rewriter = as_rewriter(rewriter)

        ext = re.escape(extension)
        self._call_site_junk = re.compile(rf"{ext}\b.*", re.DOTALL)
        self._marker_split = re.compile(
            rf"(?:^|/)(?:{'|'.join(re.escape(m) for m in self.test_markers)})/"
        )
        self._framework_folder = re.compile(
            rf"^(?:{'|'.join(re.escape(f) for f in self.framework_folders)})/"
        )
        self._test_suffix = re.compile(rf"_(?:test|spec){ext}\b.*", re.DOTALL)

    def set_rewriter(self, rewriter: PathRewriter | Callable[[str], str] | None) -> None:
        """Replace the rewriter; None restores the identity transform."""
        self.rewriter = as_rewriter(rewriter)

    def relative(self, path: str | Path) -> str:
        """
        Make a path relative to the root.

        Raises:
            PathOutsideRootError: If the path is not below the root.
        """
        absolute = os.path.normpath(os.path.join(self.root, str(path)))
        if absolute != self.root and not absolute.startswith(self.root + os.sep):
            raise PathOutsideRootError(absolute, self.root)
        return os.path.relpath(absolute, self.root).replace(os.sep, "/")

    def guess(self, test_path: str | Path) -> str:
        """
        Guess the production file covered by a test file.

        Args:
            test_path: Test file path, absolute or relative to the root; may
                carry call-site junk such as `:12 in test_foo`

        Returns:
            Guessed production path relative to the root

        Raises:
            PathOutsideRootError: If the test file is outside of the root.
            NoTestMarkerError: If no test folder is part of the path.
            UnresolvableTestNameError: If the file name is not a test name.
        """
        file = self._call_site_junk.sub(self.extension, str(test_path), count=1)
        file = self.relative(file)

        parts = self._marker_split.split(file, maxsplit=1)
        if len(parts) < 2:
            raise NoTestMarkerError(file, self.test_markers)
        subfolder, file_part = parts

        kept_prefix = ""
        for prefix in self.prefixes_to_ignore:
            if file_part.startswith(f"{prefix}/"):
                kept_prefix = f"{prefix}/"
                file_part = file_part[len(kept_prefix) :]
                break

        if self._framework_folder.match(file_part):
            file_part = f"{self.app_folder}/{file_part}"
        elif not file_part.startswith(f"{self.lib_folder}/"):
            file_part = f"{self.lib_folder}/{file_part}"

        file_part, replaced = self._test_suffix.subn(self.extension, file_part, count=1)
        if not replaced:
            file_part, replaced = re.subn(r"/test_", "/", file_part, count=1)
        if not replaced:
            raise UnresolvableTestNameError(file, self.extension)

        file_part = kept_prefix + file_part
        if subfolder:
            file_part = f"{subfolder}/{file_part}"

        return self.rewriter.rewrite(file_part)

    def resolve(self, caller_path: str | Path) -> str:
        """
        Guess the covered file and check it exists.

        Raises:
            PathOutsideRootError: If the guess is outside of the root.
            GuessedFileMissingError: If the guessed file does not exist.
        """
        guessed = self.guess(caller_path)
        if guessed.startswith("/"):
            raise PathOutsideRootError(guessed, self.root)
        if not os.path.exists(os.path.join(self.root, guessed)):
            raise GuessedFileMissingError(guessed)
        log.debug("resolved_covered_file", test=str(caller_path), file=guessed)
        return guessed

    def resolve_explicit(self, file: str | Path) -> str:
        """
        Validate an explicitly declared covered file.

        Raises:
            ExplicitFileError: If the path is absolute or does not exist.
            PathOutsideRootError: If the path leaves the root.
        """
        file = str(file)
        if os.path.isabs(file):
            raise ExplicitFileError(file, "absolute paths are not supported")
        if not os.path.exists(os.path.join(self.root, file)):
            raise ExplicitFileError(file, "does not exist")
        return self.relative(file)

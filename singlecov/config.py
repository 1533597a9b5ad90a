"""
Configuration loading and validation.

Settings live in `singlecov.yaml` at the project root; every field has a
default so the file is optional.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from singlecov.coverage.engine import UNCOVERED_COMMENT_MARKER
from singlecov.enforcement.auditor import MAX_OUTPUT
from singlecov.enforcement.completeness import DEFAULT_PRODUCTION_PATTERNS, DEFAULT_TEST_PATTERNS
from singlecov.resolution.resolver import (
    DEFAULT_FRAMEWORK_FOLDERS,
    DEFAULT_TEST_MARKERS,
    PathResolver,
)

CONFIG_FILE_NAME = "singlecov.yaml"


class SingleCovConfig(BaseModel):
    """Settings for declaration, audit and repository checks."""

    root: Path = Field(default_factory=Path.cwd, description="Project root")
    branches: bool = Field(default=True, description="Record branch coverage")
    extension: str = Field(default=".py", description="Source file extension")
    test_markers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TEST_MARKERS),
        description="Folder names that hold tests",
    )
    framework_folders: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FRAMEWORK_FOLDERS),
        description="Leading folders that live under app_folder",
    )
    app_folder: str = Field(default="app", description="Root folder of framework code")
    lib_folder: str = Field(default="lib", description="Root folder of all other code")
    prefixes_to_ignore: list[str] = Field(
        default_factory=list, description="Leading folders kept in front of app/lib"
    )
    production_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PRODUCTION_PATTERNS),
        description="Globs selecting production files",
    )
    test_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TEST_PATTERNS),
        description="Globs selecting test files",
    )
    allowed_untested: list[str] = Field(
        default_factory=list, description="Production files known to have no test"
    )
    currently_complete: list[str] = Field(
        default_factory=list, description="Test files known to cover their file fully"
    )
    expectations: dict[str, int] = Field(
        default_factory=dict, description="Declared files and uncovered counts for `singlecov audit`"
    )
    report_path: str | None = Field(default=None, description="Coverage report output file")
    report_lines_only: bool = Field(default=False, description="Write only line coverage")
    report_key: str = Field(default="pytest", description="Top-level key of the report")
    max_output: int = Field(default=MAX_OUTPUT, gt=0, description="Diagnostics shown at most")
    uncovered_marker: str = Field(
        default=UNCOVERED_COMMENT_MARKER, description="Regex marking intentionally uncovered lines"
    )

    @field_validator("extension")
    @classmethod
    def extension_has_dot(cls, v: str) -> str:
        """Validate that the extension starts with a dot."""
        if not v.startswith("."):
            raise ValueError(f"Extension must start with a dot: {v!r}")
        return v

    @field_validator("expectations")
    @classmethod
    def counts_not_negative(cls, v: dict[str, int]) -> dict[str, int]:
        """Validate that expected uncovered counts are not negative."""
        negative = [file for file, count in v.items() if count < 0]
        if negative:
            raise ValueError(f"Expected uncovered counts must not be negative: {negative}")
        return v

    def build_resolver(self) -> PathResolver:
        """Create a PathResolver from these settings."""
        return PathResolver(
            root=self.root,
            extension=self.extension,
            test_markers=self.test_markers,
            framework_folders=self.framework_folders,
            app_folder=self.app_folder,
            lib_folder=self.lib_folder,
            prefixes_to_ignore=self.prefixes_to_ignore,
        )


class ConfigLoader:
    """Load SingleCovConfig from YAML files or dictionaries."""

    @classmethod
    def from_yaml(cls, path: str | Path) -> SingleCovConfig:
        """
        Load configuration from a YAML file.

        A relative `root` in the file is resolved against the file's folder;
        a missing `root` defaults to that folder.

        Args:
            path: Path to YAML configuration file

        Returns:
            SingleCovConfig loaded from file
        """
        path = Path(path)
        if not path.exists():
            msg = f"Configuration file not found: {path}"
            raise FileNotFoundError(msg)

        with path.open() as f:
            data = yaml.safe_load(f) or {}

        base = path.resolve().parent
        root = Path(data.get("root") or base)
        data["root"] = root if root.is_absolute() else base / root
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SingleCovConfig:
        """Create configuration from a dictionary."""
        return SingleCovConfig.model_validate(data)

    @classmethod
    def discover(cls, start: str | Path | None = None) -> SingleCovConfig:
        """
        Load the nearest `singlecov.yaml` from `start` upwards.

        Returns:
            Loaded configuration, or defaults rooted at `start`
        """
        start = Path(start or os.getcwd()).resolve()
        for folder in [start, *start.parents]:
            candidate = folder / CONFIG_FILE_NAME
            if candidate.is_file():
                return cls.from_yaml(candidate)
        return SingleCovConfig(root=start)

    @classmethod
    def generate_sample_config(cls) -> str:
        """
        Generate a sample YAML configuration file.

        Returns:
            YAML string for sample configuration
        """
        sample = {
            "branches": True,
            "extension": ".py",
            "test_markers": list(DEFAULT_TEST_MARKERS),
            "app_folder": "app",
            "lib_folder": "lib",
            "prefixes_to_ignore": [],
            "allowed_untested": [],
            "currently_complete": [],
            "report_path": None,
            "report_lines_only": False,
            "max_output": MAX_OUTPUT,
        }
        return yaml.dump(sample, default_flow_style=False, sort_keys=False)

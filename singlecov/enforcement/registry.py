"""
CoverageRegistry - declared coverage expectations of one test process.

Test modules append expectations while they load; the audit reads them once
at the end of the run. The registry remembers which process made the
declarations so forked workers holding a copy never audit.
"""

import os
from collections.abc import Callable, Hashable, Iterator
from dataclasses import dataclass

import structlog

log = structlog.get_logger()

IdentityProvider = Callable[[], Hashable]


@dataclass(frozen=True)
class CoverageExpectation:
    """A test file's claim about the production file it covers."""

    file: str
    expected_uncovered: int = 0

    def __post_init__(self) -> None:
        if self.expected_uncovered < 0:
            raise ValueError(
                f"Expected uncovered count must not be negative, got {self.expected_uncovered} for {self.file}"
            )


class CoverageRegistry:
    """Append-only list of coverage expectations with an owner token.

    Declaring the same file twice keeps both entries; each is checked
    against the same raw coverage.
    """

    def __init__(self, identity_provider: IdentityProvider | None = None) -> None:
        """
        Initialize an empty registry.

        Args:
            identity_provider: Returns the identity of the current process
                (defaults to the process id)
        """
        self.identity_provider = identity_provider or os.getpid
        self._expectations: list[CoverageExpectation] = []
        self._owner: Hashable | None = None

    def declare(self, file: str, expected_uncovered: int = 0) -> CoverageExpectation:
        """Record that `file` is covered with `expected_uncovered` gaps."""
        expectation = CoverageExpectation(file=file, expected_uncovered=expected_uncovered)
        self._expectations.append(expectation)
        self.claim()
        log.debug("declared_coverage", file=file, expected_uncovered=expected_uncovered)
        return expectation

    def claim(self) -> None:
        """Make the current process the one that audits."""
        self._owner = self.identity_provider()

    @property
    def owner(self) -> Hashable | None:
        return self._owner

    def is_owner(self) -> bool:
        """Whether the current process may audit this registry."""
        return self._owner is None or self._owner == self.identity_provider()

    @property
    def running_single_file(self) -> bool:
        """Best-effort guess that only one test file was run."""
        return len(self._expectations) == 1

    def files(self) -> list[str]:
        """Declared files, in declaration order, without duplicates."""
        return list(dict.fromkeys(e.file for e in self._expectations))

    def clear(self) -> None:
        """Forget all expectations and the owner."""
        self._expectations.clear()
        self._owner = None

    def __iter__(self) -> Iterator[CoverageExpectation]:
        return iter(list(self._expectations))

    def __len__(self) -> int:
        return len(self._expectations)

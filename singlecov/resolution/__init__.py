"""
singlecov path resolution.

Maps test files to the production files they cover.
"""

from singlecov.resolution.resolver import (
    DEFAULT_FRAMEWORK_FOLDERS,
    DEFAULT_TEST_MARKERS,
    FunctionRewriter,
    IdentityRewriter,
    PathResolver,
    PathRewriter,
    as_rewriter,
)

__all__ = [
    "DEFAULT_FRAMEWORK_FOLDERS",
    "DEFAULT_TEST_MARKERS",
    "FunctionRewriter",
    "IdentityRewriter",
    "PathResolver",
    "PathRewriter",
    "as_rewriter",
]

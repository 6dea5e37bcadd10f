"""Classification of git failure output into error categories."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class GitErrorCategory(Enum):
    """Categories of git failures for appropriate handling."""
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    REPOSITORY_ACCESS = "repository_access"
    BRANCH_DETECTION = "branch_detection"
    REPOSITORY_CORRUPTION = "repository_corruption"
    LOCAL_CHANGES = "local_changes"
    NOT_FAST_FORWARD = "not_fast_forward"
    UNKNOWN = "unknown"


@dataclass
class GitErrorStrategy:
    """How a category is surfaced: error code suffix and operator hint."""
    category: GitErrorCategory
    code: str
    hint: str


def build_error_strategies() -> Dict[GitErrorCategory, GitErrorStrategy]:
    """Build the operator-facing strategy for each error category."""
    return {
        GitErrorCategory.NETWORK: GitErrorStrategy(
            category=GitErrorCategory.NETWORK,
            code="REMOTE_UNREACHABLE",
            hint="check the network connection; the next tick retries automatically"
        ),
        GitErrorCategory.AUTHENTICATION: GitErrorStrategy(
            category=GitErrorCategory.AUTHENTICATION,
            code="CREDENTIAL_REJECTED",
            hint="verify the personal access token is valid and has read access"
        ),
        GitErrorCategory.REPOSITORY_ACCESS: GitErrorStrategy(
            category=GitErrorCategory.REPOSITORY_ACCESS,
            code="REMOTE_NOT_FOUND",
            hint="verify remote_url points at an existing repository"
        ),
        GitErrorCategory.BRANCH_DETECTION: GitErrorStrategy(
            category=GitErrorCategory.BRANCH_DETECTION,
            code="REMOTE_BRANCH_NOT_FOUND",
            hint="verify target_branch exists on the remote"
        ),
        GitErrorCategory.REPOSITORY_CORRUPTION: GitErrorStrategy(
            category=GitErrorCategory.REPOSITORY_CORRUPTION,
            code="LOCAL_REPO_CORRUPTED",
            hint="run 'git fsck' in the working copy or re-clone it"
        ),
        GitErrorCategory.LOCAL_CHANGES: GitErrorStrategy(
            category=GitErrorCategory.LOCAL_CHANGES,
            code="LOCAL_CHANGES_BLOCK_UPDATE",
            hint="commit, stash or discard local edits in the working copy"
        ),
        GitErrorCategory.NOT_FAST_FORWARD: GitErrorStrategy(
            category=GitErrorCategory.NOT_FAST_FORWARD,
            code="NOT_FAST_FORWARD",
            hint="the local branch has diverged from the remote and needs manual attention"
        ),
        GitErrorCategory.UNKNOWN: GitErrorStrategy(
            category=GitErrorCategory.UNKNOWN,
            code="GIT_ERROR",
            hint="see the git output above"
        ),
    }


def build_error_patterns() -> Dict[str, GitErrorCategory]:
    """Build mapping of error patterns to categories. First match wins."""
    return {
        # Local changes in the way of a fast-forward
        "would be overwritten by merge": GitErrorCategory.LOCAL_CHANGES,
        "your local changes": GitErrorCategory.LOCAL_CHANGES,
        "untracked working tree files": GitErrorCategory.LOCAL_CHANGES,

        # Diverged history
        "not possible to fast-forward": GitErrorCategory.NOT_FAST_FORWARD,
        "diverging branches": GitErrorCategory.NOT_FAST_FORWARD,

        # Authentication errors
        "authentication failed": GitErrorCategory.AUTHENTICATION,
        "could not read username": GitErrorCategory.AUTHENTICATION,
        "could not read password": GitErrorCategory.AUTHENTICATION,
        "permission denied": GitErrorCategory.AUTHENTICATION,
        "invalid credentials": GitErrorCategory.AUTHENTICATION,
        "forbidden": GitErrorCategory.AUTHENTICATION,
        "returned error: 401": GitErrorCategory.AUTHENTICATION,
        "returned error: 403": GitErrorCategory.AUTHENTICATION,

        # Repository access errors
        "repository not found": GitErrorCategory.REPOSITORY_ACCESS,
        "does not appear to be a git repository": GitErrorCategory.REPOSITORY_ACCESS,
        "could not read from remote repository": GitErrorCategory.REPOSITORY_ACCESS,
        "returned error: 404": GitErrorCategory.REPOSITORY_ACCESS,

        # Network errors
        "could not resolve host": GitErrorCategory.NETWORK,
        "connection refused": GitErrorCategory.NETWORK,
        "network is unreachable": GitErrorCategory.NETWORK,
        "connection timed out": GitErrorCategory.NETWORK,
        "timed out": GitErrorCategory.NETWORK,
        "did not complete in": GitErrorCategory.NETWORK,
        "no route to host": GitErrorCategory.NETWORK,
        "temporary failure in name resolution": GitErrorCategory.NETWORK,
        "unable to access": GitErrorCategory.NETWORK,

        # Branch errors
        "couldn't find remote ref": GitErrorCategory.BRANCH_DETECTION,
        "unknown revision": GitErrorCategory.BRANCH_DETECTION,
        "no such branch": GitErrorCategory.BRANCH_DETECTION,

        # Repository corruption
        "not a git repository": GitErrorCategory.REPOSITORY_CORRUPTION,
        "corrupt": GitErrorCategory.REPOSITORY_CORRUPTION,
        "invalid object": GitErrorCategory.REPOSITORY_CORRUPTION,
        "loose object": GitErrorCategory.REPOSITORY_CORRUPTION,
        "bad object": GitErrorCategory.REPOSITORY_CORRUPTION,
    }


_ERROR_PATTERNS = build_error_patterns()
_ERROR_STRATEGIES = build_error_strategies()


def categorize_error(error_message: Optional[str]) -> GitErrorCategory:
    """
    Categorize git failure output by the first matching pattern.

    Args:
        error_message: stderr or exception text from git

    Returns:
        GitErrorCategory, UNKNOWN when nothing matches
    """
    if not error_message:
        return GitErrorCategory.UNKNOWN

    error_lower = error_message.lower()
    for pattern, category in _ERROR_PATTERNS.items():
        if pattern in error_lower:
            logging.getLogger('autosync.sync.error_strategies').debug(
                f"Categorized error as {category}: pattern '{pattern}' found"
            )
            return category
    return GitErrorCategory.UNKNOWN


def strategy_for(category: GitErrorCategory) -> GitErrorStrategy:
    """Return the strategy registered for a category."""
    return _ERROR_STRATEGIES[category]

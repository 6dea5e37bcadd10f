"""Revision comparator: local HEAD against the remote branch tip."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .backend import VersionControlBackend
from .performance_logger import PerformanceLogger, get_performance_logger
from .repository import RepositoryLocation


@dataclass(frozen=True)
class ComparisonResult:
    """Local and remote identifiers and whether they are identical."""
    local_id: str
    remote_id: str
    matches: bool = field(init=False)

    def __post_init__(self):
        # Exact equality only, no prefix matching of abbreviated hashes
        object.__setattr__(self, "matches", self.local_id == self.remote_id)


class RevisionComparator:
    """
    Compares the local HEAD identifier with the remote branch identifier.

    Performs no retries: NetworkError and LocalRepositoryError from the
    backend reach the caller unchanged.
    """

    def __init__(
        self,
        backend: VersionControlBackend,
        perf_logger: Optional[PerformanceLogger] = None
    ):
        self.backend = backend
        self.perf_logger = perf_logger or get_performance_logger()
        self.logger = logging.getLogger('autosync.sync.comparator')

    def compare(self, repo: RepositoryLocation) -> ComparisonResult:
        """
        Query both identifiers and compare them.

        The local identifier is resolved first so a broken working copy is
        reported without a network round trip.

        Raises:
            LocalRepositoryError: The working copy is missing or invalid
            NetworkError: The remote is unreachable or rejected the credential
        """
        with self.perf_logger.time_operation("compare", context={"branch": repo.branch}):
            local_id = self.backend.local_head(repo).strip()
            remote_id = self.backend.remote_head(repo).strip()

        result = ComparisonResult(local_id=local_id, remote_id=remote_id)
        self.logger.debug(
            f"Compared local {local_id[:12]} with remote {remote_id[:12]}: "
            f"{'match' if result.matches else 'mismatch'}"
        )
        return result

"""Revision comparison and reconciliation for AutoSync."""

from .backend import VersionControlBackend, GitPythonBackend
from .azure_devops import AzureDevOpsBackend
from .comparator import ComparisonResult, RevisionComparator
from .loop import ReconciliationLoop
from .repository import RepositoryLocation
from .state import SyncState, TickOutcome

__all__ = [
    'VersionControlBackend',
    'GitPythonBackend',
    'AzureDevOpsBackend',
    'ComparisonResult',
    'RevisionComparator',
    'ReconciliationLoop',
    'RepositoryLocation',
    'SyncState',
    'TickOutcome'
]

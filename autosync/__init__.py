"""
AutoSync - keeps a local git working copy on the tip of a remote branch.

The reconciliation loop polls the remote, compares commit identifiers and
fast-forwards the working copy whenever it falls behind.
"""

__version__ = "1.0.0"
__description__ = "Keeps a local working copy synchronized with a remote branch"

from .runner import main

__all__ = ["main"]

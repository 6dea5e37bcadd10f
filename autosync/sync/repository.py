"""Repository location and credential handling."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from urllib.parse import quote, urlsplit, urlunsplit

REDACTED = "***"


@dataclass(frozen=True)
class RepositoryLocation:
    """
    Where the working copy lives and which remote branch it follows.

    Immutable for the lifetime of the process. The token never appears in
    ``repr()``; use ``redact()`` on any text that may contain it.
    """
    path: Path
    remote_url: str
    branch: str
    token: Optional[str] = field(default=None, repr=False)
    username: Optional[str] = None

    @property
    def branch_ref(self) -> str:
        """Fully qualified ref of the tracked branch."""
        return f"refs/heads/{self.branch}"

    @property
    def authenticated_url(self) -> str:
        """Remote URL with the token embedded as HTTPS basic credentials."""
        parts = urlsplit(self.remote_url)
        if not self.token or parts.scheme not in ("http", "https"):
            return self.remote_url

        # Drop any userinfo already present, e.g. "https://org@dev.azure.com/..."
        host = parts.hostname or ""
        if parts.port:
            host = f"{host}:{parts.port}"
        user = self.username or parts.username or "autosync"
        netloc = f"{quote(user, safe='')}:{quote(self.token, safe='')}@{host}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))

    def redact(self, text: str) -> str:
        """Remove the token, raw or URL-quoted, from text."""
        if not self.token or not text:
            return text
        for secret in {self.token, quote(self.token, safe='')}:
            text = text.replace(secret, REDACTED)
        return text

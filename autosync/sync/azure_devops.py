"""Azure DevOps REST query for the latest commit on the remote branch."""

from typing import Optional
from urllib.parse import quote

import httpx

from ..errors import NetworkError
from .backend import GitPythonBackend
from .error_strategies import GitErrorCategory, strategy_for
from .repository import RepositoryLocation

AZURE_DEVOPS_API = "https://dev.azure.com"
API_VERSION = "7.0"


class AzureDevOpsBackend(GitPythonBackend):
    """
    Git backend whose remote query goes through the Azure DevOps commits API.

    Local HEAD resolution and the fast-forward update still run through git.
    """

    def __init__(
        self,
        organization: str,
        project: str,
        repository: str,
        http_timeout: float = 15.0,
        git_timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        super().__init__(git_timeout=git_timeout)
        self.organization = organization
        self.project = project
        self.repository = repository
        self.http_timeout = http_timeout
        self._transport = transport

    @property
    def commits_url(self) -> str:
        """Commits endpoint of the configured repository."""
        return (
            f"{AZURE_DEVOPS_API}/{quote(self.organization, safe='')}/{quote(self.project, safe='')}"
            f"/_apis/git/repositories/{quote(self.repository, safe='')}/commits"
        )

    def remote_head(self, location: RepositoryLocation) -> str:
        params = {
            "searchCriteria.itemVersion.version": location.branch,
            "searchCriteria.itemVersion.versionType": "branch",
            "searchCriteria.$top": "1",
            "api-version": API_VERSION,
        }
        auth = ("", location.token) if location.token else None

        try:
            with httpx.Client(timeout=self.http_timeout, transport=self._transport) as client:
                response = client.get(self.commits_url, params=params, auth=auth)
                response.raise_for_status()
                # Azure DevOps answers a rejected PAT with a 203 sign-in page
                if response.status_code == 203:
                    raise self._credential_rejected(203)
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status in (401, 403):
                raise self._credential_rejected(status)
            if status == 404:
                strategy = strategy_for(GitErrorCategory.REPOSITORY_ACCESS)
                raise NetworkError(
                    f"Azure DevOps repository {self.organization}/{self.project}/{self.repository} "
                    f"or branch '{location.branch}' not found",
                    error_code=strategy.code,
                    hint=strategy.hint
                )
            raise NetworkError(f"Azure DevOps API error: {status}", error_code="REMOTE_API_ERROR")
        except httpx.RequestError as exc:
            strategy = strategy_for(GitErrorCategory.NETWORK)
            raise NetworkError(
                f"Failed to reach Azure DevOps API: {location.redact(str(exc))}",
                error_code=strategy.code,
                hint=strategy.hint
            )
        except ValueError as exc:
            raise NetworkError(
                f"Azure DevOps API returned an unreadable response: {exc}",
                error_code="REMOTE_BAD_RESPONSE"
            )

        self.logger.debug("Received latest commit from Azure DevOps")

        commits = payload.get("value") if isinstance(payload, dict) else None
        if not commits:
            strategy = strategy_for(GitErrorCategory.BRANCH_DETECTION)
            raise NetworkError(
                f"No commits reported for branch '{location.branch}'",
                error_code=strategy.code,
                hint=strategy.hint
            )

        # Newest commit comes first
        commit_id = commits[0].get("commitId") if isinstance(commits[0], dict) else None
        if not isinstance(commit_id, str) or not commit_id:
            raise NetworkError(
                "Azure DevOps API response is missing commitId",
                error_code="REMOTE_BAD_RESPONSE"
            )
        return commit_id

    def _credential_rejected(self, status: int) -> NetworkError:
        strategy = strategy_for(GitErrorCategory.AUTHENTICATION)
        return NetworkError(
            f"Azure DevOps rejected the access token (HTTP {status})",
            error_code=strategy.code,
            hint=strategy.hint
        )

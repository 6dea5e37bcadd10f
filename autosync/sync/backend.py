"""Version-control backends used by the comparator and the reconciliation loop."""

import logging
from abc import ABC, abstractmethod
from typing import Type

from git import Repo, GitCommandError, InvalidGitRepositoryError, NoSuchPathError, SymbolicReference
from git.cmd import Git

from ..errors import AutoSyncError, LocalRepositoryError, NetworkError, UpdateActionError
from .error_strategies import GitErrorCategory, categorize_error, strategy_for
from .repository import RepositoryLocation

# Never let git block an unattended process on a credential prompt
NON_INTERACTIVE_ENV = {"GIT_TERMINAL_PROMPT": "0"}


class VersionControlBackend(ABC):
    """The three capabilities the reconciliation core depends on."""

    @abstractmethod
    def local_head(self, location: RepositoryLocation) -> str:
        """Return the revision identifier of the local HEAD."""

    @abstractmethod
    def remote_head(self, location: RepositoryLocation) -> str:
        """Return the latest revision identifier of the remote branch."""

    @abstractmethod
    def fast_forward(self, location: RepositoryLocation, target_id: str) -> None:
        """Fetch the remote branch and fast-forward the local branch to target_id."""


class GitPythonBackend(VersionControlBackend):
    """
    Git backend built on GitPython.

    Remote queries use ``git ls-remote`` against the credential-bearing URL,
    so no remote needs to be configured in the working copy and the query
    leaves local state untouched.
    """

    def __init__(self, git_timeout: float = 60.0):
        """
        Initialize the backend.

        Args:
            git_timeout: Seconds after which a network git command is killed
        """
        self.git_timeout = git_timeout
        self.logger = logging.getLogger('autosync.sync.backend')

    def local_head(self, location: RepositoryLocation) -> str:
        repo = self._open_repository(location)
        with repo:
            try:
                commit_id = repo.head.commit.hexsha
            except ValueError as e:
                raise self._unresolvable_head(repo, location, e)
            except GitCommandError as e:
                raise self._classified_error(location, e, LocalRepositoryError)

        self.logger.debug(f"Local commit ID: {commit_id}")
        return commit_id

    def remote_head(self, location: RepositoryLocation) -> str:
        git_cmd = Git()
        try:
            with git_cmd.custom_environment(**NON_INTERACTIVE_ENV):
                output = git_cmd.ls_remote(
                    location.authenticated_url,
                    location.branch_ref,
                    kill_after_timeout=self.git_timeout
                )
        except GitCommandError as e:
            raise self._classified_error(location, e, NetworkError)

        for line in output.splitlines():
            commit_id, _, ref = line.partition("\t")
            if ref.strip() == location.branch_ref:
                self.logger.debug(f"Remote commit ID: {commit_id}")
                return commit_id.strip()

        strategy = strategy_for(GitErrorCategory.BRANCH_DETECTION)
        raise NetworkError(
            f"Branch '{location.branch}' not found on remote {location.redact(location.remote_url)}",
            error_code=strategy.code,
            hint=strategy.hint
        )

    def fast_forward(self, location: RepositoryLocation, target_id: str) -> None:
        try:
            repo = self._open_repository(location)
        except LocalRepositoryError as e:
            raise UpdateActionError(e.message, error_code=e.error_code, hint=e.hint)

        with repo:
            try:
                with repo.git.custom_environment(**NON_INTERACTIVE_ENV):
                    repo.git.fetch(
                        location.authenticated_url,
                        location.branch_ref,
                        kill_after_timeout=self.git_timeout
                    )
                    repo.git.merge("--ff-only", target_id)
            except GitCommandError as e:
                raise self._classified_error(location, e, UpdateActionError)

            head_id = repo.head.commit.hexsha

        if head_id != target_id:
            strategy = strategy_for(GitErrorCategory.NOT_FAST_FORWARD)
            raise UpdateActionError(
                f"HEAD is at {head_id} after update, expected {target_id}",
                error_code="UPDATE_NOT_APPLIED",
                hint=strategy.hint
            )
        self.logger.info(f"Fast-forwarded {location.path} to {target_id}")

    def _open_repository(self, location: RepositoryLocation) -> Repo:
        """Open the working copy, mapping GitPython failures to LocalRepositoryError."""
        try:
            return Repo(location.path)
        except NoSuchPathError:
            raise LocalRepositoryError(
                f"Working copy not found: {location.path}",
                error_code="LOCAL_REPO_MISSING",
                hint="check repo_path or clone the repository there"
            )
        except InvalidGitRepositoryError:
            raise LocalRepositoryError(
                f"Not a git checkout: {location.path}",
                error_code="LOCAL_REPO_INVALID",
                hint="repo_path must point at the root of a git working copy"
            )

    def _unresolvable_head(
        self,
        repo: Repo,
        location: RepositoryLocation,
        error: ValueError
    ) -> LocalRepositoryError:
        """Tell an unborn branch apart from a HEAD naming a missing object."""
        try:
            SymbolicReference.dereference_recursive(repo, "HEAD")
        except ValueError:
            return LocalRepositoryError(
                f"Working copy at {location.path} has no commits: {error}",
                error_code="LOCAL_REPO_EMPTY",
                hint="commit to the branch or clone a repository that has history"
            )

        strategy = strategy_for(GitErrorCategory.REPOSITORY_CORRUPTION)
        return LocalRepositoryError(
            f"HEAD of {location.path} points at an unreadable commit: {error}",
            error_code=strategy.code,
            hint=strategy.hint
        )

    def _classified_error(
        self,
        location: RepositoryLocation,
        error: GitCommandError,
        error_type: Type[AutoSyncError]
    ) -> AutoSyncError:
        """Build a redacted, categorized error of the given type from a git failure."""
        stderr = error.stderr.strip() if isinstance(error.stderr, str) else ""
        detail = location.redact(stderr or str(error))
        category = categorize_error(detail)
        strategy = strategy_for(category)
        error_code = strategy.code if category != GitErrorCategory.UNKNOWN else error_type.default_code

        self.logger.debug(f"git failure categorized as {category.value}")
        return error_type(
            f"git exited with status {error.status}: {detail}",
            error_code=error_code,
            hint=strategy.hint
        )

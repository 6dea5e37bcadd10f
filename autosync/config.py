"""Configuration management for AutoSync."""

import logging
import os
import sys
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, List, Dict, Any

from dotenv import load_dotenv
from git import GitCommandNotFound
from git.cmd import Git

from .errors import ConfigurationError
from .sync.repository import RepositoryLocation

CONFIG_FILENAME = "config.toml"
ENV_PREFIX = "AUTOSYNC_"
AZURE_DEVOPS_HOST = "https://dev.azure.com"


@dataclass
class Config:
    """Configuration class for AutoSync with validation and defaults."""

    # Repository
    repo_path: Path
    remote_url: Optional[str] = None
    target_branch: str = "main"
    pat: Optional[str] = None

    # Azure DevOps coordinates (optional, enables the REST remote query)
    organization: Optional[str] = None
    project: Optional[str] = None
    repository: Optional[str] = None

    # Polling
    check_interval_seconds: float = 20
    failure_alert_threshold: int = 5

    # Timeouts
    git_timeout_seconds: float = 60.0
    http_timeout_seconds: float = 15.0

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.repo_path, str):
            self.repo_path = Path(self.repo_path)
        if not isinstance(self.repo_path, Path):
            raise ValueError(f"repo_path must be a string, got {type(self.repo_path).__name__}")
        self.repo_path = self.repo_path.expanduser()

        if isinstance(self.log_file, str):
            self.log_file = Path(self.log_file) if self.log_file else None
        if self.log_file is not None and not isinstance(self.log_file, Path):
            raise ValueError(f"log_file must be a string, got {type(self.log_file).__name__}")

        for name in ("remote_url", "pat", "organization", "project", "repository"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{name} must be a string, got {type(value).__name__}")
        for name in ("target_branch", "log_level"):
            value = getattr(self, name)
            if not isinstance(value, str):
                raise ValueError(f"{name} must be a string, got {type(value).__name__}")
        for name in _FIELD_TYPES:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number, got {type(value).__name__}")

        if not self.remote_url and self.uses_azure_devops:
            self.remote_url = (
                f"{AZURE_DEVOPS_HOST}/{self.organization}/{self.project}/_git/{self.repository}"
            )
        if not self.remote_url:
            raise ValueError(
                "remote_url is required (or organization, project and repository for Azure DevOps)"
            )

        if not self.target_branch or not self.target_branch.strip():
            raise ValueError("target_branch must not be empty")
        self.target_branch = self.target_branch.strip()

        self.log_level = self.log_level.upper()
        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level not in valid_log_levels:
            raise ValueError(f"Invalid log level: {self.log_level}. Must be one of {valid_log_levels}")

        if self.check_interval_seconds <= 0:
            raise ValueError("check_interval_seconds must be positive")

        if self.failure_alert_threshold <= 0:
            raise ValueError("failure_alert_threshold must be positive")

        if self.git_timeout_seconds <= 0 or self.http_timeout_seconds <= 0:
            raise ValueError("timeouts must be positive")

    @property
    def uses_azure_devops(self) -> bool:
        """True when all Azure DevOps coordinates are configured."""
        return bool(self.organization and self.project and self.repository)

    @property
    def repository_location(self) -> RepositoryLocation:
        """Repository location handed to the comparator and backend."""
        return RepositoryLocation(
            path=self.repo_path,
            remote_url=self.remote_url,
            branch=self.target_branch,
            token=self.pat or None,
            username=self.organization
        )


_FIELD_TYPES = {
    "check_interval_seconds": float,
    "failure_alert_threshold": int,
    "git_timeout_seconds": float,
    "http_timeout_seconds": float,
}


def default_config_path() -> Path:
    """
    Locate the configuration file.

    AUTOSYNC_CONFIG wins; otherwise config.toml next to the executable,
    falling back to the current working directory.
    """
    env_path = os.getenv(f"{ENV_PREFIX}CONFIG")
    if env_path:
        return Path(env_path).expanduser()

    beside_executable = Path(sys.argv[0]).resolve().parent / CONFIG_FILENAME
    if beside_executable.exists():
        return beside_executable
    return Path.cwd() / CONFIG_FILENAME


def _coerce(name: str, value: Any) -> Any:
    """Convert environment strings to the type the field expects."""
    target = _FIELD_TYPES.get(name)
    if target is None or not isinstance(value, str):
        return value
    try:
        return target(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


def _environment_overrides() -> Dict[str, str]:
    """Collect AUTOSYNC_<FIELD> overrides from the environment."""
    overrides = {}
    for config_field in fields(Config):
        value = os.getenv(f"{ENV_PREFIX}{config_field.name.upper()}")
        if value is not None:
            overrides[config_field.name] = value
    return overrides


def load_configuration(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from a TOML file with environment overrides.

    Args:
        config_path: Explicit path; defaults to default_config_path()

    Returns:
        Validated Config

    Raises:
        ConfigurationError: File missing, unparseable or invalid
    """
    logger = logging.getLogger('autosync.config')
    load_dotenv()

    path = Path(config_path) if config_path else default_config_path()
    if not path.exists():
        raise ConfigurationError(
            f"Config file not found: {path}. Place '{CONFIG_FILENAME}' next to the executable "
            f"or point {ENV_PREFIX}CONFIG at it.",
            error_code="CONFIG_NOT_FOUND"
        )

    try:
        with path.open("rb") as handle:
            raw = tomllib.load(handle)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Config file {path} is not valid TOML: {e}", error_code="CONFIG_PARSE_ERROR")
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}", error_code="CONFIG_UNREADABLE")

    known = {config_field.name for config_field in fields(Config)}
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")

    values = {key: value for key, value in raw.items() if key in known}
    env_values = _environment_overrides()
    if env_values:
        logger.debug(f"Environment overrides applied: {', '.join(sorted(env_values))}")
    values.update(env_values)

    if "repo_path" not in values:
        raise ConfigurationError("repo_path is required", error_code="CONFIG_MISSING_KEY")

    try:
        values = {key: _coerce(key, value) for key, value in values.items()}
        config = Config(**values)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"Configuration error: {e}")

    logger.info(f"Config file read successfully: {path}")
    return config


def validate_configuration(config: Config) -> List[str]:
    """Validate the runtime environment and return ERROR/WARNING lines."""
    errors = []

    try:
        Git().version_info
    except GitCommandNotFound:
        errors.append("ERROR: git executable not found on PATH")

    # A missing working copy is reported per tick, not fatal
    if not config.repo_path.exists():
        errors.append(f"WARNING: Repository path does not exist yet: {config.repo_path}")
    elif not (config.repo_path / ".git").exists():
        errors.append(f"WARNING: Repository path is not a git checkout: {config.repo_path}")

    if not config.remote_url.startswith(("http://", "https://", "git@", "ssh://", "file://", "/")):
        errors.append(f"WARNING: Git remote URL may be invalid: {config.remote_url}")

    if config.remote_url.startswith("https://") and not config.pat:
        errors.append("WARNING: No access token configured; remote queries will be anonymous")

    if config.check_interval_seconds < 5:
        errors.append("WARNING: Very short check interval may hit remote rate limits")

    return errors

"""Error taxonomy and structured error reporting for AutoSync."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional


class ErrorCategory(Enum):
    """Categories of errors for structured error handling."""
    CONFIGURATION = "configuration"
    NETWORK = "network"
    LOCAL_REPOSITORY = "local_repository"
    UPDATE_ACTION = "update_action"
    SYSTEM = "system"


class AutoSyncError(Exception):
    """Base class for every error AutoSync raises on purpose."""

    category = ErrorCategory.SYSTEM
    default_code = "AUTOSYNC_ERROR"

    def __init__(self, message: str, error_code: Optional[str] = None, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.hint = hint


class ConfigurationError(AutoSyncError):
    """Configuration could not be loaded or is invalid. Fatal at startup."""

    category = ErrorCategory.CONFIGURATION
    default_code = "CONFIG_INVALID"


class NetworkError(AutoSyncError):
    """Remote unreachable or credential rejected."""

    category = ErrorCategory.NETWORK
    default_code = "REMOTE_UNREACHABLE"


class LocalRepositoryError(AutoSyncError):
    """Local working copy is missing, corrupted or not a valid checkout."""

    category = ErrorCategory.LOCAL_REPOSITORY
    default_code = "LOCAL_REPO_INVALID"


class UpdateActionError(AutoSyncError):
    """Fetch or fast-forward of the local branch failed."""

    category = ErrorCategory.UPDATE_ACTION
    default_code = "UPDATE_FAILED"


@dataclass
class ErrorResponse:
    """Standardized record of a reported error."""
    error: str
    error_code: str
    message: str
    timestamp: str
    category: str
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert error response to dictionary format."""
        result = {
            "error": self.error,
            "error_code": self.error_code,
            "message": self.message,
            "timestamp": self.timestamp,
            "category": self.category
        }
        if self.context:
            result["context"] = self.context
        return result


class ErrorHandler:
    """Reports per-tick errors without letting them unwind the caller."""

    _titles = {
        ErrorCategory.CONFIGURATION: "Configuration error",
        ErrorCategory.NETWORK: "Remote query failed",
        ErrorCategory.LOCAL_REPOSITORY: "Local repository error",
        ErrorCategory.UPDATE_ACTION: "Update action failed",
        ErrorCategory.SYSTEM: "Unexpected error",
    }

    def __init__(self):
        self.logger = logging.getLogger('autosync.error_handler')

    def report(
        self,
        error: Exception,
        context: Optional[Dict[str, Any]] = None,
        level: int = logging.WARNING,
        exc_info: bool = False
    ) -> ErrorResponse:
        """
        Log an error with structured fields and return its response record.

        Args:
            error: The exception to report
            context: Additional context (operation name, repository path, ...)
            level: Logging level for the report line
            exc_info: Attach the traceback, for errors nobody anticipated

        Returns:
            ErrorResponse describing the error
        """
        context = dict(context or {})

        if isinstance(error, AutoSyncError):
            category = error.category
            error_code = error.error_code
            message = error.message
            hint = error.hint
        else:
            category = ErrorCategory.SYSTEM
            error_code = "UNEXPECTED_ERROR"
            message = f"{type(error).__name__}: {error}"
            hint = None

        title = self._titles[category]
        log_message = f"{title}: {message}"
        if hint:
            log_message = f"{log_message} (hint: {hint})"

        self.logger.log(
            level,
            log_message,
            exc_info=exc_info,
            extra={
                'operation': context.get('operation', category.value),
                'error_code': error_code,
                'repository_path': context.get('repository_path')
            }
        )

        return ErrorResponse(
            error=title,
            error_code=error_code,
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat(),
            category=category.value,
            context=context or None
        )


# Initialize global error handler
error_handler = ErrorHandler()

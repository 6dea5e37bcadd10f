"""Process entry point: logging setup, startup validation and the run loop."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import Config, load_configuration, validate_configuration
from .errors import ConfigurationError
from .sync import AzureDevOpsBackend, GitPythonBackend, ReconciliationLoop, VersionControlBackend
from .sync.performance_logger import get_performance_logger

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(operation_prefix)s%(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class OperationPrefixFilter(logging.Filter):
    """Prefix records carrying an ``operation`` extra with ``[operation]``."""

    def filter(self, record: logging.LogRecord) -> bool:
        operation = getattr(record, 'operation', None)
        record.operation_prefix = f"[{operation}] " if operation else ""
        return True


def _build_handler(handler: logging.Handler) -> logging.Handler:
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(OperationPrefixFilter())
    return handler


def setup_logging(config: Optional[Config] = None) -> None:
    """
    Configure the ``autosync`` logger hierarchy.

    Console output always; a file handler as well when ``log_file`` is set.
    Safe to call twice: the bootstrap call before the configuration is
    loaded is replaced by the configured one.
    """
    level = getattr(logging, config.log_level) if config else logging.INFO

    handlers = [_build_handler(logging.StreamHandler())]
    if config and config.log_file:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(_build_handler(logging.FileHandler(config.log_file, encoding='utf-8')))

    logger = logging.getLogger('autosync')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False

    # httpx logs every request at INFO
    logging.getLogger('httpx').setLevel(logging.WARNING)


def build_backend(config: Config) -> VersionControlBackend:
    """Pick the backend: Azure DevOps REST when its coordinates are configured."""
    if config.uses_azure_devops:
        return AzureDevOpsBackend(
            organization=config.organization,
            project=config.project,
            repository=config.repository,
            http_timeout=config.http_timeout_seconds,
            git_timeout=config.git_timeout_seconds
        )
    return GitPythonBackend(git_timeout=config.git_timeout_seconds)


def build_loop(config: Config, backend: Optional[VersionControlBackend] = None) -> ReconciliationLoop:
    """Wire the reconciliation loop from a loaded configuration."""
    return ReconciliationLoop(
        location=config.repository_location,
        backend=backend or build_backend(config),
        poll_interval=config.check_interval_seconds,
        failure_alert_threshold=config.failure_alert_threshold
    )


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for the process."""
    parser = argparse.ArgumentParser(
        prog="autosync",
        description="Keep a local working copy synchronized with a remote branch."
    )
    parser.add_argument("command", nargs="?", choices=("run",), default="run")
    parser.add_argument("--config", type=Path, default=None, help="path to config.toml")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = build_arg_parser().parse_args(argv)

    setup_logging()
    startup_logger = logging.getLogger('autosync.startup')

    startup_logger.info("=" * 60)
    startup_logger.info(f"AutoSync {__version__}")
    startup_logger.info("=" * 60)

    python_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    if sys.version_info < (3, 11):
        startup_logger.error(f"Python 3.11+ required, found {python_version}")
        return 1

    try:
        config = load_configuration(args.config)
        setup_logging(config)
    except ConfigurationError as e:
        startup_logger.critical(f"Startup failed: {e.message}")
        return 1
    except OSError as e:
        startup_logger.critical(f"Startup failed: cannot open log file: {e}")
        return 1

    issues = validate_configuration(config)
    for issue in issues:
        if issue.startswith("ERROR:"):
            startup_logger.error(issue[7:])
        elif issue.startswith("WARNING:"):
            startup_logger.warning(issue[9:])

    error_count = sum(1 for issue in issues if issue.startswith("ERROR:"))
    if error_count > 0:
        startup_logger.critical(f"Startup failed due to {error_count} configuration error(s)")
        return 1

    backend = build_backend(config)
    startup_logger.info(f"Using {type(backend).__name__} for remote queries")
    loop = build_loop(config, backend)

    try:
        loop.run()
    except KeyboardInterrupt:
        startup_logger.info("AutoSync stopped by user (Ctrl+C)")

    get_performance_logger().log_performance_summary()
    return 0

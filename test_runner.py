#!/usr/bin/env python3
"""
Tests for the process entry point: backend selection, logging setup and exit codes.
"""

import logging
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

# Add the project root to the path so we can import autosync modules
import sys
sys.path.insert(0, str(Path(__file__).parent))

from autosync.config import Config
from autosync.runner import OperationPrefixFilter, build_arg_parser, build_backend, build_loop, main, setup_logging
from autosync.sync import AzureDevOpsBackend, GitPythonBackend, ReconciliationLoop
from autosync.sync.performance_logger import PerformanceLogger


class RunnerTestCase(unittest.TestCase):

    def setUp(self):
        print(f"\nSetting up test: {self._testMethodName}")
        self.temp_dir = Path(tempfile.mkdtemp())

        env_patch = patch.dict(
            os.environ,
            {key: value for key, value in os.environ.items() if not key.startswith("AUTOSYNC_")},
            clear=True
        )
        env_patch.start()
        self.addCleanup(env_patch.stop)

        dotenv_patch = patch("autosync.config.load_dotenv")
        dotenv_patch.start()
        self.addCleanup(dotenv_patch.stop)

        self.addCleanup(self.reset_logging)

    def tearDown(self):
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir, ignore_errors=True)

    @staticmethod
    def reset_logging():
        logger = logging.getLogger('autosync')
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(logging.NOTSET)
        logger.propagate = True

    def write_config(self, extra: str = "") -> Path:
        config_path = self.temp_dir / "config.toml"
        config_path.write_text(
            f'repo_path = "{(self.temp_dir / "checkout").as_posix()}"\n'
            f'remote_url = "https://example.com/build-scripts.git"\n'
            f'{extra}',
            encoding="utf-8"
        )
        return config_path


class TestBuildBackend(RunnerTestCase):

    def test_plain_remote_uses_git(self):
        config = Config(repo_path=self.temp_dir, remote_url="https://example.com/r.git", git_timeout_seconds=12)

        backend = build_backend(config)

        self.assertIs(type(backend), GitPythonBackend)
        self.assertEqual(backend.git_timeout, 12)

    def test_azure_coordinates_use_rest_api(self):
        config = Config(
            repo_path=self.temp_dir,
            organization="example-org",
            project="Build",
            repository="build-scripts",
            http_timeout_seconds=7
        )

        backend = build_backend(config)

        self.assertIsInstance(backend, AzureDevOpsBackend)
        self.assertEqual(backend.http_timeout, 7)
        self.assertEqual(backend.organization, "example-org")

    def test_build_loop_applies_configuration(self):
        config = Config(
            repo_path=self.temp_dir,
            remote_url="https://example.com/r.git",
            check_interval_seconds=45,
            failure_alert_threshold=2
        )

        loop = build_loop(config)

        self.assertIsInstance(loop, ReconciliationLoop)
        self.assertEqual(loop.poll_interval, 45)
        self.assertEqual(loop.failure_alert_threshold, 2)
        self.assertEqual(loop.location.path, self.temp_dir)


class TestLogging(RunnerTestCase):

    def test_operation_prefix(self):
        record = logging.LogRecord('autosync.test', logging.INFO, __file__, 1, "checked", None, None)
        record.operation = "compare"

        OperationPrefixFilter().filter(record)

        self.assertEqual(record.operation_prefix, "[compare] ")

    def test_missing_operation_has_empty_prefix(self):
        record = logging.LogRecord('autosync.test', logging.INFO, __file__, 1, "checked", None, None)

        OperationPrefixFilter().filter(record)

        self.assertEqual(record.operation_prefix, "")

    def test_log_file_receives_records(self):
        log_file = self.temp_dir / "logs" / "app.log"
        config = Config(
            repo_path=self.temp_dir,
            remote_url="https://example.com/r.git",
            log_level="DEBUG",
            log_file=log_file
        )

        setup_logging(config)
        logging.getLogger('autosync.test').info("written to file", extra={'operation': 'compare'})
        for handler in logging.getLogger('autosync').handlers:
            handler.flush()

        content = log_file.read_text(encoding="utf-8")
        self.assertIn("[compare] written to file", content)
        self.assertEqual(logging.getLogger('autosync').level, logging.DEBUG)
        print("  ✓ Log records reach the configured log file")

    def test_setup_logging_replaces_handlers(self):
        setup_logging()
        setup_logging()

        self.assertEqual(len(logging.getLogger('autosync').handlers), 1)


class TestMain(RunnerTestCase):

    def test_arguments(self):
        args = build_arg_parser().parse_args(["run", "--config", "/etc/autosync.toml"])

        self.assertEqual(args.command, "run")
        self.assertEqual(args.config, Path("/etc/autosync.toml"))
        self.assertEqual(build_arg_parser().parse_args([]).command, "run")

    def test_missing_config_exits_with_error(self):
        exit_code = main(["--config", str(self.temp_dir / "absent.toml")])

        self.assertEqual(exit_code, 1)

    def test_invalid_config_exits_with_error(self):
        config_path = self.write_config("check_interval_seconds = 0\n")

        self.assertEqual(main(["--config", str(config_path)]), 1)

    def test_wrong_value_type_exits_with_error(self):
        config_path = self.temp_dir / "config.toml"
        config_path.write_text(
            f'repo_path = "{(self.temp_dir / "checkout").as_posix()}"\nremote_url = 42\n',
            encoding="utf-8"
        )

        with patch.object(ReconciliationLoop, "run") as run:
            exit_code = main(["--config", str(config_path)])

        self.assertEqual(exit_code, 1)
        run.assert_not_called()

    def test_interrupt_stops_cleanly(self):
        config_path = self.write_config()

        with patch.object(ReconciliationLoop, "run", side_effect=KeyboardInterrupt) as run, \
                patch("autosync.runner.get_performance_logger", return_value=PerformanceLogger()):
            exit_code = main(["run", "--config", str(config_path)])

        self.assertEqual(exit_code, 0)
        run.assert_called_once_with()
        print("  ✓ Ctrl+C ends the process with exit code 0")

    def test_git_missing_is_fatal(self):
        config_path = self.write_config()

        with patch("autosync.runner.validate_configuration", return_value=["ERROR: Git is not installed"]), \
                patch.object(ReconciliationLoop, "run") as run:
            exit_code = main(["--config", str(config_path)])

        self.assertEqual(exit_code, 1)
        run.assert_not_called()


if __name__ == "__main__":
    unittest.main(verbosity=2)

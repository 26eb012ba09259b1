"""
Tests for logging setup.
"""

import logging

import pytest

from src.core.observability.logging_config import BUILD_OUTPUT_LOGGER, setup_logging


@pytest.fixture(autouse=True)
def _restore_loggers():
    root = logging.getLogger()
    output = logging.getLogger(BUILD_OUTPUT_LOGGER)
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers + output.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    output.handlers.clear()
    output.setLevel(logging.NOTSET)
    output.propagate = True


class TestSetupLogging:
    def test_default_warning(self):
        setup_logging()
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1

    def test_unknown_level_falls_back(self):
        setup_logging("LOUD")
        assert logging.getLogger().level == logging.WARNING

    def test_file_handler_lowers_root_level(self, tmp_path):
        log_file = tmp_path / "engine.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2

        logging.getLogger("src.test").debug("detail for the file")
        for handler in root.handlers:
            handler.flush()
        assert "detail for the file" in log_file.read_text()

    def test_repeat_calls_replace_handlers(self):
        setup_logging("INFO")
        setup_logging("INFO")
        assert len(logging.getLogger().handlers) == 1


class TestBuildOutputLogger:
    def test_silent_by_default(self):
        setup_logging("INFO")
        output = logging.getLogger(BUILD_OUTPUT_LOGGER)
        assert not output.isEnabledFor(logging.DEBUG)
        assert output.handlers == []
        assert output.propagate

    def test_echoed_at_debug(self):
        setup_logging("DEBUG")
        output = logging.getLogger(BUILD_OUTPUT_LOGGER)
        assert output.isEnabledFor(logging.DEBUG)
        assert len(output.handlers) == 1
        assert not output.propagate

    def test_echoed_when_not_quiet(self):
        setup_logging("WARNING", quiet_build_output=False)
        setup_logging("WARNING", quiet_build_output=False)
        output = logging.getLogger(BUILD_OUTPUT_LOGGER)
        assert output.isEnabledFor(logging.DEBUG)
        assert len(output.handlers) == 1

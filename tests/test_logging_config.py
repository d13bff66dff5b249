"""Tests for logging setup driven by the configured verbosity."""

import logging

import pytest
from rich.logging import RichHandler

from crash_dashboard.config import DashboardConfig
from crash_dashboard.logging_config import (
    get_logger,
    level_for,
    setup_logging,
    uvicorn_log_level,
)

TOUCHED = ("", "crash_dashboard", "httpx", "httpcore", "uvicorn")


@pytest.fixture(autouse=True)
def restore_logging():
    """setup_logging replaces root handlers; put them back afterwards."""
    loggers = {name: logging.getLogger(name) for name in TOUCHED}
    saved = {name: (lg.level, list(lg.handlers)) for name, lg in loggers.items()}
    yield
    for name, lg in loggers.items():
        level, handlers = saved[name]
        for handler in lg.handlers:
            if handler not in handlers:
                handler.close()
        lg.handlers[:] = handlers
        lg.setLevel(level)


class TestLevels:
    @pytest.mark.parametrize(
        "verbosity, level, server",
        [
            ("quiet", logging.ERROR, "error"),
            ("normal", logging.WARNING, "warning"),
            ("verbose", logging.DEBUG, "info"),
        ],
    )
    def test_mapping(self, verbosity, level, server):
        assert level_for(verbosity) == level
        assert uvicorn_log_level(verbosity) == server

    def test_unknown_verbosity(self):
        with pytest.raises(ValueError):
            level_for("loud")
        with pytest.raises(ValueError):
            uvicorn_log_level("loud")


class TestSetupLogging:
    def test_follows_config_verbosity(self):
        config = DashboardConfig(verbosity="verbose")
        logger = setup_logging(config.verbosity)
        assert logger.name == "crash_dashboard"
        assert logger.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.INFO
        assert logging.getLogger("uvicorn").level == logging.INFO
        assert any(isinstance(h, RichHandler) for h in logging.getLogger().handlers)

    def test_normal_quiets_request_logs(self):
        setup_logging("normal")
        assert logging.getLogger("crash_dashboard").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_quiet(self):
        setup_logging("quiet")
        assert logging.getLogger("crash_dashboard").level == logging.ERROR
        assert logging.getLogger("uvicorn").level == logging.ERROR

    def test_log_file(self, tmp_path):
        path = tmp_path / "dashboard.log"
        setup_logging("normal", log_file=str(path))
        get_logger("pipeline").warning("Run %d failed", 3)
        for handler in logging.getLogger().handlers:
            handler.flush()
        text = path.read_text()
        assert "crash_dashboard.pipeline - WARNING - Run 3 failed" in text


class TestGetLogger:
    def test_namespaced(self):
        assert get_logger("pipeline").name == "crash_dashboard.pipeline"
        assert get_logger("crash_dashboard.store").name == "crash_dashboard.store"
        assert get_logger().name == "crash_dashboard"

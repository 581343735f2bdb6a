"""
Tests for logging configuration.
"""

import json
import logging

import pytest

from histnet.common.logging_config import (
    ROOT_LOGGER_NAME,
    JSONFormatter,
    LoggingTimer,
    PerformanceFilter,
    configure_external_library_logging,
    get_logger,
    log_performance_metric,
    setup_logging
)


@pytest.fixture
def clean_root_logger():
    """Restore the histnet root logger after each test."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    saved_handlers = list(root.handlers)
    saved_level = root.level
    saved_propagate = root.propagate
    for handler in saved_handlers:
        root.removeHandler(handler)
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)
    root.propagate = saved_propagate


class TestGetLogger:
    """Test logger naming."""

    def test_module_names_are_kept(self):
        assert get_logger("histnet.network.analysis").name == "histnet.network.analysis"

    def test_root_name(self):
        assert get_logger("histnet").name == "histnet"

    def test_other_names_are_nested(self):
        assert get_logger("notebook").name == "histnet.notebook"


class TestSetupLogging:
    """Test setup_logging."""

    def test_console_only(self, clean_root_logger):
        logger = setup_logging(level="DEBUG", console=True, force_setup=True)

        assert logger is clean_root_logger
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.StreamHandler)
        assert logger.propagate is False

    def test_returns_early_when_configured(self, clean_root_logger):
        setup_logging(level="INFO", console=True, force_setup=True)
        setup_logging(level="DEBUG", console=True)

        assert clean_root_logger.level == logging.INFO
        assert len(clean_root_logger.handlers) == 1

    def test_invalid_level(self, clean_root_logger):
        with pytest.raises(ValueError, match="Invalid logging level"):
            setup_logging(level="LOUD", force_setup=True)

    def test_log_dir_creates_file(self, clean_root_logger, tmp_path):
        setup_logging(level="INFO", log_dir=str(tmp_path), console=False, force_setup=True)
        get_logger("histnet.test").info("hello")
        for handler in clean_root_logger.handlers:
            handler.flush()

        log_file = tmp_path / "histnet.log"
        assert log_file.exists()
        assert "hello" in log_file.read_text(encoding="utf-8")

    def test_environment_level(self, clean_root_logger, monkeypatch):
        monkeypatch.setenv("HISTNET_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("HISTNET_LOG_CONSOLE", "false")

        logger = setup_logging(force_setup=True)

        assert logger.level == logging.WARNING
        assert logger.handlers == []

    def test_json_format_file(self, clean_root_logger, tmp_path):
        log_file = tmp_path / "out.log"
        setup_logging(level="INFO", log_file=str(log_file), console=False,
                      json_format=True, force_setup=True)
        get_logger("histnet.test").info("structured", extra={"nodes": 4})
        for handler in clean_root_logger.handlers:
            handler.flush()

        records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        structured = [r for r in records if r["message"] == "structured"]
        assert structured[0]["nodes"] == 4
        assert structured[0]["logger"] == "histnet.test"


class TestFormattersAndFilters:
    """Test the JSON formatter and performance filter."""

    def _record(self, message, **extra):
        record = logging.LogRecord("histnet.test", logging.INFO, __file__, 1, message, None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_formatter_fields(self):
        output = json.loads(JSONFormatter().format(self._record("hi", operation="walktrap")))

        assert output["level"] == "INFO"
        assert output["message"] == "hi"
        assert output["operation"] == "walktrap"

    def test_performance_filter(self):
        perf_filter = PerformanceFilter()

        assert perf_filter.filter(self._record("Performance: x completed in 0.1s"))
        assert not perf_filter.filter(self._record("Loading edge table"))


class TestPerformanceLogging:
    """Test timing helpers."""

    def test_log_performance_metric(self, caplog):
        with caplog.at_level(logging.INFO, logger="histnet.performance"):
            log_performance_metric("betweenness_centrality", 0.25, {"nodes": 10})

        assert "Performance: betweenness_centrality completed in 0.250s (nodes=10)" in caplog.text

    def test_logging_timer_records_duration(self, caplog):
        with caplog.at_level(logging.INFO, logger="histnet.performance"):
            with LoggingTimer("walktrap_communities") as timer:
                pass

        assert timer.duration is not None and timer.duration >= 0
        assert "walktrap_communities completed in" in caplog.text

    def test_configure_external_library_logging(self):
        configure_external_library_logging({"networkit": "ERROR", "polars": "NOPE"})

        assert logging.getLogger("networkit").level == logging.ERROR

"""Unit tests for logging filters and formatters."""

import json
import logging

import pytest

from paper_research_tool.observability.logging_config import (
    HealthCheckFilter,
    StructuredFormatter,
    get_uvicorn_logging_config,
    setup_logging,
)


def access_record(path: str) -> logging.LogRecord:
    return logging.LogRecord(
        name="uvicorn.access",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg=f'127.0.0.1:12345 - "GET {path} HTTP/1.1" 200',
        args=(),
        exc_info=None,
    )


@pytest.mark.unit
class TestHealthCheckFilter:
    @pytest.mark.parametrize("path", ["/health/live", "/metrics"])
    def test_filters_polling_endpoints(self, path):
        assert HealthCheckFilter().filter(access_record(path)) is False

    @pytest.mark.parametrize("path", ["/api/webdav", "/api/proxy-status"])
    def test_allows_relay_requests(self, path):
        assert HealthCheckFilter().filter(access_record(path)) is True


@pytest.mark.unit
class TestStructuredFormatter:
    def test_json_output_has_standard_fields(self):
        formatter = StructuredFormatter("%(message)s")
        record = logging.LogRecord(
            name="paper_research_tool.sync",
            level=logging.WARNING,
            pathname="",
            lineno=0,
            msg="Sync failed for %s",
            args=("alice",),
            exc_info=None,
        )

        output = json.loads(formatter.format(record))

        assert output["level"] == "WARNING"
        assert output["logger"] == "paper_research_tool.sync"
        assert output["message"] == "Sync failed for alice"
        assert "timestamp" in output


@pytest.mark.unit
class TestLoggingSetup:
    def test_setup_logging_installs_single_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging(log_format="json", log_level="DEBUG")

            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
            assert root.level == logging.DEBUG
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    @pytest.mark.parametrize(
        "log_format,formatter",
        [
            ("json", "paper_research_tool.observability.logging_config.StructuredFormatter"),
            ("text", "logging.Formatter"),
        ],
    )
    def test_uvicorn_config_formatter(self, log_format, formatter):
        config = get_uvicorn_logging_config(log_format=log_format, log_level="info")

        assert config["formatters"]["default"]["()"] == formatter
        assert config["handlers"]["access"]["filters"] == ["health_check_filter"]
        assert config["loggers"][""]["level"] == "INFO"

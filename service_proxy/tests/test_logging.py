"""
Unit tests for the structured logging setup.
"""

import json
import logging

import structlog

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.logging import clear_context, configure_logging, set_cache_key, set_request_id


def _render(event: str, **fields) -> dict:
    """Run one event through the configured processor chain and parse the JSON line."""
    event_dict = {"event": event, **fields}
    logger = logging.getLogger("proxy.pipeline")
    for processor in structlog.get_config()["processors"]:
        event_dict = processor(logger, "error", event_dict)
    return json.loads(event_dict)


class TestConfigureLogging:
    """Test cases for configure_logging."""

    def setup_method(self):
        configure_logging("proxy", "debug")

    def teardown_method(self):
        clear_context()

    def test_timestamp_is_iso_string(self):
        line = _render("Caching data")

        assert isinstance(line["timestamp"], str)
        assert "T" in line["timestamp"]

    def test_service_and_logger_name(self):
        line = _render("Caching data")

        assert line["service"] == "proxy"
        assert line["logger"] == "proxy.pipeline"
        assert line["level"] == "error"

    def test_correlation_context_bound(self):
        set_request_id("req-1")
        set_cache_key("/widgets/1")

        line = _render("Caching data")

        assert line["request_id"] == "req-1"
        assert line["key"] == "/widgets/1"

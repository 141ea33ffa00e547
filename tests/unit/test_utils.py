"""
Unit tests for amm_arb.utils module.
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from amm_arb.utils import (
    format_duration,
    format_profit,
    get_current_timestamp,
    get_logger,
    safe_json_dump,
    timestamp_to_iso,
)


class TestTimestampUtils:
    """Test timestamp utilities."""

    def test_get_current_timestamp(self):
        timestamp = get_current_timestamp()
        assert isinstance(timestamp, float)
        assert timestamp > 0

    def test_timestamp_to_iso(self):
        timestamp = 1640995200.0  # 2022-01-01 00:00:00 UTC
        iso_str = timestamp_to_iso(timestamp)
        assert iso_str.startswith("2022-01-01T00:00:00")

    def test_format_duration(self):
        assert format_duration(30) == "30.00s"
        assert format_duration(90) == "1.5m"
        assert format_duration(7200) == "2.0h"


class TestJsonUtils:
    def test_safe_json_dump(self):
        data = {"key": "value", "number": 42}
        assert json.loads(safe_json_dump(data)) == data

    def test_safe_json_dump_custom_types(self):
        data = {
            "when": datetime(2022, 1, 1, tzinfo=timezone.utc),
            "amount": Decimal("1.50"),
        }
        parsed = json.loads(safe_json_dump(data, indent=None))
        assert parsed["when"].startswith("2022-01-01")
        assert parsed["amount"] == "1.50"


class TestFormatProfit:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (0.0123, "+1.23%"),
            (-0.0456, "-4.56%"),
            (0.0, "+0.00%"),
            (Decimal("0.0205"), "+2.05%"),
        ],
    )
    def test_format(self, value, expected):
        assert format_profit(value) == expected


class TestGetLogger:
    def test_basic(self):
        logger = get_logger(__name__)
        assert isinstance(logger, logging.Logger)
        assert logger.name == __name__

    def test_with_level(self):
        logger = get_logger(__name__ + ".debug", level=logging.DEBUG)
        assert logger.level == logging.DEBUG

    def test_keeps_explicit_level(self):
        name = __name__ + ".preset"
        logging.getLogger(name).setLevel(logging.WARNING)
        assert get_logger(name).level == logging.WARNING

    def test_own_handler_without_root_handlers(self, monkeypatch):
        monkeypatch.setattr(logging.getLogger(), "handlers", [])
        logger = get_logger(__name__ + ".standalone")
        assert len(logger.handlers) == 1

    def test_defers_to_root_handlers(self, monkeypatch):
        monkeypatch.setattr(logging.getLogger(), "handlers", [logging.NullHandler()])
        assert get_logger(__name__ + ".deferred").handlers == []

"""
Logging system test suite

Coverage:
  - LogManager singleton and logger retrieval
  - Terminal-safe sanitisation of ledger-supplied text
  - Format string validation with default fallback
"""

import logging
import os
import sys

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from swapgroup.constants import LOG_DATE_FORMAT, LOG_FORMAT
from swapgroup.logger import LogManager, TerminalSafeFormatter, get_logger


class TestLogManager:

    def test_singleton(self):
        assert LogManager() is LogManager()

    def test_get_logger_configures(self):
        logger = get_logger("swapgroup.tests")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "swapgroup.tests"
        assert LogManager().is_configured

    def test_transport_libraries_quieted(self):
        get_logger("swapgroup.tests")
        assert logging.getLogger("httpx").level == logging.WARNING


class TestTerminalSafeFormatter:

    def test_strips_ansi_sequences(self):
        assert TerminalSafeFormatter.sanitize("\x1b[31mred\x1b[0m") == "red"

    def test_strips_control_characters(self):
        assert TerminalSafeFormatter.sanitize("fail\rure\x07 at\x00 3") == "failure at 3"

    def test_keeps_newlines_and_tabs(self):
        assert TerminalSafeFormatter.sanitize("a\n\tb") == "a\n\tb"

    def test_empty(self):
        assert TerminalSafeFormatter.sanitize("") == ""

    def test_format_sanitises_record(self):
        formatter = TerminalSafeFormatter(fmt="%(message)s")
        record = logging.LogRecord(
            name="test", level=logging.WARNING, pathname="", lineno=0,
            msg="unavailable App 900\x1b[2J", args=(), exc_info=None,
        )
        assert formatter.format(record) == "unavailable App 900"


class TestFormatValidation:

    def test_valid_format_kept(self):
        fmt = "%(levelname)s %(message)s"
        assert LogManager.validate_log_format(fmt) == fmt

    def test_malformed_format_falls_back(self):
        assert LogManager.validate_log_format("(levelname)s %(message)s") == str(LOG_FORMAT.default())

    def test_unknown_field_falls_back(self):
        assert LogManager.validate_log_format("%(no_such_field)s") == str(LOG_FORMAT.default())

    def test_invalid_date_format_falls_back(self):
        assert LogManager.validate_date_format("no directives") == str(LOG_DATE_FORMAT.default())
        assert LogManager.validate_date_format("%Y-%m-%d") == "%Y-%m-%d"

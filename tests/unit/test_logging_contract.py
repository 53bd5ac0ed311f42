# PATH: tests/unit/test_logging_contract.py
"""
Tests for logging contract enforcement.

No kwargs to logger besides exc_info/stack_info/stacklevel; contextual
fields only via extra={"context": {...}}.
"""

import ast
import json
import logging
import unittest
from pathlib import Path
from typing import List, Dict, Any

from core.logging import (
    ConsoleFormatter,
    StructuredFormatter,
    clear_global_context,
    set_global_context,
)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SOURCE_PACKAGES = ("core", "config", "discovery", "dex", "strategy", "monitoring")


class TestLoggingContractEnforcement(unittest.TestCase):
    """AST-based tests for logging contract."""

    ALLOWED_KWARGS = {"exc_info", "extra", "stack_info", "stacklevel"}

    def _find_logger_violations(self, source_code: str) -> List[Dict[str, Any]]:
        """Find logger calls with invalid kwargs using AST."""
        violations = []

        try:
            tree = ast.parse(source_code)
        except SyntaxError:
            return violations

        for node in ast.walk(tree):
            if not isinstance(node, ast.Call):
                continue

            if not isinstance(node.func, ast.Attribute):
                continue

            method_name = node.func.attr
            if method_name not in ("debug", "info", "warning", "error", "critical", "exception"):
                continue

            obj = node.func.value
            is_logger = False

            if isinstance(obj, ast.Name):
                is_logger = "log" in obj.id.lower() or obj.id == "logger"
            elif isinstance(obj, ast.Attribute):
                is_logger = "log" in obj.attr.lower() or obj.attr == "logger"

            if not is_logger:
                continue

            for kw in node.keywords:
                if kw.arg and kw.arg not in self.ALLOWED_KWARGS:
                    violations.append({
                        "line": node.lineno,
                        "method": method_name,
                        "invalid_kwarg": kw.arg,
                    })

        return violations

    def test_detector_flags_kwargs(self):
        """The checker itself catches a structlog-style call."""
        violations = self._find_logger_violations('logger.info("x", route="a")')
        self.assertEqual(len(violations), 1)
        self.assertEqual(violations[0]["invalid_kwarg"], "route")

    def test_project_sources_no_invalid_kwargs(self):
        """Every project module passes context via extra only."""
        files = [
            path
            for package in SOURCE_PACKAGES
            for path in sorted((PROJECT_ROOT / package).rglob("*.py"))
        ]
        self.assertTrue(files)

        msg = ""
        for filepath in files:
            source = filepath.read_text(encoding="utf-8")
            for v in self._find_logger_violations(source):
                msg += (
                    f"  {filepath.relative_to(PROJECT_ROOT)}:{v['line']}: "
                    f"logger.{v['method']}(..., {v['invalid_kwarg']}=...)\n"
                )
        if msg:
            self.fail(f"Logging violations:\n{msg}")


class TestLoggingContextCapture(unittest.TestCase):
    """Tests that context is properly captured in log records."""

    def setUp(self):
        self.captured_records = []

        class CapturingHandler(logging.Handler):
            def __init__(self, records_list):
                super().__init__()
                self.records = records_list

            def emit(self, record):
                self.records.append(record)

        self.logger = logging.getLogger(f"test_capture_{id(self)}")
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers = []
        self.handler = CapturingHandler(self.captured_records)
        self.logger.addHandler(self.handler)

    def tearDown(self):
        clear_global_context()

    def test_context_captured_in_record(self):
        self.logger.info(
            "Test message",
            extra={"context": {"route": "SOL-USDC-SOL", "hops": 2}}
        )

        self.assertEqual(len(self.captured_records), 1)
        record = self.captured_records[0]
        self.assertEqual(record.context["route"], "SOL-USDC-SOL")
        self.assertEqual(record.context["hops"], 2)

    def test_exc_info_with_context(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            self.logger.error(
                "Caught error",
                exc_info=True,
                extra={"context": {"operation": "test"}}
            )

        record = self.captured_records[0]
        self.assertIsNotNone(record.exc_info)
        self.assertEqual(record.context["operation"], "test")

    def test_structured_formatter_merges_global_context(self):
        set_global_context(run_id="run_1", mode="paper")
        self.logger.warning("Backing off", extra={"context": {"delay": 2.25}})

        data = json.loads(StructuredFormatter().format(self.captured_records[0]))
        self.assertEqual(data["level"], "WARNING")
        self.assertEqual(data["message"], "Backing off")
        self.assertEqual(data["context"], {"run_id": "run_1", "mode": "paper", "delay": 2.25})

    def test_console_formatter_truncates_context(self):
        self.logger.info("Stats", extra={"context": {f"k{i}": i for i in range(6)}})

        line = ConsoleFormatter().format(self.captured_records[0])
        self.assertIn("| Stats | k0=0, k1=1, k2=2, k3=3", line)
        self.assertIn("(+2 more)", line)


if __name__ == "__main__":
    unittest.main()

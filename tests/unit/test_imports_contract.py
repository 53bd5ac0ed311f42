# PATH: tests/unit/test_imports_contract.py
"""
Import contract smoke tests.

PURPOSE: Catch ImportError regressions EARLY.
RUN FIRST: python -m pytest tests/unit/test_imports_contract.py -v
"""

import importlib
import unittest

MODULES = [
    "core",
    "core.backoff",
    "config",
    "discovery.registry",
    "discovery.routes",
    "discovery.storage",
    "discovery.token_list",
    "dex.adapters",
    "dex.quote_provider",
    "strategy",
    "strategy.jobs.run_paper",
    "monitoring",
]


class TestModuleImports(unittest.TestCase):

    def test_modules_import(self):
        for name in MODULES:
            with self.subTest(module=name):
                importlib.import_module(name)

    def test_package_exports(self):
        """Names re-exported by package __init__ files resolve."""
        for name in ("core", "dex.adapters", "strategy", "monitoring"):
            module = importlib.import_module(name)
            for export in module.__all__:
                with self.subTest(module=name, export=export):
                    self.assertTrue(hasattr(module, export))

    def test_exceptions_share_root(self):
        from core import CycleScanError, QuoteError, StorageError, ConfigError
        for cls in (QuoteError, StorageError, ConfigError):
            self.assertTrue(issubclass(cls, CycleScanError))


if __name__ == "__main__":
    unittest.main()

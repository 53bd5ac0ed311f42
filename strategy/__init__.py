# PATH: strategy/__init__.py
"""Strategy package for CycleScan: evaluation, scheduling and paper execution."""

from strategy.evaluator import OpportunityEvaluator
from strategy.paper_trading import PaperLedger
from strategy.scheduler import ScanScheduler, ScanStats, StepOutcome

__all__ = [
    "OpportunityEvaluator",
    "PaperLedger",
    "ScanScheduler",
    "ScanStats",
    "StepOutcome",
]

# PATH: strategy/jobs/__init__.py
"""
Strategy jobs package.

Available entry points:
    python -m strategy.jobs.run_paper       # Continuous scan with paper execution
    cyclescan-paper                          # Same, installed console script

NOTE: This __init__.py intentionally does NOT import run_paper to avoid
side effects when importing the package.
"""

__all__: list[str] = []

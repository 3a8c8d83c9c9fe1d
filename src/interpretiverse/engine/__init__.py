# src/interpretiverse/engine/__init__.py
"""
Explanation engine - high-level orchestration of explainers.
"""

from interpretiverse.engine.suite import ExplanationSuite

__all__ = ["ExplanationSuite"]

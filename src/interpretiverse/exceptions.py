# src/interpretiverse/exceptions.py
"""
Error taxonomy for Interpretiverse.

Every engine fails fast and atomically: a failure in any batch aborts the
whole call and surfaces as one of the exceptions below. The ``details``
dictionary carries the context needed to reproduce the failure (feature
name, instance index, permutation index, ...).
"""

from typing import Any, Dict, Optional


class InterpretiverseError(Exception):
    """Base exception for all Interpretiverse errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = dict(details) if details else {}

    def add_context(self, **context) -> "InterpretiverseError":
        """Merge context into ``details`` without overwriting existing keys."""
        for key, value in context.items():
            self.details.setdefault(key, value)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self):
        if not self.details:
            return self.message
        context = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        return f"{self.message} ({context})"


class SchemaMismatch(InterpretiverseError, ValueError):
    """Raised when an instance's features disagree with the feature schema."""
    pass


class UnsupportedFeatureType(InterpretiverseError, TypeError):
    """Raised when a method cannot handle a feature's type (e.g. ALE on a categorical)."""
    pass


class EmptyDataset(InterpretiverseError, ValueError):
    """Raised when an engine or the predictor is handed no instances."""
    pass


class MissingLabels(InterpretiverseError, ValueError):
    """Raised when a labeled-data engine is called without labels."""
    pass


class PredictorError(InterpretiverseError, RuntimeError):
    """Raised when the wrapped predictor fails or returns malformed output."""
    pass


class PredictorTimeout(PredictorError, TimeoutError):
    """Raised when a predictor call exceeds its time budget."""
    pass


class ComputationCancelled(InterpretiverseError):
    """Raised when a computation is aborted through a CancellationToken."""
    pass

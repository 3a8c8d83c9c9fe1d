# src/interpretiverse/adapters/base_adapter.py
"""
Base class for model adapters.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np


class BaseModelAdapter(ABC):
    """
    Abstract wrapper giving any model a ``predict(data) -> np.ndarray`` method.

    Attributes:
        model: The wrapped model
        feature_names: Optional list of input feature names
    """

    def __init__(self, model, feature_names: Optional[List[str]] = None):
        self.model = model
        self.feature_names = list(feature_names) if feature_names is not None else None

    @abstractmethod
    def predict(self, data) -> np.ndarray:
        """Return one prediction (or one row of class scores) per input row."""
        raise NotImplementedError

    def __repr__(self):
        return f"{self.__class__.__name__}(model={type(self.model).__name__})"

# src/interpretiverse/core/explanation.py
"""
Result container shared by every engine.

Effect curves (PD, ICE, ALE), interaction strengths, importance tables,
surrogate models and Shapley attributions are all returned as an
Explanation. Its payload is frozen when the Explanation is built.
"""

from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple


class Explanation:
    """
    Read-only explanation result.

    Attributes:
        explainer_name: Engine that produced the result ("ALE", "Shapley", ...)
        target_class: Explained output: "output" for regression, the class
            label for classification, "global" for model-level tables
        explanation_data: Read-only payload; engines with a per-feature score
            store it under "feature_attributions"
        feature_names: Schema feature names, or None
        metadata: Call configuration (seeds, sizes)

    Example:
        >>> explanation = Explanation(
        ...     explainer_name="Shapley",
        ...     target_class="output",
        ...     explanation_data={"feature_attributions": {"a": 0.8, "b": -0.1}},
        ...     feature_names=["a", "b"]
        ... )
        >>> explanation.get_top_features(k=1)
        [('a', 0.8)]
    """

    def __init__(
        self,
        explainer_name: str,
        target_class: str,
        explanation_data: Mapping[str, Any],
        feature_names: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ):
        self.explainer_name = explainer_name
        self.target_class = target_class
        # Shallow copy: later changes to the caller's dict do not leak in
        self._explanation_data = MappingProxyType(dict(explanation_data))
        self.feature_names = list(feature_names) if feature_names is not None else None
        self.metadata = dict(metadata) if metadata else {}

    @property
    def explanation_data(self) -> Mapping[str, Any]:
        return self._explanation_data

    def __repr__(self):
        n_features = len(self.feature_names) if self.feature_names else "N/A"
        return (
            f"Explanation(explainer='{self.explainer_name}', target='{self.target_class}', "
            f"keys={list(self._explanation_data)}, n_features={n_features})"
        )

    def __getitem__(self, key: str) -> Any:
        return self._explanation_data[key]

    def __contains__(self, key: str) -> bool:
        return key in self._explanation_data

    def get(self, key: str, default: Any = None) -> Any:
        return self._explanation_data.get(key, default)

    def get_attributions(self) -> Optional[Dict[str, float]]:
        """The "feature_attributions" entry, or None for engines without one."""
        return self._explanation_data.get("feature_attributions")

    def get_top_features(self, k: int = 5, absolute: bool = True) -> List[Tuple[str, float]]:
        """
        The ``k`` highest attributions as (feature, value) pairs.

        Args:
            k: Number of features to return
            absolute: Rank by magnitude instead of signed value
        """
        attributions = self.get_attributions()
        if not attributions:
            return []

        def rank(item):
            return abs(item[1]) if absolute else item[1]

        return sorted(attributions.items(), key=rank, reverse=True)[:k]

    def get_feature_index(self, feature_name: str) -> Optional[int]:
        """Schema position of ``feature_name``, or None when unknown."""
        if self.feature_names is None or feature_name not in self.feature_names:
            return None
        return self.feature_names.index(feature_name)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict form; fitted objects in the payload (e.g. surrogate models) are kept as is."""
        return {
            "explainer_name": self.explainer_name,
            "target_class": self.target_class,
            "explanation_data": dict(self._explanation_data),
            "feature_names": self.feature_names,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Explanation":
        """Inverse of ``to_dict``."""
        return cls(
            explainer_name=data["explainer_name"],
            target_class=data["target_class"],
            explanation_data=data["explanation_data"],
            feature_names=data.get("feature_names"),
            metadata=data.get("metadata"),
        )

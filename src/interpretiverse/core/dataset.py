# src/interpretiverse/core/dataset.py
"""
Tabular dataset and feature schema.

The engines never parse files: they consume an already-loaded mapping from
feature name to column (a ``dict`` of lists/arrays, or anything with
``keys()`` and item access such as a pandas DataFrame). The schema is
derived once from the data and cached on the Dataset; every perturbed
instance the engines create is a fresh copy, the Dataset itself is never
modified.
"""

import numbers
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from interpretiverse.exceptions import SchemaMismatch

CONTINUOUS = "continuous"
CATEGORICAL = "categorical"


def sorted_categories(values) -> tuple:
    """Sorted unique categories; mixed types sort by (type name, str)."""
    unique = set(v.item() if isinstance(v, np.generic) else v for v in values)
    try:
        return tuple(sorted(unique))
    except TypeError:
        return tuple(sorted(unique, key=lambda v: (type(v).__name__, str(v))))


def _is_numeric_column(column: np.ndarray) -> bool:
    if column.dtype.kind in "iuf":
        return True
    if column.dtype.kind != "O":
        return False
    return all(
        isinstance(v, numbers.Real) and not isinstance(v, (bool, np.bool_))
        for v in column
    )


@dataclass(frozen=True)
class FeatureSpec:
    """
    Type and domain of a single feature.

    Attributes:
        name: Feature name
        kind: "continuous" or "categorical"
        domain: (min, max) for continuous features, sorted tuple of
            observed categories for categorical features
    """
    name: str
    kind: str
    domain: tuple

    @property
    def is_categorical(self) -> bool:
        return self.kind == CATEGORICAL


class FeatureSchema:
    """
    Ordered mapping from feature name to FeatureSpec.

    The column order of the schema is the column order of every matrix the
    engines build and of every batch handed to the predictor.
    """

    def __init__(self, specs: Sequence[FeatureSpec]):
        self._specs = list(specs)
        self._index = {spec.name: i for i, spec in enumerate(self._specs)}
        if len(self._index) != len(self._specs):
            raise SchemaMismatch("Feature names must be unique.")

    @classmethod
    def from_columns(
        cls,
        columns: Mapping[str, np.ndarray],
        categorical_features: Optional[Sequence[str]] = None
    ) -> "FeatureSchema":
        """Infer the schema from already-converted columns."""
        forced = set(categorical_features or [])
        unknown = forced - set(columns)
        if unknown:
            raise SchemaMismatch(
                "categorical_features names unknown features.",
                details={"unknown": sorted(unknown)}
            )

        specs = []
        for name, column in columns.items():
            if name not in forced and _is_numeric_column(column):
                if len(column):
                    domain = (float(np.min(column.astype(float))), float(np.max(column.astype(float))))
                else:
                    domain = ()
                specs.append(FeatureSpec(name, CONTINUOUS, domain))
            else:
                specs.append(FeatureSpec(name, CATEGORICAL, sorted_categories(column)))
        return cls(specs)

    @property
    def names(self) -> List[str]:
        return [spec.name for spec in self._specs]

    @property
    def all_continuous(self) -> bool:
        return not any(spec.is_categorical for spec in self._specs)

    def __len__(self):
        return len(self._specs)

    def __iter__(self) -> Iterator[FeatureSpec]:
        return iter(self._specs)

    def __eq__(self, other):
        if not isinstance(other, FeatureSchema):
            return NotImplemented
        return [(s.name, s.kind) for s in self] == [(s.name, s.kind) for s in other]

    def __repr__(self):
        return f"FeatureSchema({[(s.name, s.kind) for s in self._specs]})"

    def __getitem__(self, feature: Union[int, str]) -> FeatureSpec:
        return self._specs[self.index(feature)]

    def index(self, feature: Union[int, str]) -> int:
        """Resolve a feature name or index to a column index."""
        if isinstance(feature, (int, np.integer)) and not isinstance(feature, bool):
            if 0 <= feature < len(self._specs):
                return int(feature)
            raise SchemaMismatch(
                f"Feature index {feature} out of range for {len(self._specs)} features.",
                details={"feature": int(feature)}
            )
        if feature not in self._index:
            raise SchemaMismatch(
                f"Unknown feature '{feature}'.",
                details={"feature": feature, "known_features": self.names}
            )
        return self._index[feature]

    def validate_instance(self, instance: Mapping[str, Any], index: Optional[int] = None) -> None:
        """Raise SchemaMismatch if an instance is missing or has extra features."""
        keys = set(instance.keys())
        expected = set(self._index)
        if keys == expected:
            return
        details = {
            "missing": sorted(expected - keys),
            "extra": sorted(str(k) for k in keys - expected),
        }
        if index is not None:
            details["instance_index"] = index
        raise SchemaMismatch("Instance does not match the feature schema.", details=details)

    def empty_matrix(self, n_rows: int) -> np.ndarray:
        dtype = float if self.all_continuous else object
        return np.empty((n_rows, len(self._specs)), dtype=dtype)

    def to_matrix(self, instances: Sequence[Mapping[str, Any]]) -> np.ndarray:
        """Convert a sequence of instances into a schema-ordered matrix."""
        matrix = self.empty_matrix(len(instances))
        for i, instance in enumerate(instances):
            self.validate_instance(instance, index=i)
            for j, spec in enumerate(self._specs):
                value = instance[spec.name]
                matrix[i, j] = value if spec.is_categorical else float(value)
        return matrix

    def to_records(self, matrix: np.ndarray) -> List[Dict[str, Any]]:
        """Convert a schema-ordered matrix into a list of instances."""
        names = self.names
        return [
            {name: (v.item() if isinstance(v, np.generic) else v) for name, v in zip(names, row)}
            for row in matrix
        ]


class Dataset:
    """
    Read-only tabular dataset with a fixed feature schema.

    Attributes:
        X: Schema-ordered matrix (float when all features are continuous,
            object otherwise)
        schema: FeatureSchema inferred once at construction
        labels: Optional label array aligned with the rows
        index: Original row identifiers (preserved by ``sample``)

    Example:
        >>> data = Dataset({"age": [31, 45, 52], "city": ["a", "b", "a"]})
        >>> data.schema["city"].kind
        'categorical'
    """

    def __init__(
        self,
        data: Mapping[str, Sequence],
        labels: Optional[Sequence] = None,
        categorical_features: Optional[Sequence[str]] = None,
        schema: Optional[FeatureSchema] = None
    ):
        """
        Build a dataset from a mapping of feature name to column.

        Args:
            data: Mapping (or DataFrame-like object) from feature name to column
            labels: Optional labels, one per row
            categorical_features: Feature names to force to categorical
            schema: Pre-computed schema; column names must match it

        Raises:
            SchemaMismatch: If columns differ in length, or disagree with
                ``schema`` / ``labels``
        """
        columns = {}
        for name in data.keys():
            column = np.asarray(data[name])
            if column.ndim != 1:
                raise SchemaMismatch(
                    f"Column '{name}' must be one-dimensional.",
                    details={"feature": name, "shape": column.shape}
                )
            columns[str(name)] = column

        lengths = {name: len(col) for name, col in columns.items()}
        if len(set(lengths.values())) > 1:
            raise SchemaMismatch("All columns must have the same length.", details={"lengths": lengths})

        if schema is None:
            schema = FeatureSchema.from_columns(columns, categorical_features)
        elif schema.names != list(columns):
            raise SchemaMismatch(
                "Columns do not match the supplied schema.",
                details={"expected": schema.names, "got": list(columns)}
            )

        n_rows = next(iter(lengths.values()), 0)
        X = schema.empty_matrix(n_rows)
        for j, spec in enumerate(schema):
            column = columns[spec.name]
            X[:, j] = column if spec.is_categorical else column.astype(float)

        self._init_parts(X, schema, labels, np.arange(n_rows))

    @classmethod
    def from_array(
        cls,
        X,
        feature_names: Sequence[str],
        labels: Optional[Sequence] = None,
        categorical_features: Optional[Sequence[str]] = None
    ) -> "Dataset":
        """Build a dataset from a 2D array and its column names."""
        X = np.asarray(X)
        if X.ndim != 2 or X.shape[1] != len(feature_names):
            raise SchemaMismatch(
                "X must be 2D with one column per feature name.",
                details={"shape": X.shape, "n_feature_names": len(feature_names)}
            )
        return cls(
            {name: X[:, j] for j, name in enumerate(feature_names)},
            labels=labels,
            categorical_features=categorical_features
        )

    @classmethod
    def coerce(cls, data, labels: Optional[Sequence] = None) -> "Dataset":
        """Return ``data`` if it is already a Dataset, otherwise build one."""
        if isinstance(data, Dataset):
            return data if labels is None else data.with_labels(labels)
        return cls(data, labels=labels)

    @classmethod
    def _from_parts(cls, X, schema, labels, index) -> "Dataset":
        dataset = cls.__new__(cls)
        dataset._init_parts(X, schema, labels, index)
        return dataset

    def _init_parts(self, X, schema, labels, index):
        self._X = X
        self._X.setflags(write=False)
        self.schema = schema
        self.index = np.asarray(index)
        if labels is not None:
            labels = np.asarray(labels)
            if labels.shape[0] != X.shape[0]:
                raise SchemaMismatch(
                    "labels must have one entry per row.",
                    details={"n_rows": X.shape[0], "n_labels": labels.shape[0]}
                )
        self.labels = labels

    @property
    def X(self) -> np.ndarray:
        return self._X

    @property
    def feature_names(self) -> List[str]:
        return self.schema.names

    @property
    def n_rows(self) -> int:
        return self._X.shape[0]

    @property
    def n_features(self) -> int:
        return self._X.shape[1]

    def __len__(self):
        return self.n_rows

    def __repr__(self):
        return (
            f"Dataset(n_rows={self.n_rows}, features={self.feature_names}, "
            f"labeled={self.labels is not None})"
        )

    def column(self, feature: Union[int, str]) -> np.ndarray:
        return self._X[:, self.schema.index(feature)]

    def instance(self, row: int) -> Dict[str, Any]:
        return self.schema.to_records(self._X[row:row + 1])[0]

    def records(self) -> List[Dict[str, Any]]:
        return self.schema.to_records(self._X)

    def copy_matrix(self) -> np.ndarray:
        """Writable copy of X for building perturbed instances."""
        return np.array(self._X, copy=True)

    def with_labels(self, labels: Sequence) -> "Dataset":
        return Dataset._from_parts(self._X, self.schema, labels, self.index)

    def subset(self, rows) -> "Dataset":
        rows = np.asarray(rows)
        labels = self.labels[rows] if self.labels is not None else None
        return Dataset._from_parts(self._X[rows], self.schema, labels, self.index[rows])

    def sample(self, n: int, random_state: Optional[int] = None) -> "Dataset":
        """
        Seeded subsample of ``n`` rows without replacement.

        Returns the dataset itself when ``n`` covers every row.
        """
        if n < 1:
            raise ValueError(f"sample size must be >= 1, got {n}")
        if n >= self.n_rows:
            return self
        rng = np.random.RandomState(random_state)
        rows = np.sort(rng.choice(self.n_rows, size=n, replace=False))
        return self.subset(rows)

    def value_counts(self, feature: Union[int, str]) -> Tuple[np.ndarray, np.ndarray]:
        """Observed categories of a feature and their frequencies."""
        column = self.column(feature)
        categories = list(self.schema[feature].domain)
        lookup = {c: i for i, c in enumerate(categories)}
        counts = np.zeros(len(categories))
        for value in column:
            key = value.item() if isinstance(value, np.generic) else value
            counts[lookup[key]] += 1
        return np.array(categories, dtype=object), counts

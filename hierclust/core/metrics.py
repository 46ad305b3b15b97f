"""
Distance metrics.

Pairwise distance functions over two records, plus a registry resolving
metric names. Numeric metrics also carry a vectorized one-to-many form
used when building the distance matrix and when assigning new records.

The default metric is squared Euclidean: relative ordering is all the
linkage comparisons need, so the square root is skipped.
"""

import numbers
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Union

import numpy as np

from hierclust.utils.error_handling import InvalidConfigurationError, InvalidInputError


DistanceFunction = Callable[[Sequence[Any], Sequence[Any]], float]
# (rows, vector) -> distances from vector to every row
VectorizedDistance = Callable[[np.ndarray, np.ndarray], np.ndarray]


def squared_euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Sum of squared component differences."""
    return float(sum((x - y) ** 2 for x, y in zip(a, b)))


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Euclidean distance, or L2 norm."""
    return float(np.sqrt(squared_euclidean_distance(a, b)))


def manhattan_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """City block distance, or L1 norm."""
    return float(sum(abs(x - y) for x, y in zip(a, b)))


def chebyshev_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Sup distance, or L-infinity norm."""
    return float(max((abs(x - y) for x, y in zip(a, b)), default=0.0))


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """1 - cosine similarity. Zero vectors are at distance 1 from everything."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    magnitude = np.linalg.norm(va) * np.linalg.norm(vb)
    if magnitude == 0:
        return 1.0
    return float(max(0.0, 1.0 - np.dot(va, vb) / magnitude))


def hamming_distance(a: Sequence[Any], b: Sequence[Any]) -> float:
    """Number of attributes for which the two records differ."""
    return float(sum(1 for x, y in zip(a, b) if x != y))


def simple_matching_distance(a: Sequence[Any], b: Sequence[Any]) -> float:
    """
    Simple matching distance between two attribute sets.

    S = 2 / (len(a) + len(b)) * number of values present in both
    D = 1 / S - 1

    Records sharing no value are infinitely far apart.
    """
    shared = sum(2 for item in a if item in b)
    if shared == 0:
        return float("inf")
    similarity = shared / (len(a) + len(b))
    return 1.0 / similarity - 1.0


def _sq_euclidean_rows(rows: np.ndarray, vector: np.ndarray) -> np.ndarray:
    diff = rows - vector
    return np.einsum("ij,ij->i", diff, diff)


def _euclidean_rows(rows: np.ndarray, vector: np.ndarray) -> np.ndarray:
    return np.sqrt(_sq_euclidean_rows(rows, vector))


def _manhattan_rows(rows: np.ndarray, vector: np.ndarray) -> np.ndarray:
    return np.abs(rows - vector).sum(axis=1)


def _chebyshev_rows(rows: np.ndarray, vector: np.ndarray) -> np.ndarray:
    if rows.shape[1] == 0:
        return np.zeros(rows.shape[0])
    return np.abs(rows - vector).max(axis=1)


def _cosine_rows(rows: np.ndarray, vector: np.ndarray) -> np.ndarray:
    magnitudes = np.linalg.norm(rows, axis=1) * np.linalg.norm(vector)
    dots = rows @ vector
    result = np.ones(rows.shape[0])
    nonzero = magnitudes != 0
    result[nonzero] = np.maximum(0.0, 1.0 - dots[nonzero] / magnitudes[nonzero])
    return result


@dataclass(frozen=True)
class Metric:
    """A named distance function."""

    name: str
    function: DistanceFunction
    numeric: bool = True
    vectorized: Optional[VectorizedDistance] = None

    def __call__(self, a: Sequence[Any], b: Sequence[Any]) -> float:
        return self.function(a, b)

    def one_to_many(self, rows: Union[np.ndarray, Sequence[Sequence[Any]]], vector: Sequence[Any]) -> np.ndarray:
        """Distances from ``vector`` to each of ``rows``."""
        if self.vectorized is not None and isinstance(rows, np.ndarray):
            return self.vectorized(rows, np.asarray(vector, dtype=np.float64))
        return np.array([self.function(row, vector) for row in rows], dtype=np.float64)


METRICS: Dict[str, Metric] = {
    "squared_euclidean": Metric("squared_euclidean", squared_euclidean_distance, True, _sq_euclidean_rows),
    "euclidean": Metric("euclidean", euclidean_distance, True, _euclidean_rows),
    "manhattan": Metric("manhattan", manhattan_distance, True, _manhattan_rows),
    "chebyshev": Metric("chebyshev", chebyshev_distance, True, _chebyshev_rows),
    "cosine": Metric("cosine", cosine_distance, True, _cosine_rows),
    "hamming": Metric("hamming", hamming_distance, False),
    "simple_matching": Metric("simple_matching", simple_matching_distance, False),
}

METRIC_ALIASES = {
    "sqeuclidean": "squared_euclidean",
    "sup": "chebyshev",
    "l1": "manhattan",
    "l2": "euclidean",
}

DEFAULT_METRIC = "squared_euclidean"


def get_metric(metric: Union[str, Metric, DistanceFunction, None] = None, numeric: bool = True) -> Metric:
    """
    Resolve a metric name, Metric or plain callable into a Metric.

    Args:
        metric: Metric name, Metric instance, callable (a, b) -> float, or None for the default
        numeric: Whether a plain callable expects numeric records

    Returns:
        Metric instance

    Raises:
        InvalidConfigurationError: If the name is not registered
    """
    if metric is None:
        return METRICS[DEFAULT_METRIC]
    if isinstance(metric, Metric):
        return metric
    if isinstance(metric, str):
        key = metric.lower()
        key = METRIC_ALIASES.get(key, key)
        if key not in METRICS:
            raise InvalidConfigurationError(
                f"Unsupported metric '{metric}'. Supported: {list(METRICS.keys())}",
                details={"metric": metric},
            )
        return METRICS[key]
    if callable(metric):
        name = getattr(metric, "__name__", "custom")
        return Metric(name=name, function=metric, numeric=numeric)
    raise InvalidConfigurationError(
        f"Metric must be a name or a callable, got {type(metric).__name__}",
        details={"metric": repr(metric)},
    )


def is_numeric_value(value: Any) -> bool:
    """True for finite real numbers (bools are rejected)."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return bool(np.isfinite(float(value)))


def validate_records(records: Any, metric: Metric) -> Union[np.ndarray, list]:
    """
    Check that records are non-empty and rectangular, and numeric under a numeric metric.

    Args:
        records: Sequence of records or 2-D array
        metric: Metric the records will be compared with

    Returns:
        float64 array (numeric metrics) or list of tuples (categorical metrics)

    Raises:
        InvalidInputError: On empty input, mismatched arity or non-numeric values
    """
    if isinstance(records, np.ndarray):
        if records.ndim != 2:
            raise InvalidInputError(
                f"Records array must be 2-dimensional, got {records.ndim} dimensions",
                details={"shape": list(records.shape)},
            )
        if records.shape[0] == 0:
            raise InvalidInputError("Record collection must not be empty.")
        if metric.numeric:
            if not np.issubdtype(records.dtype, np.number) or np.issubdtype(records.dtype, np.bool_):
                raise InvalidInputError(
                    f"Metric '{metric.name}' requires numeric records, got dtype {records.dtype}",
                    details={"metric": metric.name},
                )
            values = records.astype(np.float64)
            if not np.all(np.isfinite(values)):
                raise InvalidInputError(
                    f"Metric '{metric.name}' requires finite numeric values",
                    details={"metric": metric.name},
                )
            return values
        return [tuple(row) for row in records.tolist()]

    if records is None or len(records) == 0:
        raise InvalidInputError("Record collection must not be empty.")

    rows = [tuple(row) for row in records]
    attributes_num = len(rows[0])
    for index, row in enumerate(rows):
        if len(row) != attributes_num:
            raise InvalidInputError(
                "Quantity of attributes is inconsistent. "
                f"The first record has {attributes_num} attributes "
                f"and record {index} has {len(row)} attributes",
                details={"record": index, "expected": attributes_num, "found": len(row)},
            )

    if not metric.numeric:
        return rows

    for index, row in enumerate(rows):
        for position, value in enumerate(row):
            if not is_numeric_value(value):
                raise InvalidInputError(
                    f"Metric '{metric.name}' requires numeric values; "
                    f"record {index} attribute {position} is {value!r}",
                    details={"record": index, "attribute": position, "metric": metric.name},
                )
    return np.array(rows, dtype=np.float64).reshape(len(rows), attributes_num)

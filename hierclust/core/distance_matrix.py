"""
Distance Matrix.

Strictly-lower-triangular table of pairwise record distances, stored in
condensed form: the distance between records i and j (i > j) lives at
offset i * (i - 1) / 2 + j. Only one of (i, j) / (j, i) is stored.

Built once per clustering run in O(n^2) and read-only afterwards.
"""

import logging
from typing import Any, List, Optional, Sequence, Union

import numpy as np

from hierclust.core.metrics import DistanceFunction, Metric, get_metric, validate_records
from hierclust.utils.advanced_logging import timed
from hierclust.utils.error_handling import InvalidInputError

logger = logging.getLogger(__name__)


def _offsets(hi: np.ndarray, lo: np.ndarray) -> np.ndarray:
    return hi * (hi - 1) // 2 + lo


class DistanceMatrix:
    """
    Pairwise distances between n records.

    Use DistanceMatrix.build() to compute it from records, or
    DistanceMatrix.from_rows() to load a precomputed triangular table.
    """

    def __init__(self, condensed: np.ndarray, size: int, metric: Optional[Metric] = None):
        """
        Initialize from condensed storage.

        Args:
            condensed: n * (n - 1) / 2 distances, row-major over the lower triangle
            size: Number of records n
            metric: Metric the distances were computed with
        """
        expected = size * (size - 1) // 2
        if condensed.shape != (expected,):
            raise InvalidInputError(
                f"Condensed distances for {size} records must have {expected} values, "
                f"got {condensed.shape[0] if condensed.ndim == 1 else condensed.shape}",
            )
        self._values = condensed
        self._values.setflags(write=False)
        self.size = size
        self.metric = metric or get_metric()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    @timed(operation="build_distance_matrix", log_level="debug")
    def build(
        cls,
        records: Any,
        metric: Union[str, Metric, DistanceFunction, None] = None,
    ) -> "DistanceMatrix":
        """
        Compute the distance matrix for records.

        Args:
            records: Non-empty rectangular sequence of records (or 2-D array)
            metric: Metric name, Metric or callable; squared Euclidean by default

        Returns:
            DistanceMatrix over the records

        Raises:
            InvalidInputError: On empty input, mismatched arity or non-numeric values
            InvalidConfigurationError: On an unknown metric name
        """
        resolved = get_metric(metric)
        rows = validate_records(records, resolved)
        return cls.from_validated(rows, resolved)

    @classmethod
    def from_validated(cls, rows: Union[np.ndarray, list], metric: Metric) -> "DistanceMatrix":
        """Compute distances for records already checked by validate_records()."""
        n = len(rows)
        condensed = np.empty(n * (n - 1) // 2, dtype=np.float64)

        vectorized = metric.vectorized is not None and isinstance(rows, np.ndarray)
        for i in range(1, n):
            start = i * (i - 1) // 2
            if vectorized:
                condensed[start:start + i] = metric.vectorized(rows[:i], rows[i])
            else:
                for j in range(i):
                    condensed[start + j] = metric(rows[i], rows[j])

        logger.debug(f"Built distance matrix for {n} records with metric {metric.name}")
        return cls(condensed, n, metric)

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[float]], metric: Union[str, Metric, None] = None) -> "DistanceMatrix":
        """
        Load a triangular table where row r holds the distances of record r + 1
        to records 0..r.

        Args:
            rows: n - 1 rows of increasing length
            metric: Metric the distances came from (informational)
        """
        for index, row in enumerate(rows):
            if len(row) != index + 1:
                raise InvalidInputError(
                    f"Triangular row {index} must have {index + 1} values, got {len(row)}",
                )
        condensed = np.array([value for row in rows for value in row], dtype=np.float64)
        return cls(condensed, len(rows) + 1, get_metric(metric))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return self.size

    def __getitem__(self, key) -> float:
        i, j = key
        return self.distance(i, j)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.size:
            raise IndexError(f"Record index {index} out of range [0, {self.size})")

    def distance(self, i: int, j: int) -> float:
        """Distance between records i and j (0 on the diagonal, symmetric)."""
        self._check_index(i)
        self._check_index(j)
        if i == j:
            return 0.0
        if i < j:
            i, j = j, i
        return float(self._values[i * (i - 1) // 2 + j])

    def cross(self, indices_a: Sequence[int], indices_b: Sequence[int]) -> np.ndarray:
        """
        Distances between every record of indices_a and every record of indices_b.

        Returns:
            Array of shape (len(indices_a), len(indices_b))
        """
        a = np.asarray(indices_a, dtype=np.int64)[:, None]
        b = np.asarray(indices_b, dtype=np.int64)[None, :]
        hi = np.maximum(a, b)
        lo = np.minimum(a, b)
        same = hi == lo
        # diagonal offsets are clamped and then zeroed
        values = self._values[_offsets(np.where(same, 1, hi), np.where(same, 0, lo))] if self.size > 1 else np.zeros(hi.shape)
        return np.where(same, 0.0, values)

    def within(self, indices: Sequence[int]) -> np.ndarray:
        """Distances between all unordered pairs of the given records."""
        idx = np.asarray(indices, dtype=np.int64)
        if idx.size < 2:
            return np.empty(0, dtype=np.float64)
        block = self.cross(idx, idx)
        rows, cols = np.tril_indices(idx.size, k=-1)
        return block[rows, cols]

    def submatrix(self, indices: Sequence[int]) -> np.ndarray:
        """Full symmetric block for the given records."""
        return self.cross(indices, indices)

    def to_square(self) -> np.ndarray:
        """Full symmetric n x n matrix."""
        return self.cross(range(self.size), range(self.size))

    def max_distance(self) -> float:
        """Largest pairwise distance (0 for a single record)."""
        if self._values.size == 0:
            return 0.0
        return float(self._values.max())

    @property
    def rows(self) -> List[List[float]]:
        """Triangular layout: row r holds distances of record r + 1 to records 0..r."""
        return [
            self._values[i * (i - 1) // 2:i * (i - 1) // 2 + i].tolist()
            for i in range(1, self.size)
        ]

    @property
    def condensed(self) -> np.ndarray:
        """Read-only condensed values, lower triangle in row-major order."""
        return self._values

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DistanceMatrix):
            return NotImplemented
        return self.size == other.size and np.array_equal(self._values, other._values)

    def __repr__(self) -> str:
        return f"DistanceMatrix(size={self.size}, metric={self.metric.name!r})"

"""
Unit tests for distance metrics.

Tests:
- Individual distance functions
- Metric registry and aliases
- Vectorized one-to-many distances
- Record validation
"""

import math

import numpy as np
import pytest

from hierclust.core.metrics import (
    METRICS,
    Metric,
    chebyshev_distance,
    cosine_distance,
    euclidean_distance,
    get_metric,
    hamming_distance,
    manhattan_distance,
    simple_matching_distance,
    squared_euclidean_distance,
    validate_records,
)
from hierclust.utils.error_handling import InvalidConfigurationError, InvalidInputError


@pytest.mark.unit
class TestDistanceFunctions:
    """Test suite for pairwise distance functions."""

    def test_squared_euclidean(self):
        """Squared Euclidean skips the square root."""
        assert squared_euclidean_distance([10, 3], [3, 10]) == 98.0
        assert squared_euclidean_distance([2, 5], [2, 5]) == 0.0

    def test_euclidean(self):
        assert euclidean_distance([0, 0], [3, 4]) == 5.0

    def test_manhattan(self):
        assert manhattan_distance([0, 0], [3, -4]) == 7.0

    def test_chebyshev(self):
        assert chebyshev_distance([0, 0, 0], [3, -4, 1]) == 4.0

    def test_cosine(self):
        """Orthogonal vectors are at distance 1, parallel ones at 0."""
        assert cosine_distance([1, 0], [0, 1]) == pytest.approx(1.0)
        assert cosine_distance([1, 1], [2, 2]) == pytest.approx(0.0)
        assert cosine_distance([0, 0], [1, 1]) == 1.0

    def test_hamming(self):
        assert hamming_distance(["a", "b", "c"], ["a", "x", "y"]) == 2.0

    def test_simple_matching(self):
        """One shared value out of four gives similarity 0.5, distance 1."""
        assert simple_matching_distance(("a", "b"), ("b", "c")) == pytest.approx(1.0)
        assert simple_matching_distance(("a", "b"), ("a", "b")) == pytest.approx(0.0)

    def test_simple_matching_no_shared_values(self):
        assert math.isinf(simple_matching_distance(("a",), ("b",)))


@pytest.mark.unit
class TestMetricRegistry:
    """Test suite for metric resolution."""

    def test_default_metric(self):
        assert get_metric().name == "squared_euclidean"

    def test_resolve_by_name_and_alias(self):
        assert get_metric("EUCLIDEAN").name == "euclidean"
        assert get_metric("sup").name == "chebyshev"
        assert get_metric("sqeuclidean").name == "squared_euclidean"

    def test_unknown_metric(self):
        with pytest.raises(InvalidConfigurationError) as exc_info:
            get_metric("mahalanobis")
        assert exc_info.value.details["metric"] == "mahalanobis"

    def test_metric_instance_passthrough(self):
        metric = METRICS["manhattan"]
        assert get_metric(metric) is metric

    def test_custom_callable(self):
        def first_attribute(a, b):
            return abs(a[0] - b[0])

        metric = get_metric(first_attribute)
        assert isinstance(metric, Metric)
        assert metric.name == "first_attribute"
        assert metric([1, 5], [4, 0]) == 3

    def test_non_callable_rejected(self):
        with pytest.raises(InvalidConfigurationError):
            get_metric(42)

    @pytest.mark.parametrize("name", ["squared_euclidean", "euclidean", "manhattan", "chebyshev", "cosine"])
    def test_vectorized_matches_scalar(self, name):
        """one_to_many agrees with the scalar function for numeric metrics."""
        rng = np.random.default_rng(0)
        rows = rng.random((6, 4))
        vector = rng.random(4)
        metric = get_metric(name)

        expected = [metric(row, vector) for row in rows]
        np.testing.assert_allclose(metric.one_to_many(rows, vector), expected)

    def test_one_to_many_categorical(self):
        metric = get_metric("hamming")
        rows = [("a", "b"), ("a", "c"), ("x", "y")]
        np.testing.assert_array_equal(metric.one_to_many(rows, ("a", "b")), [0.0, 1.0, 2.0])


@pytest.mark.unit
class TestValidateRecords:
    """Test suite for record validation."""

    def test_numeric_records_to_array(self):
        rows = validate_records([[1, 2], [3, 4]], get_metric())
        assert isinstance(rows, np.ndarray)
        assert rows.dtype == np.float64
        assert rows.shape == (2, 2)

    def test_empty_records(self):
        with pytest.raises(InvalidInputError):
            validate_records([], get_metric())

    def test_empty_array(self):
        with pytest.raises(InvalidInputError):
            validate_records(np.empty((0, 2)), get_metric())

    def test_mismatched_arity(self):
        with pytest.raises(InvalidInputError) as exc_info:
            validate_records([[1, 2], [3, 4, 5]], get_metric())
        assert exc_info.value.details["record"] == 1

    def test_non_numeric_under_numeric_metric(self):
        with pytest.raises(InvalidInputError):
            validate_records([[1, 2], [3, "x"]], get_metric())

    def test_bool_and_nan_rejected(self):
        with pytest.raises(InvalidInputError):
            validate_records([[True, 2]], get_metric())
        with pytest.raises(InvalidInputError):
            validate_records([[float("nan"), 2]], get_metric())

    def test_one_dimensional_array_rejected(self):
        with pytest.raises(InvalidInputError):
            validate_records(np.array([1.0, 2.0]), get_metric())

    def test_categorical_records(self):
        rows = validate_records([["a", "b"], ["c", "d"]], get_metric("hamming"))
        assert rows == [("a", "b"), ("c", "d")]

    def test_invalid_input_is_value_error(self):
        """Callers catching ValueError also see input errors."""
        with pytest.raises(ValueError):
            validate_records([], get_metric())

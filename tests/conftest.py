"""
Pytest configuration and shared fixtures for hierclust tests.

This module provides:
- Shared test fixtures
- Small hand-checked scenario data
- Synthetic data with clear cluster structure
- Settings isolation between tests
"""

import os

import numpy as np
import pytest

from hierclust.config.settings_loader import ConfigManager, Settings
from hierclust.schemas.data_models import RecordSet

# Set test environment variables
os.environ["TESTING"] = "true"
os.environ["LOG_LEVEL"] = "DEBUG"


# =============================================================================
# Test Data
# =============================================================================

SCENARIO_ITEMS = [
    [10, 3], [3, 10], [2, 8], [2, 5], [3, 8], [10, 3],
    [1, 3], [8, 1], [2, 9], [2, 5], [3, 3], [9, 4],
]


@pytest.fixture
def scenario_items():
    """Twelve 2-D points with duplicates (0/5 and 3/9)."""
    return [list(item) for item in SCENARIO_ITEMS]


@pytest.fixture
def scenario_record_set(scenario_items):
    """Scenario points as a labeled RecordSet."""
    return RecordSet(data_labels=["x", "y"], data_items=scenario_items)


@pytest.fixture
def scenario_single_k4():
    """Single linkage into 4 clusters, in partition order."""
    return [[7], [1, 2, 4, 8], [0, 5, 11], [3, 6, 9, 10]]


@pytest.fixture
def two_blobs():
    """Two tight, well separated groups of four points."""
    return np.array(
        [[1, 1], [1, 2], [2, 1], [2, 2], [8, 8], [8, 9], [9, 8], [9, 9]],
        dtype=np.float64,
    )


@pytest.fixture
def clustered_vectors():
    """
    Generate vectors with clear cluster structure.

    Creates 3 distinct clusters of 15 points around [0, 0, 0], [10, 0, 0]
    and [0, 10, 0].
    """
    rng = np.random.default_rng(42)
    n_per_cluster = 15
    centers = np.array([[0.0, 0.0, 0.0], [10.0, 0.0, 0.0], [0.0, 10.0, 0.0]])

    vectors = []
    labels = []
    for label, center in enumerate(centers):
        vectors.append(center + rng.normal(scale=0.5, size=(n_per_cluster, 3)))
        labels.extend([label] * n_per_cluster)

    return np.vstack(vectors), np.array(labels)


@pytest.fixture
def random_vectors():
    """Unstructured random vectors without distance ties."""
    rng = np.random.default_rng(7)
    return rng.random((40, 3))


# =============================================================================
# Settings
# =============================================================================

@pytest.fixture(autouse=True)
def reset_settings():
    """Drop cached settings before and after every test."""
    ConfigManager.reset()
    yield
    ConfigManager.reset()


@pytest.fixture
def default_settings():
    """Built-in default settings, independent of any settings file."""
    return Settings()

"""
Unit tests for ClusteringEngine orchestration layer.

Tests the ClusteringEngine class including:
- Algorithm selection and instantiation
- Parameter validation
- Capability queries
- Materializing clusters in the caller's container type
"""

import numpy as np
import pytest

from hierclust.core.clustering_engine import ClusteringEngine
from hierclust.schemas.data_models import RecordSet
from hierclust.utils.error_handling import InvalidConfigurationError, InvalidInputError


@pytest.fixture
def engine(default_settings):
    return ClusteringEngine(default_settings)


@pytest.mark.unit
class TestClusteringEngine:
    """Test suite for ClusteringEngine."""

    def test_algorithm_registry(self, engine):
        """Test that all algorithms are registered."""
        for alg in ["agglomerative", "divisive", "diana"]:
            assert alg in engine.ALGORITHMS

    def test_cluster_agglomerative(self, engine, clustered_vectors):
        vectors, _ = clustered_vectors
        result = engine.cluster(vectors, algorithm="agglomerative", algorithm_params={"n_clusters": 3})

        assert result.n_clusters == 3
        assert len(result.labels) == len(vectors)
        assert result.algorithm == "agglomerative"

    def test_cluster_divisive(self, engine, clustered_vectors):
        vectors, _ = clustered_vectors
        for name in ["divisive", "diana"]:
            result = engine.cluster(vectors, algorithm=name, algorithm_params={"n_clusters": 3})
            assert result.n_clusters == 3
            assert result.algorithm == "divisive"

    def test_default_algorithm(self, engine, scenario_items):
        """No algorithm given: settings pick agglomerative, single linkage, one cluster."""
        result = engine.cluster(scenario_items)

        assert result.algorithm == "agglomerative"
        assert result.linkage == "single"
        assert result.n_clusters == 1

    def test_case_insensitive_algorithm_name(self, engine, scenario_items):
        for alg_name in ["DIANA", "Divisive", "AGGLOMERATIVE"]:
            result = engine.cluster(scenario_items, algorithm=alg_name, algorithm_params={"n_clusters": 2})
            assert result.n_clusters == 2

    def test_unsupported_algorithm(self, engine, scenario_items):
        with pytest.raises(InvalidConfigurationError):
            engine.cluster(scenario_items, algorithm="kmeans")

    def test_errors_propagate(self, engine):
        with pytest.raises(InvalidInputError):
            engine.cluster([], algorithm_params={"n_clusters": 1})

    def test_cluster_record_set(self, engine, scenario_record_set):
        clusters, result = engine.cluster_record_set(scenario_record_set, algorithm_params={"n_clusters": 4})

        assert len(clusters) == 4
        assert all(isinstance(cluster, RecordSet) for cluster in clusters)
        assert sum(len(cluster) for cluster in clusters) == 12
        assert clusters[1].data_items == [[3, 10], [2, 8], [3, 8], [2, 9]]
        assert result.member_counts == [len(cluster) for cluster in clusters]

    def test_cluster_record_set_numpy(self, engine, two_blobs):
        clusters, _ = engine.cluster_record_set(two_blobs, "diana", {"n_clusters": 2})

        assert all(isinstance(cluster, np.ndarray) for cluster in clusters)
        assert sorted(len(cluster) for cluster in clusters) == [4, 4]

    def test_supports_assignment(self, engine):
        assert engine.supports_assignment("agglomerative", {"linkage": "single"})
        assert engine.supports_assignment("agglomerative", {"linkage": "average"})
        assert not engine.supports_assignment("agglomerative", {"linkage": "ward"})
        assert not engine.supports_assignment("agglomerative", {"linkage": "weighted_average"})
        assert engine.supports_assignment("diana")
        assert engine.supports_assignment()

    def test_available_linkages(self, engine):
        assert len(engine.available_linkages()) == 7
        assert "ward" in engine.available_linkages()

    def test_validate_clustering_config(self, engine):
        """Test parameter validation."""
        assert engine.validate_clustering_config("agglomerative", {"n_clusters": 3, "linkage": "ward"}) == {}
        assert engine.validate_clustering_config("divisive", {"n_clusters": 3}) == {}

        errors = engine.validate_clustering_config("agglomerative", {"n_clusters": 3, "distance_threshold": 1.0})
        assert "config" in errors

        errors = engine.validate_clustering_config("agglomerative", {"n_clusters": 0})
        assert "n_clusters" in errors

        errors = engine.validate_clustering_config("agglomerative", {"n_clusters": 20}, n_records=12)
        assert "n_clusters" in errors

        errors = engine.validate_clustering_config("agglomerative", {"linkage": "flexible"})
        assert "linkage" in errors

        errors = engine.validate_clustering_config("agglomerative", {"linkage": "ward", "metric": "hamming"})
        assert "linkage" in errors

        errors = engine.validate_clustering_config("agglomerative", {"metric": "canberra"})
        assert "metric" in errors

        errors = engine.validate_clustering_config("divisive", {"distance_threshold": 2.0})
        assert "distance_threshold" in errors

        errors = engine.validate_clustering_config("kmeans", {})
        assert "algorithm" in errors

    def test_validate_stopping_rule_types(self, engine):
        assert engine.validate_clustering_config("agglomerative", {"n_clusters": np.int64(3)}, n_records=12) == {}
        assert engine.validate_clustering_config("divisive", {"n_clusters": np.int32(3)}) == {}
        assert engine.validate_clustering_config("agglomerative", {"distance_threshold": np.float64(1.5)}) == {}

        errors = engine.validate_clustering_config("agglomerative", {"n_clusters": np.int64(20)}, n_records=12)
        assert "n_clusters" in errors

        for bad in [2.0, True, "3"]:
            assert "n_clusters" in engine.validate_clustering_config("agglomerative", {"n_clusters": bad})

        for bad in ["abc", True, float("nan")]:
            errors = engine.validate_clustering_config("agglomerative", {"distance_threshold": bad})
            assert "distance_threshold" in errors

    def test_invalid_distance_threshold_raises_before_clustering(self, engine, scenario_items):
        with pytest.raises(InvalidConfigurationError):
            engine.create_algorithm("agglomerative", {"distance_threshold": "abc"})
        with pytest.raises(InvalidConfigurationError):
            engine.cluster(scenario_items, "agglomerative", {"distance_threshold": "abc"})

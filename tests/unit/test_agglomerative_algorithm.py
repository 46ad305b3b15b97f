"""
Unit tests for Agglomerative clustering algorithm.

Tests the AgglomerativeAlgorithm class including:
- Merge order and tie-breaking on hand-checked data
- Stopping by cluster count and by distance threshold
- Every linkage method
- Quality metrics and assignment capability
- Configuration and input errors
"""

import numpy as np
import pytest

from hierclust.core.agglomerative_algorithm import AgglomerativeAlgorithm
from hierclust.core.base_clustering import ClusteringConfig
from hierclust.core.linkage import LINKAGES
from hierclust.utils.error_handling import (
    InvalidConfigurationError,
    InvalidInputError,
    UnsupportedOperationError,
)


def _algorithm(settings=None, **params):
    config = ClusteringConfig(algorithm_name="agglomerative", params=params)
    return AgglomerativeAlgorithm(config, settings)


@pytest.mark.unit
class TestAgglomerativeAlgorithm:
    """Test suite for Agglomerative clustering algorithm."""

    def test_init(self, default_settings):
        """Test Agglomerative algorithm initialization."""
        clusterer = _algorithm(default_settings, n_clusters=5, linkage="complete")

        assert clusterer.name == "agglomerative"
        assert clusterer.n_clusters == 5
        assert clusterer.linkage.name == "complete"
        assert clusterer.metric.name == "squared_euclidean"

    def test_defaults_from_settings(self, default_settings):
        """Neither stopping rule given: n_clusters comes from settings."""
        clusterer = _algorithm(default_settings)

        assert clusterer.n_clusters == 1
        assert clusterer.distance_threshold is None
        assert clusterer.linkage.name == "single"

    def test_single_linkage_scenario(self, scenario_items, scenario_single_k4, default_settings):
        """Single linkage into 4 clusters, with ties broken by group id."""
        result = _algorithm(default_settings, n_clusters=4).cluster(scenario_items)

        assert result.n_clusters == 4
        assert result.clusters == scenario_single_k4
        assert sum(result.member_counts) == 12
        assert result.member_counts == [1, 4, 3, 4]
        assert result.merge_distances == [0.0, 0.0, 1.0, 1.0, 2.0, 2.0, 4.0, 5.0]
        assert result.final_distance == 5.0

    def test_labels_follow_partition_order(self, scenario_items, default_settings):
        result = _algorithm(default_settings, n_clusters=4).cluster(scenario_items)

        for position, members in enumerate(result.clusters):
            assert all(result.labels[i] == position for i in members)

    def test_merge_history(self, scenario_items, default_settings):
        """Duplicates merge first; merged groups get ids n, n + 1, ..."""
        result = _algorithm(default_settings, n_clusters=4).cluster(scenario_items)
        merges = result.dendrogram.merges

        assert (merges[0].group_a, merges[0].group_b, merges[0].merged_id) == (0, 5, 12)
        assert (merges[1].group_a, merges[1].group_b, merges[1].merged_id) == (3, 9, 13)
        assert [merge.size for merge in merges[:4]] == [2, 2, 2, 3]

    def test_ties_resolve_by_ascending_group_ids(self, default_settings):
        """(0, 3) and (1, 2) are both at distance 1; the lower pair merges first."""
        result = _algorithm(default_settings, n_clusters=2).cluster([[0], [10], [11], [1]])
        merges = result.dendrogram.merges

        assert (merges[0].group_a, merges[0].group_b, merges[0].merged_id) == (0, 3, 4)
        assert (merges[1].group_a, merges[1].group_b, merges[1].merged_id) == (1, 2, 5)
        assert result.clusters == [[0, 3], [1, 2]]
        assert result.merge_distances == [1.0, 1.0]

    def test_tied_merge_into_newer_group_waits_for_lower_pair(self, scenario_items, default_settings):
        """At distance 2, (1, 15) precedes (11, 12)."""
        result = _algorithm(default_settings, n_clusters=1).cluster(scenario_items)
        merges = result.dendrogram.merges

        assert (merges[4].group_a, merges[4].group_b, merges[4].merged_id) == (1, 15, 16)
        assert (merges[5].group_a, merges[5].group_b, merges[5].merged_id) == (11, 12, 17)

    def test_cluster_with_distance_threshold(self, scenario_items, default_settings):
        """Merging stops before the first merge above the threshold."""
        result = _algorithm(default_settings, distance_threshold=1.0).cluster(scenario_items)

        assert result.n_clusters == 8
        assert max(result.merge_distances) <= 1.0

        result = _algorithm(default_settings, distance_threshold=0.5).cluster(scenario_items)
        assert result.n_clusters == 10

    def test_full_tree(self, scenario_items, scenario_single_k4, default_settings):
        """compute_full_tree keeps merging for the dendrogram only."""
        result = _algorithm(default_settings, n_clusters=4, compute_full_tree=True).cluster(scenario_items)

        assert result.clusters == scenario_single_k4
        assert len(result.merge_distances) == 8
        assert len(result.dendrogram) == 11

    def test_n_clusters_equal_to_n(self, scenario_items, default_settings):
        result = _algorithm(default_settings, n_clusters=12).cluster(scenario_items)

        assert result.n_clusters == 12
        assert result.merge_distances == []
        assert result.final_distance is None

    def test_single_record(self, default_settings):
        result = _algorithm(default_settings, n_clusters=1).cluster([[1.0, 2.0]])

        assert result.clusters == [[0]]
        assert result.final_distance is None

    @pytest.mark.parametrize("linkage", list(LINKAGES))
    def test_different_linkage_methods(self, linkage, clustered_vectors, default_settings):
        """Every linkage recovers three well separated clusters."""
        vectors, labels = clustered_vectors
        result = _algorithm(default_settings, n_clusters=3, linkage=linkage).cluster(vectors)

        assert result.n_clusters == 3
        assert sorted(result.member_counts) == [15, 15, 15]
        found = {frozenset(members) for members in result.clusters}
        expected = {frozenset(np.flatnonzero(labels == label).tolist()) for label in range(3)}
        assert found == expected

    @pytest.mark.parametrize("linkage", ["single", "complete", "average", "weighted_average", "ward"])
    def test_monotonic_merge_distances(self, linkage, random_vectors, default_settings):
        result = _algorithm(default_settings, n_clusters=1, linkage=linkage).cluster(random_vectors)
        heights = result.merge_distances

        assert len(heights) == len(random_vectors) - 1
        assert all(a <= b + 1e-9 for a, b in zip(heights, heights[1:]))

    def test_quality_metrics(self, two_blobs, default_settings):
        """Silhouette over squared Euclidean distances for two tight blobs."""
        result = _algorithm(default_settings, n_clusters=2, linkage="ward").cluster(two_blobs)

        assert result.clusters == [[0, 1, 2, 3], [4, 5, 6, 7]]
        assert result.quality_metrics["silhouette_score"] == pytest.approx(0.98639, abs=1e-4)

    def test_quality_metrics_skipped_for_trivial_partitions(self, two_blobs, default_settings):
        assert _algorithm(default_settings, n_clusters=1).cluster(two_blobs).quality_metrics == {}
        assert _algorithm(default_settings, n_clusters=8).cluster(two_blobs).quality_metrics == {}

    def test_assignment_supported(self, scenario_items, default_settings):
        result = _algorithm(default_settings, n_clusters=4).cluster(scenario_items)

        assert result.supports_assignment
        assert result.assign([0, 8]) == result.labels[2] == 1
        assert result.assign([8, 0]) == 0

    @pytest.mark.parametrize("linkage", ["weighted_average", "centroid", "median", "ward"])
    def test_assignment_unsupported(self, linkage, scenario_items, default_settings):
        result = _algorithm(default_settings, n_clusters=4, linkage=linkage).cluster(scenario_items)

        assert not result.supports_assignment
        with pytest.raises(UnsupportedOperationError):
            result.assign([0, 8])

    def test_categorical_records(self, default_settings):
        records = [["red", "small"], ["red", "large"], ["blue", "large"], ["blue", "large"]]
        result = _algorithm(default_settings, n_clusters=2, metric="hamming").cluster(records)

        assert result.clusters == [[2, 3], [0, 1]]
        assert result.metric == "hamming"

    def test_record_set_input(self, scenario_record_set, scenario_single_k4, default_settings):
        result = _algorithm(default_settings, n_clusters=4).cluster(scenario_record_set)
        assert result.clusters == scenario_single_k4

    def test_result_to_dict_and_report(self, scenario_items, default_settings):
        result = _algorithm(default_settings, n_clusters=4).cluster(scenario_items)
        data = result.to_dict()
        report = result.to_report()

        assert data["n_clusters"] == 4
        assert data["total_items"] == 12
        assert data["linkage"] == "single"
        assert report.member_counts == [1, 4, 3, 4]
        assert report.final_distance == 5.0
        assert report.processing_time_ms is not None

    def test_both_stopping_rules(self, default_settings):
        with pytest.raises(InvalidConfigurationError):
            _algorithm(default_settings, n_clusters=3, distance_threshold=2.0)

    @pytest.mark.parametrize("n_clusters", [0, -1, 2.5])
    def test_invalid_n_clusters(self, n_clusters, default_settings):
        with pytest.raises(InvalidConfigurationError):
            _algorithm(default_settings, n_clusters=n_clusters)

    @pytest.mark.parametrize("n_clusters", [np.int64(2), np.int32(2), np.uint8(2)])
    def test_numpy_integer_n_clusters(self, n_clusters, two_blobs, default_settings):
        clusterer = _algorithm(default_settings, n_clusters=n_clusters, linkage="ward")

        assert type(clusterer.n_clusters) is int
        assert clusterer.cluster(two_blobs).clusters == [[0, 1, 2, 3], [4, 5, 6, 7]]

    @pytest.mark.parametrize("n_clusters", [True, "2", 2.0])
    def test_non_integer_n_clusters(self, n_clusters, default_settings):
        with pytest.raises(InvalidConfigurationError):
            _algorithm(default_settings, n_clusters=n_clusters)

    @pytest.mark.parametrize("threshold", ["abc", True, float("nan"), [1.0]])
    def test_invalid_distance_threshold(self, threshold, default_settings):
        """Rejected at construction, before any records are seen."""
        with pytest.raises(InvalidConfigurationError) as exc_info:
            _algorithm(default_settings, distance_threshold=threshold)

        assert "distance_threshold" in exc_info.value.details

    def test_numpy_distance_threshold(self, scenario_items, default_settings):
        clusterer = _algorithm(default_settings, distance_threshold=np.float64(1.0))

        assert type(clusterer.distance_threshold) is float
        assert clusterer.cluster(scenario_items).n_clusters == 8

    def test_n_clusters_above_record_count(self, scenario_items, default_settings):
        with pytest.raises(InvalidConfigurationError):
            _algorithm(default_settings, n_clusters=13).cluster(scenario_items)

    def test_unknown_linkage_and_metric(self, default_settings):
        with pytest.raises(InvalidConfigurationError):
            _algorithm(default_settings, linkage="flexible")
        with pytest.raises(InvalidConfigurationError):
            _algorithm(default_settings, metric="canberra")

    def test_center_linkage_with_categorical_metric(self, default_settings):
        with pytest.raises(InvalidConfigurationError):
            _algorithm(default_settings, linkage="ward", metric="hamming")

    def test_invalid_input(self, default_settings):
        clusterer = _algorithm(default_settings, n_clusters=1)
        with pytest.raises(InvalidInputError):
            clusterer.cluster([])
        with pytest.raises(InvalidInputError):
            clusterer.cluster([[1, 2], [3]])
        with pytest.raises(InvalidInputError):
            clusterer.cluster([[1, 2], [3, "four"]])

    def test_invalid_input_checked_before_count(self, default_settings):
        """Bad records are reported even when the count is also out of range."""
        with pytest.raises(InvalidInputError):
            _algorithm(default_settings, n_clusters=5).cluster([[1, 2], [3]])

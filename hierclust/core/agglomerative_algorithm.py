"""
Agglomerative Hierarchical Clustering Algorithm Implementation.

Starts from one group per record and repeatedly merges the closest pair
of groups, as measured by the configured linkage, until the requested
number of clusters is left or the next merge would exceed the distance
threshold.

Group-pair distances live in a heap keyed by (distance, lower id, higher id),
so equal distances resolve in ascending order of the group-id pair.
A pair's distance never changes while both groups are alive, so after a
merge only the pairs involving the new group are computed; pairs whose
groups were merged away are dropped lazily when they reach the top.
"""

import heapq
import logging
import uuid
from typing import Any, List, Optional, Tuple

from hierclust.config.settings_loader import Settings
from hierclust.core.assignment import ClusterAssigner
from hierclust.core.base_clustering import (
    BaseClusteringAlgorithm,
    ClusteringConfig,
    ClusteringResult,
)
from hierclust.core.dendrogram import Dendrogram, MergeStep
from hierclust.core.distance_matrix import DistanceMatrix
from hierclust.core.linkage import get_linkage
from hierclust.core.partition import IndexGroup, Partition
from hierclust.utils.advanced_logging import BatchLogger, LogContext, PerformanceLogger, get_logger
from hierclust.utils.error_handling import InvalidConfigurationError

logger = logging.getLogger(__name__)

HeapEntry = Tuple[float, int, int]


class AgglomerativeAlgorithm(BaseClusteringAlgorithm):
    """
    Agglomerative hierarchical clustering.

    Params:
        linkage: single, complete, average, weighted_average, centroid, median or ward
        metric: Metric name or callable
        n_clusters: Target number of clusters
        distance_threshold: Stop before the first merge farther apart than this
        compute_full_tree: Keep merging to a single group so the dendrogram covers every level
    """

    def __init__(self, config: ClusteringConfig, settings: Optional[Settings] = None):
        """
        Initialize Agglomerative algorithm.

        Args:
            config: Clustering configuration
            settings: Settings to take defaults from
        """
        super().__init__(config, settings)
        defaults = self.settings.clustering.algorithms.agglomerative
        params = config.params

        self.linkage = get_linkage(params.get("linkage") or defaults.linkage)
        self.metric = self._resolve_metric(params.get("metric"), defaults.metric)
        self.linkage.check_metric(self.metric)
        self.n_clusters = params.get("n_clusters")
        self.distance_threshold = params.get("distance_threshold")
        self.compute_full_tree = bool(params.get("compute_full_tree", False))
        self.progress_log_interval = defaults.progress_log_interval

        if self.n_clusters is not None and self.distance_threshold is not None:
            raise InvalidConfigurationError(
                "n_clusters and distance_threshold are mutually exclusive",
                details={"n_clusters": self.n_clusters, "distance_threshold": self.distance_threshold},
            )

        if self.n_clusters is None and self.distance_threshold is None:
            self.n_clusters = defaults.n_clusters
            logger.warning(
                "Neither n_clusters nor distance_threshold specified, "
                f"defaulting to n_clusters={self.n_clusters}"
            )

        if self.n_clusters is not None:
            self.n_clusters = self.coerce_n_clusters(self.n_clusters)
        if self.distance_threshold is not None:
            self.distance_threshold = self.coerce_distance_threshold(self.distance_threshold)

        logger.info(
            f"Initialized Agglomerative: n_clusters={self.n_clusters}, "
            f"distance_threshold={self.distance_threshold}, linkage={self.linkage.name}, "
            f"metric={self.metric.name}"
        )

    def cluster(self, records: Any) -> ClusteringResult:
        """
        Perform Agglomerative clustering.

        Args:
            records: RecordSet, 2-D array or rectangular sequence of records

        Returns:
            ClusteringResult with the final partition, merge history and metrics

        Raises:
            InvalidInputError: On empty, ragged or non-numeric input
            InvalidConfigurationError: If n_clusters exceeds the number of records
        """
        run_id = f"agglomerative-{uuid.uuid4().hex[:12]}"
        with LogContext.correlation_context(run_id):
            perf_logger = get_logger(__name__)
            with PerformanceLogger(
                "agglomerative_clustering",
                logger=perf_logger,
                linkage=self.linkage.name,
                metric=self.metric.name,
            ) as perf:
                rows, matrix = self._prepare(records, self.metric, self.n_clusters)
                perf.item_count = len(rows)
                logger.info(f"Starting Agglomerative clustering on {len(rows)} records")

                result = self._run(rows, matrix, perf_logger)
                result.processing_time_ms = round(perf.elapsed_time * 1000, 3)

        logger.info(
            f"Agglomerative created {result.n_clusters} clusters "
            f"(final distance {result.final_distance})"
        )
        return result

    # ------------------------------------------------------------------
    # Merge loop
    # ------------------------------------------------------------------

    def _initial_heap(self, matrix: DistanceMatrix) -> List[HeapEntry]:
        # every linkage reduces to the record distance between two singletons
        condensed = matrix.condensed.tolist()
        heap = [
            (condensed[i * (i - 1) // 2 + j], j, i)
            for i in range(1, matrix.size)
            for j in range(i)
        ]
        heapq.heapify(heap)
        return heap

    @staticmethod
    def _closest_pair(heap: List[HeapEntry], partition: Partition) -> Optional[HeapEntry]:
        while heap:
            entry = heap[0]
            if entry[1] in partition and entry[2] in partition:
                return entry
            heapq.heappop(heap)
        return None

    def _should_stop(self, n_groups: int, distance: float) -> bool:
        if self.distance_threshold is not None:
            return distance > self.distance_threshold
        return n_groups <= self.n_clusters

    def _run(self, rows, matrix: DistanceMatrix, perf_logger) -> ClusteringResult:
        n = matrix.size
        partition = Partition.singletons(n)
        if self.linkage.requires_aggregates:
            for group in partition:
                group.aggregate = self.linkage.initial_aggregate(group.group_id, rows)

        sizes = partition.sizes()
        heap = self._initial_heap(matrix)
        merges: List[MergeStep] = []
        snapshot = None

        expected = n - (self.n_clusters if self.n_clusters is not None else 1)
        if self.compute_full_tree:
            expected = n - 1
        progress = BatchLogger(
            total_items=expected,
            operation="agglomerative_merge",
            log_interval=self.progress_log_interval,
            logger=perf_logger,
        )

        def pair_distance(group_a: IndexGroup, group_b: IndexGroup) -> float:
            return self.linkage.inter_group_distance(group_a, group_b, matrix, sizes)

        while len(partition) > 1:
            distance, low_id, high_id = self._closest_pair(heap, partition)

            if snapshot is None and self._should_stop(len(partition), distance):
                snapshot = (partition.index_lists(), partition.labels(n), len(merges))
                if not self.compute_full_tree:
                    break

            heapq.heappop(heap)
            low = partition[low_id]
            high = partition[high_id]
            others = [group for group in partition if group.group_id not in (low_id, high_id)]

            aggregate = None
            if self.linkage.requires_aggregates:
                aggregate = self.linkage.merge_aggregate(low, high, others, pair_distance)

            merged = partition.merge(low_id, high_id, aggregate)
            del sizes[low_id], sizes[high_id]
            sizes[merged.group_id] = merged.size
            merges.append(MergeStep(len(merges), low_id, high_id, merged.group_id, distance, merged.size))

            for other in others:
                # the merged group always has the largest id
                heapq.heappush(heap, (pair_distance(merged, other), other.group_id, merged.group_id))
            progress.update()

        progress.complete()
        partition.validate(n)
        if snapshot is None:
            snapshot = (partition.index_lists(), partition.labels(n), len(merges))

        clusters, labels, n_merges = snapshot
        merge_distances = [merge.distance for merge in merges[:n_merges]]

        assigner = None
        if self.linkage.supports_assignment:
            assigner = ClusterAssigner(rows, labels, self.metric)

        return ClusteringResult(
            cluster_labels=labels,
            clusters=clusters,
            algorithm="agglomerative",
            metric=self.metric.name,
            linkage=self.linkage.name,
            final_distance=merge_distances[-1] if merge_distances else None,
            merge_distances=merge_distances,
            dendrogram=Dendrogram(n, merges),
            quality_metrics=self._calculate_quality_metrics(matrix, labels),
            assigner=assigner,
        )

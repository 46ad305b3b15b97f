"""
DIANA (DIvisive ANAlysis) Clustering Algorithm Implementation.

Starts from a single group holding every record and repeatedly splits the
group with the largest diameter until the requested number of clusters is
reached:

1. The member with the largest average distance to the rest of the group
   seeds a splinter group.
2. Members whose average distance to the splinter is smaller than their
   average distance to the rest move over, one at a time, the member with
   the largest difference first. Averages are recomputed after each move.
"""

import logging
import uuid
from typing import Any, List, Optional

import numpy as np

from hierclust.config.settings_loader import Settings
from hierclust.core.assignment import ClusterAssigner
from hierclust.core.base_clustering import (
    BaseClusteringAlgorithm,
    ClusteringConfig,
    ClusteringResult,
)
from hierclust.core.distance_matrix import DistanceMatrix
from hierclust.core.partition import IndexGroup, Partition
from hierclust.utils.advanced_logging import BatchLogger, LogContext, PerformanceLogger, get_logger
from hierclust.utils.error_handling import InvalidConfigurationError

logger = logging.getLogger(__name__)


class DianaAlgorithm(BaseClusteringAlgorithm):
    """
    Divisive hierarchical clustering.

    Params:
        metric: Metric name or callable
        n_clusters: Target number of clusters
    """

    def __init__(self, config: ClusteringConfig, settings: Optional[Settings] = None):
        super().__init__(config, settings)
        defaults = self.settings.clustering.algorithms.divisive
        params = config.params

        if params.get("distance_threshold") is not None:
            raise InvalidConfigurationError(
                "distance_threshold is only supported by agglomerative clustering",
                details={"distance_threshold": params["distance_threshold"]},
            )
        linkage = params.get("linkage")
        if linkage is not None:
            logger.warning(f"Ignoring linkage '{linkage}': DIANA splits by diameter")

        self.metric = self._resolve_metric(params.get("metric"), defaults.metric)
        self.n_clusters = params.get("n_clusters")
        if self.n_clusters is None:
            self.n_clusters = defaults.n_clusters
            logger.warning(f"n_clusters not specified, defaulting to n_clusters={self.n_clusters}")
        self.n_clusters = self.coerce_n_clusters(self.n_clusters)
        self.progress_log_interval = defaults.progress_log_interval

        logger.info(f"Initialized DIANA: n_clusters={self.n_clusters}, metric={self.metric.name}")

    def cluster(self, records: Any) -> ClusteringResult:
        """
        Perform DIANA clustering.

        Args:
            records: RecordSet, 2-D array or rectangular sequence of records

        Returns:
            ClusteringResult with the final partition and split diameters

        Raises:
            InvalidInputError: On empty, ragged or non-numeric input
            InvalidConfigurationError: If n_clusters exceeds the number of records
        """
        run_id = f"diana-{uuid.uuid4().hex[:12]}"
        with LogContext.correlation_context(run_id):
            perf_logger = get_logger(__name__)
            with PerformanceLogger("diana_clustering", logger=perf_logger, metric=self.metric.name) as perf:
                rows, matrix = self._prepare(records, self.metric, self.n_clusters)
                perf.item_count = len(rows)
                logger.info(f"Starting DIANA clustering on {len(rows)} records")

                result = self._run(rows, matrix, perf_logger)
                result.processing_time_ms = round(perf.elapsed_time * 1000, 3)

        logger.info(f"DIANA created {result.n_clusters} clusters")
        return result

    # ------------------------------------------------------------------
    # Split loop
    # ------------------------------------------------------------------

    @staticmethod
    def diameter(group: IndexGroup, matrix: DistanceMatrix) -> float:
        """Largest distance between two members (0 for singletons)."""
        pairs = matrix.within(group.members)
        return float(pairs.max()) if pairs.size else 0.0

    def _widest_group(self, partition: Partition, matrix: DistanceMatrix):
        widest, widest_diameter = None, -1.0
        for group in partition:
            if group.size < 2:
                continue
            diameter = self.diameter(group, matrix)
            if diameter > widest_diameter:
                widest, widest_diameter = group, diameter
        return widest, widest_diameter

    @staticmethod
    def find_splinter(members: List[int], matrix: DistanceMatrix) -> List[int]:
        """
        Members that leave ``members`` to form the splinter group.

        Args:
            members: Sorted record indices of the group being split (at least 2)
            matrix: Record distance matrix

        Returns:
            Sorted record indices of the splinter group
        """
        block = matrix.submatrix(members)
        size = len(members)
        in_splinter = np.zeros(size, dtype=bool)

        seed = int(np.argmax(block.sum(axis=1) / (size - 1)))
        in_splinter[seed] = True

        while True:
            rest = ~in_splinter
            rest_count = int(rest.sum())
            if rest_count < 2:
                break
            splinter_count = size - rest_count
            # diagonal is zero, so row sums over the rest exclude the member itself
            to_rest = block[:, rest].sum(axis=1) / (rest_count - 1)
            to_splinter = block[:, in_splinter].sum(axis=1) / splinter_count
            difference = np.where(rest, to_rest - to_splinter, -np.inf)
            candidate = int(np.argmax(difference))
            if difference[candidate] <= 0:
                break
            in_splinter[candidate] = True

        return [members[i] for i in np.flatnonzero(in_splinter)]

    def _run(self, rows, matrix: DistanceMatrix, perf_logger) -> ClusteringResult:
        n = matrix.size
        partition = Partition.single_group(n)
        split_diameters: List[float] = []
        progress = BatchLogger(
            total_items=self.n_clusters - 1,
            operation="diana_split",
            log_interval=self.progress_log_interval,
            logger=perf_logger,
        )

        while len(partition) < self.n_clusters:
            group, diameter = self._widest_group(partition, matrix)
            splinter = self.find_splinter(group.members, matrix)
            remainder, splinter_group = partition.split(group.group_id, splinter)
            split_diameters.append(diameter)
            logger.debug(
                f"Split group {group.group_id} (diameter {diameter}) into "
                f"{remainder.size} + {splinter_group.size} members"
            )
            progress.update()

        progress.complete()
        partition.validate(n)
        labels = partition.labels(n)

        return ClusteringResult(
            cluster_labels=labels,
            clusters=partition.index_lists(),
            algorithm="divisive",
            metric=self.metric.name,
            final_distance=split_diameters[-1] if split_diameters else None,
            split_diameters=split_diameters,
            quality_metrics=self._calculate_quality_metrics(matrix, labels),
            assigner=ClusterAssigner(rows, labels, self.metric),
        )

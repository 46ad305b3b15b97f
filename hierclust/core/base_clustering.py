"""
Base Clustering Algorithm Interface.

Defines the contract shared by the agglomerative and divisive engines:
configuration, result container, input preparation and quality metrics.
"""

import logging
import math
import numbers
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from hierclust.config.settings_loader import Settings, get_settings
from hierclust.core.assignment import ClusterAssigner
from hierclust.core.dendrogram import Dendrogram
from hierclust.core.distance_matrix import DistanceMatrix
from hierclust.core.metrics import Metric, get_metric, validate_records
from hierclust.schemas.data_models import ClusteringReport, RecordSet
from hierclust.utils.error_handling import InvalidConfigurationError, UnsupportedOperationError

logger = logging.getLogger(__name__)


@dataclass
class ClusteringConfig:
    """Configuration for clustering algorithms."""

    algorithm_name: str
    params: Dict[str, Any] = field(default_factory=dict)


class ClusteringResult:
    """Results from one clustering run."""

    def __init__(
        self,
        cluster_labels: np.ndarray,
        clusters: List[List[int]],
        algorithm: str,
        metric: str,
        linkage: Optional[str] = None,
        final_distance: Optional[float] = None,
        merge_distances: Optional[List[float]] = None,
        split_diameters: Optional[List[float]] = None,
        dendrogram: Optional[Dendrogram] = None,
        quality_metrics: Optional[Dict[str, float]] = None,
        assigner: Optional[ClusterAssigner] = None,
        processing_time_ms: Optional[float] = None,
    ):
        self.cluster_labels = cluster_labels
        self.clusters = clusters
        self.algorithm = algorithm
        self.metric = metric
        self.linkage = linkage
        self.final_distance = final_distance
        self.merge_distances = merge_distances
        self.split_diameters = split_diameters
        self.dendrogram = dendrogram
        self.quality_metrics = quality_metrics or {}
        self.assigner = assigner
        self.processing_time_ms = processing_time_ms

    @property
    def labels(self) -> np.ndarray:
        """Alias for cluster_labels."""
        return self.cluster_labels

    @property
    def n_clusters(self) -> int:
        return len(self.clusters)

    @property
    def total_items(self) -> int:
        return len(self.cluster_labels)

    @property
    def member_counts(self) -> List[int]:
        return [len(members) for members in self.clusters]

    @property
    def supports_assignment(self) -> bool:
        return self.assigner is not None

    def assign(self, record: Sequence[Any]) -> int:
        """
        Cluster index of the nearest original record.

        Raises:
            UnsupportedOperationError: If the linkage keeps no per-record basis for assignment
        """
        if self.assigner is None:
            raise UnsupportedOperationError(
                f"Assignment is not supported for {self.algorithm} clustering "
                f"with linkage '{self.linkage}'",
                details={"algorithm": self.algorithm, "linkage": self.linkage},
            )
        return self.assigner.assign(record)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "algorithm": self.algorithm,
            "linkage": self.linkage,
            "metric": self.metric,
            "n_clusters": self.n_clusters,
            "total_items": self.total_items,
            "clusters": [list(members) for members in self.clusters],
            "member_counts": self.member_counts,
            "final_distance": self.final_distance,
            "merge_distances": self.merge_distances,
            "split_diameters": self.split_diameters,
            "supports_assignment": self.supports_assignment,
            "quality_metrics": self.quality_metrics,
        }

    def to_report(self) -> ClusteringReport:
        return ClusteringReport(
            algorithm=self.algorithm,
            linkage=self.linkage,
            metric=self.metric,
            total_items=self.total_items,
            n_clusters=self.n_clusters,
            member_counts=self.member_counts,
            final_distance=self.final_distance,
            merge_distances=self.merge_distances,
            split_diameters=self.split_diameters,
            supports_assignment=self.supports_assignment,
            quality_metrics=self.quality_metrics,
            processing_time_ms=self.processing_time_ms,
        )


class BaseClusteringAlgorithm(ABC):
    """
    Abstract base class for hierarchical clustering algorithms.

    Subclasses implement cluster(); the base class handles metric
    resolution, record validation and quality metrics.
    """

    def __init__(self, config: ClusteringConfig, settings: Optional[Settings] = None):
        """
        Initialize clustering algorithm.

        Args:
            config: Clustering configuration
            settings: Settings to take defaults from (global settings if None)
        """
        self.config = config
        self.name = config.algorithm_name
        self.settings = settings or get_settings()

    @abstractmethod
    def cluster(self, records: Any) -> ClusteringResult:
        """
        Cluster records.

        Args:
            records: RecordSet, 2-D array or rectangular sequence of records

        Returns:
            ClusteringResult with the final partition
        """

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_metric(metric: Union[str, Metric, None], default: str) -> Metric:
        return get_metric(metric if metric is not None else default)

    @staticmethod
    def _record_items(records: Any) -> Any:
        if isinstance(records, RecordSet):
            return records.data_items
        return records

    def _validate(self, records: Any, metric: Metric) -> Union[np.ndarray, list]:
        rows = validate_records(self._record_items(records), metric)
        if len(rows) > self.settings.clustering.large_dataset_warning:
            logger.warning(
                f"{self.name} clustering on {len(rows)} records needs O(n^2) memory "
                "and may be slow."
            )
        return rows

    @staticmethod
    def coerce_n_clusters(n_clusters: Any) -> int:
        """Accept any integral count (numpy integers included) of at least 1."""
        if isinstance(n_clusters, bool) or not isinstance(n_clusters, numbers.Integral):
            raise InvalidConfigurationError(
                f"n_clusters must be an integer, got {n_clusters!r}",
                details={"n_clusters": repr(n_clusters)},
            )
        n_clusters = int(n_clusters)
        if n_clusters < 1:
            raise InvalidConfigurationError(
                f"Number of clusters must be at least 1, got {n_clusters}",
                details={"n_clusters": n_clusters},
            )
        return n_clusters

    @staticmethod
    def coerce_distance_threshold(distance_threshold: Any) -> float:
        if (
            isinstance(distance_threshold, bool)
            or not isinstance(distance_threshold, numbers.Real)
            or math.isnan(distance_threshold)
        ):
            raise InvalidConfigurationError(
                f"distance_threshold must be a number, got {distance_threshold!r}",
                details={"distance_threshold": repr(distance_threshold)},
            )
        return float(distance_threshold)

    @staticmethod
    def _check_n_clusters(n_clusters: int, n_records: int) -> None:
        if not 1 <= n_clusters <= n_records:
            raise InvalidConfigurationError(
                f"Number of clusters must be between 1 and {n_records}, got {n_clusters}",
                details={"n_clusters": n_clusters, "n_records": n_records},
            )

    def _prepare(self, records: Any, metric: Metric, n_clusters: Optional[int]) -> Tuple[Union[np.ndarray, list], DistanceMatrix]:
        """Validate records and the cluster count, then build the distance matrix."""
        rows = self._validate(records, metric)
        if n_clusters is not None:
            self._check_n_clusters(n_clusters, len(rows))
        matrix = DistanceMatrix.from_validated(rows, metric)
        return rows, matrix

    def _calculate_quality_metrics(self, matrix: DistanceMatrix, labels: np.ndarray) -> Dict[str, float]:
        """
        Calculate clustering quality metrics.

        Args:
            matrix: Record distance matrix
            labels: Cluster labels

        Returns:
            Dictionary of quality metrics
        """
        from sklearn.metrics import silhouette_score

        quality = self.settings.clustering.quality
        metrics: Dict[str, float] = {}
        n_labels = len(np.unique(labels))
        if not quality.enabled or matrix.size > quality.max_records:
            return metrics
        if not 2 <= n_labels <= matrix.size - 1:
            return metrics

        square = matrix.to_square()
        if not np.all(np.isfinite(square)):
            logger.debug("Skipping silhouette score: distance matrix has infinite entries")
            return metrics

        metrics["silhouette_score"] = float(silhouette_score(square, labels, metric="precomputed"))
        return metrics

"""
Clustering Engine - Orchestrates clustering operations.

Main entry point for hierarchical clustering. Manages algorithm selection,
execution, capability queries and materializing clusters in the caller's
container type.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from hierclust.config.settings_loader import Settings, get_settings
from hierclust.core.agglomerative_algorithm import AgglomerativeAlgorithm
from hierclust.core.base_clustering import (
    BaseClusteringAlgorithm,
    ClusteringConfig,
    ClusteringResult,
)
from hierclust.core.divisive_algorithm import DianaAlgorithm
from hierclust.core.linkage import available_linkages, get_linkage
from hierclust.core.metrics import get_metric
from hierclust.core.output_adapter import materialize_clusters
from hierclust.schemas.data_models import ClusterAlgorithm
from hierclust.utils.advanced_logging import get_logger, log_exceptions
from hierclust.utils.error_handling import ClusteringError, InvalidConfigurationError

logger = logging.getLogger(__name__)


class ClusteringEngine:
    """
    Main clustering engine that orchestrates the hierarchical algorithms.

    Provides a unified interface regardless of whether records are merged
    bottom-up or split top-down.
    """

    # Registry of available algorithms
    ALGORITHMS = {
        ClusterAlgorithm.AGGLOMERATIVE.value: AgglomerativeAlgorithm,
        ClusterAlgorithm.DIVISIVE.value: DianaAlgorithm,
        "diana": DianaAlgorithm,
    }

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize clustering engine.

        Args:
            settings: Settings to take defaults from (global settings if None)
        """
        self.settings = settings or get_settings()
        logger.info("Initialized ClusteringEngine")

    def _resolve_algorithm(self, algorithm: Optional[str]) -> str:
        algorithm = (algorithm or self.settings.clustering.default_algorithm).lower()
        if algorithm not in self.ALGORITHMS:
            raise InvalidConfigurationError(
                f"Unsupported algorithm '{algorithm}'. "
                f"Supported: {list(self.ALGORITHMS.keys())}",
                details={"algorithm": algorithm},
            )
        return algorithm

    def create_algorithm(
        self,
        algorithm: Optional[str] = None,
        algorithm_params: Optional[Dict[str, Any]] = None,
    ) -> BaseClusteringAlgorithm:
        """Instantiate an algorithm; configuration errors surface here."""
        algorithm = self._resolve_algorithm(algorithm)
        config = ClusteringConfig(algorithm_name=algorithm, params=dict(algorithm_params or {}))
        return self.ALGORITHMS[algorithm](config, self.settings)

    def cluster(
        self,
        records: Any,
        algorithm: Optional[str] = None,
        algorithm_params: Optional[Dict[str, Any]] = None,
    ) -> ClusteringResult:
        """
        Perform clustering using the specified algorithm.

        Args:
            records: RecordSet, 2-D array or rectangular sequence of records
            algorithm: Algorithm name (agglomerative/divisive/diana)
            algorithm_params: Algorithm-specific parameters (linkage, metric,
                n_clusters, distance_threshold, compute_full_tree)

        Returns:
            ClusteringResult with the final partition and metrics

        Raises:
            InvalidConfigurationError: On unknown algorithm, linkage or metric,
                or an out-of-range cluster count
            InvalidInputError: On empty, ragged or non-numeric records
        """
        clusterer = self.create_algorithm(algorithm, algorithm_params)
        logger.info(f"Starting {clusterer.name} clustering")

        with log_exceptions(get_logger(__name__), operation=f"{clusterer.name}_clustering"):
            result = clusterer.cluster(records)

        logger.info(
            f"{clusterer.name} clustering complete: {result.n_clusters} clusters, "
            f"member counts {result.member_counts}"
        )
        return result

    def cluster_record_set(
        self,
        records: Any,
        algorithm: Optional[str] = None,
        algorithm_params: Optional[Dict[str, Any]] = None,
    ) -> Tuple[List[Any], ClusteringResult]:
        """
        Cluster records and return one record collection per cluster, in the
        same container type as ``records``.

        Returns:
            (clusters, result)
        """
        result = self.cluster(records, algorithm, algorithm_params)
        return materialize_clusters(records, result.clusters), result

    def supports_assignment(
        self,
        algorithm: Optional[str] = None,
        algorithm_params: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Whether results of this configuration can assign new records."""
        algorithm = self._resolve_algorithm(algorithm)
        if self.ALGORITHMS[algorithm] is DianaAlgorithm:
            return True
        params = algorithm_params or {}
        linkage = params.get("linkage") or self.settings.clustering.algorithms.agglomerative.linkage
        return get_linkage(linkage).supports_assignment

    @staticmethod
    def available_linkages() -> List[str]:
        return available_linkages()

    def validate_clustering_config(
        self,
        algorithm: str,
        params: Dict[str, Any],
        n_records: Optional[int] = None,
    ) -> Dict[str, str]:
        """
        Validate clustering configuration.

        Args:
            algorithm: Algorithm name
            params: Algorithm parameters
            n_records: Number of records to be clustered, if known

        Returns:
            Dictionary of validation errors (empty if valid)
        """
        errors = {}

        if algorithm not in self.ALGORITHMS:
            errors["algorithm"] = f"Unsupported algorithm '{algorithm}'"
            return errors

        n_clusters = params.get("n_clusters")
        distance_threshold = params.get("distance_threshold")

        if n_clusters is not None:
            try:
                n_clusters = BaseClusteringAlgorithm.coerce_n_clusters(n_clusters)
            except ClusteringError as e:
                errors["n_clusters"] = e.message
            else:
                if n_records is not None and n_clusters > n_records:
                    errors["n_clusters"] = f"Must be <= number of records ({n_records})"

        try:
            metric = get_metric(params.get("metric")) if params.get("metric") is not None else None
        except ClusteringError as e:
            errors["metric"] = e.message
            metric = None

        if algorithm == ClusterAlgorithm.AGGLOMERATIVE.value:
            if n_clusters is not None and distance_threshold is not None:
                errors["config"] = "n_clusters and distance_threshold are mutually exclusive"
            if distance_threshold is not None:
                try:
                    BaseClusteringAlgorithm.coerce_distance_threshold(distance_threshold)
                except ClusteringError as e:
                    errors["distance_threshold"] = e.message
            if params.get("linkage") is not None:
                try:
                    linkage = get_linkage(params["linkage"])
                    if metric is not None:
                        linkage.check_metric(metric)
                except ClusteringError as e:
                    errors["linkage"] = e.message
        else:
            if distance_threshold is not None:
                errors["distance_threshold"] = "Only supported by agglomerative clustering"

        return errors

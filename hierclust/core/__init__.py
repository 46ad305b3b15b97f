"""
Core hierarchical clustering module.

Exports:
- ClusteringEngine: Main orchestration class
- BaseClusteringAlgorithm: Base class for algorithms
- ClusteringResult: Result container
- ClusteringConfig: Configuration container
- DistanceMatrix, Partition, linkage strategies and the dendrogram
- Individual algorithm implementations
"""

from hierclust.core.base_clustering import (
    BaseClusteringAlgorithm,
    ClusteringResult,
    ClusteringConfig,
)
from hierclust.core.clustering_engine import ClusteringEngine
from hierclust.core.agglomerative_algorithm import AgglomerativeAlgorithm
from hierclust.core.divisive_algorithm import DianaAlgorithm
from hierclust.core.distance_matrix import DistanceMatrix
from hierclust.core.dendrogram import Dendrogram, MergeStep
from hierclust.core.linkage import LinkageStrategy, get_linkage
from hierclust.core.partition import IndexGroup, Partition

__all__ = [
    "ClusteringEngine",
    "BaseClusteringAlgorithm",
    "ClusteringResult",
    "ClusteringConfig",
    "AgglomerativeAlgorithm",
    "DianaAlgorithm",
    "DistanceMatrix",
    "Dendrogram",
    "MergeStep",
    "LinkageStrategy",
    "get_linkage",
    "IndexGroup",
    "Partition",
]

"""
Dendrogram.

Merge history of one agglomerative run. Partitions at any recorded level
can be rebuilt by replaying the merges, without recomputing distances.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from hierclust.core.partition import Partition
from hierclust.utils.error_handling import InvalidConfigurationError


@dataclass(frozen=True)
class MergeStep:
    """One merge: groups group_a and group_b became merged_id at distance."""

    step: int
    group_a: int
    group_b: int
    merged_id: int
    distance: float
    size: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Dendrogram:
    """Ordered merge history over n records."""

    def __init__(self, n_records: int, merges: Sequence[MergeStep] = ()):
        self.n_records = n_records
        self.merges: List[MergeStep] = list(merges)

    def __len__(self) -> int:
        return len(self.merges)

    @property
    def heights(self) -> List[float]:
        """Merge distances in merge order."""
        return [merge.distance for merge in self.merges]

    @property
    def min_clusters(self) -> int:
        """Cluster count after the last recorded merge."""
        return self.n_records - len(self.merges)

    def is_monotonic(self) -> bool:
        heights = self.heights
        return all(a <= b for a, b in zip(heights, heights[1:]))

    def _replay(self, n_merges: int) -> Partition:
        partition = Partition.singletons(self.n_records)
        for merge in self.merges[:n_merges]:
            partition.merge(merge.group_a, merge.group_b)
        return partition

    def cut(self, n_clusters: int) -> List[List[int]]:
        """
        Partition with n_clusters groups.

        Raises:
            InvalidConfigurationError: If that level was not recorded
        """
        if not self.min_clusters <= n_clusters <= self.n_records:
            raise InvalidConfigurationError(
                f"Can only cut into {self.min_clusters}..{self.n_records} clusters, got {n_clusters}",
                details={"n_clusters": n_clusters},
            )
        return self._replay(self.n_records - n_clusters).index_lists()

    def cut_at(self, threshold: float) -> List[List[int]]:
        """Partition reached by merging until the next merge distance exceeds threshold."""
        n_merges = 0
        for merge in self.merges:
            if merge.distance > threshold:
                break
            n_merges += 1
        return self._replay(n_merges).index_lists()

    def levels(self, depth: Optional[int] = None) -> List[List[List[int]]]:
        """
        Partitions from the coarsest recorded level back to singletons.

        Args:
            depth: Keep only the first ``depth`` levels (all when None)
        """
        partition = Partition.singletons(self.n_records)
        snapshots = [partition.index_lists()]
        for merge in self.merges:
            partition.merge(merge.group_a, merge.group_b)
            snapshots.append(partition.index_lists())
        snapshots.reverse()
        if depth is not None:
            snapshots = snapshots[:depth]
        return snapshots

    def to_linkage_matrix(self) -> np.ndarray:
        """
        scipy-style linkage matrix: one row [id_a, id_b, distance, size] per merge,
        smaller id first.
        """
        matrix = np.zeros((len(self.merges), 4), dtype=np.float64)
        for row, merge in enumerate(self.merges):
            matrix[row] = (
                min(merge.group_a, merge.group_b),
                max(merge.group_a, merge.group_b),
                merge.distance,
                merge.size,
            )
        return matrix

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_records": self.n_records,
            "merges": [merge.to_dict() for merge in self.merges],
        }

"""
Linkage strategies.

A linkage decides how far apart two groups of records are. All strategies
share one query, inter_group_distance(), so the agglomerative engine can
swap them freely:

- single, complete, average: read directly from the distance matrix
- weighted_average (WPGMA): midpoint of the two child distances, carried
  in the merged group's aggregate
- centroid (UPGMC), median (WPGMC), ward: computed from a running center
  carried in each group's aggregate and recombined in closed form on merge
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Type

import numpy as np

from hierclust.core.distance_matrix import DistanceMatrix
from hierclust.core.metrics import Metric
from hierclust.core.partition import GroupAggregate, IndexGroup
from hierclust.schemas.data_models import LinkageMethod
from hierclust.utils.error_handling import InvalidConfigurationError

logger = logging.getLogger(__name__)

# (group_a, group_b) -> current distance between two live groups
PairDistance = Callable[[IndexGroup, IndexGroup], float]


class LinkageStrategy(ABC):
    """
    Base class for inter-group distance policies.

    Strategies are stateless; everything a strategy needs beyond the
    distance matrix travels in the groups' aggregates.
    """

    name: str = ""
    supports_assignment: bool = False
    requires_aggregates: bool = False
    monotonic: bool = True
    numeric_only: bool = False

    def check_metric(self, metric: Metric) -> None:
        """Reject metrics the strategy cannot work with."""
        if self.numeric_only and not metric.numeric:
            raise InvalidConfigurationError(
                f"Linkage '{self.name}' needs a numeric metric, got '{metric.name}'",
                details={"linkage": self.name, "metric": metric.name},
            )

    @abstractmethod
    def inter_group_distance(
        self,
        group_a: IndexGroup,
        group_b: IndexGroup,
        matrix: DistanceMatrix,
        group_sizes: Optional[Mapping[int, int]] = None,
    ) -> float:
        """
        Distance between two live groups.

        Args:
            group_a: First group
            group_b: Second group
            matrix: Record distance matrix
            group_sizes: Group id -> member count, for size-weighted strategies

        Returns:
            Linkage distance
        """

    def initial_aggregate(self, index: int, rows: Optional[np.ndarray]) -> Optional[GroupAggregate]:
        """Aggregate for the singleton group holding record ``index``."""
        return None

    def merge_aggregate(
        self,
        group_a: IndexGroup,
        group_b: IndexGroup,
        others: Iterable[IndexGroup],
        pair_distance: PairDistance,
    ) -> Optional[GroupAggregate]:
        """
        Aggregate of the union of group_a and group_b.

        Args:
            group_a: First merged group
            group_b: Second merged group
            others: Groups that stay alive after the merge
            pair_distance: Lookup for current distances between live groups
        """
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# =============================================================================
# Matrix-based linkages
# =============================================================================


class SingleLinkage(LinkageStrategy):
    """Nearest neighbour: smallest distance between any cross pair."""

    name = LinkageMethod.SINGLE.value
    supports_assignment = True

    def inter_group_distance(self, group_a, group_b, matrix, group_sizes=None) -> float:
        return float(matrix.cross(group_a.members, group_b.members).min())


class CompleteLinkage(LinkageStrategy):
    """Farthest neighbour: largest distance between any cross pair."""

    name = LinkageMethod.COMPLETE.value
    supports_assignment = True

    def inter_group_distance(self, group_a, group_b, matrix, group_sizes=None) -> float:
        return float(matrix.cross(group_a.members, group_b.members).max())


class AverageLinkage(LinkageStrategy):
    """UPGMA: mean over all |A|*|B| cross pairs."""

    name = LinkageMethod.AVERAGE.value
    supports_assignment = True

    def inter_group_distance(self, group_a, group_b, matrix, group_sizes=None) -> float:
        return float(matrix.cross(group_a.members, group_b.members).mean())


class WeightedAverageLinkage(LinkageStrategy):
    """
    WPGMA: the distance from a merged group to any other group is the
    midpoint of the distances from its two children to that group.
    """

    name = LinkageMethod.WEIGHTED_AVERAGE.value
    requires_aggregates = True

    def initial_aggregate(self, index, rows):
        return GroupAggregate(size=1)

    def merge_aggregate(self, group_a, group_b, others, pair_distance):
        links = {
            other.group_id: 0.5 * pair_distance(other, group_a) + 0.5 * pair_distance(other, group_b)
            for other in others
        }
        return GroupAggregate(size=group_a.size + group_b.size, links=links)

    def inter_group_distance(self, group_a, group_b, matrix, group_sizes=None) -> float:
        newer, older = (group_a, group_b) if group_a.group_id > group_b.group_id else (group_b, group_a)
        if newer.aggregate is None or newer.aggregate.links is None:
            # only singletons have no links, and they are compared directly
            return matrix.distance(newer.members[0], older.members[0])
        return newer.aggregate.links[older.group_id]


# =============================================================================
# Center-based linkages
# =============================================================================


class _CenterLinkage(LinkageStrategy):
    requires_aggregates = True
    numeric_only = True

    def initial_aggregate(self, index, rows):
        return GroupAggregate(size=1, center=np.array(rows[index], dtype=np.float64))

    def _center_distance(self, group_a: IndexGroup, group_b: IndexGroup, matrix: DistanceMatrix) -> float:
        return float(matrix.metric(group_a.aggregate.center, group_b.aggregate.center))


class CentroidLinkage(_CenterLinkage):
    """UPGMC: distance between size-weighted centroids."""

    name = LinkageMethod.CENTROID.value
    monotonic = False

    def merge_aggregate(self, group_a, group_b, others, pair_distance):
        size_a = group_a.aggregate.size
        size_b = group_b.aggregate.size
        center = (size_a * group_a.aggregate.center + size_b * group_b.aggregate.center) / (size_a + size_b)
        return GroupAggregate(size=size_a + size_b, center=center)

    def inter_group_distance(self, group_a, group_b, matrix, group_sizes=None) -> float:
        return self._center_distance(group_a, group_b, matrix)


class MedianLinkage(_CenterLinkage):
    """WPGMC: each merged group is represented by the midpoint of its children's centers."""

    name = LinkageMethod.MEDIAN.value
    monotonic = False

    def merge_aggregate(self, group_a, group_b, others, pair_distance):
        center = 0.5 * (group_a.aggregate.center + group_b.aggregate.center)
        return GroupAggregate(size=group_a.aggregate.size + group_b.aggregate.size, center=center)

    def inter_group_distance(self, group_a, group_b, matrix, group_sizes=None) -> float:
        return self._center_distance(group_a, group_b, matrix)


class WardLinkage(CentroidLinkage):
    """
    Ward's minimum variance: 2 * nA * nB / (nA + nB) * d(cA, cB).

    With squared Euclidean distances this is the Lance-Williams Ward
    recurrence started from the record distance matrix.
    """

    name = LinkageMethod.WARD.value
    monotonic = True

    def inter_group_distance(self, group_a, group_b, matrix, group_sizes=None) -> float:
        if group_sizes is not None:
            size_a = group_sizes[group_a.group_id]
            size_b = group_sizes[group_b.group_id]
        else:
            size_a = group_a.size
            size_b = group_b.size
        factor = 2.0 * size_a * size_b / (size_a + size_b)
        return factor * self._center_distance(group_a, group_b, matrix)


# =============================================================================
# Registry
# =============================================================================


LINKAGES: Dict[str, Type[LinkageStrategy]] = {
    strategy.name: strategy
    for strategy in (
        SingleLinkage,
        CompleteLinkage,
        AverageLinkage,
        WeightedAverageLinkage,
        CentroidLinkage,
        MedianLinkage,
        WardLinkage,
    )
}


def available_linkages() -> List[str]:
    return list(LINKAGES)


def get_linkage(linkage) -> LinkageStrategy:
    """
    Resolve a linkage name (or instance) to a strategy.

    Names are case-insensitive and may use the WPGMA/UPGMA family names.

    Raises:
        InvalidConfigurationError: If the name is not registered
    """
    if isinstance(linkage, LinkageStrategy):
        return linkage
    if not isinstance(linkage, str):
        raise InvalidConfigurationError(
            f"Linkage must be a name, got {type(linkage).__name__}",
            details={"linkage": repr(linkage)},
        )
    try:
        method = LinkageMethod.from_name(linkage)
    except ValueError:
        raise InvalidConfigurationError(
            f"Unsupported linkage '{linkage}'. Supported: {available_linkages()}",
            details={"linkage": linkage},
        ) from None
    return LINKAGES[method.value]()

"""
Partition bookkeeping.

A Partition is an ordered mapping from group id to IndexGroup. Groups hold
indices into the caller's record collection; the records themselves are
never copied. Group ids are handed out in creation order, so a larger id
always means a more recently created group.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from hierclust.utils.error_handling import ClusteringError


@dataclass
class GroupAggregate:
    """
    Auxiliary per-group payload for linkages that cannot be read off the
    record distance matrix alone.

    Attributes:
        size: Number of records in the group
        center: Running centroid (centroid/ward) or median point (median)
        links: Distances from this group to every group alive when it was formed (weighted average)
    """

    size: int
    center: Optional[np.ndarray] = None
    links: Optional[Dict[int, float]] = None


@dataclass
class IndexGroup:
    """One cluster: a list of record indices plus an optional aggregate."""

    group_id: int
    members: List[int] = field(default_factory=list)
    aggregate: Optional[GroupAggregate] = None

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def is_singleton(self) -> bool:
        return len(self.members) == 1


class Partition:
    """Ordered collection of disjoint IndexGroups."""

    def __init__(self, groups: Iterable[IndexGroup] = (), next_id: Optional[int] = None):
        self._groups: Dict[int, IndexGroup] = {}
        for group in groups:
            self._groups[group.group_id] = group
        if next_id is None:
            next_id = max(self._groups, default=-1) + 1
        self._next_id = next_id

    @classmethod
    def singletons(cls, n: int) -> "Partition":
        """n groups, {0}..{n-1}, with ids 0..n-1."""
        return cls(IndexGroup(i, [i]) for i in range(n))

    @classmethod
    def single_group(cls, n: int) -> "Partition":
        """One group holding every index."""
        return cls([IndexGroup(0, list(range(n)))])

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _new_id(self) -> int:
        group_id = self._next_id
        self._next_id += 1
        return group_id

    def add_group(self, members: Sequence[int], aggregate: Optional[GroupAggregate] = None) -> IndexGroup:
        """Append a new group at the end of the partition."""
        group = IndexGroup(self._new_id(), sorted(members), aggregate)
        self._groups[group.group_id] = group
        return group

    def merge(self, id_a: int, id_b: int, aggregate: Optional[GroupAggregate] = None) -> IndexGroup:
        """
        Replace groups id_a and id_b by their union, appended at the end.

        Returns:
            The merged group (new id)
        """
        if id_a == id_b:
            raise ClusteringError(f"Cannot merge group {id_a} with itself")
        group_a = self._groups.pop(id_a)
        group_b = self._groups.pop(id_b)
        return self.add_group(group_a.members + group_b.members, aggregate)

    def split(self, group_id: int, splinter: Sequence[int]) -> Tuple[IndexGroup, IndexGroup]:
        """
        Split a group in two. The remainder takes the original group's
        position; the splinter group is appended at the end.

        Returns:
            (remainder, splinter) groups, both with new ids
        """
        original = self._groups[group_id]
        splinter_set = set(splinter)
        if not splinter_set or not splinter_set.issubset(original.members):
            raise ClusteringError(f"Splinter members must be a non-empty subset of group {group_id}")
        if len(splinter_set) == original.size:
            raise ClusteringError(f"Splinter cannot take every member of group {group_id}")

        remainder = IndexGroup(self._new_id(), [i for i in original.members if i not in splinter_set])
        splinter_group = IndexGroup(self._new_id(), sorted(splinter_set))

        reordered: Dict[int, IndexGroup] = {}
        for gid, group in self._groups.items():
            if gid == group_id:
                reordered[remainder.group_id] = remainder
            else:
                reordered[gid] = group
        reordered[splinter_group.group_id] = splinter_group
        self._groups = reordered
        return remainder, splinter_group

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._groups)

    def __iter__(self) -> Iterator[IndexGroup]:
        return iter(list(self._groups.values()))

    def __contains__(self, group_id: int) -> bool:
        return group_id in self._groups

    def __getitem__(self, group_id: int) -> IndexGroup:
        return self._groups[group_id]

    @property
    def ids(self) -> List[int]:
        return list(self._groups)

    @property
    def groups(self) -> List[IndexGroup]:
        return list(self._groups.values())

    def sizes(self) -> Dict[int, int]:
        """Group id -> member count."""
        return {gid: group.size for gid, group in self._groups.items()}

    def index_lists(self) -> List[List[int]]:
        """Member lists in partition order."""
        return [list(group.members) for group in self._groups.values()]

    def labels(self, n: int) -> np.ndarray:
        """Cluster position of every record, shape (n,)."""
        labels = np.full(n, -1, dtype=np.int32)
        for position, group in enumerate(self._groups.values()):
            labels[group.members] = position
        return labels

    def validate(self, n: int) -> None:
        """
        Check that groups are non-empty, pairwise disjoint and cover [0, n).

        Raises:
            ClusteringError: If the invariant does not hold
        """
        seen = np.zeros(n, dtype=np.int32)
        for group in self._groups.values():
            if not group.members:
                raise ClusteringError(f"Group {group.group_id} is empty")
            np.add.at(seen, group.members, 1)
        if not np.all(seen == 1):
            raise ClusteringError(
                "Partition groups must be disjoint and cover every record",
                details={"missing": np.flatnonzero(seen == 0).tolist(), "repeated": np.flatnonzero(seen > 1).tolist()},
            )

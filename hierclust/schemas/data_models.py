"""
data_models.py

Pydantic data models for the hierarchical clustering engine.
Defines the default record container and the report schema handed to
reporting/visualization collaborators.

Schema Design:
- Input: RecordSet (attribute labels + rows), or any rectangular sequence
- Output: one RecordSet per cluster, plus a ClusteringReport summary
"""

from typing import List, Dict, Any, Optional, Sequence, Type
from enum import Enum
from pydantic import BaseModel, Field, model_validator


# =============================================================================
# ENUMS
# =============================================================================


class ClusterAlgorithm(str, Enum):
    """Supported clustering algorithms."""

    AGGLOMERATIVE = "agglomerative"
    DIVISIVE = "divisive"

    @classmethod
    def from_name(cls, name: str) -> "ClusterAlgorithm":
        """Case-insensitive lookup; "diana" names the divisive algorithm."""
        return cls(_resolve_name(cls, name, ALGORITHM_ALIASES))


class LinkageMethod(str, Enum):
    """Inter-cluster distance policies."""

    SINGLE = "single"
    COMPLETE = "complete"
    AVERAGE = "average"
    WEIGHTED_AVERAGE = "weighted_average"
    CENTROID = "centroid"
    MEDIAN = "median"
    WARD = "ward"

    @classmethod
    def from_name(cls, name: str) -> "LinkageMethod":
        """Case-insensitive lookup accepting the UPGMA-family names."""
        return cls(_resolve_name(cls, name, LINKAGE_ALIASES))


ALGORITHM_ALIASES = {
    "diana": ClusterAlgorithm.DIVISIVE.value,
}

LINKAGE_ALIASES = {
    "wpgma": LinkageMethod.WEIGHTED_AVERAGE.value,
    "upgma": LinkageMethod.AVERAGE.value,
    "upgmc": LinkageMethod.CENTROID.value,
    "wpgmc": LinkageMethod.MEDIAN.value,
    "weighted": LinkageMethod.WEIGHTED_AVERAGE.value,
}


def _resolve_name(enum_cls: Type[Enum], name: Any, aliases: Dict[str, str]) -> str:
    if not isinstance(name, str):
        raise ValueError(f"{enum_cls.__name__} name must be a string, got {type(name).__name__}")
    key = name.strip().lower()
    key = aliases.get(key, key)
    choices = [member.value for member in enum_cls]
    if key not in choices:
        raise ValueError(f"'{name}' is not a valid {enum_cls.__name__}; choose from {choices + sorted(aliases)}")
    return key


# =============================================================================
# RECORD CONTAINER
# =============================================================================


class RecordSet(BaseModel):
    """
    Labeled collection of records.

    Rows must all have the same number of attributes, and there must be
    one label per attribute. Labels default to attribute_1..attribute_n.
    """

    data_labels: List[str] = Field(default_factory=list, description="Attribute labels")
    data_items: List[List[Any]] = Field(default_factory=list, description="Records (one row per item)")

    @model_validator(mode="after")
    def check_shape(self) -> "RecordSet":
        if not self.data_items:
            return self

        attributes_num = len(self.data_items[0])
        for index, item in enumerate(self.data_items):
            if len(item) != attributes_num:
                raise ValueError(
                    "Quantity of attributes is inconsistent. "
                    f"The first item has {attributes_num} attributes "
                    f"and row {index} has {len(item)} attributes"
                )

        if not self.data_labels:
            self.data_labels = [f"attribute_{i + 1}" for i in range(attributes_num)]
        elif len(self.data_labels) != attributes_num:
            raise ValueError(
                "Number of labels and attributes do not match. "
                f"{len(self.data_labels)} labels and {attributes_num} attributes found."
            )
        return self

    def __len__(self) -> int:
        return len(self.data_items)

    def __getitem__(self, index: int) -> List[Any]:
        return self.data_items[index]

    @property
    def num_attributes(self) -> int:
        return len(self.data_labels)

    def select(self, indices: Sequence[int]) -> "RecordSet":
        """Return a new RecordSet holding the rows at ``indices``, labels preserved."""
        return RecordSet(
            data_labels=list(self.data_labels),
            data_items=[list(self.data_items[i]) for i in indices],
        )


# =============================================================================
# REPORTING
# =============================================================================


class ClusteringReport(BaseModel):
    """Summary of one clustering run for reporting collaborators."""

    algorithm: str
    linkage: Optional[str] = None
    metric: str
    total_items: int = Field(..., ge=1)
    n_clusters: int = Field(..., ge=1)
    member_counts: List[int] = Field(default_factory=list, description="Members per cluster, in partition order")
    final_distance: Optional[float] = Field(None, description="Distance of the last merge, or diameter of the last split")
    merge_distances: Optional[List[float]] = Field(None, description="Agglomerative dendrogram heights, in merge order")
    split_diameters: Optional[List[float]] = Field(None, description="Diameters of the groups split by DIANA, in order")
    supports_assignment: bool = False
    quality_metrics: Dict[str, float] = Field(default_factory=dict)
    processing_time_ms: Optional[float] = None

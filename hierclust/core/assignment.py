"""
Cluster assignment for new records.

A new record joins the cluster of its nearest original record under the
metric the clustering ran with.
"""

import logging
from typing import Any, Sequence, Union

import numpy as np

from hierclust.core.metrics import Metric, validate_records
from hierclust.utils.error_handling import InvalidInputError

logger = logging.getLogger(__name__)


class ClusterAssigner:
    """Nearest-record assignment over a finished partition."""

    def __init__(self, rows: Union[np.ndarray, list], labels: np.ndarray, metric: Metric):
        """
        Args:
            rows: Validated records the clustering ran on
            labels: Cluster position of every record
            metric: Metric the clustering ran with
        """
        self.rows = rows
        self.labels = labels
        self.metric = metric

    @property
    def num_attributes(self) -> int:
        return len(self.rows[0])

    def nearest_record(self, record: Sequence[Any]) -> int:
        """Index of the closest original record; ties go to the lowest index."""
        checked = validate_records([record], self.metric)
        if len(checked[0]) != self.num_attributes:
            raise InvalidInputError(
                f"Record has {len(checked[0])} attributes, expected {self.num_attributes}",
                details={"expected": self.num_attributes, "found": len(checked[0])},
            )
        distances = self.metric.one_to_many(self.rows, checked[0])
        return int(np.argmin(distances))

    def assign(self, record: Sequence[Any]) -> int:
        """
        Cluster index for a new record.

        Raises:
            InvalidInputError: On arity mismatch or non-numeric values under a numeric metric
        """
        index = self.nearest_record(record)
        cluster = int(self.labels[index])
        logger.debug(f"Assigned record to cluster {cluster} via nearest record {index}")
        return cluster

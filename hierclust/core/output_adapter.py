"""
Output adapter.

Turns index groups back into record collections of the caller's own
container type.
"""

from typing import Any, List, Sequence

import numpy as np

from hierclust.schemas.data_models import RecordSet


def materialize_cluster(source: Any, indices: Sequence[int]) -> Any:
    """
    Records at ``indices`` in the same container type as ``source``.

    - RecordSet: new RecordSet with the same labels
    - numpy array: row sub-array
    - objects with select(indices): whatever select returns
    - pandas-like objects with .iloc: positional row selection
    - list / tuple: same sequence type
    """
    indices = list(indices)
    if isinstance(source, RecordSet):
        return source.select(indices)
    if isinstance(source, np.ndarray):
        return source[indices]
    if hasattr(source, "select") and callable(source.select):
        return source.select(indices)
    if hasattr(source, "iloc"):
        return source.iloc[indices]
    if isinstance(source, tuple):
        return tuple(source[i] for i in indices)
    return [source[i] for i in indices]


def materialize_clusters(source: Any, clusters: Sequence[Sequence[int]]) -> List[Any]:
    """One record collection per cluster, in partition order."""
    return [materialize_cluster(source, members) for members in clusters]

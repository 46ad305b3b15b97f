"""
Error Handling Module

Provides the exception hierarchy for the clustering engine:
- Configuration errors (settings loading)
- Input validation errors (records, metric compatibility)
- Configuration errors of a clustering call (counts, linkage/metric names)
- Unsupported operations (assignment on non-supporting strategies)

Clustering is a one-shot batch computation, so none of these are retried.
"""

import time
from typing import Any, Optional

import structlog


logger = structlog.get_logger(__name__)


# =============================================================================
# Custom Exception Hierarchy
# =============================================================================


class HierClustError(Exception):
    """Base exception for all hierarchical clustering errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.timestamp = time.time()

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/CLI output."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp,
        }


# Configuration Errors
class ConfigurationError(HierClustError):
    """Error in service configuration (settings file, validation)."""
    pass


# Clustering Errors
class ClusteringError(HierClustError):
    """Base class for clustering errors."""
    pass


class InvalidInputError(ClusteringError, ValueError):
    """Empty record collection, mismatched arity or non-numeric values."""
    pass


class InvalidConfigurationError(ClusteringError, ValueError):
    """Cluster count out of range or unknown linkage/metric/algorithm."""
    pass


class UnsupportedOperationError(ClusteringError, NotImplementedError):
    """Operation not available for the configured strategy."""
    pass


def log_error(event: str, error: Exception, context: Optional[dict[str, Any]] = None) -> None:
    """
    Log an error with its structured payload.

    Args:
        event: Event name
        error: Exception being reported
        context: Extra fields
    """
    payload = error.to_dict() if isinstance(error, HierClustError) else {
        "error_type": type(error).__name__,
        "message": str(error),
    }
    logger.error(event, **payload, **(context or {}))

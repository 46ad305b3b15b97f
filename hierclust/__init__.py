"""Hierarchical clustering engine: agglomerative and divisive (DIANA) clustering."""

__version__ = "1.0.0"

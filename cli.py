#!/usr/bin/env python3
"""
hierclust CLI

Command-line interface for the hierarchical clustering engine.

Usage:
    python cli.py cluster data.json --clusters 4                 # Single linkage into 4 clusters
    python cli.py cluster data.csv --linkage ward --clusters 2   # Ward linkage on a CSV file
    python cli.py cluster data.json --threshold 10.0             # Stop merging above a distance
    python cli.py cluster data.json -a divisive --clusters 3     # DIANA
    python cli.py cluster data.json --clusters 4 --assign "[0, 8]"
    python cli.py cluster data.json --full-tree --levels             # Cluster tree, coarsest level first
    python cli.py linkages                                       # List linkage methods

Input files are either JSON ({"data_labels": [...], "data_items": [[...], ...]}
or a plain list of rows) or CSV with a header row of attribute labels.
"""

import argparse
import csv
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from hierclust.config.settings_loader import get_settings
from hierclust.core.clustering_engine import ClusteringEngine
from hierclust.core.linkage import get_linkage
from hierclust.schemas.data_models import RecordSet
from hierclust.utils.advanced_logging import configure_logging
from hierclust.utils.error_handling import HierClustError, InvalidInputError, log_error


def _parse_value(value: str) -> Any:
    try:
        return float(value)
    except ValueError:
        return value


class HierClustCLI:
    """CLI for the hierarchical clustering engine."""

    def __init__(self, engine: Optional[ClusteringEngine] = None):
        """
        Initialize CLI.

        Args:
            engine: Clustering engine (created from global settings if None)
        """
        self.engine = engine or ClusteringEngine()

    def load_records(self, path: str) -> RecordSet:
        """
        Load records from a JSON or CSV file.

        Raises:
            InvalidInputError: If the file is missing or malformed
        """
        file_path = Path(path)
        if not file_path.exists():
            raise InvalidInputError(f"Input file not found: {path}", details={"path": path})

        try:
            if file_path.suffix.lower() == ".csv":
                with open(file_path, newline="") as f:
                    rows = list(csv.reader(f))
                if not rows:
                    raise InvalidInputError(f"CSV file is empty: {path}", details={"path": path})
                return RecordSet(
                    data_labels=rows[0],
                    data_items=[[_parse_value(value) for value in row] for row in rows[1:] if row],
                )

            with open(file_path) as f:
                payload = json.load(f)
            if isinstance(payload, dict):
                return RecordSet(**payload)
            return RecordSet(data_items=payload)
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            raise InvalidInputError(f"Could not read records from {path}: {e}", details={"path": path}) from e

    def cluster(
        self,
        path: str,
        algorithm: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        assign: Optional[List[List[Any]]] = None,
        show_records: bool = False,
        show_levels: bool = False,
    ) -> dict:
        """
        Cluster the records in a file.

        Args:
            path: Input file
            algorithm: agglomerative/divisive/diana
            params: Algorithm parameters
            assign: New records to assign to the resulting clusters
            show_records: Include each cluster's records in the output
            show_levels: Include the cluster tree levels (agglomerative), up to
                clustering.dendrogram_depth levels

        Returns:
            Result dictionary
        """
        records = self.load_records(path)
        clusters, result = self.engine.cluster_record_set(records, algorithm, params)

        output = result.to_dict()
        output["processing_time_ms"] = result.processing_time_ms
        if show_records:
            output["data_labels"] = records.data_labels
            output["cluster_records"] = [cluster.data_items for cluster in clusters]
        if show_levels and result.dendrogram is not None:
            output["levels"] = result.dendrogram.levels(self.engine.settings.clustering.dendrogram_depth)
        if assign:
            output["assignments"] = [
                {"record": record, "cluster": result.assign(record)} for record in assign
            ]
        return output

    def linkages(self) -> dict:
        """List linkage methods and whether they support assignment."""
        return {
            "linkages": [
                {
                    "name": name,
                    "supports_assignment": get_linkage(name).supports_assignment,
                    "monotonic": get_linkage(name).monotonic,
                }
                for name in self.engine.available_linkages()
            ]
        }


def print_json(data: dict, indent: int = 2):
    """Pretty print JSON."""
    print(json.dumps(data, indent=indent, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="hierclust - hierarchical clustering CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("command", help="Command to execute", choices=["cluster", "linkages"])
    parser.add_argument("args", nargs="*", help="Command arguments")
    parser.add_argument("--algorithm", "-a", help="Algorithm (agglomerative/divisive/diana)")
    parser.add_argument("--linkage", "-l", help="Linkage method (agglomerative)")
    parser.add_argument("--metric", "-m", help="Distance metric")
    parser.add_argument("--clusters", "-k", type=int, help="Number of clusters")
    parser.add_argument("--threshold", type=float, help="Distance threshold (agglomerative)")
    parser.add_argument("--full-tree", action="store_true", help="Record the full merge tree")
    parser.add_argument("--assign", action="append", help="JSON record to assign, may repeat")
    parser.add_argument("--show-records", action="store_true", help="Print each cluster's records")
    parser.add_argument("--levels", action="store_true", help="Print the cluster tree levels (agglomerative)")
    parser.add_argument("--log-level", help="Override the configured log level")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    configure_logging(
        log_level=args.log_level or settings.logging.level,
        log_format=settings.logging.format,
        log_file=settings.logging.file.path if settings.logging.file.enabled else None,
        service_name=settings.service.name,
        service_version=settings.service.version,
        environment=settings.service.environment,
    )

    cli = HierClustCLI()

    try:
        if args.command == "linkages":
            print_json(cli.linkages())

        elif args.command == "cluster":
            if not args.args:
                print("❌ Input file required", file=sys.stderr)
                return 1

            params: Dict[str, Any] = {}
            if args.linkage:
                params["linkage"] = args.linkage
            if args.metric:
                params["metric"] = args.metric
            if args.clusters is not None:
                params["n_clusters"] = args.clusters
            if args.threshold is not None:
                params["distance_threshold"] = args.threshold
            if args.full_tree:
                params["compute_full_tree"] = True

            try:
                assign = [json.loads(record) for record in args.assign or []]
            except json.JSONDecodeError as e:
                print(f"❌ Invalid --assign record: {e}", file=sys.stderr)
                return 1

            print_json(
                cli.cluster(
                    args.args[0],
                    algorithm=args.algorithm,
                    params=params,
                    assign=assign,
                    show_records=args.show_records,
                    show_levels=args.levels,
                )
            )

    except HierClustError as e:
        log_error("cli_command_failed", e, {"command": args.command})
        print(f"❌ {e.message}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

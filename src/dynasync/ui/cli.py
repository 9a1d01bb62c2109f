# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from dynasync.app import list_schema_tags, sync_dynamics_collections, sync_history
from dynasync.config import configure_logging
from dynasync.domain.collections import DEFAULT_COLLECTIONS

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from dynasync.app import SyncReport

log = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid integer: {value}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"Expected a positive integer, got {value}")
    return parsed


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronise Dynamics collections")
    subparsers = parser.add_subparsers(dest="command", required=True)
    collection_names = sorted(DEFAULT_COLLECTIONS)

    sync = subparsers.add_parser("sync", help="Fetch, reconcile and tag collections")
    sync.add_argument(
        "--collection",
        action="append",
        choices=collection_names,
        help="Collection to sync; repeat for several (defaults to all)",
    )
    sync.add_argument(
        "--allow-empty",
        action="store_true",
        help="Accept an empty snapshot and soft-delete every stored record",
    )

    tags = subparsers.add_parser("tags", help="Show the discovered schema of a collection")
    tags.add_argument("--collection", required=True, choices=collection_names)
    tags.add_argument(
        "--limit",
        type=_positive_int,
        help="Maximum number of paths to show",
    )

    history = subparsers.add_parser("history", help="Show recent sync runs of a collection")
    history.add_argument("--collection", required=True, choices=collection_names)
    history.add_argument(
        "--limit",
        type=_positive_int,
        default=10,
        help="Number of runs to show (default: %(default)s)",
    )

    return parser.parse_args(list(argv))


def _report(report: SyncReport) -> None:
    for result in report.results:
        print(f"{result.collection} [{result.status}] {result.message}")
    for name, error in report.failures.items():
        print(f"{name} [failed] {type(error).__name__}: {error}", file=sys.stderr)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    # argparse exits with status 2 on invalid arguments
    parsed_args = _parse_args(args_list)

    try:
        if parsed_args.command == "sync":
            report = sync_dynamics_collections(
                parsed_args.collection,
                allow_empty=parsed_args.allow_empty,
            )
            _report(report)
            if not report.ok:
                sys.exit(1)
        elif parsed_args.command == "tags":
            schema_tags = list_schema_tags(parsed_args.collection)
            if parsed_args.limit is not None:
                schema_tags = schema_tags[: parsed_args.limit]
            for tag in schema_tags:
                print(
                    f"{tag.path}\t{tag.data_type}\t{tag.occurrence_count}\t{tag.sample_value or ''}"
                )
        elif parsed_args.command == "history":
            for entry in sync_history(parsed_args.collection, limit=parsed_args.limit):
                print(
                    f"{entry.synced_at.isoformat()}\t{entry.status}\t"
                    f"{entry.records_count}\t{entry.execution_time_ms}ms\t{entry.message}"
                )
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console-script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()

"""
Command line interface for the dual-write ingestion engine.

Usage:
    dualwrite-ingest ingest --input <file> [--contract <file>] [options]
    dualwrite-ingest reconcile [--limit N]
    dualwrite-ingest queue-stats
    dualwrite-ingest init-db
"""

import argparse
import asyncio
import json
import signal
import sys
from pathlib import Path
from typing import Any

from dualwrite.config import IngestionOptions, load_contract, load_env
from dualwrite.core.errors import BatchTooLargeError, ContractError, MalformedBatchError
from dualwrite.ingest.service import (
    build_replayer,
    build_service,
    in_memory_stores,
    postgres_stores,
)
from dualwrite.observability.logger import get_logger
from dualwrite.observability.metrics import get_metrics

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BAD_INPUT = 2
EXIT_INTERRUPTED = 130


def read_batch(path: str) -> Any:
    """
    Read a batch from a JSON or JSON Lines file ("-" reads stdin).

    Returns:
        The decoded request: a list of records or a {"records": [...]} mapping
    """
    if path == "-":
        text = sys.stdin.read()
    else:
        text = Path(path).read_text(encoding="utf-8")

    if path.endswith(".jsonl"):
        return [json.loads(line) for line in text.splitlines() if line.strip()]
    return json.loads(text)


def print_json(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _options_from_args(args) -> IngestionOptions:
    return IngestionOptions.from_env(
        max_concurrency=args.max_concurrency,
        per_record_timeout=args.per_record_timeout,
        batch_timeout=args.batch_timeout,
        max_batch_size=args.max_batch_size,
    )


def _install_cancel_handler(cancel_event: asyncio.Event) -> None:
    # Ctrl-C cancels the batch and still reports a summary
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        pass


async def _run_ingest(args, request: Any, options: IngestionOptions) -> dict[str, Any]:
    contract = load_contract(args.contract)
    cancel_event = asyncio.Event()
    _install_cancel_handler(cancel_event)

    if args.dry_run:
        service = build_service(in_memory_stores(), contract=contract, options=options)
        return await service.ingest(request, cancel_event=cancel_event)

    async with postgres_stores() as stores:
        service = build_service(stores, contract=contract, options=options)
        return await service.ingest(request, cancel_event=cancel_event)


def ingest_command(args) -> int:
    """
    Ingest one batch file and print its summary.

    Args:
        args: Command line arguments
    """
    try:
        request = read_batch(args.input)
        options = _options_from_args(args)
    except (OSError, json.JSONDecodeError, ValueError) as e:
        logger.error(f"Cannot read batch: {e}")
        print(f"\nError: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT

    try:
        summary = asyncio.run(_run_ingest(args, request, options))
    except (BatchTooLargeError, MalformedBatchError, ContractError, FileNotFoundError) as e:
        logger.error(f"Batch refused: {e}")
        print(f"\nError: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT
    except Exception as e:
        logger.error(f"Error ingesting batch: {e}", exc_info=True)
        print(f"\nError: {e}", file=sys.stderr)
        return EXIT_ERROR

    print_json(summary)

    if args.metrics_out:
        payload, _ = get_metrics()
        Path(args.metrics_out).write_bytes(payload)

    return EXIT_INTERRUPTED if summary["cancelled"] else EXIT_OK


async def _run_reconcile(limit: int, options: IngestionOptions) -> dict[str, Any]:
    async with postgres_stores() as stores:
        return await build_replayer(stores, options).replay(limit)


def reconcile_command(args) -> int:
    """
    Replay pending reconciliation entries into the document store.

    Args:
        args: Command line arguments
    """
    try:
        result = asyncio.run(_run_reconcile(args.limit, IngestionOptions.from_env()))
    except Exception as e:
        logger.error(f"Error replaying reconciliation queue: {e}", exc_info=True)
        print(f"\nError: {e}", file=sys.stderr)
        return EXIT_ERROR

    print_json(result)
    return EXIT_OK


async def _run_queue_stats() -> dict[str, int]:
    async with postgres_stores() as stores:
        return await stores.queue.get_stats()


def queue_stats_command(args) -> int:
    """Print reconciliation queue statistics."""
    try:
        stats = asyncio.run(_run_queue_stats())
    except Exception as e:
        logger.error(f"Error reading queue statistics: {e}", exc_info=True)
        print(f"\nError: {e}", file=sys.stderr)
        return EXIT_ERROR

    print_json(stats)
    return EXIT_OK


async def _run_init_db() -> None:
    async with postgres_stores(ensure_schema=True):
        pass


def init_db_command(args) -> int:
    """Create the store tables if they do not exist."""
    try:
        asyncio.run(_run_init_db())
    except Exception as e:
        logger.error(f"Error initializing databases: {e}", exc_info=True)
        print(f"\nError: {e}", file=sys.stderr)
        return EXIT_ERROR

    print("Databases initialized")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dualwrite-ingest",
        description="Dual-write batch ingestion into a relational and a document store",
    )
    parser.add_argument(
        "--env-file",
        help="Path to a .env file with store settings (optional)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # ingest command
    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Ingest a batch of records"
    )
    ingest_parser.add_argument(
        "--input",
        required=True,
        help="JSON file with a list of records or {\"records\": [...]}, .jsonl, or - for stdin"
    )
    ingest_parser.add_argument(
        "--contract",
        help="Path to a YAML schema contract (default: SCHEMA_CONTRACT_PATH or built-in)"
    )
    ingest_parser.add_argument(
        "--max-concurrency",
        type=int,
        help="Maximum records written concurrently"
    )
    ingest_parser.add_argument(
        "--per-record-timeout",
        type=float,
        help="Seconds allowed for each store call"
    )
    ingest_parser.add_argument(
        "--batch-timeout",
        type=float,
        help="Seconds allowed for the whole batch"
    )
    ingest_parser.add_argument(
        "--max-batch-size",
        type=int,
        help="Largest accepted batch"
    )
    ingest_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate and write to in-memory stores only"
    )
    ingest_parser.add_argument(
        "--metrics-out",
        help="Write Prometheus metrics to this file after the batch (optional)"
    )

    # reconcile command
    reconcile_parser = subparsers.add_parser(
        "reconcile",
        help="Replay pending reconciliation entries"
    )
    reconcile_parser.add_argument(
        "--limit",
        type=int,
        default=100,
        help="Maximum number of entries to replay (default: 100)"
    )

    subparsers.add_parser(
        "queue-stats",
        help="Show reconciliation queue statistics"
    )

    subparsers.add_parser(
        "init-db",
        help="Create the store tables"
    )

    return parser


COMMANDS = {
    "ingest": ingest_command,
    "reconcile": reconcile_command,
    "queue-stats": queue_stats_command,
    "init-db": init_db_command,
}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_ERROR

    load_env(args.env_file)

    try:
        return COMMANDS[args.command](args)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())

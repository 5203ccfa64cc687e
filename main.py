import argparse
import asyncio
import logging
import sys
import time
from typing import Optional, Sequence, TextIO

import structlog

from config import Settings, get_settings
from exceptions import InputFileError, TransactionParseError
from readers import open_transactions
from reports import write_snapshot
from services import get_ledger_service, get_sharded_ledger_service

logger = structlog.get_logger()


def configure_logging(settings: Settings, stream: TextIO = sys.stderr) -> None:
    """Configure structured logging. Logs go to stderr; stdout carries the snapshot."""
    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=settings.log_level.upper(),
        force=True,
    )

    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="payments-engine",
        description=(
            "Apply a CSV stream of deposits, withdrawals, disputes, resolves and "
            "chargebacks and print the final balance of every client as CSV."
        ),
    )
    parser.add_argument("input", help="Path to the transactions CSV file.")
    parser.add_argument(
        "--shards",
        type=int,
        default=None,
        help="Partition accounts across this many workers (default: settings, 1).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the configured log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "text"],
        help="Override the configured log format.",
    )
    return parser


def run(path: str, settings: Settings, out: TextIO) -> int:
    """Process one input file and write the snapshot to ``out``."""
    start_time = time.time()
    logger.info(
        "Processing transactions",
        app=settings.app_name,
        version=settings.app_version,
        input=path,
        shards=settings.shard_count
    )

    try:
        with open_transactions(path) as records:
            if settings.shard_count > 1:
                service = get_sharded_ledger_service(settings.shard_count, settings)
                report = asyncio.run(service.process(records))
            else:
                service = get_ledger_service(settings=settings)
                report = service.process(records)
    except InputFileError as e:
        logger.error("Input file error", error=str(e))
        return 1
    except TransactionParseError as e:
        logger.error("Malformed transaction row", line=e.line_number, error=e.detail)
        return 1
    except UnicodeDecodeError as e:
        logger.error("Input file is not valid UTF-8", error=str(e))
        return 1

    accounts = write_snapshot(service.snapshot(), out)

    logger.info(
        "Snapshot written",
        accounts=accounts,
        records=report.records_processed,
        rejected=report.rejected,
        process_time=round(time.time() - start_time, 4)
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.shards is not None and args.shards < 1:
        parser.error("--shards must be at least 1")

    overrides = {}
    if args.shards is not None:
        overrides["shard_count"] = args.shards
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    if args.log_format is not None:
        overrides["log_format"] = args.log_format

    settings = get_settings()
    if overrides:
        settings = settings.model_copy(update=overrides)

    configure_logging(settings)
    return run(args.input, settings, sys.stdout)


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()

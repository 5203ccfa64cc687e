"""
CSV input for the payments engine.

Rows look like ``type, client, tx, amount`` under a header line. Values may
carry surrounding whitespace and the amount column may be empty or missing
for disputes, resolves and chargebacks. A row that cannot be turned into a
``TransactionRecord`` aborts the run with ``TransactionParseError``.
"""

import csv
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional, TextIO, Union

from pydantic import ValidationError

from exceptions import InputFileError, TransactionParseError
from models import TransactionRecord

REQUIRED_COLUMNS = ("type", "client", "tx")
OPTIONAL_COLUMNS = ("amount",)


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "row"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def parse_row(row: Dict[str, Optional[str]], line_number: int = 0) -> TransactionRecord:
    """Build a record from one CSV row already keyed by column name."""
    values = {}
    for column in REQUIRED_COLUMNS + OPTIONAL_COLUMNS:
        value = row.get(column)
        values[column] = value.strip() if value is not None else None

    for column in REQUIRED_COLUMNS:
        if not values[column]:
            raise TransactionParseError(line_number, f"missing value for '{column}'")

    try:
        return TransactionRecord(**values)
    except ValidationError as e:
        raise TransactionParseError(line_number, _format_validation_error(e)) from e


def read_transactions(stream: TextIO) -> Iterator[TransactionRecord]:
    """Lazily yield records from a CSV stream, in input order."""
    reader = csv.reader(stream)

    header = next(reader, None)
    if header is None:
        return
    columns = [name.strip() for name in header]
    missing = [name for name in REQUIRED_COLUMNS if name not in columns]
    if missing:
        raise TransactionParseError(reader.line_num, f"missing columns: {', '.join(missing)}")

    for fields in reader:
        if not any(field.strip() for field in fields):
            continue
        if any(field.strip() for field in fields[len(columns):]):
            raise TransactionParseError(
                reader.line_num,
                f"expected at most {len(columns)} fields, got {len(fields)}"
            )
        row = dict(zip(columns, fields))
        yield parse_row(row, reader.line_num)


@contextmanager
def open_transactions(path: Union[str, Path]) -> Iterator[Iterator[TransactionRecord]]:
    """Open a CSV file and yield a record iterator over it."""
    try:
        handle = open(path, newline="", encoding="utf-8")
    except OSError as e:
        raise InputFileError(f"Cannot read input file {path}: {e.strerror or e}") from e

    with handle:
        yield read_transactions(handle)

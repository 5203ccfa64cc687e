import csv
from typing import Iterable, TextIO

from models import AccountSnapshot

SNAPSHOT_HEADER = ["client", "available", "held", "total", "locked"]


def write_snapshot(snapshots: Iterable[AccountSnapshot], stream: TextIO) -> int:
    """Write snapshot rows as CSV. Returns the number of accounts written."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(SNAPSHOT_HEADER)

    count = 0
    for snapshot in snapshots:
        writer.writerow(snapshot.as_row())
        count += 1
    return count

"""Ledger storage: reading and writing transaction records."""

import csv
import io
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from fxbudget.models import TransactionRecord
from fxbudget.utils.parsing import is_excel_file, parse_amount, parse_date, read_file

logger = logging.getLogger(__name__)

LEDGER_HEADERS = [
    "Date",
    "Description",
    "Category",
    "Amount (Base)",
    "Amount (Local)",
    "Currency",
]

# TransactionRecord field behind each ledger column
RECORD_FIELDS = [
    "date",
    "description",
    "category",
    "amount_base",
    "amount_local",
    "currency",
]


class Ledger(Protocol):
    """Read/write access to the full list of transaction records."""

    def load(self) -> list[TransactionRecord]: ...

    def save(self, records: list[TransactionRecord]) -> None: ...


def record_from_row(row: list[str]) -> TransactionRecord:
    """Build a record from ledger cells in column order.

    Short rows are padded with empty cells. The unstripped cells are kept
    in ``raw_data`` so untouched values are saved exactly as read.
    """
    raw = list(row[: len(RECORD_FIELDS)]) + [""] * (len(RECORD_FIELDS) - len(row))
    date_cell, description, category, base_cell, local_cell, currency = (
        cell.strip() for cell in raw
    )

    return TransactionRecord(
        date=parse_date(date_cell),
        description=description,
        category=category,
        amount_base=parse_amount(base_cell),
        amount_local=parse_amount(local_cell),
        currency=currency.upper(),
        raw_data=dict(zip(RECORD_FIELDS, raw)),
    )


class CsvLedger:
    """
    Ledger kept in a CSV file with a header row.

    Excel exports (.xls) can be loaded but not saved.

    Usage:
        ledger = CsvLedger(Path("transactions.csv"))
        records = ledger.load()
        ledger.save(records)
    """

    def __init__(self, path: Path, delimiter: str = ",") -> None:
        self.path = path
        self.delimiter = delimiter

    @property
    def read_only(self) -> bool:
        return is_excel_file(self.path) if self.path.exists() else False

    def load(self) -> list[TransactionRecord]:
        """
        Read every record in the ledger.

        Raises:
            FileNotFoundError: If the ledger file does not exist
            ValueError: If the file cannot be decoded
        """
        if not self.path.exists():
            raise FileNotFoundError(f"Ledger not found: {self.path}")

        content = read_file(self.path)
        reader = csv.reader(io.StringIO(content), delimiter=self.delimiter)
        rows = list(reader)
        if not rows:
            return []

        records: list[TransactionRecord] = []
        # Row 1 is the header
        for row in rows[1:]:
            if not any(cell.strip() for cell in row):
                continue
            records.append(record_from_row(row))

        logger.debug("Loaded %d records from %s", len(records), self.path)
        return records

    def save(self, records: list[TransactionRecord]) -> None:
        """
        Rewrite the ledger with the given records.

        The rows go to a temporary file that then replaces the ledger, so
        a failed write leaves the old file in place.

        Raises:
            ValueError: If the ledger is an Excel export
        """
        if self.read_only:
            raise ValueError(f"Cannot write to Excel ledger {self.path}; export it to CSV first")

        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f, delimiter=self.delimiter)
                writer.writerow(LEDGER_HEADERS)
                for record in records:
                    writer.writerow(record.to_row())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug("Wrote %d records to %s", len(records), self.path)


class InMemoryLedger:
    """Ledger held in a list, for embedding and tests."""

    def __init__(self, records: list[TransactionRecord] | None = None) -> None:
        self.records = list(records or [])
        self.saves = 0

    def load(self) -> list[TransactionRecord]:
        return list(self.records)

    def save(self, records: list[TransactionRecord]) -> None:
        self.records = list(records)
        self.saves += 1

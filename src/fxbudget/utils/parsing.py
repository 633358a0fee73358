"""Parsing utilities for ledger cells and ledger files."""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any


def parse_date(date_str: str) -> date | None:
    """
    Parse a ledger date cell to a date object.

    Supported formats:
    - YYYY-MM-DD (2026-01-30)
    - DD/MM/YYYY (30/01/2026)
    - DD MMM YYYY (30 Jan 2026), as written by Excel exports
    - DD-MM-YYYY (30-01-2026)

    Args:
        date_str: Date string to parse

    Returns:
        date object if successful, None otherwise
    """
    date_str = date_str.strip().strip('"').strip()

    if not date_str:
        return None

    formats = [
        "%Y-%m-%d",  # 2026-01-30
        "%d/%m/%Y",  # 30/01/2026
        "%d %b %Y",  # 30 Jan 2026
        "%d-%m-%Y",  # 30-01-2026
        "%d %B %Y",  # 30 January 2026
    ]

    for fmt in formats:
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue

    # Timestamps such as "2026-01-30T10:15:00" or "2026-01-30 10:15:00"
    try:
        return datetime.fromisoformat(date_str).date()
    except ValueError:
        return None


def parse_amount(amount_str: str) -> Decimal | None:
    """
    Parse a ledger amount cell to Decimal.

    Handles:
    - Currency symbols and codes ($, €, USD, etc.)
    - Thousands separators (commas)
    - Negative values (both -123 and (123))
    - Quoted values

    Args:
        amount_str: Amount string to parse

    Returns:
        Decimal if successful, None otherwise
    """
    if not amount_str or not amount_str.strip():
        return None

    amount_str = amount_str.strip().strip('"').strip()

    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    amount_str = re.sub(r"[A-Za-z$€£¥\s]", "", amount_str)
    amount_str = amount_str.replace(",", "")

    if amount_str.startswith("-"):
        is_negative = True
        amount_str = amount_str[1:]

    if not amount_str:
        return None

    try:
        value = Decimal(amount_str)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return -value if is_negative else value


def to_decimal(value: Any) -> Decimal | None:
    """
    Coerce a numeric-looking value to Decimal.

    Floats go through ``str`` so 0.73 stays 0.73 rather than its binary
    expansion. Booleans, NaN and infinities are rejected.

    Returns:
        Decimal if the value is numeric, None otherwise
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        result = Decimal(str(value))
        return result if result.is_finite() else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None
        return result if result.is_finite() else None
    return None


def read_file(filepath: Path) -> str:
    """
    Read a ledger file, handling both text and Excel files.

    Args:
        filepath: Path to the file

    Returns:
        File content as string (Excel files converted to CSV format)

    Raises:
        ValueError: If file cannot be read, or is an .xlsx workbook
    """
    if not filepath.exists():
        raise ValueError(f"File not found: {filepath}")

    if is_xlsx_file(filepath):
        raise ValueError(
            f"{filepath.name}: .xlsx workbooks are not supported, export the sheet to CSV or .xls"
        )
    if is_excel_file(filepath):
        return _read_excel(filepath)
    return _read_text(filepath)


def _magic_bytes(filepath: Path) -> bytes:
    try:
        with open(filepath, "rb") as f:
            return f.read(4)
    except OSError:
        return b""


def is_xlsx_file(filepath: Path) -> bool:
    """Check extension and zip magic bytes for an .xlsx workbook."""
    if filepath.suffix.lower() == ".xlsx":
        return True
    return _magic_bytes(filepath) == b"PK\x03\x04"


def is_excel_file(filepath: Path) -> bool:
    """Check extension and magic bytes for any Excel workbook (.xls or .xlsx)."""
    if filepath.suffix.lower() == ".xls":
        return True
    return _magic_bytes(filepath) == b"\xd0\xcf\x11\xe0" or is_xlsx_file(filepath)


def _read_text(filepath: Path) -> str:
    """Read text file with encoding detection."""
    encodings = ["utf-8-sig", "utf-8", "latin-1"]

    for encoding in encodings:
        try:
            with open(filepath, encoding=encoding) as f:
                return f.read()
        except UnicodeDecodeError:
            continue

    raise ValueError(f"Could not decode file {filepath} with any known encoding")


def _read_excel(filepath: Path) -> str:
    """Read the first sheet of an Excel file and convert it to CSV text."""
    try:
        import xlrd  # type: ignore[import-untyped]
    except ImportError as err:
        raise ValueError(
            "xlrd is required to read Excel ledgers. Install with: pip install fxbudget[excel]"
        ) from err

    try:
        wb = xlrd.open_workbook(str(filepath))
        sheet = wb.sheet_by_index(0)

        lines = []
        for row in range(sheet.nrows):
            row_data = []
            for col in range(sheet.ncols):
                cell = sheet.cell(row, col)
                if cell.ctype == xlrd.XL_CELL_DATE:
                    dt = xlrd.xldate_as_datetime(cell.value, wb.datemode)
                    row_data.append(dt.strftime("%Y-%m-%d"))
                elif cell.ctype == xlrd.XL_CELL_NUMBER:
                    # Excel stores every number as float; keep integers clean
                    number = cell.value
                    row_data.append(str(int(number)) if number == int(number) else repr(number))
                else:
                    value = str(cell.value)
                    if "," in value or '"' in value or "\n" in value:
                        value = '"' + value.replace('"', '""') + '"'
                    row_data.append(value)
            lines.append(",".join(row_data))

        return "\n".join(lines)

    except Exception as e:
        raise ValueError(f"Could not read Excel file {filepath}: {e}") from e

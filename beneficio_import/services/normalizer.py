from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from ..models.cell import Cell, RawKind
from ..models.schema import BIRTH_DATE_FIELD, CURRENCY_FIELDS, IDENTIFIER_FIELD, IDENTIFIER_WIDTH

"""Per-field value canonicalization.

Rules:
- cpf: non-digits stripped, then left-padded with '0' to 11 characters
- currency fields: 'R$ 1.234,56' -> '1234.56'
- data_nascimento: spreadsheet day serials -> DD/MM/YYYY
- everything else: trimmed text, empty cells -> ''

Day serials use the 1900 date system: serial 25569 is 1970-01-01. The offset
absorbs the phantom 29/02/1900, so serials from March 1900 on map correctly.
"""

__all__ = [
    "EPOCH_OFFSET_DAYS",
    "IMPORT_SERIAL_RANGE",
    "REPAIR_SERIAL_RANGE",
    "convert_stored_serial",
    "format_br_date",
    "normalize_birth_date",
    "normalize_cell",
    "normalize_currency",
    "normalize_identifier",
    "parse_number",
    "repair_legacy_currency",
    "serial_to_date",
]

EPOCH_OFFSET_DAYS = 25569  # days between 1900-01-01 (serial epoch) and 1970-01-01
_UNIX_EPOCH = date(1970, 1, 1)
MIN_YEAR = 1900
MAX_YEAR = 2100

# exclusive bounds
IMPORT_SERIAL_RANGE = (20000, 80000)
REPAIR_SERIAL_RANGE = (1, 100000)

_NON_DIGIT_RE = re.compile(r"\D")
_CURRENCY_SYMBOL_RE = re.compile(r"R\$\s?")
_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_DIGITS_RE = re.compile(r"^\d+$")
_CENTS = Decimal("0.01")


def normalize_identifier(value: Any) -> str:
    """Canonical CPF: digits only, zero-padded to 11. Blank input stays blank."""
    if value is None:
        return ""
    digits = _NON_DIGIT_RE.sub("", str(value))
    if not digits:
        return ""
    return digits.rjust(IDENTIFIER_WIDTH, "0")


def normalize_currency(value: Any) -> str:
    """Rewrite Brazilian currency text as a plain decimal string."""
    if value is None:
        return ""
    text = _CURRENCY_SYMBOL_RE.sub("", str(value), count=1)
    text = text.replace(".", "")
    text = text.replace(",", ".", 1)
    return text.strip()


def repair_legacy_currency(value: Any) -> str | None:
    """Recover a decimal amount stored as an integer count of cents.

    Returns None when the value does not look like a legacy amount (has a
    separator, is not a positive integer, or is not a string).
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    if "." in text or "," in text or not _DIGITS_RE.match(text):
        return None
    cents = int(text)
    if cents <= 0:
        return None
    amount = (Decimal(cents) / 100).quantize(_CENTS)
    return f"{amount:.2f}"


def parse_number(value: Any) -> float | None:
    """Strict numeric parse of a stored value; None if not a finite number."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not _NUMBER_RE.match(text):
            return None
        number = float(text)
    if not math.isfinite(number):
        return None
    return number


def format_br_date(value: date | datetime) -> str:
    return f"{value.day:02d}/{value.month:02d}/{value.year}"


def serial_to_date(serial: float) -> str | None:
    """Convert a spreadsheet day serial to DD/MM/YYYY.

    Returns None for non-finite input or a year outside [1900, 2100].
    """
    if isinstance(serial, bool):
        return None
    try:
        serial = float(serial)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(serial):
        return None
    days = math.floor(serial - EPOCH_OFFSET_DAYS)
    try:
        converted = _UNIX_EPOCH + timedelta(days=days)
    except OverflowError:
        return None
    if converted.year < MIN_YEAR or converted.year > MAX_YEAR:
        return None
    return format_br_date(converted)


def _in_range(number: float, bounds: tuple[int, int]) -> bool:
    low, high = bounds
    return low < number < high


def normalize_birth_date(cell: Cell) -> str:
    """Birth date cell -> DD/MM/YYYY where the cell holds a date, else its text."""
    if cell.kind is RawKind.NUMBER and _in_range(float(cell.raw), IMPORT_SERIAL_RANGE):
        converted = serial_to_date(cell.raw)
        if converted is not None:
            return converted
    if cell.kind is RawKind.DATE:
        return format_br_date(cell.raw)
    return cell.formatted.strip()


def convert_stored_serial(value: Any) -> str | None:
    """Repair-time conversion of a stored birth date that is still a day serial."""
    number = parse_number(value)
    if number is None or not _in_range(number, REPAIR_SERIAL_RANGE):
        return None
    return serial_to_date(number)


def _format_amount(number: int | float) -> str:
    return f"{Decimal(str(number)).quantize(_CENTS):.2f}"


def normalize_cell(field: str, cell: Cell) -> str:
    """Canonical string for ``cell`` stored under schema key ``field``."""
    if cell.is_empty:
        return ""
    if field == IDENTIFIER_FIELD:
        return normalize_identifier(cell.formatted)
    if field in CURRENCY_FIELDS:
        if cell.kind is RawKind.NUMBER:
            # 数値セルは文字列置換を通さない ('.' を桁区切りとして消さない)
            return _format_amount(cell.raw)
        return normalize_currency(cell.formatted)
    if field == BIRTH_DATE_FIELD:
        return normalize_birth_date(cell)
    return cell.formatted.strip()

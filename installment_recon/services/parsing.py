"""
Cell parsers for spreadsheet imports.

Every parser returns a ParsedField so a substituted default is never silent:
the validator copies each reason into the record's defaults_applied mapping.
"""

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Generic, Optional, TypeVar

import pandas as pd

from installment_recon.core.exceptions import ValidationError

T = TypeVar("T")

# Serial 25569 is 1970-01-01 in spreadsheet day counts
SERIAL_DATE_EPOCH = 25569
SERIAL_DATE_HALF_DAY = timedelta(hours=12)

_NUMERIC_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")
_DAY_FIRST_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
_YEAR_FIRST_RE = re.compile(r"^(\d{4})[/-](\d{1,2})[/-](\d{1,2})$")
_COMPACT_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")


@dataclass(frozen=True)
class ParsedField(Generic[T]):
    value: T
    defaulted: bool = False
    reason: Optional[str] = None

    @classmethod
    def default(cls, value: T, reason: str) -> "ParsedField[T]":
        return cls(value=value, defaulted=True, reason=reason)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def cell_text(value: Any) -> str:
    """Render a cell as trimmed text; integral floats lose their '.0'"""
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _to_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return Decimal(str(value))
    text = str(value).strip()
    if not _NUMERIC_RE.match(text):
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def parse_decimal(value: Any, default: Decimal = Decimal(0)) -> ParsedField[Decimal]:
    if is_blank(value):
        return ParsedField.default(default, "missing, defaulted to %s" % default)
    number = _to_decimal(value)
    if number is None:
        return ParsedField.default(default, "unparsable value '%s', defaulted to %s" % (cell_text(value), default))
    return ParsedField(number)


def parse_installment_count(value: Any) -> ParsedField[int]:
    """
    Number of installments is the divisor of the installment amount.

    A missing or unparsable cell falls back to a single installment; an
    explicit zero, a negative or a fractional count raises ValidationError.
    """
    if is_blank(value):
        return ParsedField.default(1, "missing, defaulted to 1")
    number = _to_decimal(value)
    if number is None:
        return ParsedField.default(1, "unparsable value '%s', defaulted to 1" % cell_text(value))
    if number <= 0:
        raise ValidationError(
            "عدد الدفعات يجب أن يكون أكبر من صفر",
            details={"field": "number_of_installments", "value": cell_text(value)}
        )
    if number != number.to_integral_value():
        raise ValidationError(
            "عدد الدفعات يجب أن يكون رقماً صحيحاً: %s" % cell_text(value),
            details={"field": "number_of_installments", "value": cell_text(value)}
        )
    return ParsedField(int(number))


def serial_to_date(serial: float) -> date:
    """Convert a spreadsheet serial day count to a calendar date in UTC"""
    milliseconds = round((serial - SERIAL_DATE_EPOCH) * 86400 * 1000)
    moment = datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=milliseconds)
    return (moment + SERIAL_DATE_HALF_DAY).date()


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_cell_date(value: Any, today: Optional[date] = None) -> ParsedField[date]:
    """
    Parse a date cell, first match wins:

    1. serial day count above the 1970 epoch
    2. DD/MM/YYYY or DD-MM-YYYY
    3. YYYY/MM/DD, YYYY-MM-DD or YYYYMMDD
    4. anything pandas can read
    5. today, flagged as a default
    """
    today = today or date.today()
    if is_blank(value):
        return ParsedField.default(today, "missing, defaulted to today")

    if isinstance(value, datetime):
        return ParsedField(value.date())
    if isinstance(value, date):
        return ParsedField(value)

    serial = _to_decimal(value)
    if serial is not None and serial > SERIAL_DATE_EPOCH:
        try:
            return ParsedField(serial_to_date(float(serial)))
        except OverflowError:
            pass

    text = cell_text(value)

    match = _DAY_FIRST_RE.match(text)
    if match:
        parsed = _safe_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
        if parsed:
            return ParsedField(parsed)

    for pattern in (_YEAR_FIRST_RE, _COMPACT_RE):
        match = pattern.match(text)
        if match:
            parsed = _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
            if parsed:
                return ParsedField(parsed)

    try:
        timestamp = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        timestamp = pd.NaT
    if not pd.isna(timestamp):
        return ParsedField(timestamp.date())

    return ParsedField.default(today, "unparsable date '%s', defaulted to today" % text)

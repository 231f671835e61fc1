"""Helpers for consistent user-facing date and money formatting."""
from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

DISPLAY_DATE_FORMAT = "%d/%m/%Y"
DISPLAY_DATETIME_FORMAT = "%d/%m/%Y %H:%M"


def _coerce_to_datetime(value: Any) -> datetime | None:
    """Attempt to normalise incoming date-like values to a datetime."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def _coerce_to_decimal(value: Any) -> Decimal | None:
    if value in (None, ""):
        return Decimal("0")
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None


def format_display_date(value: Any) -> str:
    """Format a value as dd/mm/yyyy or return an empty string."""
    coerced = _coerce_to_datetime(value)
    if coerced is None:
        return "" if value in (None, "") else str(value)
    return coerced.strftime(DISPLAY_DATE_FORMAT)


def format_display_datetime(value: Any) -> str:
    """Format a value as dd/mm/yyyy hh:mm (24h) or return an empty string."""
    coerced = _coerce_to_datetime(value)
    if coerced is None:
        return "" if value in (None, "") else str(value)
    return coerced.strftime(DISPLAY_DATETIME_FORMAT)


def format_idr(value: Any) -> str:
    """Format an amount as Rupiah with dot thousand separators, e.g. ``Rp 1.250.000``.

    Fractional rupiah are rounded half-up; non-numeric input is returned as-is.
    """
    amount = _coerce_to_decimal(value)
    if amount is None:
        return str(value)
    rounded = amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    grouped = f"{abs(rounded):,.0f}".replace(",", ".")
    sign = "-" if rounded < 0 else ""
    return f"{sign}Rp {grouped}"


def format_percent(value: Any) -> str:
    """Format a 0-1 fraction as a percentage, e.g. ``0.075`` -> ``7.5%``."""
    rate = _coerce_to_decimal(value)
    if rate is None:
        return str(value)
    percent = (rate * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP).normalize()
    return f"{percent:f}%"


__all__ = [
    "format_display_date",
    "format_display_datetime",
    "format_idr",
    "format_percent",
]

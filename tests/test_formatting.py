from datetime import date, datetime
from decimal import Decimal

import pytest

from affiliate_desk.core.formatting import (
    format_display_date,
    format_display_datetime,
    format_idr,
    format_percent,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (Decimal("1250000"), "Rp 1.250.000"),
        (Decimal("999.50"), "Rp 1.000"),
        (0, "Rp 0"),
        (None, "Rp 0"),
        (Decimal("-150000"), "-Rp 150.000"),
        ("n/a", "n/a"),
    ],
)
def test_format_idr(value, expected):
    assert format_idr(value) == expected


def test_format_percent():
    assert format_percent(Decimal("0.1000")) == "10%"
    assert format_percent(Decimal("0.075")) == "7.5%"
    assert format_percent(1) == "100%"


def test_display_dates():
    assert format_display_date(date(2024, 3, 9)) == "09/03/2024"
    assert format_display_date("2024-03-09T10:00:00Z") == "09/03/2024"
    assert format_display_date(None) == ""
    assert format_display_datetime(datetime(2024, 3, 9, 14, 5)) == "09/03/2024 14:05"

"""Shared FastAPI dependencies."""
from __future__ import annotations

from pathlib import Path

from fastapi.templating import Jinja2Templates

from affiliate_desk.core.formatting import (
    format_display_date,
    format_display_datetime,
    format_idr,
    format_percent,
)

TEMPLATES_PATH = Path(__file__).parent / "templates"
STATIC_PATH = Path(__file__).parent / "static"
templates = Jinja2Templates(directory=str(TEMPLATES_PATH))

templates.env.filters["idr"] = format_idr
templates.env.filters["percent"] = format_percent
templates.env.filters["display_date"] = format_display_date
templates.env.filters["display_datetime"] = format_display_datetime

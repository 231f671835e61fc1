"""Spreadsheet exports."""
from .xlsx import export_full_workbook

__all__ = ["export_full_workbook"]

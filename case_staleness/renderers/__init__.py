"""Report renderers fed by a shared ReportBundle."""

from .console import render_console
from .csv_report import CSV_COLUMNS, write_csv
from .html_report import build_html, write_html

__all__ = ["CSV_COLUMNS", "build_html", "render_console", "write_csv", "write_html"]

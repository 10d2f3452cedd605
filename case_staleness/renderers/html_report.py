"""Self-contained HTML report with summary cards, a stale-only table and a sorted full table."""

from __future__ import annotations

import logging
from html import escape
from pathlib import Path
from typing import Iterable, List, Sequence

from ..errors import RenderError
from ..models import CaseRecord, ReportBundle
from .csv_report import format_timestamp

logger = logging.getLogger(__name__)

TABLE_HEADERS = [
    "Case Number",
    "Title",
    "Owner",
    "Status",
    "Severity",
    "Service",
    "Feature",
    "Created",
    "Last Updated",
    "Hours Since Update",
    "Flag",
]


def sort_for_report(records: Iterable[CaseRecord]) -> List[CaseRecord]:
    """Stale first, then longest idle first; ties keep fetch order (sorted is stable)."""
    return sorted(
        records,
        key=lambda r: (bool(r.is_stale), r.hours_since_update or 0.0),
        reverse=True,
    )


def _cell(value: object, css_class: str = "") -> str:
    class_attr = f' class="{css_class}"' if css_class else ""
    return f"<td{class_attr}>{escape(str(value))}</td>"


def _row(record: CaseRecord) -> str:
    hours_class = "hours stale" if record.is_stale else "hours recent"
    hours = "" if record.hours_since_update is None else f"{record.hours_since_update:.1f}"
    title = escape(record.title)
    description = escape(record.description)
    cells = [
        _cell(record.case_number, "mono"),
        f'<td><div class="title">{title}</div><div class="desc">{description}</div></td>',
        _cell(record.owner),
        _cell(record.status.value),
        _cell(record.severity),
        _cell(record.service),
        _cell(record.feature),
        _cell(format_timestamp(record.created_at)),
        _cell(format_timestamp(record.last_updated_at)),
        _cell(hours, hours_class),
        _cell(record.status_flag),
    ]
    row_class = "stale-row" if record.is_stale else "recent-row"
    return f'      <tr class="{row_class}">' + "".join(cells) + "</tr>"


def _table(table_id: str, records: Sequence[CaseRecord], empty_text: str) -> str:
    header = "".join(f"<th>{escape(h)}</th>" for h in TABLE_HEADERS)
    if records:
        body = "\n".join(_row(record) for record in records)
    else:
        body = (
            f'      <tr class="empty"><td colspan="{len(TABLE_HEADERS)}">'
            f"{escape(empty_text)}</td></tr>"
        )
    return (
        f'    <table id="{table_id}">\n'
        f"      <thead><tr>{header}</tr></thead>\n"
        f"      <tbody>\n{body}\n      </tbody>\n"
        f"    </table>"
    )


def build_html(bundle: ReportBundle) -> str:
    generated = bundle.generated_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    threshold = bundle.stale_threshold_hours
    summary = bundle.summary()
    stale = bundle.stale_records

    stale_section = ""
    if stale:
        stale_section = f"""
  <section class="panel alert">
    <h2>Stale Cases (no update in more than {threshold} hours)</h2>
{_table("stale-cases", stale, "")}
  </section>
"""

    all_table = _table("all-cases", sort_for_report(bundle.records), "No open cases.")

    return f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8"/>
  <meta name="viewport" content="width=device-width, initial-scale=1"/>
  <title>Support Case Staleness Report</title>
  <style>
    :root {{
      --bg: #f6f7fb; --panel: #ffffff; --text: #111827; --muted: #6b7280; --border: #e5e7eb;
      --stale: #dc2626; --recent: #16a34a; --stale-bg: #fef2f2;
    }}
    body {{
      margin: 0; background: var(--bg); color: var(--text);
      font-family: ui-sans-serif, system-ui, -apple-system, Segoe UI, Roboto, Helvetica, Arial;
    }}
    .container {{ max-width: 1280px; margin: 28px auto 60px; padding: 0 18px; }}
    h1 {{ margin: 0; font-size: 26px; }}
    h2 {{ margin: 0 0 10px; font-size: 16px; }}
    .sub {{ margin-top: 6px; color: var(--muted); font-size: 13px; }}
    .cards {{ display: grid; grid-template-columns: repeat(3, minmax(0, 1fr)); gap: 12px; margin: 18px 0; }}
    .card, .panel {{
      background: var(--panel); border: 1px solid var(--border); border-radius: 12px; padding: 14px;
    }}
    .panel {{ margin-top: 14px; overflow-x: auto; }}
    .panel.alert {{ border-color: var(--stale); }}
    .card .label {{ font-size: 11px; color: var(--muted); text-transform: uppercase; letter-spacing: 0.06em; }}
    .card .value {{ font-size: 24px; font-weight: 800; margin-top: 6px; }}
    .card.stale .value {{ color: var(--stale); }}
    .card.recent .value {{ color: var(--recent); }}
    table {{ width: 100%; border-collapse: collapse; font-size: 12px; }}
    th, td {{ padding: 8px; border-bottom: 1px solid var(--border); vertical-align: top; text-align: left; }}
    th {{ background: rgba(148,163,184,0.08); color: var(--muted); font-size: 11px; }}
    tr.stale-row {{ background: var(--stale-bg); }}
    td.hours {{ font-weight: 700; text-align: right; }}
    td.hours.stale {{ color: var(--stale); }}
    td.hours.recent {{ color: var(--recent); }}
    .mono {{ font-family: ui-monospace, Menlo, Consolas, monospace; }}
    .title {{ font-weight: 600; }}
    .desc {{ color: var(--muted); margin-top: 4px; }}
  </style>
</head>
<body>
  <div class="container">
  <header>
    <h1>Support Case Staleness Report</h1>
    <div class="sub">Generated: {escape(generated)} &middot; Stale threshold: {threshold} hours</div>
  </header>

  <div class="cards">
    <div class="card total"><div class="label">Total Cases</div><div class="value" id="total-count">{summary["total"]}</div></div>
    <div class="card stale"><div class="label">Stale Cases</div><div class="value" id="stale-count">{summary["stale"]}</div></div>
    <div class="card recent"><div class="label">Recent Cases</div><div class="value" id="recent-count">{summary["recent"]}</div></div>
  </div>
{stale_section}
  <section class="panel">
    <h2>All Cases</h2>
{all_table}
  </section>
  </div>
</body>
</html>
"""


def write_html(bundle: ReportBundle, path: Path) -> Path:
    """Writes the HTML report and returns the path."""
    path = Path(path)
    document = build_html(bundle)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(document, encoding="utf-8")
    except OSError as exc:
        raise RenderError(f"Could not write HTML report to {path}: {exc}") from exc

    logger.info("HTML report saved to %s", path)
    return path

"""Streamlit viewer for the most recent staleness CSV report.

Run with ``streamlit run case_staleness/dashboard.py``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Optional

import pandas as pd
import streamlit as st

DEFAULT_OUTPUT_DIR = Path(os.environ.get("CASE_REPORT_OUTPUT_DIR", "./Reports"))
REPORT_GLOB = "*_Cases_*.csv"


def find_latest_report(output_dir: Path = DEFAULT_OUTPUT_DIR) -> Optional[Path]:
    """Newest report CSV by its timestamp suffix, or None."""
    if not output_dir.is_dir():
        return None
    reports = sorted(output_dir.glob(REPORT_GLOB), key=lambda p: p.stem.rsplit("_Cases_", 1)[-1])
    return reports[-1] if reports else None


def load_report(path: Path) -> pd.DataFrame:
    df = pd.read_csv(path, encoding="utf-8-sig", dtype={"CaseNumber": str})
    df["IsStale"] = df["IsStale"].astype(str).str.lower() == "true"
    return df


def summarise_report(df: pd.DataFrame) -> Dict[str, int]:
    stale = int(df["IsStale"].sum()) if not df.empty else 0
    return {"total": len(df), "stale": stale, "recent": len(df) - stale}


def render_summary(path: Path, summary: Dict[str, int]) -> None:
    st.subheader("📋 Support Case Staleness")
    st.caption(f"Report file: {path.name}")
    cols = st.columns(3)
    cols[0].metric("Total cases", summary["total"])
    cols[1].metric("Stale", summary["stale"])
    cols[2].metric("Recent", summary["recent"])


def render_tables(df: pd.DataFrame) -> None:
    stale = df[df["IsStale"]]
    if stale.empty:
        st.success("No stale cases in this report.")
    else:
        st.subheader("🔴 Stale cases")
        st.dataframe(stale, hide_index=True, width="stretch")

    st.subheader("All cases")
    ordered = df.sort_values(
        ["IsStale", "HoursSinceUpdate"], ascending=[False, False], kind="stable"
    )
    st.dataframe(ordered, hide_index=True, width="stretch")


def main() -> None:
    st.set_page_config(page_title="Case Staleness", layout="wide")
    path = find_latest_report()
    if path is None:
        st.warning(
            f"No report found in {DEFAULT_OUTPUT_DIR}. "
            "Run `python -m case_staleness` first."
        )
        return

    df = load_report(path)
    render_summary(path, summarise_report(df))
    st.divider()
    render_tables(df)


if __name__ == "__main__":
    main()

"""Command-line entry point: fetch, annotate and render one staleness report."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .annotator import annotate_valid
from .config import DEFAULT_CONFIG_PATH, Settings, load_settings
from .errors import ConfigError, GraphConnectionError, RenderError
from .fetcher import fetch_cases
from .models import ReportBundle
from .renderers import render_console, write_csv, write_html
from .session import GraphSession

logger = logging.getLogger("case_staleness")

DEFAULT_OUTPUT_DIR = Path("./Reports")
DEFAULT_STALE_HOURS = 48
REPORT_PREFIX = "SupportCase"
RUN_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass(frozen=True)
class OutputPaths:
    csv: Path
    html: Path
    log: Path


def build_output_paths(output_dir: Path, prefix: str, now: datetime) -> OutputPaths:
    stamp = now.strftime(RUN_TIMESTAMP_FORMAT)
    return OutputPaths(
        csv=output_dir / f"{prefix}_Cases_{stamp}.csv",
        html=output_dir / f"{prefix}_Cases_{stamp}.html",
        log=output_dir / f"{prefix}_{stamp}.log",
    )


def configure_logging(log_path: Path, level: int = logging.INFO) -> None:
    """Sends package logs to the run's log file and to the console."""
    formatter = logging.Formatter(LOG_FORMAT)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    console_handler = logging.StreamHandler()
    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    logger.setLevel(level)
    logger.propagate = False


def positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Report open service-health cases that have gone stale."
    )
    parser.add_argument(
        "--config-path",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to the JSON config file (default: ./config.json).",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=DEFAULT_OUTPUT_DIR,
        help="Directory for the CSV, HTML and log files (default: ./Reports).",
    )
    parser.add_argument(
        "--stale-hours",
        type=positive_int,
        default=DEFAULT_STALE_HOURS,
        help="Hours without an update before a case counts as stale (default: 48).",
    )
    return parser.parse_args(argv)


def render_reports(bundle: ReportBundle, paths: OutputPaths) -> Dict[str, Optional[Path]]:
    """Runs every renderer; a failing format is logged and reported as None."""
    written: Dict[str, Optional[Path]] = {}
    writers = {"csv": (write_csv, paths.csv), "html": (write_html, paths.html)}
    for name, (writer, path) in writers.items():
        try:
            written[name] = writer(bundle, path)
        except RenderError as exc:
            logger.error("%s report failed: %s", name.upper(), exc)
            written[name] = None

    render_console(bundle)
    return written


def run(
    stale_hours: int,
    settings: Settings,
    paths: OutputPaths,
    now: datetime,
    session_factory: Optional[Callable[[Settings], GraphSession]] = None,
) -> int:
    session = (session_factory or GraphSession)(settings)
    try:
        session.connect()
        records = fetch_cases(session)
        bundle = annotate_valid(records, now, stale_hours)
        summary = bundle.summary()
        logger.info(
            "Annotated %d case(s): %d stale, %d recent",
            summary["total"],
            summary["stale"],
            summary["recent"],
        )
        written = render_reports(bundle, paths)
    except GraphConnectionError as exc:
        logger.error("Could not connect: %s", exc)
        return 1
    finally:
        session.disconnect()

    for name, path in written.items():
        if path is not None:
            logger.info("%s report: %s", name.upper(), path)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    now = datetime.now(timezone.utc)

    output_dir: Path = args.output_dir
    paths = build_output_paths(output_dir, REPORT_PREFIX, now)
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        configure_logging(paths.log)
    except OSError as exc:
        logger.error("Cannot use output directory %s: %s", output_dir, exc)
        return 1
    logger.info("Starting staleness report (threshold %d hours)", args.stale_hours)

    try:
        settings = load_settings(args.config_path)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return 1

    return run(args.stale_hours, settings, paths, now)


if __name__ == "__main__":
    raise SystemExit(main())

"""Error types raised across the staleness report pipeline."""

from __future__ import annotations


class StaleReportError(Exception):
    """Base class for report errors."""


class ConfigError(StaleReportError):
    """Configuration is missing, malformed or incomplete."""


class GraphConnectionError(StaleReportError):
    """The authenticated session could not be established."""


class FetchError(StaleReportError):
    """A single case source could not be retrieved."""


class AnnotationError(StaleReportError):
    """A record could not be annotated (missing or bad timestamp)."""

    def __init__(self, case_number: str, message: str) -> None:
        super().__init__(f"{case_number}: {message}")
        self.case_number = case_number


class RenderError(StaleReportError):
    """A report format could not be written."""

"""Report generators for page suite runs."""
from reporters.base import BaseReporter, ReportFormat
from reporters.html import HTMLReporter
from reporters.json_reporter import JSONReporter
from reporters.junit import JUnitReporter

__all__ = [
    "BaseReporter",
    "ReportFormat",
    "HTMLReporter",
    "JSONReporter",
    "JUnitReporter",
]

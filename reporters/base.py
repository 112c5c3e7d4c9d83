"""Base reporter interface for page suite runs."""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from suite_types import SuiteRunResult


class ReportFormat(str, Enum):
    """Supported report formats."""
    HTML = "html"
    JSON = "json"
    JUNIT = "junit"
    ALL = "all"


class BaseReporter(ABC):
    """Abstract base class for report generators."""

    @abstractmethod
    def generate(self, suite: SuiteRunResult, output_dir: Path) -> Path:
        """
        Generate a report for a whole suite run.

        Args:
            suite: Aggregated run result
            output_dir: Directory to write report to

        Returns:
            Path to the generated report file
        """
        pass

    @property
    @abstractmethod
    def format(self) -> ReportFormat:
        """Return the report format this reporter generates."""
        pass

    def _target_path(self, suite: SuiteRunResult, output_dir: Path, suffix: str) -> Path:
        """Timestamped file name that keeps profiles and repeated runs apart."""
        output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S-%f")
        path = output_dir / f"{suite.profile}-{timestamp}.{suffix}"
        counter = 1
        while path.exists():
            path = output_dir / f"{suite.profile}-{timestamp}-{counter}.{suffix}"
            counter += 1
        return path

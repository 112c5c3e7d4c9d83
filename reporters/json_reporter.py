"""JSON report generator for page suite runs."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from reporters.base import BaseReporter, ReportFormat
from suite_types import SuiteRunResult, TargetResult


class JSONReporter(BaseReporter):
    """Generate machine-readable JSON reports."""

    @property
    def format(self) -> ReportFormat:
        return ReportFormat.JSON

    def _result_to_dict(self, result: TargetResult) -> Dict[str, Any]:
        """Convert TargetResult to JSON-serializable dict."""
        return {
            "target": {
                "name": result.target.name,
                "page": result.target.page,
                "timeout_ms": result.target.timeout_ms,
                "tags": sorted(result.target.tags),
            },
            "result": {
                "status": result.status.value,
                "url": result.url,
                "report": result.report,
                "error": result.error,
                "error_type": result.error_type,
                "started_at": result.started_at.isoformat(),
                "finished_at": result.finished_at.isoformat(),
                "duration_seconds": result.duration_seconds,
                "retry_attempt": result.retry_attempt,
                "console_errors": result.console_errors,
            },
        }

    def generate(self, suite: SuiteRunResult, output_dir: Path) -> Path:
        """Generate a JSON report for a suite run."""
        target = self._target_path(suite, output_dir, "json")

        durations = [r.duration_seconds for r in suite.results]
        total_duration = sum(durations)
        avg_duration = total_duration / len(durations) if durations else 0

        report_data = {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "report_version": "1.0",
            "profile": suite.profile,
            "browser": suite.browser_type,
            "aborted": suite.aborted,
            "targets": [self._result_to_dict(r) for r in suite.results],
            "summary": {
                "total": suite.total,
                "passed": suite.passed,
                "failed": suite.failed,
                "errors": suite.errors,
                "skipped": suite.skipped,
                "pass_rate": round(suite.pass_rate, 2),
                "duration_seconds": round(suite.duration_seconds, 2),
                "avg_target_seconds": round(avg_duration, 2),
                "max_target_seconds": round(max(durations), 2) if durations else 0,
            },
            "failed_targets": [
                {"name": r.target.name, "report": r.report}
                for r in suite.failed_results
            ],
            "errored_targets": [
                {"name": r.target.name, "error_type": r.error_type, "error": r.error}
                for r in suite.errored_results
            ],
        }

        target.write_text(json.dumps(report_data, indent=2), encoding="utf-8")
        return target

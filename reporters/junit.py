"""JUnit XML report generator for CI integration."""
from __future__ import annotations

import html
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from reporters.base import BaseReporter, ReportFormat
from suite_types import SuiteRunResult, TargetResult, TargetStatus


class JUnitReporter(BaseReporter):
    """Generate JUnit XML reports for CI/CD integration.

    Harness failures are written as ``<failure>`` and infrastructure problems
    (timeouts, navigation, lost sessions) as ``<error>``, so CI tools count
    them separately.
    """

    @property
    def format(self) -> ReportFormat:
        return ReportFormat.JUNIT

    def _escape_xml(self, text: str) -> str:
        """Escape special XML characters."""
        return html.escape(str(text), quote=True)

    def _cdata(self, text: str) -> str:
        return "<![CDATA[" + str(text).replace("]]>", "]]]]><![CDATA[>") + "]]>"

    def _format_timestamp(self, dt: datetime) -> str:
        """Format datetime for JUnit XML."""
        return dt.strftime("%Y-%m-%dT%H:%M:%S")

    def _build_testcase_xml(self, result: TargetResult, classname: str) -> str:
        """Build XML for a single target."""
        name = self._escape_xml(result.target.name)
        time_sec = f"{result.duration_seconds:.3f}"
        lines = [f'    <testcase classname="{classname}" name="{name}" time="{time_sec}">']

        if result.status == TargetStatus.FAILED:
            message = self._escape_xml(result.report or "")
            lines.append(f'      <failure message="{message}" type="HarnessFailure">')
            lines.append(self._cdata(f"Page: {result.url}\n\n{result.report or ''}"))
            lines.append("      </failure>")
        elif result.status == TargetStatus.ERROR:
            message = self._escape_xml(result.error or "")
            error_type = self._escape_xml(result.error_type or "Error")
            lines.append(f'      <error message="{message}" type="{error_type}">')
            lines.append(self._cdata(f"Page: {result.url or result.target.page}\n\n{result.error or ''}"))
            lines.append("      </error>")
        elif result.status == TargetStatus.SKIPPED:
            lines.append(f'      <skipped message="{self._escape_xml(result.error or "")}"/>')

        if result.console_errors:
            lines.append("      <system-err>")
            lines.append(self._cdata("\n".join(result.console_errors)))
            lines.append("      </system-err>")

        lines.append("    </testcase>")
        return "\n".join(lines)

    def generate(self, suite: SuiteRunResult, output_dir: Path) -> Path:
        """Generate a JUnit XML report for a suite run."""
        target = self._target_path(suite, output_dir, "xml")
        results: List[TargetResult] = suite.results

        total_time = sum(r.duration_seconds for r in results)
        timestamp_str = self._format_timestamp(suite.started_at)
        suite_name = self._escape_xml(f"page-suite.{suite.profile}")
        classname = self._escape_xml(f"page_suite.{suite.profile}")

        lines = ['<?xml version="1.0" encoding="UTF-8"?>']
        lines.append(
            f'<testsuite name="{suite_name}" '
            f'tests="{suite.total}" '
            f'failures="{suite.failed}" '
            f'errors="{suite.errors}" '
            f'skipped="{suite.skipped}" '
            f'time="{total_time:.3f}" '
            f'timestamp="{timestamp_str}">'
        )

        lines.append("  <properties>")
        lines.append(f'    <property name="browser" value="{self._escape_xml(suite.browser_type or "")}"/>')
        lines.append(f'    <property name="aborted" value="{str(suite.aborted).lower()}"/>')
        lines.append(
            f'    <property name="generated_at" value="{datetime.now(timezone.utc).isoformat()}"/>'
        )
        lines.append("  </properties>")

        for result in results:
            lines.append(self._build_testcase_xml(result, classname))

        lines.append("</testsuite>")

        target.write_text("\n".join(lines), encoding="utf-8")
        return target

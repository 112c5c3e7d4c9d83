"""HTML report generator for page suite runs."""
from __future__ import annotations

import html
from pathlib import Path
from typing import List

from reporters.base import BaseReporter, ReportFormat
from suite_types import SuiteRunResult, TargetResult, TargetStatus

_BADGES = {
    TargetStatus.PASSED: ("pass", "PASS"),
    TargetStatus.FAILED: ("fail", "FAIL"),
    TargetStatus.ERROR: ("error", "ERROR"),
    TargetStatus.SKIPPED: ("skip", "SKIP"),
}


class HTMLReporter(BaseReporter):
    """Generate a single-page HTML summary of a suite run."""

    @property
    def format(self) -> ReportFormat:
        return ReportFormat.HTML

    def _render_list(self, items: List[str]) -> str:
        """Render a list of items as HTML."""
        if not items:
            return ""
        inner = "".join(f"<li>{html.escape(item)}</li>" for item in items)
        return f"<ul class='console'>{inner}</ul>"

    def _render_card(self, result: TargetResult) -> str:
        verdict_class, verdict_text = _BADGES[result.status]
        page = html.escape(result.url or result.target.page)

        detail = ""
        if result.status == TargetStatus.FAILED:
            detail = f"<pre class='report'>{html.escape(result.report or '')}</pre>"
        elif result.status in (TargetStatus.ERROR, TargetStatus.SKIPPED):
            label = html.escape(result.error_type or "")
            detail = f"<p class='reason'><strong>{label}</strong> {html.escape(result.error or '')}</p>"

        retry = f"<span>Attempt: {result.retry_attempt + 1}</span>" if result.retry_attempt else ""

        return f'''
            <div class="test-card {verdict_class}">
                <div class="test-header">
                    <span class="test-name">{html.escape(result.target.name)}</span>
                    <span class="badge {verdict_class}">{verdict_text}</span>
                </div>
                <p class="test-page"><a href="{page}">{page}</a></p>
                <div class="test-meta">
                    <span>Duration: {result.duration_seconds:.2f}s</span>
                    <span>Timeout: {result.target.timeout_ms}ms</span>
                    {retry}
                </div>
                {detail}
                {self._render_list(result.console_errors)}
            </div>'''

    def _get_css(self) -> str:
        return """
        :root {
            --bg: #10141c; --bg-card: #181e2a; --border: #2a3142;
            --text: #e6e9ef; --muted: #8b93a7;
            --pass: #3fb950; --fail: #f85149; --error: #d29922; --skip: #6e7681;
        }
        body { margin: 0; background: var(--bg); color: var(--text);
               font: 14px/1.5 -apple-system, "Segoe UI", Roboto, sans-serif; }
        .container { max-width: 1200px; margin: 0 auto; padding: 24px; }
        h1 { margin: 0 0 4px; font-size: 1.5rem; }
        .subtitle { color: var(--muted); margin: 0 0 20px; }
        .summary-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(130px, 1fr));
                        gap: 12px; margin-bottom: 24px; }
        .summary-stat { background: var(--bg-card); border: 1px solid var(--border);
                        border-radius: 8px; padding: 16px; text-align: center; }
        .summary-stat .value { font-size: 1.8rem; font-weight: 700; }
        .summary-stat .label { color: var(--muted); font-size: 0.8rem; }
        .summary-stat.passed .value { color: var(--pass); }
        .summary-stat.failed .value { color: var(--fail); }
        .summary-stat.errors .value { color: var(--error); }
        .test-grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(360px, 1fr)); gap: 12px; }
        .test-card { background: var(--bg-card); border: 1px solid var(--border);
                     border-left: 3px solid var(--border); border-radius: 8px; padding: 14px; }
        .test-card.pass { border-left-color: var(--pass); }
        .test-card.fail { border-left-color: var(--fail); }
        .test-card.error { border-left-color: var(--error); }
        .test-card.skip { border-left-color: var(--skip); }
        .test-header { display: flex; justify-content: space-between; align-items: center; }
        .test-name { font-weight: 600; }
        .badge { font-size: 0.7rem; font-weight: 700; padding: 2px 8px; border-radius: 10px; }
        .badge.pass { background: var(--pass); color: #000; }
        .badge.fail { background: var(--fail); color: #fff; }
        .badge.error { background: var(--error); color: #000; }
        .badge.skip { background: var(--skip); color: #fff; }
        .test-page a { color: var(--muted); word-break: break-all; font-size: 0.8rem; }
        .test-meta { color: var(--muted); font-size: 0.75rem; display: flex; gap: 16px; }
        .report { white-space: pre-wrap; background: #0b0e14; padding: 10px; border-radius: 6px;
                  max-height: 320px; overflow: auto; font-size: 0.8rem; }
        .reason { color: var(--muted); font-size: 0.85rem; }
        .console { color: var(--fail); font-family: monospace; font-size: 0.75rem; padding-left: 18px; }
        """

    def generate(self, suite: SuiteRunResult, output_dir: Path) -> Path:
        """Generate an HTML report for a suite run."""
        target = self._target_path(suite, output_dir, "html")

        cards = "".join(self._render_card(r) for r in suite.results)
        aborted = "<p class='subtitle'>Run aborted before all targets finished.</p>" if suite.aborted else ""
        started = suite.started_at.strftime("%Y-%m-%d %H:%M:%S")

        html_content = f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>Page Suite Report: {html.escape(suite.profile)}</title>
    <style>{self._get_css()}</style>
</head>
<body>
    <div class="container">
        <h1>Page Suite Report</h1>
        <p class="subtitle">Profile {html.escape(suite.profile)} on {html.escape(suite.browser_type or "unknown")},
            started {started}, took {suite.duration_seconds:.1f}s</p>
        {aborted}
        <div class="summary-grid">
            <div class="summary-stat"><div class="value">{suite.total}</div><div class="label">Total Targets</div></div>
            <div class="summary-stat passed"><div class="value">{suite.passed}</div><div class="label">Passed</div></div>
            <div class="summary-stat failed"><div class="value">{suite.failed}</div><div class="label">Failed</div></div>
            <div class="summary-stat errors"><div class="value">{suite.errors}</div><div class="label">Errors</div></div>
            <div class="summary-stat"><div class="value">{suite.skipped}</div><div class="label">Skipped</div></div>
            <div class="summary-stat"><div class="value">{suite.pass_rate:.0f}%</div><div class="label">Pass Rate</div></div>
        </div>
        <div class="test-grid">{cards}
        </div>
    </div>
</body>
</html>"""

        target.write_text(html_content, encoding="utf-8")
        return target

"""CLI-friendly orchestrator for running harness pages in one browser session."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Set

from browser import RemoteSession
from config import PageSuiteConfig, SessionConfig, load_config
from exceptions import PageSuiteError, SessionUnavailableError, SuiteDefinitionError
from page_suite import PageSuiteRunner
from reporters import HTMLReporter, JSONReporter, JUnitReporter, ReportFormat
from suite_types import SuiteRunResult, TargetResult, TargetStatus, TestTarget
from target_loader import SuiteProfile, load_suite_file, resolve_target_url, select_targets

SessionFactory = Callable[[SessionConfig], Any]

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_ERROR = 2
EXIT_INTERRUPTED = 130


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SuiteRunner:
    """High-level runner that shares one browser session across a list of targets."""

    def __init__(
        self,
        config: PageSuiteConfig,
        session_factory: Optional[SessionFactory] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.logger = logger or logging.getLogger("page_suite")
        self.session_factory = session_factory or (
            lambda session_config: RemoteSession.from_config(session_config, logger=self.logger)
        )

    async def run_target(
        self,
        runner: PageSuiteRunner,
        target: TestTarget,
        base_url: Optional[str] = None,
        retry_attempt: int = 0,
    ) -> TargetResult:
        """Run a single target. Session loss propagates to the caller."""
        url = resolve_target_url(base_url, target.page)
        browser_type = getattr(runner.session, "browser_type", None)
        start = _now()
        try:
            outcome = await runner.run_suite(url, target.timeout_ms)
        except SessionUnavailableError:
            raise
        except PageSuiteError as exc:
            self.logger.error(f"Target {target.name} errored: {exc}")
            return TargetResult(
                target=target,
                status=TargetStatus.ERROR,
                started_at=start,
                finished_at=_now(),
                url=url,
                error=str(exc),
                error_type=type(exc).__name__,
                retry_attempt=retry_attempt,
                browser_type=browser_type,
                console_errors=self._console_errors(runner),
            )

        status = TargetStatus.PASSED if outcome.success else TargetStatus.FAILED
        if not outcome.success:
            self.logger.warning(f"Target {target.name} failed: {outcome.failure_message}")
        return TargetResult(
            target=target,
            status=status,
            started_at=start,
            finished_at=_now(),
            url=url,
            report=None if outcome.success else outcome.failure_message,
            retry_attempt=retry_attempt,
            browser_type=browser_type,
            console_errors=self._console_errors(runner),
        )

    async def run_target_with_retries(
        self,
        runner: PageSuiteRunner,
        target: TestTarget,
        base_url: Optional[str] = None,
    ) -> TargetResult:
        """Run a target, retrying failures and errors up to its retry_count."""
        attempts = target.retry_count + 1
        result: Optional[TargetResult] = None

        for attempt in range(attempts):
            if attempt > 0:
                self.logger.info(f"Retrying target {target.name} (attempt {attempt + 1}/{attempts})")

            result = await self.run_target(runner, target, base_url, retry_attempt=attempt)
            if result.success:
                break

        return result

    async def run_targets(
        self,
        targets: Sequence[TestTarget],
        profile: str = "default",
        browser: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> SuiteRunResult:
        """Run targets in order against one session and write suite reports."""
        session_config = self.config.session
        if browser:
            session_config = SessionConfig.model_validate({**session_config.model_dump(), "browser": browser})
        if base_url is None:
            base_url = self.config.base_url

        started_at = _now()
        results: List[TargetResult] = []
        aborted = False

        session = self.session_factory(session_config)
        try:
            await session.start()
        except SessionUnavailableError as exc:
            self.logger.error(f"Could not start browser session: {exc}")
            results.extend(self._not_run(t, exc, session_config.browser) for t in targets)
            aborted = True
        else:
            runner = PageSuiteRunner(session, self.config.harness, logger=self.logger)
            try:
                for i, target in enumerate(targets, 1):
                    self.logger.info(f"=== Running target {target.name} ({i}/{len(targets)}) ===")

                    if target.skip:
                        self.logger.info(f"Skipping {target.name}: {target.skip_reason or 'marked as skip'}")
                        results.append(self._skipped(target, session_config.browser))
                        continue

                    try:
                        result = await self.run_target_with_retries(runner, target, base_url)
                    except SessionUnavailableError as exc:
                        self.logger.error(f"Browser session lost during {target.name}: {exc}")
                        results.append(self._not_run(target, exc, session_config.browser, ran=True))
                        results.extend(self._not_run(t, exc, session_config.browser) for t in targets[i:])
                        aborted = True
                        break

                    results.append(result)
                    if result.status == TargetStatus.ERROR and self.config.stop_on_error:
                        self.logger.warning(f"Stopping after error in {target.name}")
                        reason = f"stopped after error in {target.name}"
                        results.extend(self._skipped(t, session_config.browser, reason) for t in targets[i:])
                        aborted = True
                        break
            finally:
                await session.close()

        suite = SuiteRunResult(
            profile=profile,
            results=results,
            started_at=started_at,
            finished_at=_now(),
            browser_type=session_config.browser,
            aborted=aborted,
        )
        self._generate_suite_reports(suite)
        return suite

    async def run_profile(self, profile: SuiteProfile) -> SuiteRunResult:
        """Run every target of a profile."""
        base_url = self.config.base_url or profile.base_url
        return await self.run_targets(
            profile.targets,
            profile=profile.name,
            browser=profile.browser,
            base_url=base_url,
        )

    def _console_errors(self, runner: PageSuiteRunner) -> List[str]:
        take = getattr(runner.session, "take_console_errors", None)
        return list(take()) if take else []

    def _skipped(self, target: TestTarget, browser: str, reason: Optional[str] = None) -> TargetResult:
        now = _now()
        return TargetResult(
            target=target,
            status=TargetStatus.SKIPPED,
            started_at=now,
            finished_at=now,
            error=f"Skipped: {reason or target.skip_reason or 'marked as skip'}",
            browser_type=browser,
        )

    def _not_run(
        self,
        target: TestTarget,
        exc: SessionUnavailableError,
        browser: str,
        ran: bool = False,
    ) -> TargetResult:
        now = _now()
        return TargetResult(
            target=target,
            status=TargetStatus.ERROR,
            started_at=now,
            finished_at=now,
            error=str(exc) if ran else f"Not run: {exc}",
            error_type=type(exc).__name__,
            browser_type=browser,
        )

    def _generate_suite_reports(self, suite: SuiteRunResult) -> List[Path]:
        """Generate suite-level reports in the configured formats."""
        output_dir = self.config.reporting.reports_folder
        output_format = self.config.reporting.output_format
        paths: List[Path] = []

        reporters = {
            ReportFormat.HTML: HTMLReporter,
            ReportFormat.JSON: JSONReporter,
            ReportFormat.JUNIT: JUnitReporter,
        }
        for report_format, reporter_cls in reporters.items():
            if output_format not in (report_format.value, ReportFormat.ALL.value):
                continue
            path = reporter_cls().generate(suite, output_dir)
            self.logger.info(f"Suite {report_format.value} report: {path}")
            paths.append(path)

        return paths


def exit_code_for(suite: SuiteRunResult) -> int:
    """Errors outrank failures so CI can tell infrastructure trouble apart."""
    if suite.errors or suite.aborted:
        return EXIT_ERROR
    if suite.failed:
        return EXIT_FAILED
    return EXIT_PASSED


def print_summary(suite: SuiteRunResult) -> None:
    print("\n" + "=" * 60)
    print(f"PAGE SUITE SUMMARY ({suite.profile}, {suite.browser_type})")
    print("=" * 60)
    print(f"Total:   {suite.total}")
    print(f"Passed:  {suite.passed}")
    print(f"Failed:  {suite.failed}")
    print(f"Errors:  {suite.errors}")
    print(f"Skipped: {suite.skipped}")
    print(f"Pass Rate: {suite.pass_rate:.1f}%")
    print(f"Duration: {suite.duration_seconds:.1f}s")
    if suite.aborted:
        print("Run aborted before all targets finished")
    print("=" * 60)

    if suite.failed_results:
        print("\nFailed Targets:")
        for result in suite.failed_results:
            print(f"  - {result.target.name}: {result.message[:80]}")
    if suite.errored_results:
        print("\nErrored Targets:")
        for result in suite.errored_results:
            print(f"  - {result.target.name} [{result.error_type}]: {result.message[:80]}")


def _print_profile(profile: SuiteProfile) -> None:
    print(f"Profile: {profile.name} ({profile.browser or 'default browser'})")
    if profile.description:
        print(f"  {profile.description}")
    for target in profile.targets:
        flag = " [skip]" if target.skip else ""
        print(f"  - {target.name}: {target.page} ({target.timeout_ms}ms){flag}")


async def run_from_cli_args(args: argparse.Namespace, logger: logging.Logger) -> int:
    """Entry point shared by the CLI script."""
    include_tags: Optional[Set[str]] = set(args.tag) if args.tag else None
    exclude_tags: Optional[Set[str]] = set(args.exclude_tag) if args.exclude_tag else None

    try:
        definition = load_suite_file(Path(args.suite))
        profile = definition.profile(args.profile)
        profile.targets = select_targets(
            profile.targets,
            only_names=args.target,
            include_tags=include_tags,
            exclude_tags=exclude_tags,
            include_skipped=args.include_skipped,
        )
    except SuiteDefinitionError as exc:
        logger.error(str(exc))
        return EXIT_ERROR

    if args.list:
        _print_profile(profile)
        return EXIT_PASSED

    if not profile.targets:
        logger.warning("No targets found matching filters")
        return EXIT_PASSED

    config_path = Path(args.config) if args.config else None
    cli_overrides = {
        "headful": args.headful or None,
        "base_url": args.base_url,
        "stop_on_error": args.stop_on_error or None,
        "verbose": args.verbose or None,
        "output_format": args.output_format,
        "reports_dir": args.reports_dir,
    }
    cli_overrides = {k: v for k, v in cli_overrides.items() if v is not None}

    try:
        config = load_config(config_path, cli_overrides)
    except (PageSuiteError, ValueError) as exc:
        logger.error(f"Failed to load config: {exc}")
        return EXIT_ERROR

    if args.browser:
        profile.browser = args.browser
    if args.timeout_ms:
        profile.targets = [replace(t, timeout_ms=args.timeout_ms) for t in profile.targets]

    logger.info(f"Loaded {len(profile.targets)} target(s) from profile {profile.name}")
    if config.verbose:
        logger.info(f"Browser: {profile.browser or config.session.browser}, Headless: {config.session.headless}")
        logger.info(f"Base URL: {config.base_url or profile.base_url or Path.cwd()}")
        logger.info(f"Output format: {config.reporting.output_format}")

    runner = SuiteRunner(config=config, logger=logger)
    suite = await runner.run_profile(profile)

    print_summary(suite)
    return exit_code_for(suite)


def _build_arg_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Run in-page test harness suites in a real browser.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --base-url ~/src/kemia             # Run the first profile against a checkout
  %(prog)s --profile safari --target smiles   # One page in WebKit
  %(prog)s --tag ring --output-format all     # Ring pages, every report format
  %(prog)s --profile smoke --list             # Show what a profile would run
        """,
    )

    # Target selection
    target_group = parser.add_argument_group("Target Selection")
    target_group.add_argument(
        "--suite",
        default="suites/kemia.yaml",
        help="Suite file with targets and profiles (default: suites/kemia.yaml)",
    )
    target_group.add_argument(
        "--profile",
        help="Profile to run (default: first profile in the suite file)",
    )
    target_group.add_argument(
        "--target",
        action="append",
        help="Only run this target (can be used multiple times)",
    )
    target_group.add_argument(
        "--tag",
        action="append",
        help="Only run targets with this tag (can be used multiple times)",
    )
    target_group.add_argument(
        "--exclude-tag",
        action="append",
        help="Exclude targets with this tag (can be used multiple times)",
    )
    target_group.add_argument(
        "--include-skipped",
        action="store_true",
        help="Keep targets marked skip=true in the run (reported as skipped)",
    )
    target_group.add_argument(
        "--list",
        action="store_true",
        help="List the selected targets and exit",
    )

    # Browser options
    browser_group = parser.add_argument_group("Browser Options")
    browser_group.add_argument(
        "--browser",
        choices=["chromium", "firefox", "webkit"],
        help="Browser engine, overriding the profile",
    )
    browser_group.add_argument(
        "--headful",
        action="store_true",
        help="Run browser in headful mode (show GUI)",
    )
    browser_group.add_argument(
        "--base-url",
        help="URL or directory that target pages are resolved against",
    )

    # Execution options
    exec_group = parser.add_argument_group("Execution Options")
    exec_group.add_argument(
        "--timeout-ms",
        type=int,
        metavar="MS",
        help="Harness wait budget for every target",
    )
    exec_group.add_argument(
        "--stop-on-error",
        action="store_true",
        help="Stop after the first timeout or navigation error",
    )
    exec_group.add_argument(
        "--config",
        help="Path to config file (default: page_suite.yaml or page_suite.json if present)",
    )

    # Output options
    output_group = parser.add_argument_group("Output Options")
    output_group.add_argument(
        "--reports-dir",
        help="Directory for saving reports (default: reports)",
    )
    output_group.add_argument(
        "--output-format",
        choices=["html", "json", "junit", "all", "none"],
        help="Report output format (default: junit)",
    )
    output_group.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )
    output_group.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-essential output",
    )

    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point."""
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    if args.timeout_ms is not None and args.timeout_ms <= 0:
        parser.error("--timeout-ms must be a positive integer")

    # Configure logging based on verbosity
    if args.quiet:
        log_level = logging.WARNING
    elif args.verbose:
        log_level = logging.DEBUG
    else:
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format="[%(levelname)s] %(message)s" if not args.verbose else "[%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger("page_suite")

    try:
        exit_code = asyncio.run(run_from_cli_args(args, logger))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        exit_code = EXIT_INTERRUPTED
    except PageSuiteError as exc:
        logger.error(f"Error: {exc}")
        exit_code = EXIT_ERROR
    except Exception as exc:
        logger.exception(f"Unexpected error: {exc}")
        exit_code = EXIT_ERROR

    sys.exit(exit_code)


if __name__ == "__main__":
    main()

"""Typed objects for page suite runs."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, Optional

from exceptions import TargetValidationError

DEFAULT_TIMEOUT_MS = 5000


@dataclass(frozen=True)
class TestTarget:
    """One page with an embedded harness, plus its wait budget."""

    __test__ = False

    name: str
    page: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    tags: FrozenSet[str] = field(default_factory=frozenset)
    skip: bool = False
    skip_reason: Optional[str] = None
    retry_count: int = 0

    def __post_init__(self) -> None:
        if not self.page:
            raise TargetValidationError("Target page must not be empty", target=self.name, field="page")
        if isinstance(self.timeout_ms, bool) or not isinstance(self.timeout_ms, int) or self.timeout_ms <= 0:
            raise TargetValidationError(
                f"timeout_ms must be a positive integer, got {self.timeout_ms!r}",
                target=self.name,
                field="timeout_ms",
            )
        if self.retry_count < 0:
            raise TargetValidationError("retry_count cannot be negative", target=self.name, field="retry_count")
        object.__setattr__(self, "tags", frozenset(self.tags))

    def has_tag(self, tag: str) -> bool:
        """Check if target has a specific tag."""
        return tag.lower() in {t.lower() for t in self.tags}

    def has_any_tag(self, tags: set[str]) -> bool:
        """Check if target has any of the specified tags."""
        lower_tags = {t.lower() for t in tags}
        return bool(lower_tags & {t.lower() for t in self.tags})

    def matches_filter(
        self,
        include_tags: Optional[set[str]] = None,
        exclude_tags: Optional[set[str]] = None,
    ) -> bool:
        """Check if target matches tag filters."""
        if include_tags and not self.has_any_tag(include_tags):
            return False
        if exclude_tags and self.has_any_tag(exclude_tags):
            return False
        return True


@dataclass(frozen=True)
class SuiteOutcome:
    """What the embedded harness reported once it finished.

    The report only carries meaning for a failed suite, so it is dropped
    when ``success`` is true.
    """

    success: bool
    report: Optional[str] = None

    def __post_init__(self) -> None:
        if self.success:
            object.__setattr__(self, "report", None)

    @property
    def failure_message(self) -> str:
        if self.report:
            return self.report
        return "Page suite reported failure without a report"


class TargetStatus(str, Enum):
    """Final state of one target in a run."""

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass
class TargetResult:
    """Outcome of running a single target."""

    target: TestTarget
    status: TargetStatus
    started_at: datetime
    finished_at: datetime
    url: Optional[str] = None
    report: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    retry_attempt: int = 0
    browser_type: Optional[str] = None
    console_errors: List[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        return max(0.0, (self.finished_at - self.started_at).total_seconds())

    @property
    def success(self) -> bool:
        return self.status == TargetStatus.PASSED

    @property
    def message(self) -> str:
        """Report for failures, error text for errors, empty otherwise."""
        if self.status == TargetStatus.FAILED:
            return self.report or ""
        if self.status in (TargetStatus.ERROR, TargetStatus.SKIPPED):
            return self.error or ""
        return ""


@dataclass
class SuiteRunResult:
    """Aggregated results for one profile run."""

    profile: str
    results: List[TargetResult]
    started_at: datetime
    finished_at: datetime
    browser_type: Optional[str] = None
    aborted: bool = False

    def _count(self, status: TargetStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return self._count(TargetStatus.PASSED)

    @property
    def failed(self) -> int:
        return self._count(TargetStatus.FAILED)

    @property
    def errors(self) -> int:
        return self._count(TargetStatus.ERROR)

    @property
    def skipped(self) -> int:
        return self._count(TargetStatus.SKIPPED)

    @property
    def pass_rate(self) -> float:
        executed = self.total - self.skipped
        return (self.passed / executed * 100) if executed else 0.0

    @property
    def duration_seconds(self) -> float:
        return max(0.0, (self.finished_at - self.started_at).total_seconds())

    @property
    def failed_results(self) -> List[TargetResult]:
        return [r for r in self.results if r.status == TargetStatus.FAILED]

    @property
    def errored_results(self) -> List[TargetResult]:
        return [r for r in self.results if r.status == TargetStatus.ERROR]

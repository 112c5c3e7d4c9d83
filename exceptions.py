"""Custom exception hierarchy for the page suite runner."""
from __future__ import annotations

from typing import Any, Optional


class PageSuiteError(Exception):
    """Base exception for all page-suite errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# Browser-related exceptions
class BrowserError(PageSuiteError):
    """Base exception for remote browser errors."""

    pass


class NavigationError(BrowserError):
    """Raised when a target page cannot be loaded."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        status: Optional[int] = None,
    ):
        details = {}
        if url:
            details["url"] = url
        if timeout:
            details["timeout"] = timeout
        if status:
            details["status"] = status
        super().__init__(message, details)
        self.url = url
        self.timeout = timeout
        self.status = status


class HarnessTimeoutError(BrowserError):
    """Raised when the embedded harness does not finish within its budget."""

    def __init__(self, expression: str, timeout_ms: int, url: Optional[str] = None):
        details: dict[str, Any] = {"expression": expression, "timeout_ms": timeout_ms}
        if url:
            details["url"] = url
        super().__init__(f"Harness did not finish within {timeout_ms}ms", details)
        self.expression = expression
        self.timeout_ms = timeout_ms
        self.url = url


class ScriptEvaluationError(BrowserError):
    """Raised when a page expression throws during evaluation."""

    def __init__(self, message: str, expression: Optional[str] = None):
        details = {"expression": expression} if expression else {}
        super().__init__(message, details)
        self.expression = expression


class SessionUnavailableError(BrowserError):
    """Raised when the remote browser session cannot be reached or has closed."""

    pass


class SessionNotStartedError(SessionUnavailableError):
    """Raised when attempting to use the session before starting it."""

    def __init__(self):
        super().__init__("Browser session has not been started. Call start() first.")


# Suite definition exceptions
class SuiteDefinitionError(PageSuiteError):
    """Base exception for suite file loading errors."""

    pass


class TargetLoadError(SuiteDefinitionError):
    """Raised when a suite file cannot be loaded or a name cannot be found."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        details = {"file_path": file_path} if file_path else {}
        super().__init__(message, details)
        self.file_path = file_path


class TargetValidationError(SuiteDefinitionError):
    """Raised when a target or profile definition is invalid."""

    def __init__(self, message: str, target: Optional[str] = None, field: Optional[str] = None):
        details = {}
        if target:
            details["target"] = target
        if field:
            details["field"] = field
        super().__init__(message, details)
        self.target = target
        self.field = field


# Configuration exceptions
class ConfigurationError(PageSuiteError):
    """Raised when configuration is invalid."""

    pass


class ConfigFileNotFoundError(ConfigurationError):
    """Raised when a required config file is not found."""

    def __init__(self, file_path: str):
        super().__init__(f"Configuration file not found: {file_path}", {"file_path": file_path})
        self.file_path = file_path

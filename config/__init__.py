"""Configuration module for the page suite runner."""
from config.models import (
    HarnessConfig,
    PageSuiteConfig,
    ReportingConfig,
    SessionConfig,
    load_config,
)

__all__ = [
    "HarnessConfig",
    "PageSuiteConfig",
    "ReportingConfig",
    "SessionConfig",
    "load_config",
]

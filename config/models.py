"""Pydantic configuration models for the page suite runner."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from exceptions import ConfigFileNotFoundError, ConfigurationError


# Load .env file if present
load_dotenv()

BrowserName = Literal["chromium", "firefox", "webkit"]


class SessionConfig(BaseModel):
    """Remote browser session configuration."""

    browser: BrowserName = Field(
        default="chromium",
        description="Browser engine that hosts the session",
    )
    headless: bool = Field(
        default=True,
        description="Run browser in headless mode",
    )
    slow_mo: int = Field(
        default=0,
        ge=0,
        le=5000,
        description="Slow down browser operations by this many ms",
    )
    navigation_timeout_ms: int = Field(
        default=30000,
        ge=1000,
        le=600000,
        description="Maximum time to wait for a target page to load",
    )
    poll_interval_ms: int = Field(
        default=100,
        ge=10,
        le=10000,
        description="Interval between completion predicate checks",
    )
    launch_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times to try launching the browser",
    )

    @model_validator(mode="before")
    @classmethod
    def load_from_env(cls, data: Any) -> Any:
        """Take the browser from the environment if not explicitly set."""
        if isinstance(data, dict) and data.get("browser") is None:
            env_value = os.getenv("PAGE_SUITE_BROWSER")
            if env_value:
                data["browser"] = env_value
        return data


class HarnessConfig(BaseModel):
    """Page-global expressions exposed by the embedded test harness."""

    finished_expression: str = Field(
        default="window.G_testRunner && window.G_testRunner.isFinished()",
        description="Truthy once the harness has finished running",
    )
    success_expression: str = Field(
        default="window.G_testRunner.isSuccess()",
        description="Evaluates to true when every harness assertion passed",
    )
    report_expression: str = Field(
        default="window.G_testRunner.getReport()",
        description="Human-readable description of what failed",
    )

    @field_validator("finished_expression", "success_expression", "report_expression")
    @classmethod
    def validate_expression(cls, v: str) -> str:
        """Reject blank expressions."""
        v = v.strip()
        if not v:
            raise ValueError("harness expression must not be empty")
        return v


class ReportingConfig(BaseModel):
    """Reporting and output configuration."""

    reports_folder: Path = Field(
        default=Path("./reports"),
        description="Directory for saving reports",
    )
    output_format: Literal["html", "json", "junit", "all", "none"] = Field(
        default="junit",
        description="Report output format",
    )

    @field_validator("reports_folder", mode="before")
    @classmethod
    def convert_to_path(cls, v: Any) -> Path:
        """Convert string to Path."""
        if isinstance(v, str):
            return Path(v)
        return v


class PageSuiteConfig(BaseModel):
    """Root configuration model combining all config sections."""

    session: SessionConfig = Field(default_factory=SessionConfig)
    harness: HarnessConfig = Field(default_factory=HarnessConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)

    base_url: Optional[str] = Field(
        default=None,
        description="URL or directory that target pages are resolved against",
    )
    stop_on_error: bool = Field(
        default=False,
        description="Stop the run after the first infrastructure error",
    )
    verbose: bool = Field(
        default=False,
        description="Enable verbose logging",
    )

    @model_validator(mode="before")
    @classmethod
    def load_from_env(cls, data: Any) -> Any:
        """Load the base URL from the environment if not explicitly set."""
        if isinstance(data, dict) and data.get("base_url") is None:
            env_value = os.getenv("PAGE_SUITE_BASE_URL")
            if env_value:
                data["base_url"] = env_value
        return data


def load_config(
    config_path: Optional[Path] = None,
    cli_overrides: Optional[dict[str, Any]] = None,
) -> PageSuiteConfig:
    """
    Load configuration from file with CLI overrides.

    Priority (highest to lowest):
    1. CLI arguments
    2. Config file
    3. Environment variables
    4. Defaults
    """
    config_data: dict[str, Any] = {}

    if config_path is None:
        config_path = Path("page_suite.yaml")
        if not config_path.exists():
            config_path = Path("page_suite.json")
    elif not config_path.exists():
        raise ConfigFileNotFoundError(str(config_path))

    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                if config_path.suffix in {".yaml", ".yml"}:
                    config_data = yaml.safe_load(f) or {}
                else:
                    config_data = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            raise ConfigurationError(
                f"Failed to read config: {exc}", {"file_path": str(config_path)}
            ) from exc

    if not isinstance(config_data, dict):
        raise ConfigurationError("Config file must contain a mapping", {"file_path": str(config_path)})

    config = PageSuiteConfig.model_validate(config_data)

    # Apply CLI overrides
    if cli_overrides:
        config_dict = config.model_dump()
        _apply_overrides(config_dict, cli_overrides)
        config = PageSuiteConfig.model_validate(config_dict)

    return config


def _apply_overrides(config_dict: dict[str, Any], overrides: dict[str, Any]) -> None:
    """Apply CLI overrides to config dictionary."""
    override_mapping = {
        "browser": ("session", "browser"),
        "headless": ("session", "headless"),
        "headful": ("session", "headless"),  # inverted
        "base_url": ("base_url", None),
        "stop_on_error": ("stop_on_error", None),
        "verbose": ("verbose", None),
        "output_format": ("reporting", "output_format"),
        "reports_dir": ("reporting", "reports_folder"),
    }

    for key, value in overrides.items():
        if value is None:
            continue

        if key == "headful":
            config_dict["session"]["headless"] = not value
            continue

        mapping = override_mapping.get(key)
        if mapping:
            section, field = mapping
            if field is None:
                config_dict[section] = value
            else:
                config_dict[section][field] = value

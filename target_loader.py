"""Filesystem-backed loader for page suite definitions and profiles."""
from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, get_args
from urllib.parse import urljoin, urlparse

import yaml

from config.models import BrowserName
from exceptions import TargetLoadError, TargetValidationError
from suite_types import DEFAULT_TIMEOUT_MS, TestTarget

_URL_SCHEMES = {"http", "https", "file", "about", "data"}
_BROWSERS = set(get_args(BrowserName))


@dataclass
class SuiteProfile:
    """A named selection of targets run against one browser."""

    name: str
    targets: List[TestTarget]
    browser: Optional[str] = None
    base_url: Optional[str] = None
    description: Optional[str] = None


@dataclass
class SuiteDefinition:
    """Everything declared in one suite file."""

    targets: List[TestTarget]
    profiles: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    base_url: Optional[str] = None
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    source: Optional[Path] = None

    def target_names(self) -> List[str]:
        return [t.name for t in self.targets]

    def profile(self, name: Optional[str] = None) -> SuiteProfile:
        """Resolve a profile by name; with no name and no profiles, select every target."""
        if name is None:
            if not self.profiles:
                return SuiteProfile(name="default", targets=list(self.targets), base_url=self.base_url)
            name = next(iter(self.profiles))

        spec = self.profiles.get(name)
        if spec is None:
            available = ", ".join(sorted(self.profiles)) or "none"
            raise TargetLoadError(
                f"Unknown profile '{name}' (available: {available})",
                file_path=str(self.source) if self.source else None,
            )

        targets = list(self.targets)
        wanted = _as_list(spec.get("targets"))
        if wanted:
            by_name = {t.name: t for t in targets}
            missing = [n for n in wanted if n not in by_name]
            if missing:
                raise TargetLoadError(f"Profile '{name}' names unknown targets: {', '.join(missing)}")
            targets = [by_name[n] for n in wanted]

        targets = select_targets(
            targets,
            include_tags=_as_set(spec.get("tags")) or None,
            exclude_tags=_as_set(spec.get("exclude_tags")) or None,
            include_skipped=True,
        )

        timeout_ms = spec.get("timeout_ms")
        if timeout_ms is not None:
            timeout_ms = _as_timeout(timeout_ms, name)
            targets = [replace(t, timeout_ms=timeout_ms) for t in targets]

        return SuiteProfile(
            name=name,
            targets=targets,
            browser=spec.get("browser"),
            base_url=spec.get("base_url") or self.base_url,
            description=spec.get("description"),
        )


def _as_list(value: Any) -> List[str]:
    """Convert value to list of strings."""
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item) for item in value]
    if isinstance(value, str):
        return [value]
    raise TargetLoadError(f"Expected string or list, got {type(value).__name__}")


def _as_set(value: Any) -> Set[str]:
    """Convert value to set of strings."""
    if value is None:
        return set()
    if isinstance(value, (list, set, tuple)):
        return {str(item) for item in value}
    if isinstance(value, str):
        return {value}
    raise TargetLoadError(f"Expected string, list, or set, got {type(value).__name__}")


def _as_timeout(value: Any, name: str) -> int:
    try:
        timeout_ms = int(value)
    except (TypeError, ValueError) as exc:
        raise TargetValidationError("timeout_ms must be an integer", target=name, field="timeout_ms") from exc
    if timeout_ms <= 0:
        raise TargetValidationError("timeout_ms must be positive", target=name, field="timeout_ms")
    return timeout_ms


def _as_retry_count(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise TargetValidationError("retry_count must be an integer", target=name, field="retry_count")
    try:
        retry_count = int(value)
    except (TypeError, ValueError) as exc:
        raise TargetValidationError(
            "retry_count must be an integer", target=name, field="retry_count"
        ) from exc
    if retry_count < 0:
        raise TargetValidationError("retry_count must not be negative", target=name, field="retry_count")
    return retry_count


def _parse_target(data: Any, default_timeout_ms: int) -> TestTarget:
    """Parse a mapping (or a bare page string) into a TestTarget."""
    if isinstance(data, str):
        data = {"page": data}
    if not isinstance(data, dict):
        raise TargetLoadError("Target entry must be a mapping or a page path")

    page = data.get("page") or data.get("url") or data.get("path")
    if not page:
        raise TargetValidationError("Target is missing a 'page' field", target=data.get("name"), field="page")
    page = str(page)

    name = str(data.get("name") or Path(urlparse(page).path).stem)

    timeout_ms = data.get("timeout_ms")
    timeout_ms = default_timeout_ms if timeout_ms is None else _as_timeout(timeout_ms, name)

    retry_count = data.get("retry_count")
    retry_count = 0 if retry_count is None else _as_retry_count(retry_count, name)

    return TestTarget(
        name=name,
        page=page,
        timeout_ms=timeout_ms,
        tags=frozenset(_as_set(data.get("tags"))),
        skip=bool(data.get("skip", False)),
        skip_reason=data.get("skip_reason"),
        retry_count=retry_count,
    )


def parse_suite(data: Any, source: Optional[Path] = None) -> SuiteDefinition:
    """Build a SuiteDefinition from already-decoded YAML/JSON data."""
    if not isinstance(data, dict):
        raise TargetLoadError("Suite payload must be a mapping", file_path=str(source) if source else None)

    default_timeout_ms = data.get("default_timeout_ms")
    default_timeout_ms = (
        DEFAULT_TIMEOUT_MS if default_timeout_ms is None else _as_timeout(default_timeout_ms, "default")
    )

    raw_targets = data.get("targets") or []
    if not isinstance(raw_targets, list):
        raise TargetLoadError("'targets' must be a list", file_path=str(source) if source else None)
    targets = [_parse_target(item, default_timeout_ms) for item in raw_targets]

    seen: Set[str] = set()
    for target in targets:
        if target.name in seen:
            raise TargetValidationError(f"Duplicate target name '{target.name}'", target=target.name, field="name")
        seen.add(target.name)

    profiles = data.get("profiles") or {}
    if not isinstance(profiles, dict):
        raise TargetLoadError("'profiles' must be a mapping", file_path=str(source) if source else None)
    for profile_name, spec in profiles.items():
        if spec is None:
            profiles[profile_name] = {}
        elif not isinstance(spec, dict):
            raise TargetValidationError("Profile must be a mapping", target=str(profile_name))
        browser = (spec or {}).get("browser")
        if browser is not None and browser not in _BROWSERS:
            raise TargetValidationError(
                f"Profile '{profile_name}' has unknown browser: {browser}",
                target=str(profile_name),
                field="browser",
            )

    return SuiteDefinition(
        targets=targets,
        profiles={str(k): v for k, v in profiles.items()},
        base_url=data.get("base_url"),
        default_timeout_ms=default_timeout_ms,
        source=source,
    )


def load_suite_file(path: Path) -> SuiteDefinition:
    """Load a suite file (YAML or JSON)."""
    try:
        raw = path.read_text(encoding="utf-8")
        if path.suffix.lower() in {".yml", ".yaml"}:
            data = yaml.safe_load(raw)
        else:
            data = json.loads(raw)
        return parse_suite(data, source=path)
    except (TargetLoadError, TargetValidationError):
        raise
    except Exception as exc:
        raise TargetLoadError(f"Failed to load suite file: {exc}", file_path=str(path)) from exc


def select_targets(
    targets: Iterable[TestTarget],
    only_names: Optional[Iterable[str]] = None,
    include_tags: Optional[Set[str]] = None,
    exclude_tags: Optional[Set[str]] = None,
    include_skipped: bool = True,
) -> List[TestTarget]:
    """
    Filter targets, keeping their original order.

    Args:
        targets: Candidate targets
        only_names: If provided, only keep targets with these names
        include_tags: If provided, only keep targets with at least one of these tags
        exclude_tags: If provided, drop targets with any of these tags
        include_skipped: If False, drop targets marked skip=true

    Returns:
        The selected targets
    """
    name_filter = set(only_names or [])
    found: List[TestTarget] = []

    for target in targets:
        if name_filter and target.name not in name_filter:
            continue
        if target.skip and not include_skipped:
            continue
        if not target.matches_filter(include_tags, exclude_tags):
            continue
        found.append(target)

    if name_filter:
        missing = name_filter - {t.name for t in found}
        if missing:
            raise TargetLoadError(f"Targets not found: {', '.join(sorted(missing))}")

    return found


def resolve_target_url(base: Optional[str], page: str) -> str:
    """
    Turn a target page reference into a URL the browser can open.

    Absolute URLs are returned unchanged. Relative pages are joined onto a
    URL base, or onto a filesystem directory (the working directory when no
    base is given) and returned as a file:// URI.
    """
    if len(urlparse(page).scheme) > 1:
        return page

    if base and urlparse(base).scheme in _URL_SCHEMES:
        if not base.endswith("/"):
            base += "/"
        return urljoin(base, page.lstrip("/"))

    root = Path(base).expanduser() if base else Path.cwd()
    return (root / page).resolve().as_uri()


def validate_suite(data: Dict[str, Any]) -> List[str]:
    """
    Validate suite data without loading.

    Returns list of validation errors (empty if valid).
    """
    errors = []

    if not isinstance(data, dict):
        return ["Suite must be a dictionary/mapping"]

    targets = data.get("targets")
    if not targets:
        errors.append("Missing required field: targets")
    elif not isinstance(targets, list):
        errors.append("targets must be a list")
    else:
        names: Set[str] = set()
        for index, item in enumerate(targets):
            if isinstance(item, str):
                continue
            if not isinstance(item, dict):
                errors.append(f"targets[{index}] must be a mapping or a page path")
                continue
            if not (item.get("page") or item.get("url") or item.get("path")):
                errors.append(f"targets[{index}] is missing a page")
            name = item.get("name")
            if name is not None:
                if name in names:
                    errors.append(f"Duplicate target name: {name}")
                names.add(name)
            timeout_ms = item.get("timeout_ms")
            if timeout_ms is not None:
                try:
                    if int(timeout_ms) <= 0:
                        errors.append(f"targets[{index}].timeout_ms must be positive")
                except (ValueError, TypeError):
                    errors.append(f"targets[{index}].timeout_ms must be an integer")

    profiles = data.get("profiles")
    if profiles is not None and not isinstance(profiles, dict):
        errors.append("profiles must be a mapping")
    elif profiles:
        for name, spec in profiles.items():
            if spec is None:
                continue
            if not isinstance(spec, dict):
                errors.append(f"Profile '{name}' must be a mapping")
                continue
            browser = spec.get("browser")
            if browser is not None and browser not in _BROWSERS:
                errors.append(f"Profile '{name}' has unknown browser: {browser}")

    return errors

"""Typed settings built from the merged YAML configuration."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping


def _section(config: Mapping[str, Any] | None, name: str) -> dict[str, Any]:
    if not config:
        return {}
    value = config.get(name) or {}
    return dict(value) if isinstance(value, Mapping) else {}


def _build(cls, values: Mapping[str, Any]):
    """Instantiate dataclass *cls* from *values*, ignoring unknown keys."""

    known = {f.name for f in fields(cls)}
    kwargs: dict[str, Any] = {}
    for key, value in values.items():
        if key not in known or value is None:
            continue
        if isinstance(value, list):
            value = tuple(value)
        kwargs[key] = value
    return cls(**kwargs)


def _bounds(value: tuple[int, int]) -> tuple[int, int]:
    low, high = (max(int(v), 0) for v in value)
    return (low, max(high, low))


@dataclass(frozen=True)
class BrowserSettings:
    session_name: str = "default"
    profile_dir: str = "./tmp/browser-profile"
    window_width: int = 1024
    window_height: int = 768
    viewport_width: int = 860
    viewport_height: int = 480
    keep_pages_open: bool = False


@dataclass(frozen=True)
class NavigationSettings:
    attempts: int = 3
    goto_timeout_ms: int = 60000
    backoff_ms: int = 2000
    settle_timeout_ms: int = 12000


@dataclass(frozen=True)
class GateSettings:
    max_attempts: int = 3
    loading_timeout_ms: int = 120000
    consent_timeout_ms: int = 30000
    reload_timeout_ms: int = 30000
    human_pause_ms: tuple[int, int] = (1500, 2500)
    remediation_pause_ms: tuple[int, int] = (3500, 4500)

    def __post_init__(self) -> None:
        object.__setattr__(self, "human_pause_ms", _bounds(self.human_pause_ms))
        object.__setattr__(self, "remediation_pause_ms", _bounds(self.remediation_pause_ms))


@dataclass(frozen=True)
class ExtractionSettings:
    stadium_attempts: int = 3
    stadium_retry_pause_ms: int = 2000
    selector_timeout_ms: int = 5000
    body_timeout_ms: int = 30000


@dataclass(frozen=True)
class DiagnosticsSettings:
    enabled: bool = True
    directory: str = "screenshots"
    save_results: bool = True

    @property
    def path(self) -> Path:
        return Path(self.directory)


@dataclass(frozen=True)
class Settings:
    """Every tunable used by the fetch pipeline."""

    browser: BrowserSettings = field(default_factory=BrowserSettings)
    navigation: NavigationSettings = field(default_factory=NavigationSettings)
    gate: GateSettings = field(default_factory=GateSettings)
    extraction: ExtractionSettings = field(default_factory=ExtractionSettings)
    diagnostics: DiagnosticsSettings = field(default_factory=DiagnosticsSettings)
    network_timeout_ms: int = 10000
    cache_ttl_ms: int = 5000
    deadline_seconds: float = 300.0
    change_limit: int = 100
    poll_interval_ms: int = 5000

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None) -> "Settings":
        return cls(
            browser=_build(BrowserSettings, _section(config, "browser")),
            navigation=_build(NavigationSettings, _section(config, "navigation")),
            gate=_build(GateSettings, _section(config, "gate")),
            extraction=_build(ExtractionSettings, _section(config, "extraction")),
            diagnostics=_build(DiagnosticsSettings, _section(config, "diagnostics")),
            network_timeout_ms=int(_section(config, "network").get("timeout_ms", 10000)),
            cache_ttl_ms=int(_section(config, "cache").get("ttl_ms", 5000)),
            deadline_seconds=float(_section(config, "pipeline").get("deadline_seconds", 300)),
            change_limit=int(_section(config, "changes").get("limit", 100)),
            poll_interval_ms=int(_section(config, "schedule").get("interval_ms", 5000)),
        )

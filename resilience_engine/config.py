"""
File: config.py
Purpose: Production configuration for the resilience engine.
Dependencies: Standard library (dataclasses, os), PyYAML
Performance: O(1) — static config, one optional file read

Provides classification thresholds, feature flags and performance
limits.  All values configurable via environment or a YAML file.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import yaml

_T = TypeVar("_T")


@dataclass(frozen=True)
class EngineThresholds:
    """Classification and alerting thresholds.

    Attributes:
        critical_threshold: Critical bottleneck if fan-in >= this count.
        important_threshold: Important if fan-in >= this (and below critical).
        max_waves: Cascade propagation cap (terminates on cycles).
        overloaded_pct: Node overloaded if any dimension exceeds this %.
        busy_pct: Node busy if any dimension exceeds this %.
        high_cascade_pct: Recommend isolation above this average impact.
        high_fan_in: Flag the top resource when its fan-in exceeds this.
        default_priority: Priority assigned when a record carries none.
    """
    critical_threshold: int = 3
    important_threshold: int = 1
    max_waves: int = 5
    overloaded_pct: float = 80.0
    busy_pct: float = 60.0
    high_cascade_pct: float = 50.0
    high_fan_in: int = 5
    default_priority: int = 5


@dataclass(frozen=True)
class FeatureFlags:
    """Feature toggles for the engine.

    Attributes:
        enable_validation: Run report invariant checks after analysis.
        cumulative_placement: Charge batch placements against a working copy
            of node usage instead of the original snapshot.
        enable_spof_detection: List single points of failure.
    """
    enable_validation: bool = True
    cumulative_placement: bool = False
    enable_spof_detection: bool = True


def _default_workers() -> int:
    return max(1, min(os.cpu_count() or 1, 8))


@dataclass(frozen=True)
class PerformanceConfig:
    """Performance budgets and limits.

    Attributes:
        max_workers: Worker pool size for what-if cascade fan-out.
        max_resources: Snapshots larger than this are logged as oversized.
    """
    max_workers: int = dataclasses.field(default_factory=_default_workers)
    max_resources: int = 10000


def _section(cls: Type[_T], raw: Optional[Dict[str, Any]]) -> _T:
    """Build a frozen section from a mapping, ignoring unknown keys."""
    if not raw:
        return cls()
    known = {f.name for f in dataclasses.fields(cls)}  # type: ignore[arg-type]
    return cls(**{k: v for k, v in raw.items() if k in known})


@dataclass
class ResilienceEngineConfig:
    """Master configuration for the resilience engine.

    Example::

        config = ResilienceEngineConfig.from_env()
        engine = ResilienceEngine(config)
    """
    thresholds: EngineThresholds = None  # type: ignore[assignment]
    features: FeatureFlags = None  # type: ignore[assignment]
    performance: PerformanceConfig = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.thresholds is None:
            self.thresholds = EngineThresholds()
        if self.features is None:
            self.features = FeatureFlags()
        if self.performance is None:
            self.performance = PerformanceConfig()

    @classmethod
    def from_env(cls) -> ResilienceEngineConfig:
        """Build config from environment variables.

        Environment variables:
            RESILIENCE_ENGINE_MAX_WAVES: Cascade wave cap.
            RESILIENCE_ENGINE_CRITICAL_THRESHOLD: Critical fan-in threshold.
            RESILIENCE_ENGINE_CUMULATIVE_PLACEMENT: "true" for cumulative
                batch placement.
            RESILIENCE_ENGINE_MAX_WORKERS: What-if worker pool size.

        Returns:
            Configured ResilienceEngineConfig.
        """
        defaults = EngineThresholds()
        max_waves = int(os.getenv(
            "RESILIENCE_ENGINE_MAX_WAVES", str(defaults.max_waves)
        ))
        critical = int(os.getenv(
            "RESILIENCE_ENGINE_CRITICAL_THRESHOLD",
            str(defaults.critical_threshold),
        ))
        cumulative = os.getenv(
            "RESILIENCE_ENGINE_CUMULATIVE_PLACEMENT", "false"
        ).lower() == "true"
        workers = os.getenv("RESILIENCE_ENGINE_MAX_WORKERS", "")

        performance = (
            PerformanceConfig(max_workers=int(workers))
            if workers
            else PerformanceConfig()
        )
        return cls(
            thresholds=EngineThresholds(
                max_waves=max_waves,
                critical_threshold=critical,
            ),
            features=FeatureFlags(cumulative_placement=cumulative),
            performance=performance,
        )

    @classmethod
    def from_yaml(cls, config_path: str = "resilience.yaml") -> ResilienceEngineConfig:
        """Load config from a YAML file.

        A missing file yields the defaults.

        Args:
            config_path: Path with optional ``thresholds``, ``features``
                and ``performance`` sections.

        Returns:
            Configured ResilienceEngineConfig.

        Raises:
            yaml.YAMLError: If the file contains invalid YAML.
        """
        path = Path(config_path)
        if path.exists():
            with open(path, encoding="utf-8") as fh:
                raw: Dict[str, Any] = yaml.safe_load(fh) or {}
        else:
            raw = {}

        return cls(
            thresholds=_section(EngineThresholds, raw.get("thresholds")),
            features=_section(FeatureFlags, raw.get("features")),
            performance=_section(PerformanceConfig, raw.get("performance")),
        )

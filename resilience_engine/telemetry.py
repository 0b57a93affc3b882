"""
File: telemetry.py
Purpose: Structured logging and lightweight counters for the engine.
Dependencies: Standard library only (logging, time, json)
Performance: <0.1ms overhead per measurement

Provides correlation-ID-aware JSON logging and Prometheus-compatible
counters/histograms for every analysis layer.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generator


# ═══════════════════════════════════════════════════════════════
#  STRUCTURED JSON LOGGER
# ═══════════════════════════════════════════════════════════════


class _JSONFormatter(logging.Formatter):
    """Emit log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("correlation_id", "layer", "context"):
            val = getattr(record, key, None)
            if val is not None:
                log_obj[key] = val
        if record.exc_info and record.exc_info[1]:
            log_obj["exception"] = str(record.exc_info[1])
        return json.dumps(log_obj, default=str)


def get_logger(name: str = "resilience_engine") -> logging.Logger:
    """Return a JSON-formatted logger.

    Args:
        name: Logger name (dot-separated hierarchy).

    Returns:
        Configured logging.Logger with JSON formatter.

    Example::

        log = get_logger("resilience_engine.capacity_planner")
        log.info("Placement evaluated", extra={"correlation_id": cid})
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(_JSONFormatter())
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


# ═══════════════════════════════════════════════════════════════
#  METRICS COUNTERS (Prometheus-compatible)
# ═══════════════════════════════════════════════════════════════


@dataclass
class _Counter:
    """Thread-safe monotonic counter."""
    _value: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def inc(self, amount: float = 1.0) -> None:
        with self._lock:
            self._value += amount

    @property
    def value(self) -> float:
        return self._value

    def reset(self) -> None:
        with self._lock:
            self._value = 0.0


@dataclass
class _Histogram:
    """Simple histogram that tracks count, sum, min, max."""
    _count: int = 0
    _sum: float = 0.0
    _min: float = float("inf")
    _max: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def observe(self, value: float) -> None:
        with self._lock:
            self._count += 1
            self._sum += value
            self._min = min(self._min, value)
            self._max = max(self._max, value)

    @property
    def count(self) -> int:
        return self._count

    @property
    def avg(self) -> float:
        return self._sum / self._count if self._count else 0.0

    def snapshot(self) -> Dict[str, float]:
        return {
            "count": self._count,
            "sum": round(self._sum, 4),
            "min": round(self._min, 4) if self._min != float("inf") else 0.0,
            "max": round(self._max, 4),
            "avg": round(self.avg, 4),
        }

    def reset(self) -> None:
        with self._lock:
            self._count = 0
            self._sum = 0.0
            self._min = float("inf")
            self._max = 0.0


# ═══════════════════════════════════════════════════════════════
#  TELEMETRY COLLECTOR
# ═══════════════════════════════════════════════════════════════


class TelemetryCollector:
    """Collects metrics for all layers of the engine.

    Thread-safe.  One instance per engine.

    Example::

        tel = TelemetryCollector()
        with tel.measure("cascade"):
            result = analyzer.cascade(graph, "dns")
        print(tel.snapshot())
    """

    def __init__(self) -> None:
        self._log = get_logger("resilience_engine.telemetry")

        # ── latency histograms per layer ────────────────────────
        self.latency: Dict[str, _Histogram] = {
            "graph_load": _Histogram(),
            "bottleneck_rank": _Histogram(),
            "cascade": _Histogram(),
            "resilience": _Histogram(),
            "utilization": _Histogram(),
            "placement": _Histogram(),
            "validation": _Histogram(),
            "pipeline_total": _Histogram(),
        }

        # ── counters ────────────────────────────────────────────
        self.analyses_total = _Counter()
        self.analyses_succeeded = _Counter()
        self.analyses_failed = _Counter()
        self.cascades_simulated = _Counter()
        self.placements_evaluated = _Counter()
        self.validation_warnings = _Counter()
        self.validation_failures = _Counter()

    # ── latency measurement ─────────────────────────────────────

    @contextmanager
    def measure(
        self,
        layer: str,
        correlation_id: str = "",
    ) -> Generator[None, None, None]:
        """Context manager to measure and log latency for a layer.

        Args:
            layer: One of the keys of ``self.latency``.
            correlation_id: Request correlation ID for structured logging.
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            hist = self.latency.get(layer)
            if hist:
                hist.observe(elapsed_ms)
            self._log.debug(
                f"{layer} completed in {elapsed_ms:.2f}ms",
                extra={
                    "correlation_id": correlation_id,
                    "layer": layer,
                    "context": {"latency_ms": round(elapsed_ms, 2)},
                },
            )

    def measure_value(self, layer: str, latency_ms: float) -> None:
        """Record a pre-computed latency value."""
        hist = self.latency.get(layer)
        if hist:
            hist.observe(latency_ms)

    def record_warnings(self, count: int, correlation_id: str = "") -> None:
        """Count snapshot diagnostics passed back to the caller."""
        if count <= 0:
            return
        self.validation_warnings.inc(count)
        self._log.info(
            f"{count} snapshot diagnostics reported",
            extra={"correlation_id": correlation_id, "layer": "validation"},
        )

    def record_validation_failure(self, correlation_id: str = "") -> None:
        self.validation_failures.inc()
        self._log.warning(
            "Report invariant check failed",
            extra={"correlation_id": correlation_id, "layer": "validation"},
        )

    # ── snapshot ────────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        """Return a full metrics snapshot (Prometheus-export-ready)."""
        return {
            "latency": {k: v.snapshot() for k, v in self.latency.items()},
            "counters": {
                "analyses_total": self.analyses_total.value,
                "analyses_succeeded": self.analyses_succeeded.value,
                "analyses_failed": self.analyses_failed.value,
                "cascades_simulated": self.cascades_simulated.value,
                "placements_evaluated": self.placements_evaluated.value,
                "validation_warnings": self.validation_warnings.value,
                "validation_failures": self.validation_failures.value,
            },
        }

    def reset(self) -> None:
        """Reset all counters and histograms (for testing)."""
        for h in self.latency.values():
            h.reset()
        for attr in dir(self):
            obj = getattr(self, attr)
            if isinstance(obj, _Counter):
                obj.reset()

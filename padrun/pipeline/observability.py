"""
Observability for the padrun pipeline.

Provides structured logging and in-process metrics for request
handling and pad loading.

Design Philosophy:
- Structured logging by default (JSON-formatted)
- Minimal overhead when not enabled
- Metrics kept in process memory, exposed through /health
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


# =============================================================================
# JSON Logger
# =============================================================================


@dataclass
class JSONLogger:
    """
    Structured logger that outputs JSON-formatted logs.

    Each log entry includes timestamp, level, message, context fields
    and the optional request_id for correlation.

    Example output:
        {"timestamp": "2026-01-02T10:30:00Z", "level": "info",
         "message": "Request completed", "request_id": "abc-123",
         "status_code": 200}
    """

    name: str = "padrun"
    request_id: str | None = None
    extra_context: dict[str, Any] = field(default_factory=dict)

    def _log(self, level: int, message: str, context: dict[str, Any]) -> None:
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": logging.getLevelName(level).lower(),
            "message": message,
            **self.extra_context,
            **context,
        }
        if self.request_id:
            record["request_id"] = self.request_id

        logging.getLogger(self.name).log(level, json.dumps(record, default=str))

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, context)

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.INFO, message, context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, context)


# =============================================================================
# Pipeline Logger
# =============================================================================


@dataclass
class PipelineLogger:
    """
    Request handling events for one invocation.

    Example:
        log = PipelineLogger(request_id="abc-123", pad_name="my_pad")
        log.request_started(method="POST", stages=["tenant_context", ...])
        log.stage_completed(stage_name="schema", duration_ms=1.2)
        log.request_completed(status_code=200, duration_ms=12.5)
    """

    request_id: str
    pad_name: str = ""
    inner: JSONLogger = field(init=False)

    def __post_init__(self) -> None:
        self.inner = JSONLogger(
            name="padrun.pipeline",
            request_id=self.request_id,
            extra_context={"pad": self.pad_name} if self.pad_name else {},
        )

    def request_started(self, method: str, stages: list[str]) -> None:
        self.inner.debug(
            "Request started",
            method=method,
            stages=stages,
            stage_count=len(stages),
        )

    def request_completed(
        self,
        status_code: int,
        duration_ms: float,
        fault: str | None = None,
    ) -> None:
        if fault is None:
            self.inner.info(
                "Request completed",
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
            )
        else:
            self.inner.warning(
                "Request faulted",
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                fault=fault,
            )

    def stage_completed(self, stage_name: str, duration_ms: float) -> None:
        self.inner.debug(
            "Stage completed",
            stage=stage_name,
            duration_ms=round(duration_ms, 2),
        )

    def stage_fault(self, stage_name: str, fault: str, message: str) -> None:
        self.inner.warning(
            "Stage fault",
            stage=stage_name,
            fault=fault,
            error=message,
        )

    def early_exit(self, stage_name: str, status_code: int) -> None:
        self.inner.debug(
            "Early exit",
            stage=stage_name,
            status_code=status_code,
        )


# =============================================================================
# Metrics
# =============================================================================


@dataclass
class PipelineMetrics:
    """
    Request handling metrics.

    Tracks:
    - Request counts by outcome
    - Duration histograms
    - Fault counts by fault name
    - Stage durations
    """

    requests_total: int = 0
    requests_success: int = 0
    requests_faulted: int = 0
    load_faults: int = 0

    faults: dict[str, int] = field(default_factory=dict)

    # Histograms (simplified as lists)
    request_durations_ms: list[float] = field(default_factory=list)
    stage_durations_ms: dict[str, list[float]] = field(default_factory=dict)

    max_histogram_entries: int = 1000

    def record_request(self, success: bool, duration_ms: float) -> None:
        self.requests_total += 1
        if success:
            self.requests_success += 1
        else:
            self.requests_faulted += 1

        self.request_durations_ms.append(duration_ms)
        self._trim_histogram(self.request_durations_ms)

    def record_stage(self, name: str, duration_ms: float) -> None:
        histogram = self.stage_durations_ms.setdefault(name, [])
        histogram.append(duration_ms)
        self._trim_histogram(histogram)

    def record_fault(self, fault_name: str, *, load: bool = False) -> None:
        self.faults[fault_name] = self.faults.get(fault_name, 0) + 1
        if load:
            self.load_faults += 1

    def _trim_histogram(self, histogram: list[float]) -> None:
        if len(histogram) > self.max_histogram_entries:
            del histogram[: len(histogram) - self.max_histogram_entries]

    def get_stats(self) -> dict[str, Any]:
        """Get summary statistics."""
        def percentile(data: list[float], p: float) -> float | None:
            if not data:
                return None
            sorted_data = sorted(data)
            k = (len(sorted_data) - 1) * p
            f = int(k)
            c = f + 1 if f + 1 < len(sorted_data) else f
            return sorted_data[f] + (k - f) * (sorted_data[c] - sorted_data[f])

        return {
            "requests": {
                "total": self.requests_total,
                "success": self.requests_success,
                "faulted": self.requests_faulted,
                "success_rate": (
                    self.requests_success / self.requests_total
                    if self.requests_total > 0
                    else None
                ),
            },
            "duration_ms": {
                "p50": percentile(self.request_durations_ms, 0.5),
                "p95": percentile(self.request_durations_ms, 0.95),
                "p99": percentile(self.request_durations_ms, 0.99),
            },
            "faults": dict(self.faults),
            "load_faults": self.load_faults,
        }

    def reset(self) -> None:
        self.requests_total = 0
        self.requests_success = 0
        self.requests_faulted = 0
        self.load_faults = 0
        self.faults.clear()
        self.request_durations_ms.clear()
        self.stage_durations_ms.clear()


_global_metrics = PipelineMetrics()


def get_metrics() -> PipelineMetrics:
    """Get the global metrics instance."""
    return _global_metrics


def reset_metrics() -> None:
    """Reset global metrics (useful for testing)."""
    _global_metrics.reset()


def configure_logging(level: str = "INFO") -> None:
    """Configure process logging."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = [
    "JSONLogger",
    "PipelineLogger",
    "PipelineMetrics",
    "get_metrics",
    "reset_metrics",
    "configure_logging",
]

"""Simple operation metrics for a dead drop registry.

Each registry owns one RegistryMetrics instance that records:
- Operation timing (count, total/avg/min/max ms)
- Operation outcomes keyed by result code ("ok" or a RegistryError code)

Metrics are designed to be lightweight and not require external dependencies.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Iterator

from .errors import RegistryError

logger = logging.getLogger(__name__)

# Operations slower than this are logged as warnings
SLOW_OPERATION_MS = 100.0


@dataclass
class TimingStats:
    """Statistics for a timed operation."""

    count: int = 0
    total_ms: float = 0.0
    min_ms: float = float("inf")
    max_ms: float = 0.0

    def record(self, duration_ms: float) -> None:
        """Record a timing measurement."""
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)

    @property
    def avg_ms(self) -> float:
        """Average duration in milliseconds."""
        return self.total_ms / self.count if self.count > 0 else 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "count": self.count,
            "total_ms": round(self.total_ms, 2),
            "avg_ms": round(self.avg_ms, 2),
            "min_ms": round(self.min_ms, 2) if self.count > 0 else 0,
            "max_ms": round(self.max_ms, 2),
        }


@dataclass
class RegistryMetrics:
    """Per-registry metrics collector."""

    _lock: Lock = field(default_factory=Lock)
    operations: dict[str, TimingStats] = field(default_factory=lambda: defaultdict(TimingStats))
    outcomes: dict[str, dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: defaultdict(int))
    )
    _start_time: float = field(default_factory=time.time)

    def record(self, operation: str, outcome: str, duration_ms: float) -> None:
        """Record one completed operation."""
        with self._lock:
            self.operations[operation].record(duration_ms)
            self.outcomes[operation][outcome] += 1

    @contextmanager
    def track(self, operation: str) -> Iterator[None]:
        """Context manager to time an operation and record its outcome.

        Usage:
            with metrics.track("create"):
                ...
        """
        outcome = "ok"
        start = time.perf_counter()
        try:
            yield
        except RegistryError as e:
            outcome = e.code
            raise
        except Exception:
            outcome = "exception"
            raise
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            self.record(operation, outcome, duration_ms)
            if duration_ms > SLOW_OPERATION_MS:
                logger.warning(f"Slow registry operation: {operation} took {duration_ms:.1f}ms")

    def to_dict(self) -> dict:
        """Export metrics as a dictionary."""
        with self._lock:
            return {
                "uptime_seconds": round(time.time() - self._start_time, 1),
                "operations": {k: v.to_dict() for k, v in self.operations.items()},
                "outcomes": {k: dict(v) for k, v in self.outcomes.items()},
            }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self.operations.clear()
            self.outcomes.clear()
            self._start_time = time.time()

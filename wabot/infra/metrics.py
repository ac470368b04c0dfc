# wabot/infra/metrics.py
"""
In-process dispatch metrics, served as JSON at ``GET /metrics``.

Histograms keep a rolling window of the latest observations so a
long-running bot does not grow without bound; ``count`` is lifetime.
"""
from __future__ import annotations
import time
from collections import defaultdict, deque
from threading import Lock
from dataclasses import dataclass, field
from wabot.infra.logging_config import get_logger

logger = get_logger(__name__)

HISTOGRAM_WINDOW = 1000


@dataclass
class Counter:
    value: int = 0

    def inc(self, amount: int = 1) -> None:
        self.value += amount


@dataclass
class Histogram:
    """Distribution of recent values (e.g., dispatch times)"""
    window: deque = field(default_factory=lambda: deque(maxlen=HISTOGRAM_WINDOW))
    count: int = 0

    def observe(self, value: float) -> None:
        self.window.append(value)
        self.count += 1

    def get_stats(self) -> dict:
        if not self.window:
            return {"count": 0, "min": 0, "max": 0, "avg": 0, "p50": 0, "p95": 0, "p99": 0}

        ordered = sorted(self.window)
        n = len(ordered)

        def percentile(p: float) -> float:
            return ordered[min(int(n * p), n - 1)]

        return {
            "count": self.count,
            "min": ordered[0],
            "max": ordered[-1],
            "avg": sum(ordered) / n,
            "p50": percentile(0.50),
            "p95": percentile(0.95),
            "p99": percentile(0.99),
        }


class MetricsCollector:
    """
    Counters and histograms keyed by ``name{label=value,...}``.

    Guarded by a thread lock so a collector can be read from the ASGI
    threadpool (sync ``/metrics`` route) while the loop records.
    """

    def __init__(self):
        self._counters: dict[str, Counter] = defaultdict(Counter)
        self._histograms: dict[str, Histogram] = defaultdict(Histogram)
        self._lock = Lock()
        self._started = time.monotonic()

    def inc_counter(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key].inc(amount)

    def observe_histogram(self, name: str, value: float, labels: dict | None = None) -> None:
        key = self._make_key(name, labels)
        with self._lock:
            self._histograms[key].observe(value)

    def get_metrics(self) -> dict:
        with self._lock:
            counters = {k: v.value for k, v in self._counters.items()}
            histograms = {k: v.get_stats() for k, v in self._histograms.items()}

        return {
            "uptime_seconds": round(time.monotonic() - self._started, 1),
            "counters": counters,
            "histograms": histograms,
        }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()
            self._started = time.monotonic()
        logger.info("Metrics reset")

    @staticmethod
    def _make_key(name: str, labels: dict | None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"


_metrics = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    return _metrics


def inc_counter(name: str, amount: int = 1, **labels) -> None:
    _metrics.inc_counter(name, amount, labels or None)


def observe_histogram(name: str, value: float, **labels) -> None:
    _metrics.observe_histogram(name, value, labels or None)


class Timer:
    """Record the duration of a ``with`` block (seconds) in a histogram"""

    def __init__(self, metric_name: str, **labels):
        self.metric_name = metric_name
        self.labels = labels
        self.start_time: float | None = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            observe_histogram(
                self.metric_name,
                time.perf_counter() - self.start_time,
                **self.labels,
            )


class AppMetrics:
    """Dispatch-level metrics tracking"""

    @staticmethod
    def event_dispatched(category: str) -> None:
        inc_counter("events_dispatched_total", category=category)

    @staticmethod
    def dispatch_error(category: str, routed: bool) -> None:
        inc_counter("dispatch_errors_total", category=category, routed=routed)

    @staticmethod
    def scene_entered(scene: str) -> None:
        inc_counter("scenes_entered_total", scene=scene)

    @staticmethod
    def scene_left(scene: str) -> None:
        inc_counter("scenes_left_total", scene=scene)

    @staticmethod
    def message_sent(message_type: str) -> None:
        inc_counter("outbound_messages_total", type=message_type)

    @staticmethod
    def delivery_failed(retryable: bool) -> None:
        inc_counter("outbound_failures_total", retryable=retryable)

    @staticmethod
    def webhook_validation_failed() -> None:
        inc_counter("webhook_validation_failures_total")

    @staticmethod
    def track_dispatch_time(category: str) -> Timer:
        return Timer("dispatch_seconds", category=category)

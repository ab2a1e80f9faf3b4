"""Metrics collection for the recovery engine."""

import time
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field
from collections import deque
import threading
import statistics


class MetricType:
    """Metric type constants."""
    COUNTER = "counter"
    GAUGE = "gauge"
    TIMER = "timer"


@dataclass
class MetricDefinition:
    """Definition of a metric."""
    name: str
    type: str
    description: str
    unit: str = ""
    tags: Dict[str, str] = field(default_factory=dict)


class Counter:
    """Counter metric implementation."""

    def __init__(self, name: str, description: str = "", tags: Optional[Dict[str, str]] = None):
        self.name = name
        self.description = description
        self.tags = tags or {}
        self._value = 0.0
        self._lock = threading.Lock()

    def increment(self, amount: float = 1.0):
        with self._lock:
            self._value += amount

    def reset(self):
        with self._lock:
            self._value = 0.0

    def get_value(self) -> float:
        with self._lock:
            return self._value


class Gauge:
    """Gauge metric implementation."""

    def __init__(self, name: str, description: str = "", tags: Optional[Dict[str, str]] = None):
        self.name = name
        self.description = description
        self.tags = tags or {}
        self._value = 0.0
        self._lock = threading.Lock()

    def set_value(self, value: float):
        with self._lock:
            self._value = value

    def get_value(self) -> float:
        with self._lock:
            return self._value


class Timer:
    """Timer metric keeping a bounded window of observed durations."""

    def __init__(self, name: str, description: str = "", tags: Optional[Dict[str, str]] = None):
        self.name = name
        self.description = description
        self.tags = tags or {}
        self._values = deque(maxlen=1000)
        self._lock = threading.Lock()

    def observe(self, duration: float):
        with self._lock:
            self._values.append(duration)

    def time(self):
        """Use as a context manager."""
        return self._TimerContext(self)

    def get_stats(self) -> Dict[str, float]:
        """Get timer statistics."""
        with self._lock:
            if not self._values:
                return {"count": 0, "sum": 0.0, "min": 0.0, "max": 0.0, "mean": 0.0, "p95": 0.0}

            values = list(self._values)
            return {
                "count": len(values),
                "sum": sum(values),
                "min": min(values),
                "max": max(values),
                "mean": statistics.mean(values),
                "p95": self._percentile(values, 0.95)
            }

    @staticmethod
    def _percentile(values: List[float], p: float) -> float:
        sorted_values = sorted(values)
        index = int((len(sorted_values) - 1) * p)
        return sorted_values[index]

    class _TimerContext:
        """Context manager for timing."""

        def __init__(self, timer: "Timer"):
            self._timer = timer
            self._start_time = None

        def __enter__(self):
            self._start_time = time.monotonic()
            return self

        def __exit__(self, exc_type, exc_val, exc_tb):
            if self._start_time is not None:
                self._timer.observe(time.monotonic() - self._start_time)


class MetricsRegistry:
    """Registry for all metrics."""

    def __init__(self):
        self._metrics: Dict[str, Any] = {}
        self._definitions: Dict[str, MetricDefinition] = {}
        self._lock = threading.Lock()

    def _register(self, metric_cls, metric_type: str, name: str, description: str,
                  tags: Optional[Dict[str, str]]):
        with self._lock:
            if name in self._metrics:
                raise ValueError(f"Metric {name} already exists")

            metric = metric_cls(name, description, tags)
            self._metrics[name] = metric
            self._definitions[name] = MetricDefinition(name, metric_type, description, tags=tags or {})
            return metric

    def register_counter(self, name: str, description: str = "", tags: Optional[Dict[str, str]] = None) -> Counter:
        return self._register(Counter, MetricType.COUNTER, name, description, tags)

    def register_gauge(self, name: str, description: str = "", tags: Optional[Dict[str, str]] = None) -> Gauge:
        return self._register(Gauge, MetricType.GAUGE, name, description, tags)

    def register_timer(self, name: str, description: str = "", tags: Optional[Dict[str, str]] = None) -> Timer:
        return self._register(Timer, MetricType.TIMER, name, description, tags)

    def get_metric(self, name: str) -> Optional[Any]:
        with self._lock:
            return self._metrics.get(name)

    def list_metrics(self) -> List[str]:
        with self._lock:
            return list(self._metrics.keys())

    def collect_metrics(self) -> Dict[str, Any]:
        """Collect all metric values."""
        with self._lock:
            metrics_data = {}

            for name, metric in self._metrics.items():
                definition = self._definitions[name]

                if definition.type == MetricType.TIMER:
                    metrics_data[name] = {
                        "type": definition.type,
                        "stats": metric.get_stats(),
                        "description": definition.description
                    }
                else:
                    metrics_data[name] = {
                        "type": definition.type,
                        "value": metric.get_value(),
                        "description": definition.description
                    }

            return metrics_data


class RecoveryMetrics:
    """Recovery-specific metrics collection."""

    def __init__(self, registry: Optional[MetricsRegistry] = None):
        self.registry = registry or MetricsRegistry()
        self._strategy_counters: Dict[str, Counter] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        self.errors_received = self.registry.register_counter(
            "recovery_errors_received_total", "Errors submitted to the orchestrator"
        )
        self.errors_skipped = self.registry.register_counter(
            "recovery_errors_skipped_total", "Errors below the criticality threshold"
        )
        self.errors_throttled = self.registry.register_counter(
            "recovery_errors_throttled_total", "Errors rejected by the cooldown window"
        )
        self.errors_rejected = self.registry.register_counter(
            "recovery_errors_rejected_total", "Errors dropped while a recovery was running"
        )
        self.recoveries_succeeded = self.registry.register_counter(
            "recovery_runs_succeeded_total", "Recovery runs ending in success"
        )
        self.recoveries_failed = self.registry.register_counter(
            "recovery_runs_failed_total", "Recovery runs ending without success"
        )
        self.in_progress = self.registry.register_gauge(
            "recovery_in_progress", "1 while a recovery is running"
        )
        self.recovery_duration = self.registry.register_timer(
            "recovery_duration_seconds", "Wall time of whole recovery runs"
        )

    def record_strategy(self, strategy: str, success: bool):
        """Count one strategy execution by outcome."""
        outcome = "success" if success else "failure"
        name = f"recovery_strategy_{strategy.replace('-', '_')}_{outcome}_total"
        counter = self._strategy_counters.get(name)
        if counter is None:
            counter = self.registry.register_counter(name, f"{strategy} executions ({outcome})")
            self._strategy_counters[name] = counter
        counter.increment()

    def record_run(self, success: bool, duration: float):
        if success:
            self.recoveries_succeeded.increment()
        else:
            self.recoveries_failed.increment()
        self.recovery_duration.observe(duration)

    def snapshot(self) -> Dict[str, Any]:
        return self.registry.collect_metrics()

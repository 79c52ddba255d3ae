from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass
from threading import Lock


@dataclass
class EndpointStats:
    total_requests: int = 0
    total_duration_ms: float = 0.0
    error_count: int = 0

    def as_dict(self) -> dict[str, float | int]:
        average = self.total_duration_ms / self.total_requests if self.total_requests else 0.0
        return {
            "total_requests": self.total_requests,
            "total_duration_ms": round(self.total_duration_ms, 2),
            "avg_duration_ms": round(average, 2),
            "error_count": self.error_count,
        }


@dataclass
class DeliveryStats:
    attempts: int = 0
    delivered: int = 0
    failed: int = 0
    cancelled: int = 0


class InMemoryRequestMetrics:
    """Per "METHOD /route/template" counters for the HTTP surface."""

    def __init__(self) -> None:
        self._stats: defaultdict[str, EndpointStats] = defaultdict(EndpointStats)
        self._lock = Lock()

    def observe(self, endpoint: str, method: str, status_code: int, duration_ms: float) -> None:
        with self._lock:
            stats = self._stats[f"{method} {endpoint}"]
            stats.total_requests += 1
            stats.total_duration_ms += duration_ms
            stats.error_count += int(status_code >= 400)

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {key: stats.as_dict() for key, stats in self._stats.items()}


class InMemoryDeliveryMetrics:
    """Webhook delivery counters keyed by event name."""

    _OUTCOMES = ("delivered", "failed", "cancelled")

    def __init__(self) -> None:
        self._stats: defaultdict[str, DeliveryStats] = defaultdict(DeliveryStats)
        self._lock = Lock()

    def observe_attempt(self, event_name: str) -> None:
        with self._lock:
            self._stats[event_name].attempts += 1

    def observe_outcome(self, event_name: str, status: str) -> None:
        if status not in self._OUTCOMES:
            return
        with self._lock:
            stats = self._stats[event_name]
            setattr(stats, status, getattr(stats, status) + 1)

    def snapshot(self) -> dict[str, dict[str, int]]:
        with self._lock:
            return {event_name: asdict(stats) for event_name, stats in self._stats.items()}


request_metrics = InMemoryRequestMetrics()
delivery_metrics = InMemoryDeliveryMetrics()

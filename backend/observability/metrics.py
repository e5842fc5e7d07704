"""In-process counters for the ops API, served by ``GET /api/metrics``.

Besides request volume and latency this tracks the two things an operator of
the admin API cares about: audit writes that were dropped, and capability
denials by role.
"""

from __future__ import annotations

from collections import Counter, deque
from threading import Lock


def _percentile(ordered: list[float], p: float) -> float:
    if not ordered:
        return 0.0
    return round(ordered[int((len(ordered) - 1) * p)], 2)


class InMemoryMetrics:
    def __init__(self, latency_window: int = 2000) -> None:
        self._lock = Lock()
        self._requests_total = 0
        self._status_counts: Counter[str] = Counter()
        self._route_counts: Counter[str] = Counter()
        self._latencies_ms: deque[float] = deque(maxlen=latency_window)
        self._audit: Counter[str] = Counter(written=0, failed=0)
        self._denied_by_role: Counter[str] = Counter()

    def observe_request(self, route: str, status_code: int, duration_ms: float) -> None:
        """``route`` is the matched path template, so ids don't explode the key space."""
        with self._lock:
            self._requests_total += 1
            self._status_counts[f"{status_code // 100}xx"] += 1
            self._route_counts[route] += 1
            self._latencies_ms.append(float(duration_ms))

    def observe_audit(self, written: bool) -> None:
        with self._lock:
            self._audit["written" if written else "failed"] += 1

    def observe_denied(self, role: str | None) -> None:
        with self._lock:
            self._denied_by_role[role or "unknown"] += 1

    def snapshot(self) -> dict:
        with self._lock:
            ordered = sorted(self._latencies_ms)
            return {
                "requests_total": self._requests_total,
                "status_counts": dict(self._status_counts),
                "route_counts": dict(self._route_counts),
                "latency_ms": {
                    "samples": len(ordered),
                    "p50": _percentile(ordered, 0.50),
                    "p95": _percentile(ordered, 0.95),
                    "p99": _percentile(ordered, 0.99),
                },
                "audit": dict(self._audit),
                "denied_by_role": dict(self._denied_by_role),
            }


metrics = InMemoryMetrics()

"""Metric and report dataclasses for dealprobe."""

from __future__ import annotations

from dataclasses import dataclass, field

# RequestMetric lives in http/client.py; re-exported for convenience.
from dealprobe.http.client import RequestMetric

__all__ = [
    "AggregateReport",
    "CheckStats",
    "EndpointMetrics",
    "MetricSnapshot",
    "RequestMetric",
]


@dataclass
class EndpointMetrics:
    """Aggregated metrics for one logical endpoint (e.g. "Create Deal").

    Attributes:
        name: Logical endpoint name.
        request_count: Total number of requests to this endpoint.
        error_count: Requests that failed (status >= 400 or transport error).
        error_rate: Fraction of requests that failed (0.0 to 1.0).
        requests_per_second: Requests per second to this endpoint.
        latency_min: Minimum response time in milliseconds.
        latency_max: Maximum response time in milliseconds.
        latency_avg: Mean response time in milliseconds.
        latency_p50: 50th percentile response time in milliseconds.
        latency_p90: 90th percentile response time in milliseconds.
        latency_p95: 95th percentile response time in milliseconds.
        latency_p99: 99th percentile response time in milliseconds.
    """

    name: str
    request_count: int = 0
    error_count: int = 0
    error_rate: float = 0.0
    requests_per_second: float = 0.0
    latency_min: float = 0.0
    latency_max: float = 0.0
    latency_avg: float = 0.0
    latency_p50: float = 0.0
    latency_p90: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0


@dataclass
class CheckStats:
    """Pass/fail tally for one check label across the run."""

    name: str
    passes: int = 0
    fails: int = 0

    @property
    def total(self) -> int:
        return self.passes + self.fails

    @property
    def pass_rate(self) -> float:
        return self.passes / self.total if self.total else 0.0


@dataclass
class MetricSnapshot:
    """Point-in-time metrics for one tick interval.

    Attributes:
        timestamp: Monotonic timestamp of the snapshot.
        elapsed_seconds: Seconds since the run started.
        active_users: Virtual users still looping.
        total_requests: Requests completed in this interval.
        requests_per_second: Overall RPS in this interval.
        latency_avg: Mean latency in milliseconds.
        latency_p50: 50th percentile latency (ms).
        latency_p95: 95th percentile latency (ms).
        latency_p99: 99th percentile latency (ms).
        total_errors: Failed requests in this interval.
        error_rate: Fraction of requests that failed (0.0 to 1.0).
        iterations_completed: Iterations that reached COMPLETED.
        iterations_aborted: Iterations that reached ABORTED.
        checks_passed: Checks that passed in this interval.
        checks_failed: Checks that failed in this interval.
    """

    timestamp: float
    elapsed_seconds: float
    active_users: int
    total_requests: int = 0
    requests_per_second: float = 0.0
    latency_avg: float = 0.0
    latency_p50: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0
    total_errors: int = 0
    error_rate: float = 0.0
    iterations_completed: int = 0
    iterations_aborted: int = 0
    checks_passed: int = 0
    checks_failed: int = 0


@dataclass
class AggregateReport:
    """Result of a whole scheduler run.

    Attributes:
        virtual_users: Number of virtual users that ran.
        duration_seconds: Wall time from start until every user drained.
        iterations: Iterations started across all users.
        completed: Iterations that passed every gate.
        aborted: Iterations stopped by a failing gate.
        health_failures: Aborts at the health step (target unreachable).
        errors: Iterations that died on an unexpected exception.
        cancelled: Iterations still in flight when the drain bound expired.
        aborts_by_step: Abort count keyed by step name.
        checks: Per-label check tallies.
        endpoints: Cumulative per-endpoint latency and error metrics.
        total_requests: HTTP requests issued.
        generated_ids: Distinct ``dealUniqueId`` values submitted.
        duplicate_ids: Ids generated more than once (should stay empty).
        snapshots: Interval snapshots, one per tick.
    """

    virtual_users: int
    duration_seconds: float
    iterations: int = 0
    completed: int = 0
    aborted: int = 0
    health_failures: int = 0
    errors: int = 0
    cancelled: int = 0
    aborts_by_step: dict[str, int] = field(default_factory=dict)
    checks: dict[str, CheckStats] = field(default_factory=dict)
    endpoints: dict[str, EndpointMetrics] = field(default_factory=dict)
    total_requests: int = 0
    generated_ids: int = 0
    duplicate_ids: list[str] = field(default_factory=list)
    snapshots: list[MetricSnapshot] = field(default_factory=list)

    @property
    def checks_passed(self) -> int:
        return sum(c.passes for c in self.checks.values())

    @property
    def checks_failed(self) -> int:
        return sum(c.fails for c in self.checks.values())

    @property
    def check_pass_rate(self) -> float:
        """Fraction of all checks that passed, 0.0 when none ran."""
        total = self.checks_passed + self.checks_failed
        return self.checks_passed / total if total else 0.0

    @property
    def iterations_per_second(self) -> float:
        return self.iterations / self.duration_seconds if self.duration_seconds > 0 else 0.0

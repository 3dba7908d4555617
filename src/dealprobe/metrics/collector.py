"""In-memory collection of requests, checks and iteration outcomes."""

from __future__ import annotations

import time
from collections import Counter, deque
from typing import TYPE_CHECKING

import numpy as np

from dealprobe._internal.logging import get_logger
from dealprobe.metrics.histogram import LatencyHistogram
from dealprobe.metrics.models import AggregateReport, CheckStats, MetricSnapshot

if TYPE_CHECKING:
    from dealprobe.http.client import RequestMetric
    from dealprobe.workflow.models import IterationOutcome

logger = get_logger("metrics.collector")


def _is_error(metric: RequestMetric) -> bool:
    return metric.error is not None or metric.status_code >= 400


def _interval_latencies(latencies: list[float]) -> tuple[float, float, float, float]:
    """Return (avg, p50, p95, p99) for one interval's raw samples."""
    if not latencies:
        return (0.0, 0.0, 0.0, 0.0)
    arr = np.array(latencies, dtype=np.float64)
    p50, p95, p99 = np.percentile(arr, [50.0, 95.0, 99.0])
    return (float(np.mean(arr)), float(p50), float(p95), float(p99))


class MetricCollector:
    """Collects everything the virtual users produce during a run.

    ``record`` is passed to each ``HttpClient`` as its metric callback and
    ``record_outcome`` is called once per finished iteration. All users run
    on one event loop, so no locking is needed.

    ``flush`` drains the request buffer into an interval ``MetricSnapshot``
    for the live display; ``build_report`` produces the final
    ``AggregateReport`` from the run-long state.
    """

    def __init__(self) -> None:
        self._buffer: deque[RequestMetric] = deque()
        self._endpoints: dict[str, LatencyHistogram] = {}
        self._checks: dict[str, CheckStats] = {}
        self._aborts_by_step: Counter[str] = Counter()
        self._seen_ids: set[str] = set()
        self._duplicate_ids: list[str] = []
        self._snapshots: list[MetricSnapshot] = []
        self._total_requests = 0
        self._iterations = 0
        self._completed = 0
        self._aborted = 0
        self._health_failures = 0
        self._errors = 0
        self._cancelled = 0
        self._interval: Counter[str] = Counter()
        self._last_flush_time = time.monotonic()

    @property
    def pending_count(self) -> int:
        """Return the number of requests not yet flushed."""
        return len(self._buffer)

    @property
    def snapshots(self) -> list[MetricSnapshot]:
        return list(self._snapshots)

    def record(self, metric: RequestMetric) -> None:
        """Record one HTTP request. Used as ``HttpClient.metric_callback``."""
        self._buffer.append(metric)
        self._total_requests += 1
        histogram = self._endpoints.get(metric.name)
        if histogram is None:
            histogram = self._endpoints[metric.name] = LatencyHistogram(metric.name)
        histogram.record(metric.latency_ms, error=_is_error(metric))

    def record_outcome(self, outcome: IterationOutcome) -> None:
        """Record a finished iteration, its checks and the ids it submitted."""
        self._iterations += 1
        if outcome.completed:
            self._completed += 1
            self._interval["completed"] += 1
        elif outcome.aborted:
            self._aborted += 1
            self._interval["aborted"] += 1
            if outcome.abort is not None:
                self._aborts_by_step[outcome.abort.step] += 1
                if outcome.abort.severe:
                    self._health_failures += 1

        for check in outcome.checks:
            stats = self._checks.get(check.name)
            if stats is None:
                stats = self._checks[check.name] = CheckStats(name=check.name)
            if check.passed:
                stats.passes += 1
                self._interval["checks_passed"] += 1
            else:
                stats.fails += 1
                self._interval["checks_failed"] += 1

        self._track_ids(outcome.generated_ids)

    def record_cancelled(self, outcome: IterationOutcome) -> None:
        """Count an iteration cut off by the drain bound.

        Its checks are incomplete and not tallied, but every id it already
        submitted may have reached the target and is tracked.
        """
        self._iterations += 1
        self._cancelled += 1
        self._track_ids(outcome.generated_ids)

    def _track_ids(self, deal_ids: list[str]) -> None:
        for deal_id in deal_ids:
            if deal_id in self._seen_ids:
                logger.error("Duplicate dealUniqueId generated: %s", deal_id)
                self._duplicate_ids.append(deal_id)
            else:
                self._seen_ids.add(deal_id)

    def record_error(self) -> None:
        """Count an iteration that died on an unexpected exception."""
        self._iterations += 1
        self._errors += 1

    def flush(self, elapsed_seconds: float, active_users: int) -> MetricSnapshot:
        """Drain the request buffer into a snapshot for the last interval.

        Args:
            elapsed_seconds: Seconds elapsed since the run started.
            active_users: Virtual users still looping.

        Returns:
            The interval snapshot, also kept for the final report.
        """
        drained = list(self._buffer)
        self._buffer.clear()

        now = time.monotonic()
        interval = max(now - self._last_flush_time, 0.001)
        self._last_flush_time = now

        total = len(drained)
        errors = sum(1 for m in drained if _is_error(m))
        avg, p50, p95, p99 = _interval_latencies([m.latency_ms for m in drained])

        snapshot = MetricSnapshot(
            timestamp=now,
            elapsed_seconds=elapsed_seconds,
            active_users=active_users,
            total_requests=total,
            requests_per_second=total / interval,
            latency_avg=avg,
            latency_p50=p50,
            latency_p95=p95,
            latency_p99=p99,
            total_errors=errors,
            error_rate=errors / total if total else 0.0,
            iterations_completed=self._interval["completed"],
            iterations_aborted=self._interval["aborted"],
            checks_passed=self._interval["checks_passed"],
            checks_failed=self._interval["checks_failed"],
        )
        self._interval.clear()
        self._snapshots.append(snapshot)
        return snapshot

    def build_report(self, virtual_users: int, duration_seconds: float) -> AggregateReport:
        """Summarize the whole run.

        Args:
            virtual_users: Number of users the run was started with.
            duration_seconds: Wall time of the run, including drain.
        """
        return AggregateReport(
            virtual_users=virtual_users,
            duration_seconds=duration_seconds,
            iterations=self._iterations,
            completed=self._completed,
            aborted=self._aborted,
            health_failures=self._health_failures,
            errors=self._errors,
            cancelled=self._cancelled,
            aborts_by_step=dict(self._aborts_by_step),
            checks={name: CheckStats(s.name, s.passes, s.fails) for name, s in self._checks.items()},
            endpoints={
                name: h.to_endpoint_metrics(duration_seconds) for name, h in self._endpoints.items()
            },
            total_requests=self._total_requests,
            generated_ids=len(self._seen_ids),
            duplicate_ids=list(self._duplicate_ids),
            snapshots=list(self._snapshots),
        )

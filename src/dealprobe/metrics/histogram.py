"""Run-long latency histograms backed by HDR histograms.

Interval snapshots are small and use numpy on raw samples; whole-run
per-endpoint latency is kept here instead, so memory stays bounded no
matter how long the run is or how many requests it issues.
"""

from __future__ import annotations

from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

from dealprobe.metrics.models import EndpointMetrics

# 1 microsecond to 60 seconds, stored as integer microseconds.
_LOWEST_US = 1
_HIGHEST_US = 60_000_000
_SIGNIFICANT_DIGITS = 3


class LatencyHistogram:
    """Latency and error tally for one endpoint.

    Values go in and come out in milliseconds; out-of-range samples are
    clamped into the trackable range rather than dropped.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.error_count = 0
        self._histogram = HdrHistogram(_LOWEST_US, _HIGHEST_US, _SIGNIFICANT_DIGITS)

    @property
    def count(self) -> int:
        return int(self._histogram.total_count)

    def record(self, latency_ms: float, *, error: bool = False) -> None:
        value_us = max(_LOWEST_US, min(int(latency_ms * 1000), _HIGHEST_US))
        self._histogram.record_value(value_us)
        if error:
            self.error_count += 1

    def percentile(self, percentile: float) -> float:
        """Return the latency (ms) at ``percentile`` (0-100), 0.0 if empty."""
        if self.count == 0:
            return 0.0
        return self._histogram.get_value_at_percentile(percentile) / 1000.0

    def to_endpoint_metrics(self, elapsed_seconds: float) -> EndpointMetrics:
        """Summarize everything recorded so far.

        Args:
            elapsed_seconds: Run duration used for the RPS figure.
        """
        count = self.count
        if count == 0:
            return EndpointMetrics(name=self.name)
        return EndpointMetrics(
            name=self.name,
            request_count=count,
            error_count=self.error_count,
            error_rate=self.error_count / count,
            requests_per_second=count / max(elapsed_seconds, 0.001),
            latency_min=self._histogram.get_min_value() / 1000.0,
            latency_max=self._histogram.get_max_value() / 1000.0,
            latency_avg=self._histogram.get_mean_value() / 1000.0,
            latency_p50=self.percentile(50.0),
            latency_p90=self.percentile(90.0),
            latency_p95=self.percentile(95.0),
            latency_p99=self.percentile(99.0),
        )

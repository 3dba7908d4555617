"""Virtual user scheduler: N concurrent workflow loops until a deadline."""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
import time
from enum import Enum, auto
from typing import TYPE_CHECKING

from dealprobe._internal.errors import ConfigError, EngineError
from dealprobe._internal.logging import get_logger
from dealprobe.engine._user_utils import drain_users
from dealprobe.http.client import HttpClient
from dealprobe.metrics.collector import MetricCollector
from dealprobe.workflow.deals import BULK_DEALS, SINGLE_DEAL, validate_templates
from dealprobe.workflow.executor import WorkflowExecutor
from dealprobe.workflow.ids import IdentifierGenerator
from dealprobe.workflow.models import VirtualUser

if TYPE_CHECKING:
    from collections.abc import Callable

    from dealprobe._internal.config import RunConfig
    from dealprobe.http.client import RequestMetric
    from dealprobe.metrics.models import AggregateReport, MetricSnapshot
    from dealprobe.workflow.ids import Clock
    from dealprobe.workflow.models import IterationOutcome

    ClientFactory = Callable[[VirtualUser, Callable[[RequestMetric], None]], HttpClient]

logger = get_logger("engine.scheduler")


class SchedulerState(Enum):
    """Lifecycle of one scheduler run."""

    CREATED = auto()
    RUNNING = auto()
    DRAINING = auto()
    COMPLETED = auto()
    FAILED = auto()


class VirtualUserScheduler:
    """Runs independent virtual users until a wall-clock deadline.

    Each virtual user is one asyncio task that owns its ``HttpClient``,
    its ``IdentifierGenerator`` and its iteration counter. The only state
    shared between users is the read-only configuration, the deadline and
    the clock. Once the deadline passes no user starts a new iteration;
    iterations already in flight finish and the scheduler joins every task
    (graceful drain). ``RunConfig.drain_bound`` bounds the drain; iterations
    cut off by it are counted as cancelled in the report.

    State machine: CREATED -> RUNNING -> DRAINING -> COMPLETED
                                      -> FAILED (on error)
    """

    def __init__(
        self,
        config: RunConfig,
        *,
        clock: Clock | None = None,
        client_factory: ClientFactory | None = None,
        on_snapshot: Callable[[MetricSnapshot], None] | None = None,
        on_outcome: Callable[[IterationOutcome], None] | None = None,
        install_signal_handlers: bool = True,
    ) -> None:
        """Initialize the scheduler.

        Args:
            config: Immutable run configuration.
            clock: Clock for id generation. Defaults to the system clock.
            client_factory: Builds the HTTP client for a virtual user given
                the metric callback. Defaults to an ``HttpClient`` rooted at
                ``config.base_url``.
            on_snapshot: Called with each interval snapshot.
            on_outcome: Called with every finished iteration.
            install_signal_handlers: Stop gracefully on SIGINT/SIGTERM.
        """
        self._config = config.validate()
        self._clock = clock
        self._client_factory = client_factory or self._default_client
        self._on_snapshot = on_snapshot
        self._on_outcome = on_outcome
        self._install_handlers = install_signal_handlers

        self._state = SchedulerState.CREATED
        self._collector = MetricCollector()
        self._user_tasks: list[tuple[int, asyncio.Task[None]]] = []
        self._stop_event = asyncio.Event()
        self._deadline = 0.0

    @property
    def state(self) -> SchedulerState:
        """Return the current scheduler state."""
        return self._state

    @property
    def active_user_count(self) -> int:
        """Return the number of virtual users still running."""
        return sum(1 for _, t in self._user_tasks if not t.done())

    async def run(
        self,
        virtual_user_count: int | None = None,
        duration: float | None = None,
    ) -> AggregateReport:
        """Run the load test to completion.

        Args:
            virtual_user_count: Overrides ``config.virtual_users``.
            duration: Overrides ``config.duration`` (seconds).

        Returns:
            The aggregate report for the run.

        Raises:
            ConfigError: If the overrides are out of range.
            DealError: If the deal fixtures are invalid.
            EngineError: If the scheduler already ran or fails outside any
                iteration.
        """
        if self._state is not SchedulerState.CREATED:
            msg = f"Scheduler cannot run from state {self._state.name}"
            raise EngineError(msg)

        vus = self._config.virtual_users if virtual_user_count is None else virtual_user_count
        run_for = self._config.duration if duration is None else duration
        if vus < 1:
            msg = f"virtual_user_count must be >= 1, got: {vus}"
            raise ConfigError(msg)
        if run_for <= 0:
            msg = f"duration must be positive, got: {run_for}"
            raise ConfigError(msg)
        validate_templates(SINGLE_DEAL, *BULK_DEALS)

        logger.info(
            "Starting run: users=%d, duration=%.1fs, pacing=%.2fs, target=%s",
            vus,
            run_for,
            self._config.pacing,
            self._config.base_url,
        )

        self._state = SchedulerState.RUNNING
        start_time = time.monotonic()
        self._deadline = start_time + run_for
        if self._install_handlers:
            self._install_signal_handlers()

        for vu_id in range(1, vus + 1):
            task = asyncio.create_task(
                self._run_virtual_user(VirtualUser(vu_id)),
                name=f"virtual-user-{vu_id}",
            )
            self._user_tasks.append((vu_id, task))

        try:
            await self._supervise(start_time)
        except Exception as exc:
            self._state = SchedulerState.FAILED
            logger.exception("Scheduler failed")
            raise EngineError("Scheduler failed") from exc
        finally:
            if self._state is not SchedulerState.FAILED:
                self._state = SchedulerState.DRAINING
            self._stop_event.set()
            cancelled = await drain_users(self._user_tasks, self._config.drain_bound)
            if cancelled:
                logger.warning("%d virtual users were cancelled during drain", cancelled)
            if self._install_handlers:
                self._remove_signal_handlers()

        total_duration = time.monotonic() - start_time
        self._collector.flush(elapsed_seconds=total_duration, active_users=0)
        report = self._collector.build_report(vus, total_duration)

        self._state = SchedulerState.COMPLETED
        logger.info(
            "Run completed: duration=%.1fs, iterations=%d, completed=%d, aborted=%d, "
            "checks=%.2f%% passed, requests=%d",
            total_duration,
            report.iterations,
            report.completed,
            report.aborted,
            report.check_pass_rate * 100,
            report.total_requests,
        )
        if report.duplicate_ids:
            logger.error("%d duplicate dealUniqueIds generated", len(report.duplicate_ids))
        return report

    async def stop(self) -> None:
        """Request a graceful stop; no new iterations start afterwards."""
        if self._state is SchedulerState.RUNNING:
            logger.info("Graceful shutdown requested")
            self._stop_event.set()

    def _may_start_iteration(self, after: float = 0.0) -> bool:
        """Return whether an iteration could start ``after`` seconds from now."""
        if self._stop_event.is_set():
            return False
        return time.monotonic() + after < self._deadline

    async def _supervise(self, start_time: float) -> None:
        """Emit interval snapshots until the deadline, a stop, or all users exit."""
        tick = self._config.tick_interval
        next_tick = start_time + tick

        while not self._stop_event.is_set():
            now = time.monotonic()
            if now >= self._deadline or self.active_user_count == 0:
                break

            wait_for = max(min(next_tick, self._deadline) - now, 0.0)
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=wait_for)

            if time.monotonic() >= next_tick:
                self._emit_snapshot(start_time)
                next_tick += tick

    def _emit_snapshot(self, start_time: float) -> None:
        elapsed = time.monotonic() - start_time
        snapshot = self._collector.flush(
            elapsed_seconds=elapsed,
            active_users=self.active_user_count,
        )
        logger.debug(
            "Tick %.1fs: users=%d, rps=%.1f, p95=%.1fms, aborted=%d",
            elapsed,
            snapshot.active_users,
            snapshot.requests_per_second,
            snapshot.latency_p95,
            snapshot.iterations_aborted,
        )
        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)

    async def _run_virtual_user(self, vu: VirtualUser) -> None:
        """Loop iterations for one virtual user until the deadline.

        Args:
            vu: The virtual user this task owns.
        """
        ids = IdentifierGenerator(prefix=self._config.id_prefix, clock=self._clock)
        pacing = self._config.pacing

        async with self._client_factory(vu, self._collector.record) as client:
            executor = WorkflowExecutor(client, ids)

            while self._may_start_iteration():
                try:
                    outcome = await executor.run_iteration(vu)
                except asyncio.CancelledError:
                    in_flight = executor.in_flight
                    if in_flight is not None and not in_flight.state.terminal:
                        self._collector.record_cancelled(in_flight)
                        logger.warning(
                            "VU %d iteration %d cancelled during %s",
                            vu.vu_id,
                            in_flight.iteration,
                            in_flight.state.value,
                        )
                    raise
                except Exception:
                    logger.error(
                        "VU %d iteration %d failed unexpectedly",
                        vu.vu_id,
                        vu.iteration,
                        exc_info=True,
                    )
                    self._collector.record_error()
                else:
                    self._collector.record_outcome(outcome)
                    if self._on_outcome is not None:
                        self._on_outcome(outcome)

                # A pause that cannot be followed by another iteration is skipped.
                if not self._may_start_iteration(after=pacing):
                    break
                await asyncio.sleep(pacing)

        logger.debug("VU %d finished after %d iterations", vu.vu_id, vu.iteration)

    def _default_client(
        self,
        vu: VirtualUser,
        metric_callback: Callable[[RequestMetric], None],
    ) -> HttpClient:
        return HttpClient(
            base_url=self._config.base_url,
            metric_callback=metric_callback,
            vu_id=vu.vu_id,
            timeout=self._config.request_timeout,
        )

    def _install_signal_handlers(self) -> None:
        """Install SIGINT and SIGTERM handlers that trigger a graceful stop."""
        loop = asyncio.get_running_loop()

        def _signal_handler() -> None:
            logger.info("Signal received, draining virtual users")
            self._stop_event.set()

        if sys.platform != "win32":
            loop.add_signal_handler(signal.SIGINT, _signal_handler)
            loop.add_signal_handler(signal.SIGTERM, _signal_handler)
        else:
            signal.signal(signal.SIGINT, lambda _s, _f: _signal_handler())
            signal.signal(signal.SIGTERM, lambda _s, _f: _signal_handler())

    def _remove_signal_handlers(self) -> None:
        """Remove custom signal handlers, restoring defaults."""
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
        else:
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)

"""Blocking entry point that runs a scheduler on a fresh event loop."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from dealprobe._internal.logging import get_logger, setup_logging
from dealprobe.engine.scheduler import VirtualUserScheduler

if TYPE_CHECKING:
    from collections.abc import Callable

    from dealprobe._internal.config import RunConfig
    from dealprobe.metrics.models import AggregateReport, MetricSnapshot

logger = get_logger("engine.runner")


def _install_uvloop() -> None:
    """Install uvloop as the event loop policy if available.

    Falls back to the default asyncio event loop on Windows or if uvloop
    is not installed.
    """
    if sys.platform == "win32":
        return

    try:
        import uvloop

        uvloop.install()
        logger.debug("uvloop installed as event loop policy")
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")


def run_load_test(
    config: RunConfig,
    *,
    on_snapshot: Callable[[MetricSnapshot], None] | None = None,
    log_level: int = logging.INFO,
    json_logs: bool = False,
) -> AggregateReport:
    """Run a full load test and block until every virtual user drained.

    Args:
        config: Run configuration.
        on_snapshot: Optional callback for interval snapshots.
        log_level: Logging level for the ``dealprobe`` logger.
        json_logs: Emit JSON log lines.

    Returns:
        The aggregate report.

    Raises:
        ConfigError: If the configuration is invalid.
        EngineError: If the scheduler fails.
    """
    setup_logging(level=log_level, json_format=json_logs)
    _install_uvloop()

    async def _main() -> AggregateReport:
        scheduler = VirtualUserScheduler(config, on_snapshot=on_snapshot)
        return await scheduler.run()

    return asyncio.run(_main())

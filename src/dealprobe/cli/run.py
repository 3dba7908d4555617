"""``dealprobe run`` — execute the workflow load test with live terminal output."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from dealprobe._internal.config import load_config
from dealprobe._internal.errors import DealProbeError
from dealprobe.engine.runner import run_load_test

if TYPE_CHECKING:
    from dealprobe.metrics.models import AggregateReport, MetricSnapshot

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Rich tables
# ---------------------------------------------------------------------------


def _make_live_table(snapshot: MetricSnapshot | None) -> Table:
    """Build a Rich table with the latest interval metrics."""
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    if snapshot is None:
        table.add_row("Status", "Starting...")
        return table

    table.add_row("Elapsed", f"{snapshot.elapsed_seconds:.0f}s")
    table.add_row("Active Users", str(snapshot.active_users))
    table.add_row("Requests/sec", f"{snapshot.requests_per_second:.1f}")
    table.add_row("p95 Latency", f"{snapshot.latency_p95:.1f}ms")
    table.add_row("Iterations OK", str(snapshot.iterations_completed))
    table.add_row("Iterations Aborted", str(snapshot.iterations_aborted))
    table.add_row("Checks Failed", str(snapshot.checks_failed))
    return table


def _print_summary(report: AggregateReport) -> None:
    """Print check, endpoint and iteration summaries after the run."""
    checks = Table(title="Checks", show_header=True, header_style="bold cyan", expand=True)
    checks.add_column("Check")
    checks.add_column("Passed", justify="right")
    checks.add_column("Failed", justify="right")
    checks.add_column("Pass %", justify="right")
    for stats in report.checks.values():
        style = "green" if stats.fails == 0 else "red"
        checks.add_row(
            f"[{style}]{stats.name}[/{style}]",
            str(stats.passes),
            str(stats.fails),
            f"{stats.pass_rate * 100:.2f}%",
        )
    console.print(checks)

    if report.endpoints:
        endpoints = Table(
            title="Per-Endpoint Breakdown",
            show_header=True,
            header_style="bold cyan",
            expand=True,
        )
        endpoints.add_column("Endpoint")
        endpoints.add_column("Requests", justify="right")
        endpoints.add_column("p50", justify="right")
        endpoints.add_column("p95", justify="right")
        endpoints.add_column("p99", justify="right")
        endpoints.add_column("Errors", justify="right")
        for ep in report.endpoints.values():
            endpoints.add_row(
                ep.name,
                str(ep.request_count),
                f"{ep.latency_p50:.1f}ms",
                f"{ep.latency_p95:.1f}ms",
                f"{ep.latency_p99:.1f}ms",
                str(ep.error_count),
            )
        console.print(endpoints)

    summary = Table(title="Run Complete", show_header=True, header_style="bold green", expand=True)
    summary.add_column("Metric", style="bold")
    summary.add_column("Value", justify="right")
    summary.add_row("Virtual Users", str(report.virtual_users))
    summary.add_row("Duration", f"{report.duration_seconds:.1f}s")
    summary.add_row("Iterations", str(report.iterations))
    summary.add_row("Completed", str(report.completed))
    summary.add_row("Aborted", str(report.aborted))
    summary.add_row("Health Failures", str(report.health_failures))
    summary.add_row("Cancelled", str(report.cancelled))
    summary.add_row("Requests", str(report.total_requests))
    summary.add_row("Deal Ids", str(report.generated_ids))
    summary.add_row("Duplicate Ids", str(len(report.duplicate_ids)))
    summary.add_row("Checks Passed", f"{report.check_pass_rate * 100:.2f}%")
    console.print(summary)


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def run_cmd(
    users: int | None = typer.Option(
        None,
        "--users",
        "-u",
        help="Concurrent virtual users [default: 10].",
        min=1,
    ),
    duration: float | None = typer.Option(
        None,
        "--duration",
        "-d",
        help="Run duration in seconds [default: 15].",
    ),
    base_url: str | None = typer.Option(
        None,
        "--base-url",
        help="Deal collection URL [default: http://localhost:8080/api/deals].",
    ),
    pacing: float | None = typer.Option(
        None,
        "--pacing",
        help="Pause between iterations in seconds [default: 1].",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Per-request timeout in seconds [default: 30].",
    ),
    fail_on_check_rate: float | None = typer.Option(
        None,
        "--fail-on-check-rate",
        help="Exit non-zero if the failed-check fraction exceeds this (e.g., 0.05).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit structured JSON log lines.",
    ),
) -> None:
    """Run the five-step deal workflow under concurrent load."""
    try:
        config = load_config().with_overrides(
            virtual_users=users,
            duration=duration,
            base_url=base_url,
            pacing=pacing,
            request_timeout=timeout,
        )
    except DealProbeError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(
        Panel(
            f"[bold]Target:[/bold]   {config.base_url}\n"
            f"[bold]Users:[/bold]    {config.virtual_users}\n"
            f"[bold]Duration:[/bold] {config.duration}s\n"
            f"[bold]Pacing:[/bold]   {config.pacing}s",
            title="dealprobe",
            border_style="cyan",
        )
    )

    log_level = logging.DEBUG if verbose else logging.INFO

    try:
        with Live(
            _make_live_table(None),
            console=console,
            refresh_per_second=2,
            transient=True,
        ) as live:
            report = run_load_test(
                config,
                on_snapshot=lambda snapshot: live.update(_make_live_table(snapshot)),
                log_level=log_level,
                json_logs=json_logs,
            )
    except DealProbeError as exc:
        console.print(f"[red]Load test failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    _print_summary(report)

    checks_run = report.checks_passed + report.checks_failed
    if fail_on_check_rate is not None and checks_run == 0:
        console.print("[red]FAIL:[/red] no checks ran, the check rate cannot be judged")
        raise typer.Exit(code=1)

    failed_fraction = 1.0 - report.check_pass_rate
    if fail_on_check_rate is not None and failed_fraction > fail_on_check_rate:
        console.print(
            f"[red]FAIL:[/red] {failed_fraction * 100:.2f}% of checks failed, "
            f"threshold {fail_on_check_rate * 100:.2f}%"
        )
        raise typer.Exit(code=1)

    console.print("[green]Load test completed.[/green]")

"""End-to-end tests for the dealprobe CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from dealprobe import __version__
from dealprobe.cli.app import app
from dealprobe.metrics.models import AggregateReport

if TYPE_CHECKING:
    from tests.conftest import FakeDealService

runner = CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "DEALPROBE_VUS",
        "DEALPROBE_DURATION",
        "DEALPROBE_BASE_URL",
        "DEALPROBE_PACING",
        "DEALPROBE_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Tests: version and help
# ---------------------------------------------------------------------------


def test_version_flag():
    """--version prints version and exits 0."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_version_short_flag():
    """-V also prints version."""
    result = runner.invoke(app, ["-V"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_output():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "dealprobe" in result.output.lower()


def test_run_help():
    """dealprobe run --help shows run options."""
    result = runner.invoke(app, ["run", "--help"])
    assert result.exit_code == 0
    assert "--users" in result.output
    assert "--duration" in result.output
    assert "--base-url" in result.output


# ---------------------------------------------------------------------------
# Tests: dealprobe run
# ---------------------------------------------------------------------------


@pytest.mark.timeout(30)
def test_run_basic(sync_deal_service: str, fake_service: FakeDealService):
    """dealprobe run drives the workflow and exits 0."""
    result = runner.invoke(
        app,
        [
            "run",
            "--users",
            "2",
            "--duration",
            "1",
            "--pacing",
            "0.1",
            "--base-url",
            sync_deal_service,
        ],
    )
    assert result.exit_code == 0, f"output: {result.output}"
    assert "Run Complete" in result.output
    assert fake_service.calls["health"] >= 2


@pytest.mark.timeout(30)
def test_run_reads_environment(
    sync_deal_service: str,
    fake_service: FakeDealService,
    monkeypatch: pytest.MonkeyPatch,
):
    monkeypatch.setenv("DEALPROBE_BASE_URL", sync_deal_service)
    monkeypatch.setenv("DEALPROBE_VUS", "1")
    monkeypatch.setenv("DEALPROBE_DURATION", "0.3")

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 0, f"output: {result.output}"
    assert fake_service.calls["health"] == 1


def test_run_rejects_bad_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DEALPROBE_VUS", "many")
    result = runner.invoke(app, ["run"])
    assert result.exit_code == 1
    assert "DEALPROBE_VUS" in result.output


def test_run_rejects_bad_duration():
    result = runner.invoke(app, ["run", "--duration", "0"])
    assert result.exit_code == 1
    assert "duration" in result.output


def test_run_rejects_zero_users():
    result = runner.invoke(app, ["run", "--users", "0"])
    assert result.exit_code != 0


# ---------------------------------------------------------------------------
# Tests: --fail-on-check-rate
# ---------------------------------------------------------------------------


@pytest.mark.timeout(30)
def test_fail_on_check_rate_exceeded(sync_deal_service: str, fake_service: FakeDealService):
    """Failing checks above the threshold exit 1."""
    fake_service.fail_with["create"] = 500
    result = runner.invoke(
        app,
        [
            "run",
            "--users",
            "1",
            "--duration",
            "0.5",
            "--pacing",
            "0.1",
            "--base-url",
            sync_deal_service,
            "--fail-on-check-rate",
            "0.05",
        ],
    )
    assert result.exit_code == 1
    assert "FAIL" in result.output


@pytest.mark.timeout(30)
def test_fail_on_check_rate_not_exceeded(sync_deal_service: str):
    result = runner.invoke(
        app,
        [
            "run",
            "--users",
            "1",
            "--duration",
            "0.5",
            "--pacing",
            "0.1",
            "--base-url",
            sync_deal_service,
            "--fail-on-check-rate",
            "0.05",
        ],
    )
    assert result.exit_code == 0, f"output: {result.output}"


def test_fail_on_check_rate_without_checks(monkeypatch: pytest.MonkeyPatch):
    """A run where no check completed is reported as such, not as 100% failed."""
    monkeypatch.setattr(
        "dealprobe.cli.run.run_load_test",
        lambda config, **kwargs: AggregateReport(virtual_users=1, duration_seconds=0.1),
    )
    result = runner.invoke(app, ["run", "--duration", "0.1", "--fail-on-check-rate", "0.05"])
    assert result.exit_code == 1
    assert "no checks ran" in result.output
    assert "100.00% of checks failed" not in result.output

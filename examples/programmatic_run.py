"""Programmatic run: drive a local deal service without the CLI.

Start the deal service on port 8080, then run:

    python examples/programmatic_run.py
"""

from __future__ import annotations

from dealprobe import RunConfig, run_load_test


def main() -> None:
    config = RunConfig(virtual_users=5, duration=10.0, pacing=0.5)
    report = run_load_test(config)

    print(f"iterations: {report.iterations} ({report.aborted} aborted)")
    for stats in report.checks.values():
        print(f"  {stats.name}: {stats.passes}/{stats.total}")
    if report.duplicate_ids:
        print(f"duplicate ids: {len(report.duplicate_ids)}")


if __name__ == "__main__":
    main()

"""Named response checks and the fail-fast gate between workflow steps.

A check turns one HTTP response into a pass/fail ``CheckResult``. The
executor evaluates every check of a step, then passes the batch through
``require_all`` which returns an explicit ``StepOutcome``: ``Ok`` lets the
iteration continue, ``Abort`` ends it. Nothing in this module raises while
grading a response.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from dealprobe._internal.errors import AbortIteration

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from dealprobe.http.client import CallResponse

    Predicate = Callable[[CallResponse], Any]


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one check.

    Attributes:
        name: Check label, e.g. ``"POST single deal → 201"``.
        passed: Whether the predicate held.
        status: Response status code (0 when no response arrived).
        body: Parsed JSON body when the predicate read it, else None.
        error: Predicate or transport error text, if any.
    """

    name: str
    passed: bool
    status: int = 0
    body: Any = None
    error: str | None = None


def _snapshot_body(response: CallResponse, reads_before: int) -> Any:
    # Status-only predicates never touch the body and keep none.
    if response.json_reads == reads_before:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def evaluate(label: str, predicate: Predicate, response: CallResponse) -> CheckResult:
    """Grade ``response`` with ``predicate``.

    A predicate that raises (missing key, malformed JSON, wrong type) is a
    failed check, never a crash. The body is parsed at most once per
    response, however many checks read it.
    """
    reads_before = response.json_reads
    try:
        passed = bool(predicate(response))
        error = None
    except Exception as exc:  # noqa: BLE001
        passed = False
        error = f"{type(exc).__name__}: {exc}"
    return CheckResult(
        name=label,
        passed=passed,
        status=response.status,
        body=_snapshot_body(response, reads_before),
        error=error,
    )


def transport_failure(label: str, exc: BaseException) -> CheckResult:
    """Return the automatic failure for a step whose request never completed."""
    return CheckResult(name=label, passed=False, error=str(exc))


@dataclass(frozen=True)
class Ok:
    """Every check of the step passed."""

    step: str
    results: tuple[CheckResult, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Abort:
    """At least one check of the step failed; the iteration stops here.

    Attributes:
        step: Name of the step whose gate failed.
        check: Label of the first failing check.
        message: Diagnostic naming both.
        results: Every check evaluated for the step.
        severe: True when the health gate failed, i.e. the target looks
            unreachable rather than misbehaving.
    """

    step: str
    check: str
    message: str
    results: tuple[CheckResult, ...] = field(default_factory=tuple)
    severe: bool = False

    def raise_for_abort(self) -> None:
        """Re-express the outcome as an ``AbortIteration`` exception."""
        raise AbortIteration(self.step, self.check, self.message)


StepOutcome = Ok | Abort


def require_all(
    step: str,
    results: Sequence[CheckResult],
    *,
    severe: bool = False,
) -> StepOutcome:
    """Fail-fast gate over the checks of one step.

    Args:
        step: Step name used in the diagnostic.
        results: Checks evaluated for the step, in evaluation order.
        severe: Mark an abort as severe (health step).

    Returns:
        ``Ok`` if all passed, otherwise ``Abort`` naming the first failure.
    """
    batch = tuple(results)
    for result in batch:
        if result.passed:
            continue
        message = f"{step}: check {result.name!r} failed (status={result.status})"
        if result.error:
            message = f"{message}: {result.error}"
        return Abort(
            step=step,
            check=result.name,
            message=message,
            results=batch,
            severe=severe,
        )
    return Ok(step=step, results=batch)

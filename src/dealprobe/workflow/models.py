"""Per-iteration state shared by the executor and the scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dealprobe.workflow.checks import Abort, CheckResult


class IterationState(Enum):
    """Workflow state machine for one iteration.

    NOT_STARTED -> HEALTH -> SINGLE_CREATE -> BULK_CREATE -> LIST_ALL
    -> READ_BY_ID -> COMPLETED, with any step able to move to ABORTED.
    The value of each step state is the step name used in diagnostics.
    """

    NOT_STARTED = "not_started"
    HEALTH = "health"
    SINGLE_CREATE = "single_create"
    BULK_CREATE = "bulk_create"
    LIST_ALL = "list_all"
    READ_BY_ID = "read_by_id"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def terminal(self) -> bool:
        return self in (IterationState.COMPLETED, IterationState.ABORTED)


@dataclass
class VirtualUser:
    """One simulated client, owned by a single scheduler slot.

    Attributes:
        vu_id: 1-based index, unique within the run.
        iteration: Number of iterations started so far.
    """

    vu_id: int
    iteration: int = 0


@dataclass
class IterationOutcome:
    """Everything one workflow pass produced.

    Attributes:
        vu_id: Virtual user that ran the iteration.
        iteration: 1-based iteration number for that user.
        state: Current, and once finished terminal, state.
        checks: Check results in evaluation order.
        abort: The failing gate, if the iteration was aborted.
        deal_id: Id created by the single-create step.
        generated_ids: Every id submitted during the iteration.
        duration_ms: Wall time of the iteration.
    """

    vu_id: int
    iteration: int
    state: IterationState = IterationState.NOT_STARTED
    checks: list[CheckResult] = field(default_factory=list)
    abort: Abort | None = None
    deal_id: str | None = None
    generated_ids: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def completed(self) -> bool:
        return self.state is IterationState.COMPLETED

    @property
    def aborted(self) -> bool:
        return self.state is IterationState.ABORTED

    @property
    def failed_checks(self) -> list[CheckResult]:
        return [c for c in self.checks if not c.passed]

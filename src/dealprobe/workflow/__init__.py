"""Deal workflow: id generation, payloads, checks and the step executor."""

from __future__ import annotations

from dealprobe.workflow.checks import Abort, CheckResult, Ok, StepOutcome, evaluate, require_all
from dealprobe.workflow.deals import Deal, DealTemplate
from dealprobe.workflow.executor import WorkflowExecutor
from dealprobe.workflow.ids import IdentifierGenerator, IdScope, SystemClock
from dealprobe.workflow.models import IterationOutcome, IterationState, VirtualUser

__all__ = [
    "Abort",
    "CheckResult",
    "Deal",
    "DealTemplate",
    "IdScope",
    "IdentifierGenerator",
    "IterationOutcome",
    "IterationState",
    "Ok",
    "StepOutcome",
    "SystemClock",
    "VirtualUser",
    "WorkflowExecutor",
    "evaluate",
    "require_all",
]

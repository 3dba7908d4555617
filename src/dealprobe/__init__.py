"""dealprobe — concurrent workflow load tests for the FX deal API."""

from __future__ import annotations

from dealprobe._internal.config import RunConfig, load_config
from dealprobe.engine.runner import run_load_test
from dealprobe.engine.scheduler import VirtualUserScheduler
from dealprobe.http.client import CallResponse, HttpClient, RequestMetric
from dealprobe.metrics.models import AggregateReport
from dealprobe.workflow.checks import Abort, CheckResult, Ok, evaluate, require_all
from dealprobe.workflow.executor import WorkflowExecutor
from dealprobe.workflow.ids import IdentifierGenerator, IdScope

__version__ = "0.1.0"

__all__ = [
    "Abort",
    "AggregateReport",
    "CallResponse",
    "CheckResult",
    "HttpClient",
    "IdScope",
    "IdentifierGenerator",
    "Ok",
    "RequestMetric",
    "RunConfig",
    "VirtualUserScheduler",
    "WorkflowExecutor",
    "evaluate",
    "load_config",
    "require_all",
    "run_load_test",
]

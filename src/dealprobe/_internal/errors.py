"""Custom exception hierarchy for dealprobe."""

from __future__ import annotations


class DealProbeError(Exception):
    """Base exception for all dealprobe errors.

    All custom exceptions in the harness inherit from this class, making it
    easy to catch any dealprobe-specific error with a single except clause.
    """


class ConfigError(DealProbeError):
    """Raised when run configuration is invalid or missing.

    Examples:
        - An environment variable has a non-numeric value.
        - Virtual user count or duration is out of range.
    """


class EngineError(DealProbeError):
    """Raised when the scheduler fails for a reason outside any iteration."""


class TransportError(DealProbeError):
    """Raised by the HTTP adapter when the target cannot be reached.

    Covers connection refusals, DNS failures and timeouts. Inside the
    workflow it is converted into a failed check for the current step.
    """


class DealError(DealProbeError):
    """Raised when a deal fixture violates the target's payload rules."""


class AbortIteration(DealProbeError):
    """Signals that the current iteration must stop after a failed check.

    Only ever affects one iteration of one virtual user.

    Attributes:
        step: Workflow step whose gate failed.
        check: Label of the first failing check.
    """

    def __init__(self, step: str, check: str, message: str) -> None:
        super().__init__(message)
        self.step = step
        self.check = check

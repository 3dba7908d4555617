"""Run configuration for dealprobe."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

from dealprobe._internal.errors import ConfigError

DEFAULT_BASE_URL = "http://localhost:8080/api/deals"

# Sequential requests in one workflow iteration.
STEPS_PER_ITERATION = 5


@dataclass(frozen=True)
class RunConfig:
    """Immutable configuration handed to the scheduler at construction.

    Attributes:
        virtual_users: Number of concurrent virtual users.
        duration: Run duration in seconds, measured from scheduler start.
        base_url: Deal collection URL; every path is appended to it.
        pacing: Fixed pause in seconds between two iterations of one user.
        request_timeout: Per-request timeout in seconds.
        tick_interval: Seconds between live metric snapshots.
        drain_timeout: Seconds to wait for in-flight iterations after the
            deadline before cancelling them. None waits as long as one
            full iteration can take; see ``drain_bound``.
        id_prefix: Prefix for generated ``dealUniqueId`` values.
    """

    virtual_users: int = 10
    duration: float = 15.0
    base_url: str = DEFAULT_BASE_URL
    pacing: float = 1.0
    request_timeout: float = 30.0
    tick_interval: float = 1.0
    drain_timeout: float | None = None
    id_prefix: str = "K6"

    def validate(self) -> RunConfig:
        """Check value ranges and return ``self``.

        Raises:
            ConfigError: If any value is out of range.
        """
        if self.virtual_users < 1:
            msg = f"virtual_users must be >= 1, got: {self.virtual_users}"
            raise ConfigError(msg)
        if self.duration <= 0:
            msg = f"duration must be positive, got: {self.duration}"
            raise ConfigError(msg)
        if self.pacing < 0:
            msg = f"pacing must be >= 0, got: {self.pacing}"
            raise ConfigError(msg)
        if self.request_timeout <= 0:
            msg = f"request_timeout must be positive, got: {self.request_timeout}"
            raise ConfigError(msg)
        if self.tick_interval <= 0:
            msg = f"tick_interval must be positive, got: {self.tick_interval}"
            raise ConfigError(msg)
        if self.drain_timeout is not None and self.drain_timeout <= 0:
            msg = f"drain_timeout must be positive, got: {self.drain_timeout}"
            raise ConfigError(msg)
        if not self.base_url.startswith(("http://", "https://")):
            msg = f"base_url must be an http(s) URL, got: {self.base_url!r}"
            raise ConfigError(msg)
        if not self.id_prefix:
            msg = "id_prefix must not be empty"
            raise ConfigError(msg)
        return self

    @property
    def drain_bound(self) -> float:
        """Seconds the scheduler waits for in-flight iterations to finish.

        Defaults to the longest a healthy iteration can run: every step
        request hitting its timeout, plus one pacing pause.
        """
        if self.drain_timeout is not None:
            return self.drain_timeout
        return STEPS_PER_ITERATION * self.request_timeout + self.pacing

    def with_overrides(self, **changes: object) -> RunConfig:
        """Return a validated copy with ``None``-valued overrides ignored."""
        applied = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **applied).validate()  # type: ignore[arg-type]


def _read_number(name: str, default: str, cast: type[int] | type[float]) -> int | float:
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        kind = "an integer" if cast is int else "a number"
        msg = f"{name} must be {kind}, got: {raw!r}"
        raise ConfigError(msg) from None


def load_config() -> RunConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        DEALPROBE_VUS: Virtual user count (default: 10).
        DEALPROBE_DURATION: Run duration in seconds (default: 15).
        DEALPROBE_BASE_URL: Deal collection URL.
        DEALPROBE_PACING: Pause between iterations in seconds (default: 1).
        DEALPROBE_TIMEOUT: Request timeout in seconds (default: 30).

    Returns:
        Validated RunConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    return RunConfig(
        virtual_users=int(_read_number("DEALPROBE_VUS", "10", int)),
        duration=float(_read_number("DEALPROBE_DURATION", "15", float)),
        base_url=os.environ.get("DEALPROBE_BASE_URL", DEFAULT_BASE_URL),
        pacing=float(_read_number("DEALPROBE_PACING", "1", float)),
        request_timeout=float(_read_number("DEALPROBE_TIMEOUT", "30", float)),
    ).validate()

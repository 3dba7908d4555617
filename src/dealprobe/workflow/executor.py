"""The five-step deal workflow run by every virtual user."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from dealprobe._internal.errors import TransportError
from dealprobe._internal.logging import get_logger
from dealprobe.workflow.checks import Abort, evaluate, require_all, transport_failure
from dealprobe.workflow.deals import BULK_DEALS, SINGLE_DEAL, validate_templates
from dealprobe.workflow.ids import IdScope
from dealprobe.workflow.models import IterationOutcome, IterationState

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from dealprobe.http.client import CallResponse, HttpClient
    from dealprobe.workflow.checks import CheckResult, StepOutcome
    from dealprobe.workflow.deals import DealTemplate
    from dealprobe.workflow.ids import IdentifierGenerator
    from dealprobe.workflow.models import VirtualUser

logger = get_logger("workflow.executor")


def _status_is(expected: int) -> Callable[[CallResponse], bool]:
    return lambda r: r.status == expected


def _non_empty_list(response: CallResponse) -> bool:
    body = response.json()
    return isinstance(body, list) and len(body) >= 1


def _id_matches(deal_id: str) -> Callable[[CallResponse], bool]:
    return lambda r: r.json()["dealUniqueId"] == deal_id


class WorkflowExecutor:
    """Runs one iteration of health → create → bulk → list → read.

    Steps run strictly in order; each waits for the previous response
    because the final read depends on the id created by the single create.
    Every step's checks go through ``require_all`` and the first ``Abort``
    ends the iteration. Aborts are returned in the outcome, never raised.

    Attributes:
        client: HTTP adapter rooted at the deal collection URL.
        ids: Identifier generator owned by the calling virtual user.
        in_flight: Outcome of the latest iteration, updated while it runs.
    """

    def __init__(
        self,
        client: HttpClient,
        ids: IdentifierGenerator,
        *,
        on_check: Callable[[CheckResult], None] | None = None,
        single: DealTemplate = SINGLE_DEAL,
        bulk: Sequence[DealTemplate] = BULK_DEALS,
    ) -> None:
        """Initialize the executor.

        Args:
            client: Open HTTP client for the target service.
            ids: Identifier generator for this virtual user.
            on_check: Callback invoked with every check result.
            single: Template for the single-create deal.
            bulk: Templates for the bulk-create batch, one per item.

        Raises:
            DealError: If a template would be rejected by the target.
        """
        validate_templates(single, *bulk)
        self.client = client
        self.ids = ids
        self._on_check = on_check
        self.in_flight: IterationOutcome | None = None
        self._single = single
        self._bulk = tuple(bulk)

    async def run_iteration(self, vu: VirtualUser) -> IterationOutcome:
        """Run one full workflow pass for ``vu``.

        Args:
            vu: The virtual user; its iteration counter is advanced.

        Returns:
            The outcome, in state COMPLETED or ABORTED.
        """
        vu.iteration += 1
        outcome = IterationOutcome(vu_id=vu.vu_id, iteration=vu.iteration)
        self.in_flight = outcome
        start = time.monotonic()

        steps = (
            (IterationState.HEALTH, self._health),
            (IterationState.SINGLE_CREATE, self._single_create),
            (IterationState.BULK_CREATE, self._bulk_create),
            (IterationState.LIST_ALL, self._list_all),
            (IterationState.READ_BY_ID, self._read_by_id),
        )

        for state, step in steps:
            outcome.state = state
            result = await step(outcome)
            outcome.checks.extend(result.results)
            if isinstance(result, Abort):
                outcome.state = IterationState.ABORTED
                outcome.abort = result
                self._log_abort(outcome, result)
                break
        else:
            outcome.state = IterationState.COMPLETED

        outcome.duration_ms = (time.monotonic() - start) * 1000
        return outcome

    async def _health(self, outcome: IterationOutcome) -> StepOutcome:
        return await self._gate(
            IterationState.HEALTH,
            self.client.get("/health", name="Health"),
            [("Health Check → 200", _status_is(200))],
            severe=True,
        )

    async def _single_create(self, outcome: IterationOutcome) -> StepOutcome:
        deal_id = self.ids.next(IdScope(outcome.vu_id, "SINGLE"))
        outcome.deal_id = deal_id
        outcome.generated_ids.append(deal_id)
        deal = self._single.build(deal_id)
        return await self._gate(
            IterationState.SINGLE_CREATE,
            self.client.post("", deal.to_json(), name="Create Deal"),
            [("POST single deal → 201", _status_is(201))],
        )

    async def _bulk_create(self, outcome: IterationOutcome) -> StepOutcome:
        batch_ids = self.ids.next_batch(outcome.vu_id, len(self._bulk))
        outcome.generated_ids.extend(batch_ids)
        payload = [t.build(i).to_json() for t, i in zip(self._bulk, batch_ids, strict=True)]
        return await self._gate(
            IterationState.BULK_CREATE,
            self.client.post("/bulk", payload, name="Create Deals (bulk)"),
            [("POST bulk → 201", _status_is(201))],
        )

    async def _list_all(self, outcome: IterationOutcome) -> StepOutcome:
        # Other users write concurrently, so only a lower bound is checkable.
        return await self._gate(
            IterationState.LIST_ALL,
            self.client.get("", name="List Deals"),
            [
                ("GET all deals → 200", _status_is(200)),
                ("GET all deals returns array", _non_empty_list),
            ],
        )

    async def _read_by_id(self, outcome: IterationOutcome) -> StepOutcome:
        deal_id = outcome.deal_id or ""
        return await self._gate(
            IterationState.READ_BY_ID,
            self.client.get(f"/{quote(deal_id, safe='')}", name="Get Deal"),
            [
                ("GET deal by ID → 200", _status_is(200)),
                ("GET deal returns correct ID", _id_matches(deal_id)),
            ],
        )

    async def _gate(
        self,
        state: IterationState,
        call: Awaitable[CallResponse],
        checks: list[tuple[str, Callable[[CallResponse], Any]]],
        *,
        severe: bool = False,
    ) -> StepOutcome:
        """Issue the step's request, grade it and apply the fail-fast gate."""
        try:
            response = await call
        except TransportError as exc:
            results = [transport_failure(f"{state.value} transport", exc)]
        else:
            results = [evaluate(label, predicate, response) for label, predicate in checks]

        if self._on_check is not None:
            for result in results:
                self._on_check(result)
        return require_all(state.value, results, severe=severe)

    def _log_abort(self, outcome: IterationOutcome, abort: Abort) -> None:
        extra = {
            "vu_id": outcome.vu_id,
            "iteration": outcome.iteration,
            "step": abort.step,
            "check": abort.check,
        }
        if abort.severe:
            logger.warning(
                "VU %d iteration %d: target unreachable, %s",
                outcome.vu_id,
                outcome.iteration,
                abort.message,
                extra=extra,
            )
        else:
            logger.info(
                "VU %d iteration %d aborted: %s",
                outcome.vu_id,
                outcome.iteration,
                abort.message,
                extra=extra,
            )

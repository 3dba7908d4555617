"""Shared test fixtures for the dealprobe test suite."""

from __future__ import annotations

import asyncio
import socket
import threading
from collections import Counter
from typing import TYPE_CHECKING, Any

import pytest
from aiohttp import web

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# =============================================================================
# Fake deal service
# =============================================================================

_REQUIRED_FIELDS = (
    "dealUniqueId",
    "fromCurrencyIsoCode",
    "toCurrencyIsoCode",
    "dealTimestamp",
    "dealAmount",
)


class FakeDealService:
    """In-memory stand-in for the deal ingestion API.

    Mirrors the real service's status codes: 201 on create, 409 on a
    duplicate id, 400 on invalid payloads and on unknown ids.

    Attributes:
        deals: Stored deals keyed by ``dealUniqueId``.
        calls: Request count per route ("health", "create", "bulk", "list",
            "get").
        fail_with: Route name -> status to return instead of the real answer.
        raw_body: Route name -> raw text body returned with status 200/201.
        content_types: Content-Type header of every POST received.
    """

    def __init__(self) -> None:
        self.deals: dict[str, dict[str, Any]] = {}
        self.calls: Counter[str] = Counter()
        self.fail_with: dict[str, int] = {}
        self.raw_body: dict[str, str] = {}
        self.content_types: list[str] = []
        self.delay: float = 0.0

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/api/deals/health", self._health)
        app.router.add_post("/api/deals/bulk", self._bulk)
        app.router.add_post("/api/deals", self._create)
        app.router.add_get("/api/deals", self._list)
        app.router.add_get("/api/deals/{deal_id}", self._get)
        return app

    async def _intercept(self, route: str) -> web.Response | None:
        self.calls[route] += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if route in self.fail_with:
            return web.json_response({"error": "injected"}, status=self.fail_with[route])
        if route in self.raw_body:
            status = 201 if route in ("create", "bulk") else 200
            return web.Response(text=self.raw_body[route], status=status)
        return None

    def _validate(self, deal: Any) -> str | None:
        if not isinstance(deal, dict):
            return "deal must be an object"
        for name in _REQUIRED_FIELDS:
            if deal.get(name) in (None, ""):
                return f"{name} is required"
        if deal["fromCurrencyIsoCode"] == deal["toCurrencyIsoCode"]:
            return "From and To currencies must be different"
        if deal["dealUniqueId"] in self.deals:
            return "duplicate"
        return None

    def _store(self, deal: dict[str, Any]) -> web.Response | None:
        problem = self._validate(deal)
        if problem == "duplicate":
            return web.json_response({"error": "Duplicate Deal"}, status=409)
        if problem is not None:
            return web.json_response({"error": problem}, status=400)
        self.deals[deal["dealUniqueId"]] = dict(deal)
        return None

    async def _health(self, request: web.Request) -> web.Response:
        if (early := await self._intercept("health")) is not None:
            return early
        return web.Response(text="FX Deal System is running!")

    async def _create(self, request: web.Request) -> web.Response:
        self.content_types.append(request.headers.get("Content-Type", ""))
        if (early := await self._intercept("create")) is not None:
            return early
        deal = await request.json()
        error = self._store(deal)
        if error is not None:
            return error
        return web.json_response(deal, status=201)

    async def _bulk(self, request: web.Request) -> web.Response:
        self.content_types.append(request.headers.get("Content-Type", ""))
        if (early := await self._intercept("bulk")) is not None:
            return early
        deals = await request.json()
        if not isinstance(deals, list):
            return web.json_response({"error": "expected a list"}, status=400)
        for deal in deals:
            error = self._store(deal)
            if error is not None:
                return error
        return web.json_response(deals, status=201)

    async def _list(self, request: web.Request) -> web.Response:
        if (early := await self._intercept("list")) is not None:
            return early
        return web.json_response(list(self.deals.values()))

    async def _get(self, request: web.Request) -> web.Response:
        if (early := await self._intercept("get")) is not None:
            return early
        deal = self.deals.get(request.match_info["deal_id"])
        if deal is None:
            return web.json_response({"error": "Deal not found"}, status=400)
        return web.json_response(deal)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_service() -> FakeDealService:
    return FakeDealService()


@pytest.fixture
async def deal_service(fake_service: FakeDealService) -> AsyncIterator[str]:
    """Run the fake deal service; yields the deal collection URL."""
    port = _get_free_port()
    runner = web.AppRunner(fake_service.app())
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    yield f"http://127.0.0.1:{port}/api/deals"
    await runner.cleanup()


@pytest.fixture
def unreachable_url() -> str:
    """A deal collection URL nothing listens on."""
    return f"http://127.0.0.1:{_get_free_port()}/api/deals"


@pytest.fixture
def sync_deal_service(fake_service: FakeDealService) -> Iterator[str]:
    """Fake deal service on a background thread, for blocking callers.

    The CLI and ``run_load_test`` own their event loop, so the service
    cannot share it.
    """
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(fake_service.app())
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield f"http://127.0.0.1:{port}/api/deals"

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)

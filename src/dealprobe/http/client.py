"""Instrumented HTTP adapter with auto-timing and metric emission."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import aiohttp

from dealprobe._internal.errors import TransportError

if TYPE_CHECKING:
    from collections.abc import Callable

    from dealprobe._internal.types import Headers


def _noop_callback(metric: RequestMetric) -> None:
    """Default no-op metric callback."""


@dataclass
class RequestMetric:
    """Raw metric emitted for every HTTP request.

    Attributes:
        timestamp: Monotonic timestamp when the request started.
        name: Logical name for metric grouping (e.g., "Create Deal").
        method: HTTP method (GET, POST).
        url: Full request URL.
        status_code: HTTP response status code (0 if the request failed).
        latency_ms: Response time in milliseconds.
        content_length: Response body size in bytes.
        error: Error message if the request failed, None otherwise.
        vu_id: Virtual user that issued the request.
    """

    timestamp: float
    name: str
    method: str
    url: str
    status_code: int
    latency_ms: float
    content_length: int
    error: str | None = None
    vu_id: int = 0


@dataclass(frozen=True)
class CallResponse:
    """Snapshot of one HTTP response, detached from the connection.

    Attributes:
        status: HTTP status code.
        text: Decoded response body.
        elapsed_ms: Round-trip time in milliseconds.
    """

    status: int
    text: str = ""
    elapsed_ms: float = 0.0
    _cache: dict[str, Any] = field(default_factory=dict, init=False, repr=False, compare=False)

    @property
    def json_reads(self) -> int:
        """Number of ``json()`` calls made on this response so far."""
        return self._cache.get("reads", 0)

    def json(self) -> Any:
        """Parse the body as JSON.

        The body is parsed on the first call only; later calls return the
        same object, or raise the same error.

        Raises:
            ValueError: If the body is not valid JSON.
        """
        self._cache["reads"] = self.json_reads + 1
        if "value" not in self._cache and "error" not in self._cache:
            try:
                self._cache["value"] = json.loads(self.text)
            except ValueError as exc:
                self._cache["error"] = exc
        if "error" in self._cache:
            raise self._cache["error"]
        return self._cache["value"]


class HttpClient:
    """Async HTTP adapter wrapping ``aiohttp.ClientSession``.

    Issues exactly one request per call, with no retries. Every request is
    timed and emits a ``RequestMetric`` through ``metric_callback``. The
    body is read eagerly so callers get a plain ``CallResponse``.

    Attributes:
        base_url: Base URL prepended to all request paths.
        headers: Headers applied to every request.
    """

    def __init__(
        self,
        base_url: str,
        headers: Headers | None = None,
        metric_callback: Callable[[RequestMetric], None] | None = None,
        vu_id: int = 0,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            base_url: Base URL prepended to all request paths.
            headers: Default headers applied to every request.
            metric_callback: Callback invoked with a ``RequestMetric``
                after each request. Defaults to a no-op.
            vu_id: Virtual user identifier for metric tagging.
            timeout: Total request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.headers: Headers = dict(headers or {})
        self._metric_callback = metric_callback or _noop_callback
        self._vu_id = vu_id
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpClient:
        """Open the underlying aiohttp session."""
        self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def get(self, path: str, *, name: str | None = None) -> CallResponse:
        """Send a GET request to ``base_url + path``."""
        return await self._request("GET", path, name=name)

    async def post(
        self,
        path: str,
        payload: object,
        *,
        name: str | None = None,
    ) -> CallResponse:
        """Send a POST request with ``payload`` serialized as JSON.

        Args:
            path: URL path appended to base_url.
            payload: JSON-serializable request body.
            name: Logical name for metric grouping. Defaults to the path.

        Returns:
            The response snapshot.
        """
        return await self._request(
            "POST",
            path,
            name=name,
            data=json.dumps(payload),
            headers={"Content-Type": "application/json"},
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        name: str | None = None,
        data: str | None = None,
        headers: Headers | None = None,
    ) -> CallResponse:
        """Send an HTTP request with auto-timing and metric emission.

        Args:
            method: HTTP method (GET, POST).
            path: URL path appended to base_url.
            name: Logical name for metric grouping. Defaults to the path.
            data: Pre-serialized request body.
            headers: Per-request headers merged over the defaults.

        Returns:
            The response snapshot.

        Raises:
            TransportError: If the target cannot be reached or the request
                times out.
            RuntimeError: If the client is used outside of an async context
                manager.
        """
        if self._session is None:
            msg = "HttpClient must be used as an async context manager"
            raise RuntimeError(msg)

        url = f"{self.base_url}{path}"
        metric_name = name or path or "/"
        merged_headers = {**self.headers, **(headers or {})}

        start = time.monotonic()
        status_code = 0
        content_length = 0
        error: str | None = None
        text = ""

        try:
            async with self._session.request(
                method,
                url,
                data=data,
                headers=merged_headers,
            ) as resp:
                status_code = resp.status
                body = await resp.read()
                content_length = len(body)
                text = body.decode(resp.charset or "utf-8", errors="replace")
        except (aiohttp.ClientError, TimeoutError) as exc:
            error = f"{type(exc).__name__}: {exc}"
            msg = f"{method} {url} failed: {error}"
            raise TransportError(msg) from exc
        finally:
            latency_ms = (time.monotonic() - start) * 1000
            self._metric_callback(
                RequestMetric(
                    timestamp=start,
                    name=metric_name,
                    method=method,
                    url=url,
                    status_code=status_code,
                    latency_ms=latency_ms,
                    content_length=content_length,
                    error=error,
                    vu_id=self._vu_id,
                )
            )

        return CallResponse(status=status_code, text=text, elapsed_ms=latency_ms)

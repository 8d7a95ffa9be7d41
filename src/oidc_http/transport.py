"""Per-request dispatch over HTTP/1.1 or HTTP/2 and response collection."""

from __future__ import annotations

import asyncio
import enum
import inspect
import json
import logging
from typing import Any, Awaitable, MutableMapping
from urllib.parse import urlencode

import httpx

from .exceptions import RequestTimeoutError
from .request_options import ResolvedOptions
from .security import build_ssl_context, sanitize_headers

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"
FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"


class ExchangeState(enum.Enum):
    CREATED = "created"
    SENT = "sent"
    RESPONSE_RECEIVED = "response_received"
    TIMED_OUT = "timed_out"
    BODY_COLLECTED = "body_collected"
    COMPLETED = "completed"
    FAILED = "failed"


def encode_body(options: ResolvedOptions) -> tuple[bytes | None, str | None]:
    """Serialize the single body kind of *options* to bytes and a media type."""
    if options.json is not None:
        return json.dumps(options.json, separators=(",", ":")).encode(), JSON_MEDIA_TYPE
    if options.form is not None:
        return urlencode(options.form, doseq=True).encode(), FORM_MEDIA_TYPE
    if options.body is not None:
        body = options.body
        return (body.encode() if isinstance(body, str) else bytes(body)), None
    return None, None


def set_header(headers: MutableMapping[str, str], name: str, value: str) -> None:
    for existing in [k for k in headers if k.lower() == name.lower()]:
        del headers[existing]
    headers[name] = value


def request_method(options: ResolvedOptions) -> str:
    """Method actually sent: HTTP/2 streams carrying a body always POST."""
    if options.http2 and options.has_body:
        return "POST"
    return options.method


async def race_timeout(operation: Awaitable[Any], timeout: float | None) -> Any | None:
    """Await *operation* unless *timeout* seconds pass first.

    Returns ``None`` when the timer wins; the operation is then cancelled and
    awaited so its connection is released before returning.
    """
    task = asyncio.ensure_future(operation)
    if timeout is None:
        return await task
    timer = asyncio.ensure_future(asyncio.sleep(timeout))
    try:
        done, _ = await asyncio.wait({task, timer}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        timer.cancel()
        if not task.done():
            task.cancel()
    if task in done:
        return task.result()
    await asyncio.gather(task, return_exceptions=True)
    return None


class _BorrowedTransport(httpx.AsyncBaseTransport):
    """Caller supplied transport that must outlive the per-request client."""

    def __init__(self, transport: httpx.AsyncBaseTransport) -> None:
        self._transport = transport

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self._transport.handle_async_request(request)


class Exchange:
    """One request/response exchange on its own, never reused, connection."""

    def __init__(self, options: ResolvedOptions) -> None:
        self.options = options
        self.state = ExchangeState.CREATED
        self._client: httpx.AsyncClient | None = None
        self._response: httpx.Response | None = None

    @property
    def closed(self) -> bool:
        return self._client is None or self._client.is_closed

    def _open_client(self) -> httpx.AsyncClient:
        options = self.options
        kwargs: dict[str, Any] = {
            "http1": not options.http2,
            "http2": options.http2,
            "timeout": httpx.Timeout(options.timeout),
            "follow_redirects": False,
            "trust_env": False,
        }
        if options.url.scheme == "https":
            kwargs["verify"] = build_ssl_context(**options.tls)
        if options.agent is not None:
            kwargs["transport"] = _BorrowedTransport(options.agent)
        return httpx.AsyncClient(**kwargs)

    def _build_request(self, client: httpx.AsyncClient) -> httpx.Request:
        options = self.options
        headers = dict(options.headers)
        content, content_type = encode_body(options)
        if content_type is not None:
            set_header(headers, "content-type", content_type)
        if content is not None:
            set_header(headers, "content-length", str(len(content)))
        return client.build_request(
            request_method(options),
            options.url,
            headers=headers,
            content=content,
        )

    async def _apply_lookup(self, request: httpx.Request) -> None:
        """Point *request* at the looked-up address, keeping Host and SNI."""
        url = self.options.url
        address = self.options.lookup(url.host)  # type: ignore[misc]
        if inspect.isawaitable(address):
            address = await address
        if not address or address == url.host:
            return
        request.headers["host"] = url.netloc.decode("ascii")
        if url.scheme == "https":
            request.extensions["sni_hostname"] = url.host
        request.url = url.copy_with(host=address)

    async def _dispatch(self, request: httpx.Request) -> httpx.Response:
        if self.options.lookup is not None:
            await self._apply_lookup(request)
        return await self._client.send(request, stream=True)

    async def send(self) -> httpx.Response:
        """Send the request and wait for the response head or the timeout.

        The host lookup, if any, runs inside the timed operation.
        """
        options = self.options
        self._client = self._open_client()
        request = self._build_request(self._client)
        logger.debug(
            "%s %s via %s headers=%s",
            request.method,
            options.url,
            "HTTP/2" if options.http2 else "HTTP/1.1",
            sanitize_headers(request.headers),
        )
        self.state = ExchangeState.SENT
        response = await race_timeout(self._dispatch(request), options.timeout)
        if response is None:
            self.state = ExchangeState.TIMED_OUT
            logger.debug("%s %s timed out after %ss", request.method, options.url, options.timeout)
            await self.aclose()
            timeout_ms = round((options.timeout or 0) * 1000)
            raise RequestTimeoutError(
                f"outgoing request timed out after {timeout_ms}ms", timeout=options.timeout
            )
        self._response = response
        self.state = ExchangeState.RESPONSE_RECEIVED
        logger.debug("%s %s -> %s %s", request.method, options.url, response.status_code, response.http_version)
        return response

    async def read(self) -> list[bytes]:
        """Drain the response body, then release the stream."""
        if self._response is None:
            raise RuntimeError("read() called before a response arrived")
        parts = [chunk async for chunk in self._response.aiter_bytes() if chunk]
        self.state = ExchangeState.BODY_COLLECTED
        await self._response.aclose()
        return parts

    async def aclose(self) -> None:
        """Tear down stream and connection and settle the final state."""
        if self._response is not None:
            await self._response.aclose()
        if self._client is not None:
            await self._client.aclose()
        if self.state is ExchangeState.BODY_COLLECTED:
            self.state = ExchangeState.COMPLETED
        elif self.state is not ExchangeState.COMPLETED:
            self.state = ExchangeState.FAILED

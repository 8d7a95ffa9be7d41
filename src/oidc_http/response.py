"""Response value with a lazily decoded, memoized body."""

from __future__ import annotations

import json
from typing import Any, Iterable

import httpx

from .exceptions import ResponseDecodeError


class Response:
    """Status, headers and body of one completed exchange.

    ``body`` is decoded on first access according to ``response_type`` and the
    decoded value is kept, so repeated reads return the same object. A failed
    JSON decode is not kept; reading ``body`` again retries the decode.
    """

    def __init__(
        self,
        status_code: int,
        headers: httpx.Headers,
        *,
        url: httpx.URL | None = None,
        http_version: str = "HTTP/1.1",
        response_type: str = "buffer",
    ) -> None:
        self.status_code = status_code
        self.headers = headers
        self.url = url
        self.http_version = http_version
        self.response_type = response_type
        self._parts: list[bytes] = []
        self._decoded = False
        self._body: Any = None

    @classmethod
    def from_httpx(
        cls,
        response: httpx.Response,
        *,
        url: httpx.URL | None = None,
        response_type: str = "buffer",
    ) -> "Response":
        return cls(
            response.status_code,
            response.headers,
            url=url or response.request.url,
            http_version=response.http_version,
            response_type=response_type,
        )

    def __repr__(self) -> str:
        return f"<Response [{self.status_code} {self.http_version}]>"

    def attach_body(self, parts: Iterable[bytes]) -> None:
        self._parts = list(parts)
        self._decoded = False
        self._body = None

    @property
    def content(self) -> bytes:
        return b"".join(self._parts)

    @property
    def decoded(self) -> bool:
        return self._decoded

    @property
    def body(self) -> Any:
        if self._decoded:
            return self._body
        if not self._parts:
            return None
        value: Any = self.content
        if self.response_type == "json":
            try:
                value = json.loads(value)
            except ValueError as exc:
                raise ResponseDecodeError(
                    f"failed to decode JSON response body: {exc}", response=self, cause=exc
                ) from exc
        self._body = value
        self._decoded = True
        return value

"""Exceptions raised by the request engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .response import Response


class HttpRequestError(Exception):
    """Base exception for all request engine failures.

    ``response`` is the response that was in flight when the failure
    happened, or ``None`` when no response had arrived yet.
    """

    def __init__(
        self,
        message: str,
        *,
        response: Response | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.response = response
        self.cause = cause

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        if self.response is None:
            return str(self.args[0])
        return f"{self.response.status_code}: {self.args[0]}"


class RequestValidationError(HttpRequestError):
    """Raised when request options are rejected before any socket activity."""


class RequestTimeoutError(HttpRequestError):
    """Raised when the response does not arrive within the configured timeout."""

    def __init__(
        self,
        message: str,
        *,
        timeout: float | None = None,
        response: Response | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, response=response, cause=cause)
        self.timeout = timeout


class RequestTransportError(HttpRequestError):
    """Raised for connection and stream level failures."""


class ResponseDecodeError(HttpRequestError):
    """Raised when the response body cannot be decoded in the requested mode."""

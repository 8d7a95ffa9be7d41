"""HTTP request engine for OAuth/OIDC clients with DPoP nonce tracking."""

from .client import DPOP_HEADER, DPOP_NONCE_HEADER, HttpRequester, request
from .defaults import DEFAULT_OPTIONS, VERSION, DefaultOptions, HttpOptions, get_defaults, set_defaults
from .exceptions import (
    HttpRequestError,
    RequestTimeoutError,
    RequestTransportError,
    RequestValidationError,
    ResponseDecodeError,
)
from .nonce import NONCE_CACHE, NonceCache, endpoint_key
from .request_options import RequestOptions, ResolvedOptions
from .resolver import resolve_request_options
from .response import Response
from .transport import Exchange, ExchangeState

__version__ = VERSION

__all__ = [
    "DEFAULT_OPTIONS",
    "DPOP_HEADER",
    "DPOP_NONCE_HEADER",
    "DefaultOptions",
    "Exchange",
    "ExchangeState",
    "HttpOptions",
    "HttpRequestError",
    "HttpRequester",
    "NONCE_CACHE",
    "NonceCache",
    "RequestOptions",
    "RequestTimeoutError",
    "RequestTransportError",
    "RequestValidationError",
    "ResolvedOptions",
    "Response",
    "ResponseDecodeError",
    "endpoint_key",
    "get_defaults",
    "request",
    "resolve_request_options",
    "set_defaults",
]

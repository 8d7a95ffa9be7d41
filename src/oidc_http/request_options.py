"""Declarative description of one outgoing request."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Union

import httpx

from .security import TLSMaterial

ResponseType = str
RESPONSE_TYPES = frozenset({"buffer", "json"})

Lookup = Callable[[str], Union[str, Awaitable[str]]]


@dataclass(frozen=True)
class RequestOptions:
    url: str | httpx.URL
    method: str = "GET"
    headers: Mapping[str, str | None] | None = None
    json: Any | None = None
    form: Mapping[str, Any] | None = None
    body: bytes | str | None = None
    search_params: Mapping[str, Any] | None = None
    timeout: float | None = None
    http2: bool | None = None
    agent: httpx.AsyncBaseTransport | None = None
    lookup: Lookup | None = None
    ca: TLSMaterial | None = None
    cert: TLSMaterial | None = None
    key: TLSMaterial | None = None
    pfx: TLSMaterial | None = None
    crl: TLSMaterial | None = None
    passphrase: str | bytes | None = None
    response_type: ResponseType | None = None


@dataclass(frozen=True)
class ResolvedOptions:
    """Final option set handed to the transport dispatcher."""

    url: httpx.URL
    method: str
    headers: dict[str, str] = field(default_factory=dict)
    json: Any | None = None
    form: Mapping[str, Any] | None = None
    body: bytes | str | None = None
    timeout: float | None = None
    http2: bool = False
    agent: httpx.AsyncBaseTransport | None = None
    lookup: Lookup | None = None
    ca: TLSMaterial | None = None
    cert: TLSMaterial | None = None
    key: TLSMaterial | None = None
    pfx: TLSMaterial | None = None
    crl: TLSMaterial | None = None
    passphrase: str | bytes | None = None
    response_type: ResponseType = "buffer"

    @property
    def has_body(self) -> bool:
        return self.json is not None or self.form is not None or self.body is not None

    @property
    def tls(self) -> dict[str, Any]:
        return {
            "ca": self.ca,
            "cert": self.cert,
            "key": self.key,
            "pfx": self.pfx,
            "crl": self.crl,
            "passphrase": self.passphrase,
        }

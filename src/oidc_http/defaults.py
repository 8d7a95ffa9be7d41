"""Process-wide default HTTP options and the allow-listed option model."""

from __future__ import annotations

from typing import Any, Callable, Mapping

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import RequestValidationError
from .security import TLSMaterial

VERSION = "0.1.0"
USER_AGENT = f"oidc-http/{VERSION}"
DEFAULT_TIMEOUT = 3.5


class HttpOptions(BaseModel):
    """Options that defaults and the customization hook are allowed to set."""

    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)

    agent: httpx.AsyncBaseTransport | None = None
    ca: TLSMaterial | None = None
    cert: TLSMaterial | None = None
    crl: TLSMaterial | None = None
    headers: dict[str, str | None] | None = None
    key: TLSMaterial | None = None
    lookup: Callable[..., Any] | None = None
    passphrase: str | bytes | None = None
    pfx: TLSMaterial | None = None
    timeout: float | None = Field(default=None, gt=0)
    http2: bool | None = None


ALLOWED_OPTIONS = frozenset(HttpOptions.model_fields)


def pick_allowed(options: Mapping[str, Any] | None) -> dict[str, Any]:
    """Validate *options* and keep only the allow-listed keys that were given."""
    if not options:
        return {}
    try:
        model = HttpOptions.model_validate(dict(options))
    except ValidationError as exc:
        raise RequestValidationError(f"invalid HTTP options: {exc}", cause=exc) from exc
    return {name: getattr(model, name) for name in model.model_fields_set}


def merge_headers(*layers: Mapping[str, str | None] | None) -> dict[str, str | None]:
    """Merge header mappings, later layers winning case-insensitively.

    ``None`` values survive the merge so that a higher layer can remove a
    header set by a lower one; callers strip them before sending.
    """
    merged: dict[str, str | None] = {}
    for layer in layers:
        if not layer:
            continue
        for name, value in layer.items():
            for existing in [k for k in merged if k.lower() == name.lower()]:
                del merged[existing]
            merged[name] = value
    return merged


def merge_options(*layers: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge option mappings, later layers winning; ``None`` never overrides."""
    merged: dict[str, Any] = {}
    for layer in layers:
        if not layer:
            continue
        for name, value in layer.items():
            if name == "headers":
                merged["headers"] = merge_headers(merged.get("headers"), value)
            elif value is not None:
                merged[name] = value
    return merged


class DefaultOptions:
    """Owner of the process-wide default options.

    Updated only through :meth:`update`. Resolution reads a snapshot without
    awaiting, so this is safe under a single event loop but not against
    mutation from other threads while requests are being resolved.
    """

    def __init__(self, **options: Any) -> None:
        self._options: dict[str, Any] = {}
        self.update(options)

    def update(self, options: Mapping[str, Any]) -> None:
        self._options = merge_options(self._options, pick_allowed(options))

    def snapshot(self) -> dict[str, Any]:
        snapshot = dict(self._options)
        if "headers" in snapshot:
            snapshot["headers"] = dict(snapshot["headers"])
        return snapshot


DEFAULT_OPTIONS = DefaultOptions(headers={"User-Agent": USER_AGENT}, timeout=DEFAULT_TIMEOUT)


def set_defaults(**options: Any) -> None:
    """Merge allow-listed *options* into the process-wide defaults."""
    DEFAULT_OPTIONS.update(options)


def get_defaults() -> dict[str, Any]:
    return DEFAULT_OPTIONS.snapshot()

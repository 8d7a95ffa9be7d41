"""Turn call options into the final option set for one request."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

import httpx

from .defaults import ALLOWED_OPTIONS, merge_options, pick_allowed
from .exceptions import RequestValidationError
from .request_options import RESPONSE_TYPES, RequestOptions, ResolvedOptions
from .security import validate_request_url

logger = logging.getLogger(__name__)

OptionsHook = Callable[[httpx.URL, Mapping[str, Any]], "Mapping[str, Any] | None"]

BODY_KINDS = ("json", "form", "body")


def merge_search_params(url: httpx.URL, params: Mapping[str, Any] | None) -> httpx.URL:
    """Delete-then-set every key of *params* on the query of *url*.

    Same-named parameters are replaced and moved to the end, the rest keep
    their order.
    """
    if not params:
        return url
    items = list(url.params.multi_items())
    for key, value in params.items():
        name = str(key)
        items = [(k, v) for k, v in items if k != name]
        items.append((name, value))
    try:
        return url.copy_with(params=items)
    except TypeError as exc:
        raise RequestValidationError(f"unsupported search parameter value: {exc}", cause=exc) from exc


def _require_mtls_material(options: Mapping[str, Any]) -> None:
    if options.get("pfx"):
        return
    if options.get("key") and options.get("cert"):
        return
    raise RequestValidationError("mutual-TLS certificate and key not set")


def resolve_request_options(
    options: RequestOptions,
    *,
    defaults: Mapping[str, Any],
    hook: OptionsHook | None = None,
    mtls: bool = False,
) -> ResolvedOptions:
    """Validate *options* and merge them over *defaults* and the hook result.

    Precedence, lowest first: *defaults*, the hook result, *options*. Never
    awaits, so the defaults snapshot cannot change underneath it.
    """
    url = validate_request_url(options.url)

    response_type = options.response_type or "buffer"
    if response_type not in RESPONSE_TYPES:
        raise RequestValidationError("unsupported response_type request option")

    body_kinds = [name for name in BODY_KINDS if getattr(options, name) is not None]
    if len(body_kinds) > 1:
        raise RequestValidationError(f"only one of json, form or body can be sent, got {', '.join(body_kinds)}")

    call = pick_allowed({name: getattr(options, name) for name in ALLOWED_OPTIONS})
    hooked: dict[str, Any] = {}
    if hook is not None:
        hooked = pick_allowed(hook(url, merge_options(defaults, call)))
        if hooked:
            logger.debug("options hook for %s set %s", url.host, sorted(hooked))
    merged = merge_options(defaults, hooked, call)

    if mtls:
        _require_mtls_material(merged)

    headers = {name: value for name, value in (merged.get("headers") or {}).items() if value is not None}

    return ResolvedOptions(
        url=merge_search_params(url, options.search_params),
        method=options.method.upper(),
        headers=headers,
        json=options.json,
        form=options.form,
        body=options.body,
        timeout=merged.get("timeout"),
        http2=bool(merged.get("http2")),
        agent=merged.get("agent"),
        lookup=merged.get("lookup"),
        ca=merged.get("ca"),
        cert=merged.get("cert"),
        key=merged.get("key"),
        pfx=merged.get("pfx"),
        crl=merged.get("crl"),
        passphrase=merged.get("passphrase"),
        response_type=response_type,
    )

"""Request engine: resolve, prove, dispatch, collect, complete."""

from __future__ import annotations

import dataclasses
import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping, Union

import httpx

from .defaults import DEFAULT_OPTIONS, DefaultOptions
from .exceptions import HttpRequestError, RequestTimeoutError, RequestTransportError
from .nonce import NONCE_CACHE, NonceCache, endpoint_key
from .request_options import RequestOptions, ResolvedOptions
from .resolver import OptionsHook, resolve_request_options
from .response import Response
from .transport import Exchange, request_method

logger = logging.getLogger(__name__)

DPOP_HEADER = "DPoP"
DPOP_NONCE_HEADER = "dpop-nonce"

DPoPProof = Callable[[Mapping[str, Any], Any, Union[str, None]], Union[str, Awaitable[str]]]


class HttpRequester:
    """Sends requests on behalf of an OAuth/OIDC client.

    ``dpop_proof`` is called as ``dpop_proof(payload, key, access_token)``
    with ``payload = {"htu": ..., "htm": ..., "nonce": ...}`` and returns the
    proof JWT (or an awaitable of it). Without it, DPoP key material passed to
    :meth:`request` is ignored.

    ``options_hook`` is called as ``options_hook(url, options)`` and may
    return overrides for the allow-listed HTTP options.
    """

    def __init__(
        self,
        *,
        dpop_proof: DPoPProof | None = None,
        options_hook: OptionsHook | None = None,
        nonce_cache: NonceCache | None = None,
        defaults: DefaultOptions | None = None,
    ) -> None:
        self.dpop_proof = dpop_proof
        self.options_hook = options_hook
        self.nonce_cache = nonce_cache if nonce_cache is not None else NONCE_CACHE
        self.defaults = defaults if defaults is not None else DEFAULT_OPTIONS

    async def _with_proof(
        self, options: ResolvedOptions, nonce_key: str, key: Any, access_token: str | None
    ) -> ResolvedOptions:
        payload: dict[str, Any] = {"htu": nonce_key, "htm": request_method(options)}
        nonce = self.nonce_cache.get(nonce_key)
        if nonce is not None:
            payload["nonce"] = nonce
        proof = self.dpop_proof(payload, key, access_token)
        if inspect.isawaitable(proof):
            proof = await proof
        headers = {name: value for name, value in options.headers.items() if name.lower() != "dpop"}
        headers[DPOP_HEADER] = proof
        logger.debug("attached DPoP proof for %s %s, nonce %s", payload["htm"], nonce_key, "present" if nonce else "absent")
        return dataclasses.replace(options, headers=headers)

    def _complete(self, nonce_key: str, response: Response | None) -> None:
        if response is None:
            return
        self.nonce_cache.remember(nonce_key, response.headers.get(DPOP_NONCE_HEADER))

    async def request(
        self,
        options: RequestOptions,
        *,
        access_token: str | None = None,
        mtls: bool = False,
        dpop: Any | None = None,
    ) -> Response:
        resolved = resolve_request_options(
            options,
            defaults=self.defaults.snapshot(),
            hook=self.options_hook,
            mtls=mtls,
        )
        nonce_key = endpoint_key(resolved.url)
        if dpop is not None and self.dpop_proof is not None:
            resolved = await self._with_proof(resolved, nonce_key, dpop, access_token)

        exchange = Exchange(resolved)
        response: Response | None = None
        try:
            raw = await exchange.send()
            response = Response.from_httpx(raw, url=resolved.url, response_type=resolved.response_type)
            response.attach_body(await exchange.read())
            return response
        except HttpRequestError as exc:
            if exc.response is None:
                exc.response = response
            raise
        except httpx.TimeoutException as exc:
            timeout_ms = round((resolved.timeout or 0) * 1000)
            raise RequestTimeoutError(
                f"outgoing request timed out after {timeout_ms}ms",
                timeout=resolved.timeout,
                response=response,
                cause=exc,
            ) from exc
        except httpx.HTTPError as exc:
            raise RequestTransportError(
                f"{type(exc).__name__}: {exc}", response=response, cause=exc
            ) from exc
        except Exception as exc:
            if getattr(exc, "response", None) is None:
                try:
                    exc.response = response  # type: ignore[attr-defined]
                except AttributeError:
                    pass
            raise
        finally:
            await exchange.aclose()
            self._complete(nonce_key, response)


async def request(
    options: RequestOptions,
    *,
    dpop_proof: DPoPProof | None = None,
    options_hook: OptionsHook | None = None,
    access_token: str | None = None,
    mtls: bool = False,
    dpop: Any | None = None,
) -> Response:
    """Send *options* using the process-wide nonce cache and defaults."""
    requester = HttpRequester(dpop_proof=dpop_proof, options_hook=options_hook)
    return await requester.request(options, access_token=access_token, mtls=mtls, dpop=dpop)

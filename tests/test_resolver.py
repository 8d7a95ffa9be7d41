from __future__ import annotations

from typing import Any, Mapping

import httpx
import pytest

from oidc_http.exceptions import RequestValidationError
from oidc_http.request_options import RequestOptions
from oidc_http.resolver import merge_search_params, resolve_request_options

DEFAULTS = {"headers": {"User-Agent": "oidc-http/test", "Accept": "application/json"}, "timeout": 3.5}


@pytest.mark.parametrize(
    "url",
    ["/token", "op.example/token", "ftp://op.example/file", "mailto:someone@example.com", "http://", None],
)
def test_rejects_non_absolute_or_non_http_urls(url: object) -> None:
    with pytest.raises(RequestValidationError, match="only valid absolute URLs"):
        resolve_request_options(RequestOptions(url=url), defaults=DEFAULTS)  # type: ignore[arg-type]


def test_rejects_unsupported_response_type() -> None:
    with pytest.raises(RequestValidationError, match="response_type"):
        resolve_request_options(
            RequestOptions(url="https://op.example/jwks", response_type="text"),
            defaults=DEFAULTS,
        )


def test_rejects_more_than_one_body_kind() -> None:
    with pytest.raises(RequestValidationError, match="only one of"):
        resolve_request_options(
            RequestOptions(url="https://op.example/token", json={"a": 1}, form={"b": "2"}),
            defaults=DEFAULTS,
        )


def test_mtls_requires_certificate_and_key() -> None:
    with pytest.raises(RequestValidationError, match="mutual-TLS"):
        resolve_request_options(
            RequestOptions(url="https://op.example/token", cert="client.pem"),
            defaults=DEFAULTS,
            mtls=True,
        )


@pytest.mark.parametrize(
    "material",
    [{"pfx": b"bundle"}, {"cert": "client.pem", "key": "client.key"}],
)
def test_mtls_accepts_pfx_or_cert_key_pair(material: dict[str, Any]) -> None:
    resolved = resolve_request_options(
        RequestOptions(url="https://op.example/token", **material),
        defaults=DEFAULTS,
        mtls=True,
    )
    assert resolved.url.host == "op.example"


def test_mtls_material_can_come_from_defaults() -> None:
    resolved = resolve_request_options(
        RequestOptions(url="https://op.example/token"),
        defaults={**DEFAULTS, "cert": "client.pem", "key": "client.key"},
        mtls=True,
    )
    assert resolved.cert == "client.pem"
    assert resolved.key == "client.key"


def test_call_options_override_defaults_and_drop_none_headers() -> None:
    resolved = resolve_request_options(
        RequestOptions(
            url="https://op.example/userinfo",
            method="post",
            headers={"accept": None, "X-Trace": "1", "X-Unset": None},
            timeout=10,
        ),
        defaults=DEFAULTS,
    )

    assert resolved.method == "POST"
    assert resolved.timeout == 10
    assert resolved.headers == {"User-Agent": "oidc-http/test", "X-Trace": "1"}
    assert resolved.response_type == "buffer"
    assert resolved.http2 is False


def test_hook_sees_pre_merged_options_and_only_sets_allowed_fields() -> None:
    seen: dict[str, Any] = {}

    def hook(url: httpx.URL, options: Mapping[str, Any]) -> Mapping[str, Any]:
        seen["url"] = url
        seen["options"] = options
        return {
            "headers": {"X-Hook": "yes", "X-Trace": "hook"},
            "timeout": 9,
            "http2": True,
            "method": "DELETE",
            "url": "https://elsewhere.example/",
        }

    resolved = resolve_request_options(
        RequestOptions(url="https://op.example/token", headers={"X-Trace": "call"}, timeout=2),
        defaults=DEFAULTS,
        hook=hook,
    )

    assert seen["url"] == httpx.URL("https://op.example/token")
    assert seen["options"]["headers"]["User-Agent"] == "oidc-http/test"
    assert seen["options"]["timeout"] == 2
    assert resolved.url == httpx.URL("https://op.example/token")
    assert resolved.method == "GET"
    assert resolved.timeout == 2
    assert resolved.http2 is True
    assert resolved.headers["X-Hook"] == "yes"
    assert resolved.headers["X-Trace"] == "call"


def test_hook_result_is_validated() -> None:
    with pytest.raises(RequestValidationError, match="invalid HTTP options"):
        resolve_request_options(
            RequestOptions(url="https://op.example/token"),
            defaults=DEFAULTS,
            hook=lambda url, options: {"timeout": -1},
        )


def test_hook_returning_none_is_ignored() -> None:
    resolved = resolve_request_options(
        RequestOptions(url="https://op.example/token"),
        defaults=DEFAULTS,
        hook=lambda url, options: None,
    )
    assert resolved.timeout == 3.5


def test_search_params_replace_same_named_parameters() -> None:
    url = merge_search_params(httpx.URL("https://op.example/auth?a=1&b=2&a=3"), {"a": "x"})
    assert str(url) == "https://op.example/auth?b=2&a=x"


def test_search_params_preserve_untouched_order() -> None:
    url = merge_search_params(httpx.URL("https://op.example/auth?z=1&a=2"), {"m": 3})
    assert str(url) == "https://op.example/auth?z=1&a=2&m=3"


def test_search_params_are_merged_into_resolved_url() -> None:
    resolved = resolve_request_options(
        RequestOptions(
            url="https://op.example/auth?response_type=code",
            search_params={"client_id": "abc", "response_type": "id_token"},
        ),
        defaults=DEFAULTS,
    )
    assert resolved.url.params.multi_items() == [("client_id", "abc"), ("response_type", "id_token")]


def test_search_params_reject_unsupported_values() -> None:
    with pytest.raises(RequestValidationError, match="search parameter") as info:
        resolve_request_options(
            RequestOptions(url="https://op.example/auth", search_params={"claims": object()}),
            defaults=DEFAULTS,
        )
    assert isinstance(info.value.cause, TypeError)

"""Security helpers: URL checks, nonce token validation, TLS material and log redaction."""

from __future__ import annotations

import os
import re
import ssl
import tempfile
from pathlib import Path
from typing import Mapping, Union

import httpx
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    pkcs12,
)

from .exceptions import RequestValidationError

TLSMaterial = Union[str, bytes, Path]

SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "dpop",
    "proxy-authorization",
}

# RFC 6749 NQCHAR: printable ASCII except space, double quote and backslash.
_NQCHAR = re.compile(r"^[\x21\x23-\x5B\x5D-\x7E]+$")

_PEM_MARKER = "-----BEGIN"


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return headers with sensitive values redacted for logging."""
    redacted: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted


def validate_request_url(url: object) -> httpx.URL:
    """Parse *url* and require an absolute http(s) URL."""
    try:
        parsed = httpx.URL(url)  # type: ignore[arg-type]
    except (httpx.InvalidURL, TypeError, ValueError) as exc:
        raise RequestValidationError("only valid absolute URLs can be requested", cause=exc) from exc
    if parsed.scheme not in {"http", "https"} or not parsed.host:
        raise RequestValidationError("only valid absolute URLs can be requested")
    return parsed


def is_valid_nonce(value: str) -> bool:
    """Whether *value* is safe to echo back as a DPoP nonce."""
    return bool(_NQCHAR.match(value))


def _is_pem(value: TLSMaterial) -> bool:
    if isinstance(value, bytes):
        return _PEM_MARKER.encode() in value
    if isinstance(value, str):
        return _PEM_MARKER in value
    return False


def _materialize(directory: str, name: str, value: TLSMaterial) -> str:
    """Return a file path holding *value*, writing PEM content to *directory*."""
    if not _is_pem(value):
        return os.fspath(value)
    path = os.path.join(directory, name)
    data = value if isinstance(value, bytes) else str(value).encode()
    with open(path, "wb") as handle:
        handle.write(data)
    return path


def _password(passphrase: str | bytes | None) -> bytes | None:
    if passphrase is None:
        return None
    return passphrase.encode() if isinstance(passphrase, str) else passphrase


def _load_pfx(
    context: ssl.SSLContext, directory: str, pfx: TLSMaterial, passphrase: str | bytes | None
) -> None:
    data = pfx if isinstance(pfx, bytes) else Path(pfx).read_bytes()
    private_key, certificate, additional = pkcs12.load_key_and_certificates(data, _password(passphrase))
    if private_key is None or certificate is None:
        raise ValueError("PKCS#12 bundle must contain a private key and a certificate")
    chain = certificate.public_bytes(Encoding.PEM)
    for extra in additional or []:
        chain += extra.public_bytes(Encoding.PEM)
    key_pem = private_key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption())
    cert_path = _materialize(directory, "pfx-cert.pem", chain)
    key_path = _materialize(directory, "pfx-key.pem", key_pem)
    context.load_cert_chain(cert_path, key_path)


def build_ssl_context(
    *,
    ca: TLSMaterial | None = None,
    cert: TLSMaterial | None = None,
    key: TLSMaterial | None = None,
    pfx: TLSMaterial | None = None,
    crl: TLSMaterial | None = None,
    passphrase: str | bytes | None = None,
) -> ssl.SSLContext:
    """Build a client ``SSLContext`` from PEM text, file paths or a PKCS#12 bundle.

    ``ca`` replaces nothing: it is added to the system trust store.
    ``crl`` turns on revocation checks for the peer's leaf certificate.
    ``pfx`` takes precedence over ``cert``/``key``.
    """
    context = ssl.create_default_context()
    if ca is None and cert is None and key is None and pfx is None and crl is None:
        return context
    try:
        with tempfile.TemporaryDirectory(prefix="oidc-http-") as directory:
            if ca is not None:
                if _is_pem(ca):
                    cadata = ca.decode() if isinstance(ca, bytes) else str(ca)
                    context.load_verify_locations(cadata=cadata)
                else:
                    context.load_verify_locations(cafile=os.fspath(ca))
            if crl is not None:
                context.load_verify_locations(cafile=_materialize(directory, "crl.pem", crl))
                context.verify_flags |= ssl.VERIFY_CRL_CHECK_LEAF
            if pfx is not None:
                _load_pfx(context, directory, pfx, passphrase)
            elif cert is not None:
                context.load_cert_chain(
                    _materialize(directory, "cert.pem", cert),
                    _materialize(directory, "key.pem", key) if key is not None else None,
                    password=passphrase,
                )
    except (OSError, ValueError) as exc:
        raise RequestValidationError("unable to load TLS material", cause=exc) from exc
    return context

from __future__ import annotations

import datetime
import ssl
from pathlib import Path

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from oidc_http.exceptions import RequestValidationError
from oidc_http.security import (
    build_ssl_context,
    is_valid_nonce,
    sanitize_headers,
    validate_request_url,
)


def test_sanitize_headers_redacts_credentials() -> None:
    headers = {"Authorization": "DPoP at", "DPoP": "eyJ...", "Accept": "application/json"}
    assert sanitize_headers(headers) == {
        "Authorization": "[REDACTED]",
        "DPoP": "[REDACTED]",
        "Accept": "application/json",
    }


def test_validate_request_url_returns_parsed_url() -> None:
    url = validate_request_url("https://op.example/.well-known/openid-configuration")
    assert isinstance(url, httpx.URL)
    assert url.host == "op.example"


@pytest.mark.parametrize("value", ["abc123", "A-._~+/=", "!#$%&'()*"])
def test_is_valid_nonce_accepts_token_characters(value: str) -> None:
    assert is_valid_nonce(value)


@pytest.mark.parametrize("value", ["", "a b", 'a"b', "a\\b", "a\nb", "café"])
def test_is_valid_nonce_rejects_separators_and_controls(value: str) -> None:
    assert not is_valid_nonce(value)


def test_build_ssl_context_without_material_uses_system_defaults() -> None:
    context = build_ssl_context()
    assert isinstance(context, ssl.SSLContext)
    assert context.verify_mode == ssl.CERT_REQUIRED


def test_build_ssl_context_reports_missing_files(tmp_path: Path) -> None:
    with pytest.raises(RequestValidationError, match="TLS material") as info:
        build_ssl_context(cert=tmp_path / "missing.pem", key=tmp_path / "missing.key")
    assert isinstance(info.value.cause, OSError)


def test_build_ssl_context_rejects_garbage_ca() -> None:
    with pytest.raises(RequestValidationError, match="TLS material"):
        build_ssl_context(ca="-----BEGIN CERTIFICATE-----\nnot base64\n-----END CERTIFICATE-----\n")


def test_build_ssl_context_rejects_garbage_pfx() -> None:
    with pytest.raises(RequestValidationError, match="TLS material") as info:
        build_ssl_context(pfx=b"definitely not pkcs12", passphrase="secret")
    assert isinstance(info.value.cause, ValueError)


@pytest.fixture(scope="module")
def client_identity() -> tuple[rsa.RSAPrivateKey, x509.Certificate, x509.CertificateRevocationList]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "oidc-http test client")])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    crl = (
        x509.CertificateRevocationListBuilder()
        .issuer_name(name)
        .last_update(now - datetime.timedelta(minutes=5))
        .next_update(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    return key, certificate, crl


def _key_pem(key: rsa.RSAPrivateKey) -> bytes:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


def test_build_ssl_context_loads_pem_cert_and_key(client_identity) -> None:
    key, certificate, _ = client_identity
    context = build_ssl_context(
        cert=certificate.public_bytes(serialization.Encoding.PEM).decode(),
        key=_key_pem(key),
    )
    assert isinstance(context, ssl.SSLContext)


def test_build_ssl_context_loads_cert_and_key_files(client_identity, tmp_path: Path) -> None:
    key, certificate, _ = client_identity
    cert_path = tmp_path / "client.pem"
    key_path = tmp_path / "client.key"
    cert_path.write_bytes(certificate.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(_key_pem(key))

    assert isinstance(build_ssl_context(cert=cert_path, key=key_path), ssl.SSLContext)


def test_build_ssl_context_loads_encrypted_pfx(client_identity) -> None:
    key, certificate, _ = client_identity
    bundle = pkcs12.serialize_key_and_certificates(
        b"client", key, certificate, None, serialization.BestAvailableEncryption(b"secret")
    )
    assert isinstance(build_ssl_context(pfx=bundle, passphrase="secret"), ssl.SSLContext)


def test_build_ssl_context_with_crl_checks_leaf_revocation(client_identity) -> None:
    key, certificate, crl = client_identity
    context = build_ssl_context(
        ca=certificate.public_bytes(serialization.Encoding.PEM),
        crl=crl.public_bytes(serialization.Encoding.PEM),
    )
    assert context.verify_flags & ssl.VERIFY_CRL_CHECK_LEAF


def test_build_ssl_context_without_material_writes_nothing(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(*args: object, **kwargs: object) -> None:
        raise AssertionError("no temporary directory expected")

    monkeypatch.setattr("oidc_http.security.tempfile.TemporaryDirectory", fail)
    assert isinstance(build_ssl_context(), ssl.SSLContext)

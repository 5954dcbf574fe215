"""Management certificate loading."""

from __future__ import annotations

import re

from cryptography import x509
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_pem_private_key,
)

from azure_extensions_cli.errors import InvalidArgumentError, InvalidCertificateError
from azure_extensions_cli.models import Credentials

_PEM_BLOCK_RE = re.compile(
    rb"-----BEGIN (?P<label>[A-Z0-9 ]+)-----\r?\n.*?-----END (?P=label)-----",
    re.DOTALL,
)
_CERTIFICATE_LABELS = {b"CERTIFICATE", b"X509 CERTIFICATE"}
_PRIVATE_KEY_LABELS = {
    b"PRIVATE KEY",
    b"RSA PRIVATE KEY",
    b"EC PRIVATE KEY",
    b"ENCRYPTED PRIVATE KEY",
}


def _pem_blocks(data: bytes) -> list[tuple[bytes, bytes]]:
    return [(match.group("label"), match.group(0)) for match in _PEM_BLOCK_RE.finditer(data)]


def load_credentials(
    subscription_id: str,
    certificate_pem: bytes | str,
    *,
    key_pem: bytes | str | None = None,
    password: bytes | None = None,
) -> Credentials:
    """Parse a management certificate and its private key.

    ``certificate_pem`` may hold both PEM blocks, or the key can be passed
    separately as ``key_pem``.
    """
    if not subscription_id or not subscription_id.strip():
        raise InvalidArgumentError("subscription_id must not be empty")

    raw = certificate_pem.encode("utf-8") if isinstance(certificate_pem, str) else certificate_pem
    if key_pem is not None:
        raw += b"\n" + (key_pem.encode("utf-8") if isinstance(key_pem, str) else key_pem)

    blocks = _pem_blocks(raw)
    cert_blocks = [block for label, block in blocks if label in _CERTIFICATE_LABELS]
    key_blocks = [block for label, block in blocks if label in _PRIVATE_KEY_LABELS]
    if not cert_blocks:
        raise InvalidCertificateError("no PEM certificate block found")
    if not key_blocks:
        raise InvalidCertificateError("no PEM private key block found")

    try:
        certificate = x509.load_pem_x509_certificate(cert_blocks[0])
    except ValueError as exc:
        raise InvalidCertificateError(f"invalid certificate: {exc}") from exc
    try:
        private_key = load_pem_private_key(key_blocks[0], password=password)
    except (TypeError, ValueError) as exc:
        raise InvalidCertificateError(f"invalid private key: {exc}") from exc

    # Validate keypair consistency.
    expected_public = certificate.public_key().public_bytes(
        Encoding.PEM, PublicFormat.SubjectPublicKeyInfo
    )
    actual_public = private_key.public_key().public_bytes(
        Encoding.PEM, PublicFormat.SubjectPublicKeyInfo
    )
    if expected_public != actual_public:
        raise InvalidCertificateError("certificate and private key do not match")

    return Credentials(
        subscription_id=subscription_id.strip(),
        certificate=certificate,
        private_key=private_key,
    )


def to_pem_bundle(credentials: Credentials) -> bytes:
    """Certificate followed by the unencrypted PKCS#8 key, as TLS libraries expect."""
    cert_pem = credentials.certificate.public_bytes(Encoding.PEM)
    key_pem = credentials.private_key.private_bytes(
        Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
    )
    return cert_pem + key_pem

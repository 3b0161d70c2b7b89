"""
TLS identity material for silq.

CertificateAuthority and ClientIdentity are immutable value objects
parsed from PEM text (or base64-encoded PEM text). TlsConfig groups
them and compiles the ``ssl.SSLContext`` shared by every connection
a client opens.
"""

import base64
import logging
import os
import re
import ssl
import tempfile
from dataclasses import dataclass
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

_CERTIFICATE_RE = re.compile(
    r"-----BEGIN CERTIFICATE-----\s+.*?-----END CERTIFICATE-----",
    re.DOTALL,
)
_PRIVATE_KEY_RE = re.compile(
    r"-----BEGIN ((?:RSA |EC )?PRIVATE KEY)-----\s+.*?-----END \1-----",
    re.DOTALL,
)

# OpenSSL X509_V_ERR_* codes mapped to certificate failure reasons
_VERIFY_REASONS = {
    2: "UnknownIssuer",    # unable to get issuer certificate
    7: "BadSignature",     # certificate signature failure
    9: "NotValidYet",      # certificate is not yet valid
    10: "Expired",         # certificate has expired
    18: "UnknownIssuer",   # self signed certificate
    19: "UnknownIssuer",   # self signed certificate in chain
    20: "UnknownIssuer",   # unable to get local issuer certificate
    21: "UnknownIssuer",   # unable to verify the first certificate
    23: "Revoked",         # certificate revoked
    62: "NotValidForName", # hostname mismatch
    64: "NotValidForName", # IP address mismatch
}


def _decode_base64_pem(data: str, what: str) -> str:
    try:
        return base64.b64decode("".join(data.split()), validate=True).decode("ascii")
    except ValueError as e:
        raise ValueError(f"{what} is not valid base64-encoded PEM: {e}") from e


def _parse_certificates(pem: str, what: str) -> Tuple[str, ...]:
    blocks = tuple(match.group(0) for match in _CERTIFICATE_RE.finditer(pem))
    if not blocks:
        raise ValueError(f"{what} contains no PEM certificate")
    for block in blocks:
        try:
            der = ssl.PEM_cert_to_DER_cert(block)
        except ValueError as e:
            raise ValueError(f"{what} contains a malformed certificate: {e}") from e
        if not der:
            raise ValueError(f"{what} contains an empty certificate block")
    return blocks


def verification_reason(error: ssl.SSLCertVerificationError) -> str:
    """Map an OpenSSL verification failure to a stable reason token."""
    return _VERIFY_REASONS.get(error.verify_code, "InvalidCertificate")


@dataclass(frozen=True)
class CertificateAuthority:
    """Trust root used to validate the server certificate chain."""

    certificates: Tuple[str, ...]

    @classmethod
    def from_pem(cls, pem: str) -> "CertificateAuthority":
        """
        Create a CertificateAuthority from PEM text.

        The text may hold several concatenated certificates.

        Raises:
            ValueError: If no well-formed certificate is found
        """
        return cls(certificates=_parse_certificates(pem, "certificate authority"))

    @classmethod
    def from_base64_pem(cls, data: str) -> "CertificateAuthority":
        """Create a CertificateAuthority from base64-encoded PEM text."""
        return cls.from_pem(_decode_base64_pem(data, "certificate authority"))

    @property
    def pem(self) -> str:
        return "\n".join(self.certificates) + "\n"


@dataclass(frozen=True)
class ClientIdentity:
    """Client certificate chain and private key presented for mutual TLS."""

    certificates: Tuple[str, ...]
    private_key: str

    def __repr__(self) -> str:
        return f"ClientIdentity(certificates={len(self.certificates)}, private_key=<hidden>)"

    @classmethod
    def from_pem(cls, cert_pem: str, key_pem: str) -> "ClientIdentity":
        """
        Create a ClientIdentity from PEM certificate and key text.

        Accepts PKCS#8 (``PRIVATE KEY``) and PKCS#1 / SEC1
        (``RSA PRIVATE KEY`` / ``EC PRIVATE KEY``) keys.

        Raises:
            ValueError: If the certificate or the key is missing or malformed
        """
        certificates = _parse_certificates(cert_pem, "client certificate")
        match = _PRIVATE_KEY_RE.search(key_pem)
        if match is None:
            raise ValueError("client key contains no unencrypted PEM private key")
        return cls(certificates=certificates, private_key=match.group(0))

    @classmethod
    def from_base64_pem(cls, cert_data: str, key_data: str) -> "ClientIdentity":
        """Create a ClientIdentity from base64-encoded PEM certificate and key."""
        return cls.from_pem(
            _decode_base64_pem(cert_data, "client certificate"),
            _decode_base64_pem(key_data, "client key"),
        )

    def load_into(self, context: ssl.SSLContext) -> None:
        """
        Load this identity into ``context``.

        ``SSLContext.load_cert_chain`` only reads files, so the material
        is written to a private temporary file that is removed right away.
        """
        fd, path = tempfile.mkstemp(prefix="silq-identity-", suffix=".pem")
        try:
            with os.fdopen(fd, "w", encoding="ascii") as f:
                f.write("\n".join(self.certificates))
                f.write("\n")
                f.write(self.private_key)
                f.write("\n")
            try:
                context.load_cert_chain(path)
            except ssl.SSLError as e:
                raise ValueError(f"client certificate and key do not form a valid identity: {e}") from e
        finally:
            os.unlink(path)


@dataclass(frozen=True)
class TlsConfig:
    """
    TLS settings of a client.

    When ``server_trust`` is set it replaces the system trust store
    unless ``use_system_trust`` is explicitly enabled.
    """

    server_trust: Optional[CertificateAuthority] = None
    client_identity: Optional[ClientIdentity] = None
    use_system_trust: Optional[bool] = None

    @property
    def trusts_system_store(self) -> bool:
        if self.use_system_trust is not None:
            return self.use_system_trust
        return self.server_trust is None

    def create_ssl_context(self) -> ssl.SSLContext:
        """
        Compile an SSL context for client connections.

        Returns:
            Configured SSL context

        Raises:
            ValueError: If the configuration cannot be loaded
        """
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.verify_mode = ssl.CERT_REQUIRED
        context.check_hostname = True
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        context.options |= ssl.OP_NO_COMPRESSION
        context.set_alpn_protocols(["http/1.1"])

        if not self.trusts_system_store and self.server_trust is None:
            raise ValueError("no trust root configured: enable the system store or set a server trust")

        if self.trusts_system_store:
            context.load_default_certs(ssl.Purpose.SERVER_AUTH)

        if self.server_trust is not None:
            try:
                context.load_verify_locations(cadata=self.server_trust.pem)
            except ssl.SSLError as e:
                raise ValueError(f"certificate authority could not be loaded: {e}") from e

        if self.client_identity is not None:
            self.client_identity.load_into(context)

        logger.debug(
            f"SSL context created: system_trust={self.trusts_system_store}, "
            f"custom_trust={self.server_trust is not None}, "
            f"client_identity={self.client_identity is not None}"
        )
        return context


def alert_reason(error: ssl.SSLError) -> str:
    """Map a TLS alert or handshake failure to a stable reason token."""
    reason = (getattr(error, "reason", None) or "").upper()
    if "CERTIFICATE_REQUIRED" in reason:
        return "CertificateRequired"
    if "UNKNOWN_CA" in reason or "BAD_CERTIFICATE" in reason:
        return "BadCertificate"
    if "CERTIFICATE_EXPIRED" in reason:
        return "Expired"
    if "WRONG_VERSION_NUMBER" in reason or "PROTOCOL_VERSION" in reason:
        return "ProtocolVersion"
    return "HandshakeFailure"

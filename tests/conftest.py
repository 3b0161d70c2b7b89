"""
Pytest configuration for silq tests.

This file contains shared fixtures: canned HTTP responses for the
mock backend, a throwaway PKI generated with ``cryptography`` and an
in-process h11 echo server reachable over plain TCP and mutual TLS.
"""

import asyncio
import datetime
import ipaddress
import json
import socket
import ssl
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, urlsplit

import h11
import pytest
import pytest_asyncio
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from silq.network.mock import MockNetworkStream


# --------------------------------------------------------------------------
# Canned responses
# --------------------------------------------------------------------------

def build_response(
    status: int = 200,
    headers: Optional[List[Tuple[str, str]]] = None,
    body: bytes = b"",
    reason: str = "OK",
    content_length: bool = True,
) -> bytes:
    """Serialize a Content-Length framed HTTP/1.1 response."""
    lines = [f"HTTP/1.1 {status} {reason}"]
    for name, value in headers or []:
        lines.append(f"{name}: {value}")
    if content_length:
        lines.append(f"Content-Length: {len(body)}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1") + body


def build_chunked_response(chunks: List[bytes], headers: Optional[List[Tuple[str, str]]] = None) -> bytes:
    """Serialize a chunked HTTP/1.1 response."""
    head = ["HTTP/1.1 200 OK", "Transfer-Encoding: chunked"]
    for name, value in headers or []:
        head.append(f"{name}: {value}")
    data = ("\r\n".join(head) + "\r\n\r\n").encode("latin-1")
    for chunk in chunks:
        data += f"{len(chunk):x}\r\n".encode("ascii") + chunk + b"\r\n"
    return data + b"0\r\n\r\n"


class HangingStream(MockNetworkStream):
    """Serves the queued bytes, then blocks instead of reporting EOF."""

    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        data = await super().read(max_bytes)
        if not data:
            await asyncio.Event().wait()
        return data


@pytest.fixture
def sample_headers():
    """Sample response headers with duplicates."""
    return [
        ("Content-Type", "application/json"),
        ("Set-Cookie", "a=1"),
        ("Server", "silq-test"),
        ("set-cookie", "b=2"),
    ]


@pytest.fixture
def large_payload() -> bytes:
    """A ~40KB JSON document built from five 8000-character fields."""
    document = {f"field{i}": chr(ord("a") + i) * 8000 for i in range(5)}
    return json.dumps(document).encode("utf-8")


# --------------------------------------------------------------------------
# Test PKI
# --------------------------------------------------------------------------

@dataclass
class Pki:
    """PEM material for the mTLS tests."""
    ca_pem: str
    ca_key_pem: str
    server_cert_file: str
    client_cert_pem: str
    client_key_pem: str
    client_key_pkcs1_pem: str
    other_ca_pem: str


def _new_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def _make_ca(common_name: str) -> Tuple[x509.Certificate, rsa.RSAPrivateKey]:
    key = _new_key()
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(_name(common_name))
        .issuer_name(_name(common_name))
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True, content_commitment=False, key_encipherment=False,
                data_encipherment=False, key_agreement=False, key_cert_sign=True,
                crl_sign=True, encipher_only=False, decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .sign(key, hashes.SHA256())
    )
    return cert, key


def _make_leaf(
    common_name: str,
    ca_cert: x509.Certificate,
    ca_key: rsa.RSAPrivateKey,
    usage: x509.ObjectIdentifier,
    san: Optional[List[x509.GeneralName]] = None,
) -> Tuple[x509.Certificate, rsa.RSAPrivateKey]:
    key = _new_key()
    now = datetime.datetime.now(datetime.timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(_name(common_name))
        .issuer_name(ca_cert.subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(x509.ExtendedKeyUsage([usage]), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_key.public_key()),
            critical=False,
        )
    )
    if san:
        builder = builder.add_extension(x509.SubjectAlternativeName(san), critical=False)
    return builder.sign(ca_key, hashes.SHA256()), key


def _cert_pem(cert: x509.Certificate) -> str:
    return cert.public_bytes(serialization.Encoding.PEM).decode("ascii")


def _key_pem(key: rsa.RSAPrivateKey, fmt: serialization.PrivateFormat) -> str:
    return key.private_bytes(
        serialization.Encoding.PEM, fmt, serialization.NoEncryption()
    ).decode("ascii")


@pytest.fixture(scope="session")
def pki(tmp_path_factory) -> Pki:
    """Generate a CA, a server and a client certificate once per session."""
    ca_cert, ca_key = _make_ca("silq test CA")
    other_ca_cert, _ = _make_ca("silq untrusted CA")

    server_cert, server_key = _make_leaf(
        "localhost",
        ca_cert,
        ca_key,
        ExtendedKeyUsageOID.SERVER_AUTH,
        san=[
            x509.DNSName("localhost"),
            x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
            x509.IPAddress(ipaddress.ip_address("::1")),
        ],
    )
    client_cert, client_key = _make_leaf(
        "client1", ca_cert, ca_key, ExtendedKeyUsageOID.CLIENT_AUTH
    )

    directory = tmp_path_factory.mktemp("pki")
    server_cert_file = directory / "server.pem"
    server_cert_file.write_text(
        _cert_pem(server_cert) + _key_pem(server_key, serialization.PrivateFormat.PKCS8)
    )

    return Pki(
        ca_pem=_cert_pem(ca_cert),
        ca_key_pem=_key_pem(ca_key, serialization.PrivateFormat.PKCS8),
        server_cert_file=str(server_cert_file),
        client_cert_pem=_cert_pem(client_cert),
        client_key_pem=_key_pem(client_key, serialization.PrivateFormat.PKCS8),
        client_key_pkcs1_pem=_key_pem(client_key, serialization.PrivateFormat.TraditionalOpenSSL),
        other_ca_pem=_cert_pem(other_ca_cert),
    )


# --------------------------------------------------------------------------
# Echo server
# --------------------------------------------------------------------------

def _describe_request(request: h11.Request, body: bytes) -> Dict:
    """Describe a received request the way an echo endpoint would."""
    target = urlsplit(request.target.decode("ascii"))
    headers: Dict[str, str] = {}
    for name, value in request.headers:
        key = name.decode("latin-1").lower()
        text = value.decode("latin-1")
        headers[key] = f"{headers[key]}, {text}" if key in headers else text

    text_body = body.decode("utf-8", errors="replace")
    content_type = headers.get("content-type", "")
    parsed_json = None
    form = None
    if content_type == "application/json":
        parsed_json = json.loads(text_body)
    elif content_type == "application/x-www-form-urlencoded":
        form = dict(parse_qsl(text_body, keep_blank_values=True))

    return {
        "method": request.method.decode("ascii"),
        "path": target.path,
        "query": dict(parse_qsl(target.query, keep_blank_values=True)),
        "headers": headers,
        "body": text_body,
        "json": parsed_json,
        "form": form,
    }


def _route(request: h11.Request, body: bytes) -> Tuple[int, List[Tuple[str, str]], List[bytes]]:
    path = urlsplit(request.target.decode("ascii")).path

    if path == "/large":
        document = {f"field{i}": chr(ord("a") + i) * 8000 for i in range(5)}
        payload = json.dumps(document).encode("utf-8")
        return 200, [("Content-Type", "application/json")], [payload]

    if path == "/chunked":
        pieces = [b"alpha-", b"beta-", b"gamma"]
        return 200, [("Content-Type", "text/plain"), ("Transfer-Encoding", "chunked")], pieces

    if path == "/multi-header":
        headers = [
            ("Content-Type", "text/plain"),
            ("X-Multi", "one"),
            ("X-Multi", "two"),
            ("X-Multi", "three"),
        ]
        return 200, headers, [b"ok"]

    if path == "/not-json":
        return 200, [("Content-Type", "text/plain")], [b"<html>not json</html>"]

    if path.startswith("/status/"):
        return int(path.rsplit("/", 1)[1]), [("Content-Type", "text/plain")], [b""]

    payload = json.dumps(_describe_request(request, body)).encode("utf-8")
    return 200, [("Content-Type", "application/json")], [payload]


async def _handle_connection(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    connection = h11.Connection(h11.SERVER)
    request = None
    body = bytearray()

    try:
        while True:
            event = connection.next_event()
            if event is h11.NEED_DATA:
                connection.receive_data(await reader.read(65536))
                continue
            if isinstance(event, h11.Request):
                request = event
            elif isinstance(event, h11.Data):
                body += event.data
            elif isinstance(event, (h11.EndOfMessage, h11.ConnectionClosed)):
                break

        if request is None:
            return

        status, headers, pieces = _route(request, bytes(body))
        chunked = any(name == "Transfer-Encoding" for name, _ in headers)
        if not chunked:
            headers = headers + [("Content-Length", str(sum(len(p) for p in pieces)))]

        writer.write(connection.send(h11.Response(status_code=status, headers=headers)))
        for piece in pieces:
            if piece:
                writer.write(connection.send(h11.Data(data=piece)))
                await writer.drain()
        writer.write(connection.send(h11.EndOfMessage()))
        await writer.drain()
    except (ConnectionError, ssl.SSLError, h11.ProtocolError):
        pass
    finally:
        writer.close()


@dataclass
class EchoServer:
    host: str
    port: int

    def url(self, scheme: str, path: str = "/") -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{scheme}://{host}:{self.port}{path}"


async def _start(host: str, ssl_context: Optional[ssl.SSLContext] = None) -> Tuple[asyncio.AbstractServer, EchoServer]:
    server = await asyncio.start_server(_handle_connection, host, 0, ssl=ssl_context)
    port = server.sockets[0].getsockname()[1]
    return server, EchoServer(host=host, port=port)


def _server_ssl_context(pki: Pki) -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(pki.server_cert_file)
    context.load_verify_locations(cadata=pki.ca_pem)
    context.verify_mode = ssl.CERT_REQUIRED
    return context


@pytest_asyncio.fixture
async def echo_server() -> AsyncIterator[EchoServer]:
    """Plain HTTP echo server on 127.0.0.1."""
    server, info = await _start("127.0.0.1")
    async with server:
        yield info


@pytest_asyncio.fixture
async def mtls_server(pki) -> AsyncIterator[EchoServer]:
    """HTTPS echo server on 127.0.0.1 that requires a client certificate."""
    server, info = await _start("127.0.0.1", _server_ssl_context(pki))
    async with server:
        yield info


def _ipv6_available() -> bool:
    if not socket.has_ipv6:
        return False
    try:
        with socket.socket(socket.AF_INET6, socket.SOCK_STREAM) as sock:
            sock.bind(("::1", 0))
        return True
    except OSError:
        return False


@pytest_asyncio.fixture
async def mtls_server_ipv6(pki) -> AsyncIterator[EchoServer]:
    """HTTPS echo server on ::1 that requires a client certificate."""
    if not _ipv6_available():
        pytest.skip("IPv6 loopback not available")
    server, info = await _start("::1", _server_ssl_context(pki))
    async with server:
        yield info

"""
silq - asynchronous HTTP/1.1 client

A small HTTP(S) client with mutual-TLS support, a fluent request
builder and frame-by-frame streaming of response bodies.
"""

__version__ = "0.1.0"

# Import main components for easy access
from .client import HttpClient, HttpClientBuilder
from .config import ClientConfig
from .exceptions import (
    SilqError,
    ConnectionError,
    ResolutionError,
    TlsError,
    ProtocolError,
    DecodeError,
    TimeoutError,
    StreamError,
)
from .headers import HeaderMultiMap
from .http_primitives import (
    URL,
    RequestSpec,
    ResponseHead,
    RawBody,
    JsonBody,
    FormBody,
    encode_safe_cookies,
    decode_safe_cookies,
)
from .request import RequestBuilder
from .response import ResponseHandle
from .tls import CertificateAuthority, ClientIdentity, TlsConfig

__all__ = [
    "HttpClient",
    "HttpClientBuilder",
    "ClientConfig",
    "SilqError",
    "ConnectionError",
    "ResolutionError",
    "TlsError",
    "ProtocolError",
    "DecodeError",
    "TimeoutError",
    "StreamError",
    "HeaderMultiMap",
    "URL",
    "RequestSpec",
    "ResponseHead",
    "RawBody",
    "JsonBody",
    "FormBody",
    "encode_safe_cookies",
    "decode_safe_cookies",
    "RequestBuilder",
    "ResponseHandle",
    "CertificateAuthority",
    "ClientIdentity",
    "TlsConfig",
]

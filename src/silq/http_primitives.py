"""
HTTP primitives for silq.

This module defines the core data structures describing a request:
the parsed target URL, the tagged body variants and the frozen
request specification handed to the connection layer. It also hosts
the cookie and form encoders used by the request builder.
"""

import json
from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    Mapping,
    NamedTuple,
    Optional,
    Tuple,
    Union,
)
from urllib.parse import quote, unquote, urlencode, urlparse

from .headers import HeaderMultiMap
from .network.utils import format_host_header, is_ipv6_address, validate_port

SUPPORTED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")
DEFAULT_PORTS = {"http": 80, "https": 443}

# Characters left untouched when quoting the request path
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
# Characters left untouched when quoting the query string
_QUERY_SAFE = "=&;%+/?:@!$'()*,~-._"

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class URL(NamedTuple):
    """Immutable representation of an absolute http(s) URL."""
    scheme: str
    host: str
    port: int
    path: str
    query: str = ""

    @classmethod
    def from_url(cls, url: str) -> "URL":
        """
        Parse an absolute URL string.

        The host keeps no brackets; IPv6 literals are re-bracketed
        by ``authority``. Internationalized hosts are IDNA-encoded and
        non-ASCII query characters are percent-encoded.

        Raises:
            ValueError: If the scheme is unsupported or the host is missing
                        or not encodable with IDNA
        """
        parsed = urlparse(url)
        scheme = parsed.scheme.lower()
        if scheme not in DEFAULT_PORTS:
            raise ValueError(f"unsupported URL scheme: {parsed.scheme!r}")

        host = parsed.hostname
        if not host:
            raise ValueError(f"no hostname found in URL: {url!r}")
        if not host.isascii():
            try:
                host = host.encode("idna").decode("ascii")
            except UnicodeError as e:
                raise ValueError(f"invalid hostname in URL: {url!r}: {e}") from e

        port = validate_port(parsed.port) if parsed.port is not None else DEFAULT_PORTS[scheme]
        path = parsed.path or "/"
        query = quote(parsed.query, safe=_QUERY_SAFE)

        return cls(scheme=scheme, host=host, port=port, path=path, query=query)

    @property
    def is_ipv6(self) -> bool:
        return is_ipv6_address(self.host)

    @property
    def authority(self) -> str:
        """Host (bracketed for IPv6) plus the port when it is not the default."""
        return format_host_header(self.host, self.port, self.scheme)

    @property
    def target(self) -> str:
        """Request target sent on the request line."""
        path = quote(self.path, safe=_PATH_SAFE)
        if self.query:
            return f"{path}?{self.query}"
        return path

    def with_query(self, params: Mapping[str, Any]) -> "URL":
        """Create a new URL with ``params`` appended to the query string."""
        encoded = urlencode([(key, form_value(value)) for key, value in params.items()])
        if not encoded:
            return self
        query = f"{self.query}&{encoded}" if self.query else encoded
        return self._replace(query=query)

    def __str__(self) -> str:
        return f"{self.scheme}://{self.authority}{self.target}"


@dataclass(frozen=True)
class RawBody:
    """Body bytes sent as-is; no content type is implied."""
    content: bytes

    content_type = None


@dataclass(frozen=True)
class JsonBody:
    """A value serialised as compact UTF-8 JSON."""
    value: Any
    content: bytes

    content_type = JSON_CONTENT_TYPE

    @classmethod
    def create(cls, value: Any) -> "JsonBody":
        try:
            text = json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise ValueError(f"value is not JSON serialisable: {e}") from e
        return cls(value=value, content=text.encode("utf-8"))


@dataclass(frozen=True)
class FormBody:
    """Fields serialised as ``application/x-www-form-urlencoded``."""
    fields: Tuple[Tuple[str, str], ...]
    content: bytes

    content_type = FORM_CONTENT_TYPE

    @classmethod
    def create(cls, fields: Mapping[str, Any]) -> "FormBody":
        pairs = tuple((str(key), form_value(value)) for key, value in fields.items())
        return cls(fields=pairs, content=urlencode(pairs).encode("ascii"))


Body = Union[RawBody, JsonBody, FormBody]


def form_value(value: Any) -> str:
    """Stringify a scalar the way form and query encoders expect."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_safe_cookies(cookies: Mapping[str, Any]) -> str:
    """
    Encode a cookie mapping into a single ``Cookie`` header value.

    Each value is percent-encoded on its own so that ``;``, ``=`` and
    spaces inside values never collide with the delimiters.

    Raises:
        ValueError: If a cookie name is empty or contains a delimiter
    """
    pairs = []
    for name, value in cookies.items():
        if not name or any(ch in name for ch in "=; \t\r\n,"):
            raise ValueError(f"invalid cookie name: {name!r}")
        pairs.append(f"{name}={quote(form_value(value), safe='')}")
    return "; ".join(pairs)


def decode_safe_cookies(header_value: str) -> Dict[str, str]:
    """Inverse of :func:`encode_safe_cookies`."""
    cookies: Dict[str, str] = {}
    if not header_value:
        return cookies
    for pair in header_value.split("; "):
        name, _, value = pair.partition("=")
        cookies[name] = unquote(value)
    return cookies


@dataclass(frozen=True)
class RequestSpec:
    """
    Immutable description of a single request.

    A RequestSpec is the snapshot the builder hands to the client on
    ``send()``. Its header map is a private copy and is never mutated
    afterwards.
    """

    method: str
    url: URL
    headers: HeaderMultiMap = field(default_factory=HeaderMultiMap)
    body: Optional[Body] = None
    timeout: Optional[float] = None

    def __post_init__(self) -> None:
        """Validate request data after initialization."""
        if self.method not in SUPPORTED_METHODS:
            raise ValueError(f"unsupported method: {self.method!r}")

        if not isinstance(self.url, URL):
            raise ValueError("url must be a URL")

        if not isinstance(self.headers, HeaderMultiMap):
            raise ValueError("headers must be a HeaderMultiMap")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @property
    def content(self) -> bytes:
        """Body bytes, empty when no body is set."""
        if self.body is None:
            return b""
        return self.body.content


@dataclass(frozen=True)
class ResponseHead:
    """Status line and headers of a response whose body is still unread."""

    status_code: int
    reason: str
    http_version: str
    headers: HeaderMultiMap
    content_length: Optional[int] = None
    chunked: bool = False

    @property
    def has_body(self) -> bool:
        """Whether the response is framed with a body to read."""
        return self.chunked or bool(self.content_length)

"""
Fluent request builder for silq.

A RequestBuilder is returned by the verb methods of HttpClient. Each
``with_*`` call updates the builder in place and returns it; ``send``
freezes the current state into a RequestSpec and hands it to the
client.
"""

import base64
from typing import TYPE_CHECKING, Any, Mapping, Optional, Union

from .headers import HeaderMultiMap
from .http_primitives import (
    URL,
    Body,
    FormBody,
    JsonBody,
    RawBody,
    RequestSpec,
    encode_safe_cookies,
)

if TYPE_CHECKING:
    from .client import HttpClient  # Forward reference
    from .response import ResponseHandle


class RequestBuilder:
    """
    Mutable description of a request that is about to be sent.

    Later calls win: ``with_headers`` replaces earlier values of the
    same header name, and setting a body replaces any previous body.
    """

    def __init__(self, client: "HttpClient", method: str, url: Union[str, URL]) -> None:
        self._client = client
        self._method = method.upper()
        self._url = URL.from_url(url) if isinstance(url, str) else url
        self._headers = HeaderMultiMap()
        self._body: Optional[Body] = None
        self._timeout: Optional[float] = None

    def with_headers(self, headers: Mapping[str, str]) -> "RequestBuilder":
        """Set each header, replacing earlier values of the same name."""
        for name, value in headers.items():
            self._headers.set(name, value)
        return self

    def with_header(self, name: str, value: str) -> "RequestBuilder":
        """Append a header value, keeping earlier values of the same name."""
        self._headers.add(name, value)
        return self

    def with_safe_cookies(self, cookies: Mapping[str, Any]) -> "RequestBuilder":
        """Set the ``Cookie`` header with every value percent-encoded."""
        value = encode_safe_cookies(cookies)
        if value:
            self._headers.set("Cookie", value)
        else:
            self._headers.remove("Cookie")
        return self

    def with_body(self, body: Union[str, bytes]) -> "RequestBuilder":
        """
        Send ``body`` as-is.

        Strings are encoded as UTF-8. No ``Content-Type`` is implied.
        """
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._set_body(RawBody(content=bytes(body)))
        return self

    def with_json(self, value: Any) -> "RequestBuilder":
        """Send ``value`` as JSON with ``Content-Type: application/json``."""
        self._set_body(JsonBody.create(value))
        return self

    def with_form(self, fields: Mapping[str, Any]) -> "RequestBuilder":
        """Send ``fields`` URL-encoded as an HTML form."""
        self._set_body(FormBody.create(fields))
        return self

    def with_basic_auth(self, username: str, password: Optional[str] = None) -> "RequestBuilder":
        """Set ``Authorization: Basic`` for ``username`` and ``password``."""
        credentials = f"{username}:{password or ''}".encode("utf-8")
        token = base64.b64encode(credentials).decode("ascii")
        self._headers.set("Authorization", f"Basic {token}")
        return self

    def with_query(self, params: Mapping[str, Any]) -> "RequestBuilder":
        """Append ``params`` to the query string of the target URL."""
        self._url = self._url.with_query(params)
        return self

    def with_timeout(self, timeout: float) -> "RequestBuilder":
        """Override the read and write deadline for this request only."""
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._timeout = timeout
        return self

    def _set_body(self, body: Body) -> None:
        previous = self._body
        if (
            previous is not None
            and previous.content_type is not None
            and self._headers.get_first("Content-Type") == previous.content_type
        ):
            self._headers.remove("Content-Type")

        if body.content_type is not None:
            self._headers.set("Content-Type", body.content_type)
        self._body = body

    def build(self) -> RequestSpec:
        """Freeze the current state into a RequestSpec."""
        return RequestSpec(
            method=self._method,
            url=self._url,
            headers=self._headers.copy(),
            body=self._body,
            timeout=self._timeout,
        )

    async def send(self) -> "ResponseHandle":
        """
        Send the request and return once the response head arrived.

        Raises:
            ConnectionError: If connecting fails (ResolutionError, TlsError)
            ProtocolError: If the peer violates HTTP/1.1
            TimeoutError: If connecting, writing or reading times out
        """
        return await self._client.send(self.build())

    @property
    def method(self) -> str:
        return self._method

    @property
    def url(self) -> URL:
        return self._url

    def __repr__(self) -> str:
        return f"<RequestBuilder {self._method} {self._url}>"

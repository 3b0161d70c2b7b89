"""
Response handle for silq.

A ResponseHandle exposes the status and headers of a response that
has been received and the body that may still be on the wire. It owns
the connection until the body is drained, the handle is closed, or it
is garbage-collected.
"""

import json
import logging
from typing import Any, AsyncIterator, Iterator, List, Optional, Tuple

from .exceptions import DecodeError
from .headers import HeaderMultiMap
from .http11 import HTTP11Connection
from .http_primitives import ResponseHead
from .streams import ResponseStream, read_stream_to_bytes

logger = logging.getLogger(__name__)


class ResponseHandle:
    """
    Received response with a lazily read body.

    The body can be consumed in two ways: frame by frame with
    ``iter_frames()`` or eagerly with ``get_text()`` / ``get_json()``.
    Both drive the same cursor over the connection, so a later call
    only sees the bytes an earlier one left unread, and a body that
    has been drained reads as empty.

    ``get_text()`` and ``get_json()`` buffer the entire remaining body
    in memory. They are a convenience for ordinary responses, not for
    unbounded streams; use ``iter_frames()`` for those.
    """

    def __init__(
        self,
        head: ResponseHead,
        connection: HTTP11Connection,
        timeout: Optional[float] = None,
    ) -> None:
        self._head = head
        self._connection = connection
        self._stream = ResponseStream(
            connection,
            content_length=head.content_length,
            chunked=head.chunked,
            timeout=timeout,
        )

    def __del__(self) -> None:
        connection = getattr(self, "_connection", None)
        if connection is None or connection.is_closed:
            return
        try:
            connection.abort()
        except RuntimeError:
            # The event loop owning the transport is already closed.
            pass

    async def __aenter__(self) -> "ResponseHandle":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """
        Close the connection, discarding any unread body bytes.

        Reading the body afterwards raises StreamError.
        """
        if not self._connection.is_closed:
            logger.debug(
                f"Response closed after {self._stream.bytes_read} body bytes"
            )
        await self._stream.aclose()

    def get_status_code(self) -> int:
        return self._head.status_code

    @property
    def status_code(self) -> int:
        return self._head.status_code

    @property
    def reason(self) -> str:
        return self._head.reason

    @property
    def http_version(self) -> str:
        return self._head.http_version

    @property
    def headers(self) -> HeaderMultiMap:
        """A copy of the response headers."""
        return self._head.headers.copy()

    def get_header_first_value(self, name: str) -> Optional[str]:
        """Return the first value of header ``name`` (case-insensitive) or None."""
        return self._head.headers.get_first(name)

    def get_header_all_values(self, name: str) -> List[str]:
        """Return every value of header ``name`` in the order received."""
        return self._head.headers.get_all(name)

    def iter_headers(self) -> Iterator[Tuple[int, str, str]]:
        """
        Iterate over ``(index, name, value)`` for every header.

        Each call starts a fresh iteration at index 0.
        """
        return self._head.headers.iterate()

    def iter_frames(self) -> AsyncIterator[bytes]:
        """
        Iterate over the body as transport-sized frames.

        The iteration is single-pass: frames are read from the
        connection as they are requested and are not kept.
        """
        return self._stream

    @property
    def is_closed(self) -> bool:
        """Whether the underlying connection is closed."""
        return self._connection.is_closed

    async def get_bytes(self) -> bytes:
        """Read the remaining body into memory."""
        return await read_stream_to_bytes(self._stream)

    async def get_text(self, encoding: str = "utf-8") -> str:
        """
        Read the remaining body and decode it as text.

        Raises:
            DecodeError: If the body is not valid in ``encoding``
        """
        content = await self.get_bytes()
        try:
            return content.decode(encoding)
        except UnicodeDecodeError as e:
            raise DecodeError(f"response body is not valid {encoding}: {e}", cause=e) from e

    async def get_json(self) -> Any:
        """
        Read the remaining body and parse it as JSON.

        Raises:
            DecodeError: If the body is not valid JSON
        """
        text = await self.get_text()
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise DecodeError(f"response body is not valid JSON: {e}", cause=e) from e

    def __repr__(self) -> str:
        return f"<ResponseHandle [{self._head.status_code} {self._head.reason}]>"

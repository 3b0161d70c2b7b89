"""
Streaming framework for silq.

This module provides the response body stream. Consumption drives
reading from the network: a frame is only read from the connection
when the caller asks for it.
"""

from typing import TYPE_CHECKING, AsyncIterable, Optional

from .exceptions import StreamError

if TYPE_CHECKING:
    from .http11 import HTTP11Connection  # Forward reference


class ResponseStream:
    """
    Single-pass stream of response body frames.

    Every iteration continues from the same cursor: frames already
    handed out are never delivered again. Once the body is drained
    the connection is closed and further iteration ends immediately.
    """

    def __init__(
        self,
        connection: "HTTP11Connection",
        content_length: Optional[int] = None,
        chunked: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Initialize ResponseStream.

        Args:
            connection: The HTTP11Connection that owns this stream
            content_length: Declared Content-Length, if any
            chunked: Whether the response uses chunked transfer encoding
            timeout: Read deadline override for each frame
        """
        if content_length is not None and content_length < 0:
            raise ValueError("content_length must be non-negative")

        self._connection = connection
        self._content_length = content_length
        self._chunked = chunked
        self._timeout = timeout
        self._closed = False
        self._exhausted = False
        self._bytes_read = 0

    def __aiter__(self) -> "ResponseStream":
        """Return self as async iterator."""
        return self

    async def __anext__(self) -> bytes:
        """Get the next frame of the body."""
        if self._closed:
            raise StreamError("Cannot read from closed stream")

        if self._exhausted:
            raise StopAsyncIteration

        chunk = await self._connection.receive_body_chunk(self._timeout)
        if chunk is None:
            self._exhausted = True
            raise StopAsyncIteration

        self._bytes_read += len(chunk)
        return chunk

    async def aclose(self) -> None:
        """Close the stream, dropping any unread body bytes."""
        if not self._closed:
            self._closed = True
            await self._connection.close()

    @property
    def content_length(self) -> Optional[int]:
        """Get the declared content length of the stream."""
        return self._content_length

    @property
    def chunked(self) -> bool:
        """Get whether the stream uses chunked transfer encoding."""
        return self._chunked

    @property
    def closed(self) -> bool:
        """Get whether the stream is closed."""
        return self._closed

    @property
    def exhausted(self) -> bool:
        """Get whether the whole body has been read."""
        return self._exhausted or self._connection.is_closed

    @property
    def bytes_read(self) -> int:
        """Get the number of body bytes read so far."""
        return self._bytes_read


async def read_stream_to_bytes(stream: AsyncIterable[bytes]) -> bytes:
    """
    Read entire stream and return as bytes.

    Args:
        stream: Async iterable of bytes

    Returns:
        All bytes from the stream concatenated
    """
    chunks = []
    async for chunk in stream:
        chunks.append(chunk)
    return b"".join(chunks)


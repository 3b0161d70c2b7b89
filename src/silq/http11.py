"""
HTTP/1.1 connection implementation for silq.

This module implements the HTTP11Connection class that encodes a
RequestSpec onto a NetworkStream and incrementally decodes the
response with h11. A connection carries exactly one exchange and is
closed once the response body is drained or an error occurs.
"""

import asyncio
import logging
import ssl
import time
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import h11

from .exceptions import (
    ConnectionError,
    ProtocolError,
    TimeoutError,
    TlsError,
)
from .headers import HeaderMultiMap
from .http_primitives import RequestSpec, ResponseHead
from .network.stream import NetworkStream
from .tls import alert_reason

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """States of an HTTP/1.1 connection."""
    NEW = "new"           # Connection created, nothing sent yet
    ACTIVE = "active"     # Request sent, response in flight
    CLOSED = "closed"     # Connection closed, cannot be used again


def build_request_headers(request: RequestSpec) -> List[Tuple[bytes, bytes]]:
    """
    Assemble the header block sent for ``request``.

    ``Host`` comes first, then every builder-set header in insertion
    order, then ``Content-Length`` for a request with a body. Headers
    the caller set explicitly are never replaced.
    """
    headers: List[Tuple[bytes, bytes]] = []

    if "Host" not in request.headers:
        headers.append((b"Host", request.url.authority.encode("ascii")))

    headers.extend(request.headers.raw())

    if (
        request.body is not None
        and "Content-Length" not in request.headers
        and "Transfer-Encoding" not in request.headers
    ):
        headers.append((b"Content-Length", str(len(request.content)).encode("ascii")))

    return headers


class HTTP11Connection:
    """
    HTTP/1.1 wire codec over a single NetworkStream.

    ``write_request`` serializes the request, ``read_response_head``
    parses the status line and headers, and ``receive_body_chunk``
    yields dechunked body frames one at a time.
    """

    # Default configuration
    DEFAULT_READ_TIMEOUT = 30.0  # 30 seconds
    DEFAULT_WRITE_TIMEOUT = 30.0  # 30 seconds
    DEFAULT_READ_CHUNK_SIZE = 16384  # 16KB per transport read

    def __init__(
        self,
        stream: NetworkStream,
        read_timeout: Optional[float] = None,
        write_timeout: Optional[float] = None,
        read_chunk_size: Optional[int] = None,
    ):
        """
        Initialize HTTP/1.1 connection.

        Args:
            stream: The NetworkStream to use for communication
            read_timeout: Timeout for each read operation in seconds
            write_timeout: Timeout for write operations in seconds
            read_chunk_size: Maximum bytes requested per transport read
        """
        self._stream = stream
        self._h11_connection = h11.Connection(h11.CLIENT)
        self._state = ConnectionState.NEW
        self._head: Optional[ResponseHead] = None

        # Configuration
        self._read_timeout = read_timeout or self.DEFAULT_READ_TIMEOUT
        self._write_timeout = write_timeout or self.DEFAULT_WRITE_TIMEOUT
        self._read_chunk_size = read_chunk_size or self.DEFAULT_READ_CHUNK_SIZE

        # Metrics
        self._bytes_sent = 0
        self._bytes_received = 0
        self._body_bytes_received = 0
        self._started_at: Optional[float] = None

        logger.debug("HTTP/1.1 connection initialized")

    async def handle_request(self, request: RequestSpec) -> ResponseHead:
        """
        Send ``request`` and read the response head.

        The body is left on the connection for ``receive_body_chunk``.

        Raises:
            ConnectionError: If the connection was already used or is lost
            ProtocolError: If the request or response violates HTTP/1.1
            TimeoutError: If a read or write exceeds its deadline
        """
        if self._state != ConnectionState.NEW:
            raise ConnectionError("Connection has already been used")

        self._state = ConnectionState.ACTIVE
        self._started_at = time.time()
        timeout = request.timeout

        try:
            await self.write_request(request, timeout)
            head = await self.read_response_head(timeout)
        except Exception as e:
            duration = time.time() - self._started_at
            logger.error(
                f"{request.method} {request.url} failed: {e} ({duration:.3f}s)"
            )
            await self.close()
            raise
        except BaseException:
            # Cancelled: close without awaiting.
            self.abort()
            raise

        logger.debug(
            f"{request.method} {request.url} -> {head.status_code} "
            f"({time.time() - self._started_at:.3f}s)"
        )

        if not head.has_body:
            # Without Content-Length or chunked framing the body is empty.
            await self.close()

        return head

    async def write_request(self, request: RequestSpec, timeout: Optional[float] = None) -> None:
        """
        Serialize and send ``request``.

        Args:
            request: The request to send
            timeout: Optional timeout override
        """
        try:
            h11_request = h11.Request(
                method=request.method.encode("ascii"),
                target=request.url.target.encode("ascii"),
                headers=build_request_headers(request),
            )
        except h11.LocalProtocolError as e:
            raise ProtocolError(f"Invalid request: {e}", cause=e) from e

        await self._send_event(h11_request, timeout)
        if request.content:
            await self._send_event(h11.Data(data=request.content), timeout)
        await self._send_event(h11.EndOfMessage(), timeout)

    async def _send_event(self, event: h11.Event, timeout: Optional[float] = None) -> None:
        """
        Send an h11 event to the network stream.

        Args:
            event: The h11 event to send
            timeout: Optional timeout override
        """
        write_timeout = timeout or self._write_timeout
        try:
            data = self._h11_connection.send(event)
        except h11.LocalProtocolError as e:
            raise ProtocolError(f"Invalid request: {e}", cause=e) from e

        if not data:
            return

        try:
            await asyncio.wait_for(self._stream.write(data), timeout=write_timeout)
        except asyncio.TimeoutError:
            raise TimeoutError("Writing request timed out", timeout=write_timeout) from None
        except ssl.SSLError as e:
            raise TlsError(f"TLS failure while writing: {e}", reason=alert_reason(e), cause=e) from e
        except OSError as e:
            raise ConnectionError(f"Connection lost while writing: {e}", cause=e) from e
        self._bytes_sent += len(data)

    async def _next_event(self, timeout: Optional[float] = None) -> Any:
        """
        Return the next h11 event, reading from the network as needed.

        Raises:
            ProtocolError: If the peer sends malformed data or hangs up
            TimeoutError: If no data arrives within the read deadline
        """
        read_timeout = timeout or self._read_timeout

        while True:
            try:
                event = self._h11_connection.next_event()
            except h11.RemoteProtocolError as e:
                raise ProtocolError(f"Malformed response: {e}", cause=e) from e

            if event is not h11.NEED_DATA:
                return event

            try:
                data = await asyncio.wait_for(
                    self._stream.read(self._read_chunk_size),
                    timeout=read_timeout,
                )
            except asyncio.TimeoutError:
                raise TimeoutError("Reading response timed out", timeout=read_timeout) from None
            except ssl.SSLError as e:
                raise TlsError(f"TLS failure while reading: {e}", reason=alert_reason(e), cause=e) from e
            except OSError as e:
                raise ConnectionError(f"Connection lost while reading: {e}", cause=e) from e

            if not data:
                raise ProtocolError("Connection closed unexpectedly")
            self._h11_connection.receive_data(data)
            self._bytes_received += len(data)

    async def read_response_head(self, timeout: Optional[float] = None) -> ResponseHead:
        """
        Read the status line and headers of the response.

        Interim 1xx responses are skipped.

        Returns:
            The parsed response head
        """
        while True:
            event = await self._next_event(timeout)

            if isinstance(event, h11.InformationalResponse):
                continue

            if isinstance(event, h11.Response):
                headers = HeaderMultiMap(event.headers.raw_items())
                self._head = ResponseHead(
                    status_code=event.status_code,
                    reason=event.reason.decode("latin-1"),
                    http_version=event.http_version.decode("ascii"),
                    headers=headers,
                    content_length=self._get_content_length(headers),
                    chunked=self._is_chunked(headers),
                )
                return self._head

            if isinstance(event, h11.ConnectionClosed):
                raise ProtocolError("Connection closed by server")

            raise ProtocolError(f"Unexpected event before response: {type(event).__name__}")

    async def receive_body_chunk(self, timeout: Optional[float] = None) -> Optional[bytes]:
        """
        Receive the next frame of the response body.

        Returns:
            A non-empty chunk of body bytes, or None at end of body
        """
        if self._state == ConnectionState.CLOSED:
            return None

        try:
            while True:
                event = await self._next_event(timeout)

                if isinstance(event, h11.Data):
                    if not event.data:
                        continue
                    self._body_bytes_received += len(event.data)
                    return bytes(event.data)

                if isinstance(event, h11.EndOfMessage):
                    await self.close()
                    return None

                if isinstance(event, h11.ConnectionClosed):
                    raise ProtocolError("Connection closed by server")
        except Exception:
            await self.close()
            raise
        except BaseException:
            self.abort()
            raise

    def _get_content_length(self, headers: HeaderMultiMap) -> Optional[int]:
        """
        Extract Content-Length from headers.

        Returns:
            Content-Length value or None if not present
        """
        value = headers.get_first("Content-Length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    def _is_chunked(self, headers: HeaderMultiMap) -> bool:
        """Check if the response uses chunked transfer encoding."""
        for value in headers.get_all("Transfer-Encoding"):
            codings = [coding.strip().lower() for coding in value.split(",")]
            if "chunked" in codings:
                return True
        return False

    async def close(self) -> None:
        """
        Close the connection and cleanup resources.
        """
        if self._state != ConnectionState.CLOSED:
            self._state = ConnectionState.CLOSED
            await self._stream.aclose()
            logger.debug(
                f"Connection closed (sent={self._bytes_sent}, received={self._bytes_received})"
            )

    def abort(self) -> None:
        """Close the connection immediately from synchronous code."""
        if self._state != ConnectionState.CLOSED:
            self._state = ConnectionState.CLOSED
            self._stream.abort()
            logger.debug("Connection aborted before the body was drained")

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_closed(self) -> bool:
        """Check if connection is closed."""
        return self._state == ConnectionState.CLOSED

    @property
    def metrics(self) -> Dict[str, Any]:
        """
        Get connection metrics.

        Returns:
            Dictionary with connection metrics
        """
        return {
            "bytes_sent": self._bytes_sent,
            "bytes_received": self._bytes_received,
            "body_bytes_received": self._body_bytes_received,
            "started_at": self._started_at,
            "state": self._state.value,
        }

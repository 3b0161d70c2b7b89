"""
Mock network implementations for testing.

This module provides mock implementations of NetworkStream and NetworkBackend
that can be used for unit testing without requiring actual network connections.
"""

import ssl
from typing import Any, Dict, List, Optional, Tuple

from .backend import NetworkBackend
from .stream import NetworkStream


class MockNetworkStream(NetworkStream):
    """
    Mock network stream for testing.
    
    This implementation simulates a network stream in memory,
    allowing tests to verify network behavior without actual I/O.
    """
    
    def __init__(self, data: bytes = b"", max_read_size: Optional[int] = None):
        """
        Initialize the mock stream.
        
        Args:
            data: Initial data to be available for reading.
            max_read_size: Upper bound for a single read, used to
                           simulate small transport frames.
        """
        self._data = data
        self._position = 0
        self._closed = False
        self._aborted = False
        self._max_read_size = max_read_size
        self._extra_info: Dict[str, Any] = {}
        self._write_buffer: List[bytes] = []
        self.read_count = 0
    
    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        """
        Read data from the mock stream.
        
        Raises:
            RuntimeError: If the stream is closed.
        """
        if self._closed:
            raise RuntimeError("Stream is closed")
        
        self.read_count += 1
        if self._position >= len(self._data):
            return b""
        
        limit = len(self._data) - self._position
        if max_bytes is not None:
            limit = min(limit, max_bytes)
        if self._max_read_size is not None:
            limit = min(limit, self._max_read_size)
        
        result = self._data[self._position:self._position + limit]
        self._position += limit
        return result
    
    async def write(self, data: bytes) -> None:
        """
        Write data to the mock stream.
        
        Raises:
            RuntimeError: If the stream is closed.
        """
        if self._closed:
            raise RuntimeError("Stream is closed")
        
        self._write_buffer.append(data)
    
    async def aclose(self) -> None:
        """Close the mock stream."""
        self._closed = True
    
    def abort(self) -> None:
        """Abort the mock stream."""
        self._closed = True
        self._aborted = True
    
    def get_extra_info(self, name: str) -> Optional[Any]:
        return self._extra_info.get(name)
    
    @property
    def is_closed(self) -> bool:
        """Check if the mock stream is closed."""
        return self._closed
    
    @property
    def aborted(self) -> bool:
        return self._aborted
    
    @property
    def written_data(self) -> bytes:
        """Get all data that was written to the stream."""
        return b"".join(self._write_buffer)
    
    @property
    def unread_data(self) -> bytes:
        """Get the data not yet consumed by reads."""
        return self._data[self._position:]
    
    def set_extra_info(self, name: str, value: Any) -> None:
        self._extra_info[name] = value
    
    def add_data(self, data: bytes) -> None:
        """Add data to be available for reading."""
        self._data += data


class MockNetworkBackend(NetworkBackend):
    """
    Mock network backend for testing.
    
    Each ``connect_tcp`` call opens a fresh MockNetworkStream preloaded
    with the response registered for the endpoint. Failures can be
    injected per endpoint for the TCP and the TLS step.
    """
    
    def __init__(self, max_read_size: Optional[int] = None):
        self._max_read_size = max_read_size
        self._responses: Dict[Tuple[str, int], bytes] = {}
        self._tcp_errors: Dict[Tuple[str, int], BaseException] = {}
        self._tls_errors: Dict[str, BaseException] = {}
        self._connections: Dict[Tuple[str, int], MockNetworkStream] = {}
        self.tls_contexts: List[Tuple[str, ssl.SSLContext]] = []
        self.connection_count = 0
    
    def add_response(self, host: str, port: int, data: bytes) -> None:
        """Register the raw bytes served by ``host:port``."""
        self._responses[(host, port)] = data
    
    def fail_tcp(self, host: str, port: int, error: BaseException) -> None:
        """Make ``connect_tcp`` to ``host:port`` raise ``error``."""
        self._tcp_errors[(host, port)] = error
    
    def fail_tls(self, host: str, error: BaseException) -> None:
        """Make the TLS handshake with ``host`` raise ``error``."""
        self._tls_errors[host] = error
    
    async def connect_tcp(
        self, 
        host: str, 
        port: int, 
        timeout: Optional[float] = None
    ) -> MockNetworkStream:
        key = (host, port)
        if key in self._tcp_errors:
            raise self._tcp_errors[key]
        
        stream = MockNetworkStream(
            self._responses.get(key, b""),
            max_read_size=self._max_read_size,
        )
        stream.set_extra_info("peername", (host, port))
        stream.set_extra_info("sockname", ("127.0.0.1", 12345))
        self._connections[key] = stream
        self.connection_count += 1
        return stream
    
    async def connect_tls(
        self,
        stream: NetworkStream,
        host: str,
        ssl_context: ssl.SSLContext,
        timeout: Optional[float] = None,
    ) -> NetworkStream:
        if host in self._tls_errors:
            raise self._tls_errors[host]
        
        self.tls_contexts.append((host, ssl_context))
        if isinstance(stream, MockNetworkStream):
            stream.set_extra_info("ssl_object", True)
            stream.set_extra_info("selected_alpn_protocol", "http/1.1")
        return stream
    
    def get_connection(self, host: str, port: int) -> Optional[MockNetworkStream]:
        """Get the most recent connection opened to ``host:port``."""
        return self._connections.get((host, port))
    
    def reset(self) -> None:
        """Reset all mock connections."""
        self._responses.clear()
        self._tcp_errors.clear()
        self._tls_errors.clear()
        self._connections.clear()
        self.tls_contexts.clear()
        self.connection_count = 0

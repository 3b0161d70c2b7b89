"""
asyncio network backend for silq.

Streams are thin wrappers around ``asyncio.StreamReader`` /
``asyncio.StreamWriter``; TLS is negotiated on the already open TCP
connection with ``StreamWriter.start_tls``.
"""

import asyncio
import logging
import ssl
from typing import Any, Optional

from .backend import NetworkBackend
from .stream import NetworkStream
from .utils import get_address_family, validate_port

logger = logging.getLogger(__name__)

DEFAULT_READ_SIZE = 16384


class AsyncioNetworkStream(NetworkStream):
    """Network stream over asyncio streams."""
    
    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer
        self._closed = False
    
    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        if self._closed:
            raise RuntimeError("Stream is closed")
        return await self._reader.read(max_bytes or DEFAULT_READ_SIZE)
    
    async def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("Stream is closed")
        self._writer.write(data)
        await self._writer.drain()
    
    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (OSError, ssl.SSLError) as e:
            # The peer may already have torn the connection down.
            logger.debug(f"Error while closing stream: {e}")
    
    def abort(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.transport.abort()
    
    def get_extra_info(self, name: str) -> Optional[Any]:
        return self._writer.get_extra_info(name)
    
    @property
    def is_closed(self) -> bool:
        return self._closed
    
    async def start_tls(
        self,
        ssl_context: ssl.SSLContext,
        server_hostname: str,
        timeout: Optional[float] = None,
    ) -> None:
        """Upgrade this stream to TLS in place."""
        await self._writer.start_tls(
            ssl_context,
            server_hostname=server_hostname,
            ssl_handshake_timeout=timeout,
        )


class AsyncioNetworkBackend(NetworkBackend):
    """Network backend using the running asyncio event loop."""
    
    async def connect_tcp(
        self, host: str, port: int, timeout: Optional[float] = None
    ) -> AsyncioNetworkStream:
        validate_port(port)
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port, family=get_address_family(host)),
            timeout=timeout,
        )
        logger.debug(f"TCP connection established to {host}:{port}")
        return AsyncioNetworkStream(reader, writer)
    
    async def connect_tls(
        self,
        stream: NetworkStream,
        host: str,
        ssl_context: ssl.SSLContext,
        timeout: Optional[float] = None,
    ) -> AsyncioNetworkStream:
        if not isinstance(stream, AsyncioNetworkStream):
            raise TypeError("AsyncioNetworkBackend can only upgrade its own streams")
        
        await asyncio.wait_for(
            stream.start_tls(ssl_context, server_hostname=host, timeout=timeout),
            timeout=timeout,
        )
        logger.debug(
            f"TLS established with {host} "
            f"(alpn={stream.get_extra_info('ssl_object').selected_alpn_protocol()})"
        )
        return stream

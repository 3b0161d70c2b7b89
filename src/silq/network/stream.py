"""
Network stream interface for silq.

This module defines the NetworkStream interface that all network stream
implementations must follow for consistent behavior across the library.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class NetworkStream(ABC):
    """
    Interface for network streams with async I/O operations.
    
    A NetworkStream carries exactly one request/response exchange and
    is closed afterwards.
    """
    
    @abstractmethod
    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        """
        Read data from the stream.
        
        Args:
            max_bytes: Maximum number of bytes to read.
        
        Returns:
            The data read from the stream, ``b""`` once the peer closed it.
        
        Raises:
            RuntimeError: If the stream is closed.
            OSError: If a network error occurs.
        """
        pass
    
    @abstractmethod
    async def write(self, data: bytes) -> None:
        """
        Write data to the stream and wait until it is flushed.
        
        Raises:
            RuntimeError: If the stream is closed.
            OSError: If a network error occurs.
        """
        pass
    
    @abstractmethod
    async def aclose(self) -> None:
        """Close the stream gracefully and cleanup resources."""
        pass
    
    @abstractmethod
    def abort(self) -> None:
        """
        Close the stream immediately without waiting.
        
        Safe to call from synchronous code such as finalizers.
        """
        pass
    
    @abstractmethod
    def get_extra_info(self, name: str) -> Optional[Any]:
        """
        Get extra information about the stream.
        
        Args:
            name: The name of the information to retrieve. Common values include:
                 - "peername": The remote endpoint address
                 - "sockname": The local endpoint address
                 - "ssl_object": The SSL object of a TLS stream
                 - "selected_alpn_protocol": The negotiated ALPN protocol
        
        Returns:
            The requested information or None if not available.
        """
        pass
    
    @property
    @abstractmethod
    def is_closed(self) -> bool:
        """Check if the stream is closed."""
        pass

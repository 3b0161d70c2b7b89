"""
Network backend interface for silq.

This module defines the NetworkBackend interface that provides
abstractions for creating network connections.
"""

import ssl
from abc import ABC, abstractmethod
from typing import Optional

from .stream import NetworkStream


class NetworkBackend(ABC):
    """
    Interface for network backend implementations.
    
    Backends only move bytes; mapping low-level failures to silq
    errors is the job of the Connector.
    """
    
    @abstractmethod
    async def connect_tcp(
        self, 
        host: str, 
        port: int, 
        timeout: Optional[float] = None
    ) -> NetworkStream:
        """
        Connect to a TCP endpoint.
        
        Args:
            host: The hostname or IP address to connect to. IPv6
                  literals are given without brackets.
            port: The port number to connect to.
            timeout: Optional timeout in seconds for the connection.
        
        Returns:
            A NetworkStream representing the TCP connection.
        
        Raises:
            OSError: If the connection fails.
            asyncio.TimeoutError: If the connection times out.
        """
        pass
    
    @abstractmethod
    async def connect_tls(
        self,
        stream: NetworkStream,
        host: str,
        ssl_context: ssl.SSLContext,
        timeout: Optional[float] = None,
    ) -> NetworkStream:
        """
        Upgrade a TCP stream to TLS.
        
        Args:
            stream: The existing TCP NetworkStream to upgrade.
            host: The hostname or IP address the certificate must match.
            ssl_context: The context holding trust roots and client identity.
            timeout: Optional timeout in seconds for the TLS handshake.
        
        Returns:
            A NetworkStream representing the TLS connection.
        
        Raises:
            ssl.SSLError: If the TLS handshake fails.
            asyncio.TimeoutError: If the TLS handshake times out.
        """
        pass

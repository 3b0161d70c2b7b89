"""
Network backend components for silq.

This module provides the low-level networking abstractions:
network streams and the backends that open them.
"""

from .backend import NetworkBackend
from .stream import NetworkStream
from .asyncio_backend import AsyncioNetworkBackend, AsyncioNetworkStream
from .mock import MockNetworkBackend, MockNetworkStream
from .utils import (
    format_host_header,
    get_address_family,
    is_ipv4_address,
    is_ipv6_address,
    validate_port,
)

__all__ = [
    "NetworkBackend", 
    "NetworkStream",
    "AsyncioNetworkBackend",
    "AsyncioNetworkStream",
    "MockNetworkBackend", 
    "MockNetworkStream",
    "format_host_header",
    "get_address_family",
    "is_ipv4_address",
    "is_ipv6_address",
    "validate_port",
]

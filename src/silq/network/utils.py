"""
Network utilities for silq.

This module provides helpers for classifying host literals and
formatting authorities for the ``Host`` header.
"""

import socket


def is_ipv6_address(host: str) -> bool:
    """
    Check if a host string is an IPv6 address.
    
    Args:
        host: Host string to check, without brackets
    
    Returns:
        True if the host is an IPv6 address
    """
    try:
        socket.inet_pton(socket.AF_INET6, host)
        return True
    except OSError:
        return False


def is_ipv4_address(host: str) -> bool:
    """
    Check if a host string is an IPv4 address.
    
    Args:
        host: Host string to check
    
    Returns:
        True if the host is an IPv4 address
    """
    try:
        socket.inet_pton(socket.AF_INET, host)
        return True
    except OSError:
        return False


def get_address_family(host: str) -> int:
    """
    Determine the address family to connect with.
    
    IP literals pin the family; domain names leave it to the resolver.
    
    Returns:
        AF_INET6, AF_INET or AF_UNSPEC
    """
    if is_ipv6_address(host):
        return socket.AF_INET6
    if is_ipv4_address(host):
        return socket.AF_INET
    return socket.AF_UNSPEC


def format_host_header(host: str, port: int, scheme: str) -> str:
    """
    Format the authority sent in the ``Host`` header.
    
    Args:
        host: Hostname or IP literal without brackets
        port: Port number
        scheme: URL scheme
    
    Returns:
        Authority with IPv6 literals bracketed and default ports omitted
    """
    if is_ipv6_address(host):
        host = f"[{host}]"
    if (scheme == "https" and port == 443) or (scheme == "http" and port == 80):
        return host
    return f"{host}:{port}"


def validate_port(port: int) -> int:
    """
    Validate a port number.
    
    Raises:
        ValueError: If port is out of range
    """
    if not (1 <= port <= 65535):
        raise ValueError(f"Port must be between 1 and 65535, got {port}")
    return port

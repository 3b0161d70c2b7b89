"""
Custom exceptions for silq.

This module defines the exception hierarchy used throughout
the library. Every message is rendered as ``"<category>: <detail>"``
so calling code can pattern-match on it.
"""

from typing import Optional


class SilqError(Exception):
    """Base exception for all silq errors."""
    
    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConnectionError(SilqError):
    """Raised when a connection cannot be established or is lost."""
    
    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Connection error: {message}", cause)


class ResolutionError(ConnectionError):
    """Raised when the target host cannot be resolved or reached."""


class TlsError(ConnectionError):
    """
    Raised when the TLS handshake fails.
    
    ``reason`` carries the failure sub-reason (``UnknownIssuer``,
    ``Expired``, ``NotValidForName``, ...) verbatim.
    """
    
    def __init__(
        self,
        message: str,
        reason: str = "HandshakeFailure",
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, cause)
        self.reason = reason
    
    @classmethod
    def invalid_peer_certificate(
        cls, reason: str, cause: Optional[Exception] = None
    ) -> "TlsError":
        """Create the error raised when the peer certificate is rejected."""
        return cls(f"invalid peer certificate: {reason}", reason=reason, cause=cause)


class ProtocolError(SilqError):
    """Raised when there's an error with HTTP protocol handling."""
    
    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Protocol error: {message}", cause)


class DecodeError(SilqError):
    """Raised when a response body cannot be decoded as text or JSON."""
    
    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Decode error: {message}", cause)


class TimeoutError(SilqError):
    """Raised when an operation times out."""
    
    def __init__(self, message: str, timeout: Optional[float] = None) -> None:
        if timeout is not None:
            message = f"{message} (timeout: {timeout}s)"
        super().__init__(f"Timeout error: {message}")
        self.timeout = timeout


class StreamError(SilqError):
    """Raised when there's an error with stream operations."""
    
    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Stream error: {message}", cause)

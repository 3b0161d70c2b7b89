"""
Connection establishment for silq.

The Connector opens the TCP connection for a URL and, for https,
performs the (optionally mutual) TLS handshake. Low-level failures
are mapped onto the silq exception hierarchy here so that the TLS
failure reason reaches the caller unchanged.
"""

import asyncio
import logging
import socket
import ssl
from typing import Optional

from .exceptions import ResolutionError, TimeoutError, TlsError
from .http_primitives import URL
from .network.backend import NetworkBackend
from .network.stream import NetworkStream
from .tls import alert_reason, verification_reason

logger = logging.getLogger(__name__)


class Connector:
    """
    Opens one NetworkStream per request.

    No connection is reused and nothing is retried.
    """

    DEFAULT_CONNECT_TIMEOUT = 10.0  # 10 seconds

    def __init__(
        self,
        backend: NetworkBackend,
        ssl_context: Optional[ssl.SSLContext] = None,
        connect_timeout: Optional[float] = None,
    ) -> None:
        """
        Initialize the connector.

        Args:
            backend: Network backend used to open streams
            ssl_context: Context for https targets; required to reach them
            connect_timeout: Deadline for TCP connect and TLS handshake each
        """
        self._backend = backend
        self._ssl_context = ssl_context
        self._connect_timeout = connect_timeout or self.DEFAULT_CONNECT_TIMEOUT

    async def connect(self, url: URL) -> NetworkStream:
        """
        Connect to the endpoint of ``url``.

        Returns:
            A connected (and for https, handshaken) NetworkStream

        Raises:
            ResolutionError: If the host cannot be resolved or reached
            TlsError: If the TLS handshake fails
            TimeoutError: If connecting or the handshake exceeds the deadline
        """
        stream = await self._connect_tcp(url)

        if url.scheme != "https":
            return stream

        try:
            return await self._connect_tls(stream, url)
        except BaseException:
            stream.abort()
            raise

    async def _connect_tcp(self, url: URL) -> NetworkStream:
        logger.debug(f"Connecting to {url.authority}")
        try:
            return await self._backend.connect_tcp(
                url.host, url.port, timeout=self._connect_timeout
            )
        except asyncio.TimeoutError:
            raise TimeoutError(
                f"Connecting to {url.authority} timed out", timeout=self._connect_timeout
            ) from None
        except socket.gaierror as e:
            raise ResolutionError(f"failed to resolve host '{url.host}': {e}", cause=e) from e
        except OSError as e:
            raise ResolutionError(f"failed to connect to {url.authority}: {e}", cause=e) from e

    async def _connect_tls(self, stream: NetworkStream, url: URL) -> NetworkStream:
        if self._ssl_context is None:
            raise TlsError("no TLS configuration available for https", reason="NotConfigured")

        try:
            tls_stream = await self._backend.connect_tls(
                stream, url.host, self._ssl_context, timeout=self._connect_timeout
            )
        except asyncio.TimeoutError:
            raise TimeoutError(
                f"TLS handshake with {url.authority} timed out", timeout=self._connect_timeout
            ) from None
        except ssl.SSLCertVerificationError as e:
            reason = verification_reason(e)
            logger.debug(f"Certificate of {url.authority} rejected: {e.verify_message}")
            raise TlsError.invalid_peer_certificate(reason, cause=e) from e
        except ssl.SSLError as e:
            raise TlsError(
                f"TLS handshake with {url.authority} failed: {e}",
                reason=alert_reason(e),
                cause=e,
            ) from e
        except OSError as e:
            raise TlsError(
                f"connection to {url.authority} lost during TLS handshake: {e}",
                cause=e,
            ) from e

        logger.debug(f"TLS handshake with {url.authority} completed")
        return tls_stream

"""
HTTP client facade for silq.

HttpClient holds an immutable configuration and the SSL context
compiled from it. Its verb methods return request builders; ``send``
drives Connector -> HTTP11Connection -> ResponseHandle for one request
over one fresh connection.
"""

import logging
from typing import Optional, Union

from .config import ClientConfig
from .connector import Connector
from .http11 import HTTP11Connection
from .http_primitives import URL, RequestSpec
from .network.asyncio_backend import AsyncioNetworkBackend
from .network.backend import NetworkBackend
from .request import RequestBuilder
from .response import ResponseHandle
from .tls import CertificateAuthority, ClientIdentity, TlsConfig

logger = logging.getLogger(__name__)


class HttpClient:
    """
    Entry point for sending requests.

    A client is safe to share between concurrent tasks: it holds no
    per-request state and every ``send`` opens its own connection.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        backend: Optional[NetworkBackend] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Client configuration; a default one is created if omitted
            backend: Network backend; asyncio streams if omitted

        Raises:
            ValueError: If the TLS configuration cannot be loaded
        """
        self._config = config or ClientConfig()
        self._backend = backend or AsyncioNetworkBackend()
        self._connector = Connector(
            self._backend,
            ssl_context=self._config.tls.create_ssl_context(),
            connect_timeout=self._config.connect_timeout,
        )

    @classmethod
    def default(cls) -> "HttpClient":
        """Create a client that trusts the system certificate store."""
        return cls()

    @classmethod
    def builder(cls) -> "HttpClientBuilder":
        return HttpClientBuilder()

    @property
    def config(self) -> ClientConfig:
        return self._config

    def request(self, method: str, url: Union[str, URL]) -> RequestBuilder:
        return RequestBuilder(self, method, url)

    def get(self, url: Union[str, URL]) -> RequestBuilder:
        return self.request("GET", url)

    def post(self, url: Union[str, URL]) -> RequestBuilder:
        return self.request("POST", url)

    def put(self, url: Union[str, URL]) -> RequestBuilder:
        return self.request("PUT", url)

    def patch(self, url: Union[str, URL]) -> RequestBuilder:
        return self.request("PATCH", url)

    def delete(self, url: Union[str, URL]) -> RequestBuilder:
        return self.request("DELETE", url)

    async def send(self, request: RequestSpec) -> ResponseHandle:
        """
        Send ``request`` over a new connection.

        Returns:
            A ResponseHandle owning the connection; its body is unread

        Raises:
            ConnectionError: If connecting fails (ResolutionError, TlsError)
            ProtocolError: If the peer violates HTTP/1.1
            TimeoutError: If connecting, writing or reading times out
        """
        logger.debug(f"Sending {request.method} {request.url}")
        stream = await self._connector.connect(request.url)

        connection = HTTP11Connection(
            stream,
            read_timeout=self._config.read_timeout,
            write_timeout=self._config.write_timeout,
            read_chunk_size=self._config.read_chunk_size,
        )
        head = await connection.handle_request(request)
        return ResponseHandle(head, connection, timeout=request.timeout)


class HttpClientBuilder:
    """
    Assembles a ClientConfig field by field.

    The configuration is validated and the SSL context compiled once,
    in ``build()``.
    """

    def __init__(self) -> None:
        self._server_trust: Optional[CertificateAuthority] = None
        self._client_identity: Optional[ClientIdentity] = None
        self._use_system_trust: Optional[bool] = None
        self._connect_timeout: Optional[float] = None
        self._read_timeout: Optional[float] = None
        self._write_timeout: Optional[float] = None
        self._backend: Optional[NetworkBackend] = None

    def with_server_authentication(self, authority: CertificateAuthority) -> "HttpClientBuilder":
        """Validate servers against ``authority`` instead of the system store."""
        self._server_trust = authority
        return self

    def with_client_authentication(self, identity: ClientIdentity) -> "HttpClientBuilder":
        """Present ``identity`` to servers that request a client certificate."""
        self._client_identity = identity
        return self

    def with_system_trust_store(self, enabled: bool = True) -> "HttpClientBuilder":
        """Trust the system store as well as (or instead of) a server authority."""
        self._use_system_trust = enabled
        return self

    def with_connect_timeout(self, seconds: float) -> "HttpClientBuilder":
        self._connect_timeout = seconds
        return self

    def with_read_timeout(self, seconds: float) -> "HttpClientBuilder":
        self._read_timeout = seconds
        return self

    def with_write_timeout(self, seconds: float) -> "HttpClientBuilder":
        self._write_timeout = seconds
        return self

    def with_backend(self, backend: NetworkBackend) -> "HttpClientBuilder":
        """Use a custom network backend, e.g. MockNetworkBackend in tests."""
        self._backend = backend
        return self

    def build(self) -> HttpClient:
        """
        Create the configured client.

        Raises:
            ValueError: If a timeout is invalid or the TLS material
                        cannot be loaded (e.g. key does not match certificate)
        """
        tls = TlsConfig(
            server_trust=self._server_trust,
            client_identity=self._client_identity,
            use_system_trust=self._use_system_trust,
        )
        config = ClientConfig().with_tls(tls).with_timeouts(
            connect_timeout=self._connect_timeout,
            read_timeout=self._read_timeout,
            write_timeout=self._write_timeout,
        )
        return HttpClient(config, backend=self._backend)

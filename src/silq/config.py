"""
Client configuration for silq.

ClientConfig is an immutable value assembled by HttpClientBuilder and
validated when it is created. A default instance is built on demand
for every default client; there is no shared global configuration.
"""

from dataclasses import dataclass, field
from typing import Optional

from .tls import TlsConfig


@dataclass(frozen=True)
class ClientConfig:
    """
    Settings shared by every request a client sends.
    
    Timeouts are in seconds. ``read_timeout`` applies to each read
    from the connection, not to the whole response.
    """
    
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    write_timeout: float = 30.0
    read_chunk_size: int = 16384
    tls: TlsConfig = field(default_factory=TlsConfig)
    
    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        for name in ("connect_timeout", "read_timeout", "write_timeout"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or value <= 0:
                raise ValueError(f"{name} must be a positive number of seconds")
        
        if self.read_chunk_size <= 0:
            raise ValueError("read_chunk_size must be positive")
        
        if not isinstance(self.tls, TlsConfig):
            raise ValueError("tls must be a TlsConfig")
    
    def with_tls(self, tls: TlsConfig) -> "ClientConfig":
        """Create a new config with different TLS settings."""
        return ClientConfig(
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            write_timeout=self.write_timeout,
            read_chunk_size=self.read_chunk_size,
            tls=tls,
        )
    
    def with_timeouts(
        self,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        write_timeout: Optional[float] = None,
    ) -> "ClientConfig":
        """Create a new config with some timeouts replaced."""
        return ClientConfig(
            connect_timeout=self.connect_timeout if connect_timeout is None else connect_timeout,
            read_timeout=self.read_timeout if read_timeout is None else read_timeout,
            write_timeout=self.write_timeout if write_timeout is None else write_timeout,
            read_chunk_size=self.read_chunk_size,
            tls=self.tls,
        )

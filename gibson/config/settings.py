"""
Gibson Client Configuration Settings

This module contains the configuration constants for the Gibson client
and the parser for server address strings.
"""

import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit


DEFAULT_ADDRESS = "unix:///var/run/gibson.sock"


@dataclass
class Settings:
    """Client configuration settings."""

    # Network settings
    ADDRESS: str = os.environ.get("GIBSON_ADDRESS", DEFAULT_ADDRESS)
    CONNECT_TIMEOUT: float = float(os.environ.get("GIBSON_CONNECT_TIMEOUT", "5.0"))
    REQUEST_TIMEOUT: float = float(os.environ.get("GIBSON_TIMEOUT", "0"))  # 0 means no timeout
    READ_BUFFER_SIZE: int = 4096

    # Protocol settings
    BUFFER_WARN_SIZE: int = 16 * 1024 * 1024
    TEXT_ENCODING: str = "utf-8"

    # Logging settings
    DEBUG: bool = os.environ.get("GIBSON_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("GIBSON_LOG_LEVEL", "INFO")


@dataclass(frozen=True)
class Endpoint:
    """
    A parsed server address.

    Exactly one of (host, port) or path is set.

    Attributes:
        host: TCP host name or address
        port: TCP port number
        path: Filesystem path of a Unix domain socket
    """
    host: Optional[str] = None
    port: Optional[int] = None
    path: Optional[str] = None

    @property
    def is_unix(self) -> bool:
        return self.path is not None

    def __str__(self) -> str:
        if self.is_unix:
            return f"unix://{self.path}"
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"tcp://{host}:{self.port}"


def _parse_port(value: str, address: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise ValueError(f"invalid port in address: {address!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"port out of range in address: {address!r}")
    return port


def parse_address(address: str) -> Endpoint:
    """
    Parse a server address string into an Endpoint.

    Accepted forms:
        tcp://host:port
        unix:///path/to/gibson.sock
        host:port
        /path/to/gibson.sock

    Args:
        address: The address string

    Returns:
        Endpoint for either a TCP server or a Unix domain socket

    Raises:
        ValueError: If the address cannot be understood
    """
    address = address.strip() if address else ""
    if not address:
        raise ValueError("empty address")

    if "://" in address:
        parts = urlsplit(address)
        if parts.scheme == "unix":
            path = (parts.netloc + parts.path) or ""
            if not path:
                raise ValueError(f"missing socket path in address: {address!r}")
            return Endpoint(path=path)
        if parts.scheme == "tcp":
            if not parts.hostname or parts.port is None:
                raise ValueError(f"tcp address needs host and port: {address!r}")
            return Endpoint(host=parts.hostname, port=parts.port)
        raise ValueError(f"unsupported address scheme: {parts.scheme!r}")

    if address.startswith(("/", ".")):
        return Endpoint(path=address)

    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise ValueError(f"address must be host:port or a socket path: {address!r}")
    return Endpoint(host=host.strip("[]"), port=_parse_port(port, address))


# Global settings instance
settings = Settings()

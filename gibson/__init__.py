"""
Gibson Client: Binary Protocol Client for the Gibson Cache

An asyncio client for the Gibson key-value cache server, talking its
length-prefixed binary protocol over TCP or Unix domain sockets.
"""

from .network.client import GibsonClient
from .protocol.commands import Encoding, Opcode, ReplyCode, Value, ValueKind
from .protocol.errors import GibsonError, ReplyError

__version__ = "1.0.0"

__all__ = [
    "GibsonClient",
    "GibsonError",
    "ReplyError",
    "Opcode",
    "ReplyCode",
    "Encoding",
    "Value",
    "ValueKind",
]

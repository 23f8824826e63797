"""Network module for the Gibson client."""

from .client import GibsonClient
from .transport import StreamTransport

__all__ = ["GibsonClient", "StreamTransport"]

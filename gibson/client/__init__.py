"""Client core module for the Gibson client."""

from .core import ClientCore, ConnectionEvent, Transport
from .pipeline import PendingRequest, PipelineRouter

__all__ = [
    "ClientCore",
    "ConnectionEvent",
    "PendingRequest",
    "PipelineRouter",
    "Transport",
]

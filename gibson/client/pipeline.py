"""
Pipeline Router Module

Matches replies to requests. Gibson answers requests strictly in the
order they were sent on a connection and frames carry no request id, so
the oldest outstanding request always owns the next reply.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Optional

from ..protocol.errors import ProtocolViolation

logger = logging.getLogger(__name__)

# resolver(error, value): exactly one of the two is meaningful
Resolver = Callable[[Optional[BaseException], Any], None]


@dataclass
class PendingRequest:
    """
    A request waiting for its reply.

    Attributes:
        opcode: Opcode the request was sent with
        resolver: Called once with (error, value) when the reply arrives
    """
    opcode: int
    resolver: Optional[Resolver] = None

    def resolve(self, error: Optional[BaseException], value: Any) -> None:
        if self.resolver is not None:
            self.resolver(error, value)


class PipelineRouter:
    """
    FIFO queue of outstanding requests.

    enqueue() must be called no later than the matching frame is written
    to the transport, otherwise queue order and wire order diverge.
    """

    def __init__(self):
        self._queue: Deque[PendingRequest] = deque()

    def __len__(self) -> int:
        return len(self._queue)

    def enqueue(self, opcode: int, resolver: Optional[Resolver] = None) -> PendingRequest:
        """Append a request to the back of the queue."""
        request = PendingRequest(opcode=opcode, resolver=resolver)
        self._queue.append(request)
        return request

    def resolve_next(self, error: Optional[BaseException] = None, value: Any = None) -> PendingRequest:
        """
        Resolve the oldest pending request.

        Args:
            error: Exception to deliver, or None on success
            value: Decoded value on success

        Returns:
            The request that was resolved

        Raises:
            ProtocolViolation: If nothing is pending
        """
        if not self._queue:
            raise ProtocolViolation("Received a reply with no pending request")

        request = self._queue.popleft()
        request.resolve(error, value)
        return request

    def fail_all(self, error: BaseException) -> int:
        """
        Resolve every pending request with the same error, oldest first.

        Returns:
            Number of requests failed
        """
        failed = 0
        while self._queue:
            self._queue.popleft().resolve(error, None)
            failed += 1
        if failed:
            logger.debug(f"Failed {failed} pending request(s): {error}")
        return failed

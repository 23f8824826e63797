"""
Stream Reassembler Module

Rebuilds complete reply frames from the arbitrarily chunked byte stream a
socket delivers. A chunk may hold part of a frame, exactly one frame, or
several frames back to back; the reassembler hides all of that.
"""

import logging
from typing import Iterator, Union

from ..config.settings import settings
from .codec import try_decode_header
from .commands import HEADER_SIZE, Frame

logger = logging.getLogger(__name__)


class StreamReassembler:
    """
    Incremental frame reassembler.

    Internal Storage:
        A single bytearray arena plus a read cursor. Bytes before the
        cursor have already been handed out as frames; they are dropped in
        one slice once they make up more than half of the arena, so many
        small chunks never cause quadratic copying.

    No backpressure is applied: if the peer never completes a frame the
    arena keeps growing. A warning is logged past warn_size.

    Usage:
        reassembler = StreamReassembler()
        for frame in reassembler.feed(chunk):
            handle(frame)
    """

    def __init__(self, warn_size: int = None):
        self._buffer = bytearray()
        self._cursor = 0
        self.warn_size = warn_size if warn_size is not None else settings.BUFFER_WARN_SIZE
        self._warned = False

    @property
    def buffered(self) -> int:
        """Number of received bytes not yet consumed into a frame."""
        return len(self._buffer) - self._cursor

    def feed(self, chunk: Union[bytes, bytearray, memoryview]) -> Iterator[Frame]:
        """
        Append a chunk and iterate over the frames that are now complete.

        The chunk is buffered immediately; frames are cut lazily while the
        returned iterator is consumed. A warning is logged when the
        iterator stops on an incomplete frame larger than warn_size.
        Frames left unconsumed remain buffered and come out of the next
        feed() call.

        Args:
            chunk: Raw bytes from the transport

        Returns:
            Iterator of complete Frames, possibly empty.
        """
        self._buffer += chunk
        return self._drain()

    def _check_growth(self) -> None:
        # warns once per incomplete frame
        if self.buffered > self.warn_size and not self._warned:
            self._warned = True
            logger.warning(f"Reassembly buffer holds {self.buffered} bytes of incomplete data")

    def _drain(self) -> Iterator[Frame]:
        while True:
            header = try_decode_header(self._buffer, self._cursor)
            if header is None:
                break

            start = self._cursor + HEADER_SIZE
            end = start + header.length
            if end > len(self._buffer):
                # keep waiting for incoming data
                self._check_growth()
                break

            frame = Frame(
                code=header.code,
                encoding=header.encoding,
                length=header.length,
                payload=bytes(self._buffer[start:end]),
            )
            self._cursor = end
            self._warned = False
            self._compact()
            yield frame

    def _compact(self) -> None:
        if self._cursor == len(self._buffer):
            self._buffer.clear()
            self._cursor = 0
        elif self._cursor > len(self._buffer) // 2:
            del self._buffer[:self._cursor]
            self._cursor = 0

    def reset(self) -> None:
        """Drop everything buffered."""
        self._buffer.clear()
        self._cursor = 0
        self._warned = False

"""
Frame Codec Module

Pure encoding and header decoding of Gibson wire frames. No I/O happens
here; the reassembler and the client core build on these helpers.

Wire Format (all integers little-endian):
    Request:  <length u32> <opcode u16> <payload>
              length covers opcode + payload
    Reply:    <code u16> <encoding u8> <datalen u32> <payload>
              datalen covers the payload only
"""

import struct
from typing import NamedTuple, Optional, Union

from .commands import HEADER_SIZE, REPLY_HEADER

REQUEST_HEADER = struct.Struct("<IH")


class FrameHeader(NamedTuple):
    """Fixed-size header of an inbound frame."""
    code: int
    encoding: int
    length: int


def encode_request(opcode: int, payload: Union[bytes, str] = b"") -> bytes:
    """
    Encode a request frame.

    Args:
        opcode: Command opcode (u16)
        payload: Serialized arguments; str is encoded as UTF-8

    Returns:
        The complete frame, ready to be written to the transport.

    Examples:
        >>> encode_request(19)
        b'\\x02\\x00\\x00\\x00\\x13\\x00'
        >>> encode_request(3, b"foo")
        b'\\x05\\x00\\x00\\x00\\x03\\x00foo'
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return REQUEST_HEADER.pack(2 + len(payload), opcode) + bytes(payload)


def encode_reply(code: int, encoding: int, payload: bytes = b"") -> bytes:
    """Encode a reply frame, as the server would send it."""
    return REPLY_HEADER.pack(code, encoding, len(payload)) + bytes(payload)


def try_decode_header(buf: Union[bytes, bytearray, memoryview], offset: int = 0) -> Optional[FrameHeader]:
    """
    Read a reply header without consuming anything.

    Args:
        buf: Buffered bytes
        offset: Where the header starts within buf

    Returns:
        FrameHeader, or None if fewer than HEADER_SIZE bytes are available.
    """
    if len(buf) - offset < HEADER_SIZE:
        return None
    return FrameHeader(*REPLY_HEADER.unpack_from(buf, offset))

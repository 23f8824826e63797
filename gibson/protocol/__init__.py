"""Protocol module for the Gibson client."""

from .codec import FrameHeader, encode_reply, encode_request, try_decode_header
from .commands import (
    ERROR_MESSAGES,
    HEADER_SIZE,
    Encoding,
    Frame,
    Opcode,
    ReplyCode,
    Value,
    ValueKind,
    build_payload,
    lookup_opcode,
)
from .decoder import ValueDecoder, decode_int64_words
from .reassembler import StreamReassembler

__all__ = [
    "ERROR_MESSAGES",
    "HEADER_SIZE",
    "Encoding",
    "Frame",
    "FrameHeader",
    "Opcode",
    "ReplyCode",
    "StreamReassembler",
    "Value",
    "ValueDecoder",
    "ValueKind",
    "build_payload",
    "decode_int64_words",
    "encode_reply",
    "encode_request",
    "lookup_opcode",
    "try_decode_header",
]

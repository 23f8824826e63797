"""
Value Decoder Module

Turns the payload of a reply frame into a typed Value.

Reply kinds:
    REPL_VAL   scalar, PLAIN text or NUMBER (4 or 8 byte signed integer)
    REPL_KVAL  map of key -> scalar
    REPL_ERR*  error reply, raised as ReplyError
    other      payload returned untouched as RAW bytes

Map payload layout:
    <count u32>
    count x ( <klen u32> <key bytes> <encoding u8> <vsize u32> <value bytes> )
"""

import struct
from typing import Dict, Mapping, Optional

from ..config.settings import settings
from .commands import ERROR_MESSAGES, Encoding, ReplyCode, Value, is_error_code
from .errors import ReplyError, TruncatedPayloadError, UnknownEncodingError, UnknownErrorCodeError

U32 = struct.Struct("<I")
I32 = struct.Struct("<i")
WORDS = struct.Struct("<II")


def decode_int64_words(lo: int, hi: int) -> int:
    """
    Rebuild a signed 64-bit integer from its two little-endian 32-bit words.

    Args:
        lo: Low word, unsigned
        hi: High word, unsigned

    Returns:
        The signed value in [-2**63, 2**63 - 1]

    Examples:
        >>> decode_int64_words(0xFFFFFFFF, 0xFFFFFFFF)
        -1
        >>> decode_int64_words(0, 1)
        4294967296
    """
    if not hi & 0x80000000:
        return lo + hi * 0x100000000
    return -(((~hi & 0xFFFFFFFF) * 0x100000000) + (~lo & 0xFFFFFFFF) + 1)


class ValueDecoder:
    """
    Decoder for reply payloads.

    One decode() routine serves both whole replies and the entries of a
    map reply, so scalars are interpreted identically in both places.

    Attributes:
        error_messages: Error reply code -> message table
        text_encoding: Codec used for PLAIN values
    """

    def __init__(self, error_messages: Optional[Mapping[int, str]] = None, text_encoding: str = None):
        self.error_messages = dict(ERROR_MESSAGES if error_messages is None else error_messages)
        self.text_encoding = text_encoding or settings.TEXT_ENCODING

    def decode(self, code: int, encoding: int, size: int, data: bytes) -> Value:
        """
        Decode a reply payload.

        Args:
            code: Reply code of the frame
            encoding: Encoding tag of the frame
            size: Payload size as declared by the frame
            data: Payload bytes

        Returns:
            The decoded Value.

        Raises:
            ReplyError: The frame is an error reply
            UnknownErrorCodeError: Error reply with no known message
            UnknownEncodingError: Scalar with an unsupported encoding
            TruncatedPayloadError: A length field overruns the payload
        """
        if is_error_code(code):
            message = self.error_messages.get(code)
            if message is None:
                raise UnknownErrorCodeError(code)
            raise ReplyError(code, message, bytes(data))

        if code == ReplyCode.REPL_VAL:
            return self._decode_scalar(encoding, size, data)

        if code == ReplyCode.REPL_KVAL:
            return self._decode_map(data)

        return Value.raw(data)

    def _decode_scalar(self, encoding: int, size: int, data: bytes) -> Value:
        if encoding == Encoding.PLAIN:
            return Value.text(bytes(data).decode(self.text_encoding, errors="replace"))

        if encoding == Encoding.NUMBER:
            if size == 8:
                if len(data) < 8:
                    raise TruncatedPayloadError(f"64 bit number needs 8 bytes, got {len(data)}")
                return Value.integer(decode_int64_words(*WORDS.unpack_from(data, 0)))

            if len(data) < 4:
                raise TruncatedPayloadError(f"32 bit number needs 4 bytes, got {len(data)}")
            return Value.integer(I32.unpack_from(data, 0)[0])

        raise UnknownEncodingError(encoding)

    def _decode_map(self, data: bytes) -> Value:
        view = memoryview(data)
        end = len(view)

        def take(offset: int, count: int, what: str) -> int:
            if offset + count > end:
                raise TruncatedPayloadError(
                    f"{what} needs {count} bytes at offset {offset}, "
                    f"only {end - offset} left"
                )
            return offset + count

        offset = take(0, 4, "entry count")
        count = U32.unpack_from(view, 0)[0]
        items: Dict[str, Value] = {}

        for _ in range(count):
            start = offset
            offset = take(offset, 4, "key length")
            klen = U32.unpack_from(view, start)[0]

            start = offset
            offset = take(offset, klen, "key")
            key = bytes(view[start:offset]).decode("utf-8", errors="replace")

            start = offset
            offset = take(offset, 1, "value encoding")
            enc = view[start]

            start = offset
            offset = take(offset, 4, "value size")
            vsize = U32.unpack_from(view, start)[0]

            start = offset
            offset = take(offset, vsize, "value")
            items[key] = self.decode(ReplyCode.REPL_VAL, enc, vsize, bytes(view[start:offset]))

        return Value.mapping(items)

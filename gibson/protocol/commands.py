"""
Protocol Constants and Data Structures

This module defines the Gibson command table (opcodes), the reply codes
and value encodings the server sends back, and the data structures the
protocol engine passes around: frames and decoded values.
"""

import struct
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Union


# code(2) + encoding(1) + datalen(4)
REPLY_HEADER = struct.Struct("<HBI")
HEADER_SIZE = REPLY_HEADER.size


class Opcode(IntEnum):
    """Request opcodes understood by the Gibson server."""
    SET = 1
    TTL = 2
    GET = 3
    DEL = 4
    INC = 5
    DEC = 6
    LOCK = 7
    UNLOCK = 8
    MSET = 9
    MTTL = 10
    MGET = 11
    MDEL = 12
    MINC = 13
    MDEC = 14
    MLOCK = 15
    MUNLOCK = 16
    COUNT = 17
    STATS = 18
    PING = 19
    SIZEOF = 20
    MSIZEOF = 21
    ENCOF = 22
    KEYS = 23
    END = 0xFF


class ReplyCode(IntEnum):
    """Response codes carried by inbound frames."""
    REPL_ERR = 0
    REPL_ERR_NOT_FOUND = 1
    REPL_ERR_NAN = 2
    REPL_ERR_MEM = 3
    REPL_ERR_LOCKED = 4
    REPL_OK = 5
    REPL_VAL = 6
    REPL_KVAL = 7


class Encoding(IntEnum):
    """Value encodings carried by inbound frames and map entries."""
    PLAIN = 0x00
    LZF = 0x01
    NUMBER = 0x02


ERROR_MESSAGES: Dict[int, str] = {
    ReplyCode.REPL_ERR: "Generic error",
    ReplyCode.REPL_ERR_NOT_FOUND: "Invalid key, item not found",
    ReplyCode.REPL_ERR_NAN: "Invalid value, not a number",
    ReplyCode.REPL_ERR_MEM: "Gibson server is out of memory",
    ReplyCode.REPL_ERR_LOCKED: "The item is locked",
}

# Command name -> opcode, case-insensitive lookups go through lookup_opcode()
COMMANDS: Dict[str, Opcode] = {op.name: op for op in Opcode}


def is_error_code(code: int) -> bool:
    """Error replies occupy every code below REPL_OK."""
    return 0 <= code < ReplyCode.REPL_OK


def lookup_opcode(command: Union[str, int]) -> int:
    """
    Resolve a command name or number to its opcode.

    Args:
        command: An Opcode, a raw integer opcode or a command name
                 (case-insensitive, e.g. "mget")

    Returns:
        The integer opcode

    Raises:
        KeyError: If the name is not in the command table
        ValueError: If an integer does not fit in 16 bits
    """
    if isinstance(command, str):
        try:
            return COMMANDS[command.strip().upper()]
        except KeyError:
            raise KeyError(f"unknown command: {command!r}") from None

    opcode = int(command)
    if not 0 <= opcode <= 0xFFFF:
        raise ValueError(f"opcode out of range: {opcode}")
    return opcode


def build_payload(*args: Any) -> bytes:
    """
    Serialize command arguments the way the server parses them.

    Arguments are converted with str() and joined with single spaces.
    Bytes arguments are passed through untouched.
    """
    parts = [arg if isinstance(arg, (bytes, bytearray)) else str(arg).encode("utf-8")
             for arg in args]
    return b" ".join(parts)


@dataclass(frozen=True)
class Frame:
    """
    One complete inbound protocol message.

    Attributes:
        code: Reply code (u16)
        encoding: Payload encoding tag (u8)
        length: Declared payload length (u32)
        payload: Exactly `length` payload bytes
    """
    code: int
    encoding: int
    length: int
    payload: bytes = field(repr=False)


class ValueKind(Enum):
    """Tags of the decoded value variant."""
    TEXT = "text"
    INTEGER = "integer"
    MAP = "map"
    RAW = "raw"


@dataclass(frozen=True)
class Value:
    """
    A decoded reply value.

    Attributes:
        kind: Which variant this value is
        data: str for TEXT, int for INTEGER, read-only mapping of
              str -> Value for MAP, bytes for RAW
    """
    kind: ValueKind
    data: Any

    def __post_init__(self):
        if self.kind == ValueKind.MAP:
            object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    def __hash__(self) -> int:
        if self.kind == ValueKind.MAP:
            return hash((self.kind, tuple(self.data.items())))
        return hash((self.kind, self.data))

    @classmethod
    def text(cls, data: str) -> "Value":
        return cls(kind=ValueKind.TEXT, data=data)

    @classmethod
    def integer(cls, data: int) -> "Value":
        return cls(kind=ValueKind.INTEGER, data=data)

    @classmethod
    def mapping(cls, data: Mapping[str, "Value"]) -> "Value":
        return cls(kind=ValueKind.MAP, data=data)

    @classmethod
    def raw(cls, data: bytes) -> "Value":
        return cls(kind=ValueKind.RAW, data=bytes(data))

    def to_python(self) -> Any:
        """Unwrap into plain Python objects, recursing into maps."""
        if self.kind == ValueKind.MAP:
            return {key: value.to_python() for key, value in self.data.items()}
        return self.data

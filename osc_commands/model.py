"""
Domain Model

Immutable value types that flow through one dispatch task:
- OSC arguments (one frozen dataclass per argument kind)
- OSC packets (Message / Bundle tree)
- ResolvedCommand: the argument vector handed to the executor
- ReplyPacket: the /success or /error answer sent back to the requester
"""

from dataclasses import dataclass, field
from typing import Tuple, Union

# Nested bundles deeper than this are rejected as a whole
MAX_BUNDLE_DEPTH = 32

SUCCESS_ADDRESS = "/success"
ERROR_ADDRESS = "/error"

# Error tags carried as the second reply argument
UNKNOWN_COMMAND = "unknown command"
EXEC_ERROR = "exec error"
INVALID_COMMAND = "invalid command"


# =============================================================================
# OSC ARGUMENTS
# =============================================================================

@dataclass(frozen=True)
class Int32:
    value: int


@dataclass(frozen=True)
class Int64:
    value: int


@dataclass(frozen=True)
class Float32:
    value: float


@dataclass(frozen=True)
class Float64:
    value: float


@dataclass(frozen=True)
class String:
    value: str


@dataclass(frozen=True)
class TimeTag:
    """NTP-style time tag: 32-bit seconds since 1900 plus 32-bit fraction."""
    seconds: int
    fractional: int

    @property
    def is_immediate(self) -> bool:
        return self.seconds == 0 and self.fractional == 1


@dataclass(frozen=True)
class Char:
    value: str


@dataclass(frozen=True)
class Color:
    red: int
    green: int
    blue: int
    alpha: int


@dataclass(frozen=True)
class Bool:
    value: bool


@dataclass(frozen=True)
class Nil:
    pass


@dataclass(frozen=True)
class Infinity:
    pass


@dataclass(frozen=True)
class Blob:
    value: bytes


@dataclass(frozen=True)
class Midi:
    port: int
    status: int
    data1: int
    data2: int


@dataclass(frozen=True)
class Array:
    items: Tuple["OscArg", ...] = ()


OscArg = Union[
    Int32, Int64, Float32, Float64, String, TimeTag, Char, Color,
    Bool, Nil, Infinity, Blob, Midi, Array,
]

# Kinds that can never be substituted into a command template
UNSUPPORTED_ARG_TYPES = (Blob, Midi, Array)

IMMEDIATELY = TimeTag(0, 1)


# =============================================================================
# OSC PACKETS
# =============================================================================

@dataclass(frozen=True)
class Message:
    """
    A single OSC message.

    Attributes:
        addr: OSC address pattern, used as the command lookup key
        args: Ordered typed arguments
    """
    addr: str
    args: Tuple[OscArg, ...] = ()


@dataclass(frozen=True)
class Bundle:
    """
    An OSC bundle: an ordered collection of messages and nested bundles.

    The time tag is kept for diagnostics only; contents are always
    executed immediately.
    """
    contents: Tuple["OscPacket", ...] = ()
    timetag: TimeTag = IMMEDIATELY


OscPacket = Union[Message, Bundle]


# =============================================================================
# COMMANDS AND REPLIES
# =============================================================================

@dataclass(frozen=True)
class ResolvedCommand:
    """Program name followed by its arguments, never interpreted by a shell."""
    tokens: Tuple[str, ...]

    def __post_init__(self):
        if not self.tokens:
            raise ValueError("ResolvedCommand requires at least a program name")

    @property
    def program(self) -> str:
        return self.tokens[0]

    @property
    def args(self) -> Tuple[str, ...]:
        return self.tokens[1:]


@dataclass(frozen=True)
class ReplyPacket:
    """
    Answer to one dispatched message.

    Encoded as an OSC message at `address` with exactly two string
    arguments: the request address and either the trimmed command output
    or a short error tag.
    """
    address: str
    request_address: str
    detail: str = field(default="")

    @classmethod
    def success(cls, request_address: str, output: str) -> "ReplyPacket":
        return cls(SUCCESS_ADDRESS, request_address, output)

    @classmethod
    def error(cls, request_address: str, tag: str) -> "ReplyPacket":
        return cls(ERROR_ADDRESS, request_address, tag)

    @property
    def is_success(self) -> bool:
        return self.address == SUCCESS_ADDRESS

    def to_message(self) -> Message:
        return Message(self.address, (String(self.request_address), String(self.detail)))

    @classmethod
    def from_message(cls, message: Message) -> "ReplyPacket":
        """
        Rebuild a reply from a decoded OSC message.

        Raises:
            ValueError: If the message does not have the reply shape
        """
        if message.addr not in (SUCCESS_ADDRESS, ERROR_ADDRESS):
            raise ValueError(f"Not a reply address: {message.addr}")
        if len(message.args) != 2 or not all(isinstance(a, String) for a in message.args):
            raise ValueError(f"Reply must carry exactly two strings, got {message.args!r}")
        return cls(message.addr, message.args[0].value, message.args[1].value)


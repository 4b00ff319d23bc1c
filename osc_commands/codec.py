"""
OSC Codec

Binary OSC 1.0 decoding into the typed packet tree of `model`, and reply
encoding. Every field is read with python-osc's parsing primitives;
packed fields (time tags, colors, chars) are split after reading.
Truncated fields are errors, never zero-padded.

Supported type tags:
    i h f d s S b t c r m T F N I [ ]
"""

from typing import Callable, Dict, List, Tuple

from pythonosc.osc_message_builder import BuildError, OscMessageBuilder
from pythonosc.parsing import osc_types

from .errors import BundleDepthError, DecodeError, EncodeError
from .model import (
    MAX_BUNDLE_DEPTH,
    Array, Blob, Bool, Bundle, Char, Color, Float32, Float64, Infinity,
    Int32, Int64, Message, Midi, Nil, OscArg, OscPacket, ReplyPacket,
    String, TimeTag,
)

BUNDLE_PREFIX = b"#bundle\x00"

Reader = Callable[[bytes, int], Tuple[OscArg, int]]


# =============================================================================
# PRIMITIVES
# =============================================================================

def _parse(reader, dgram: bytes, index: int):
    """Run a python-osc primitive, turning its failures into DecodeError."""
    try:
        return reader(dgram, index)
    except (osc_types.ParseError, UnicodeDecodeError) as exc:
        raise DecodeError(f"{exc} (offset {index})") from exc


def _require(dgram: bytes, index: int, size: int) -> None:
    if index + size > len(dgram):
        raise DecodeError(f"argument truncated at offset {index}")


def _read_int32(dgram, index):
    value, index = _parse(osc_types.get_int, dgram, index)
    return Int32(value), index


def _read_int64(dgram, index):
    value, index = _parse(osc_types.get_int64, dgram, index)
    return Int64(value), index


def _read_float32(dgram, index):
    # get_float zero-pads short input instead of failing
    _require(dgram, index, 4)
    value, index = _parse(osc_types.get_float, dgram, index)
    return Float32(value), index


def _read_float64(dgram, index):
    value, index = _parse(osc_types.get_double, dgram, index)
    return Float64(value), index


def _read_string(dgram, index):
    value, index = _parse(osc_types.get_string, dgram, index)
    return String(value), index


def _read_blob(dgram, index):
    value, index = _parse(osc_types.get_blob, dgram, index)
    return Blob(bytes(value)), index


def _split_bytes(value: int, count: int) -> Tuple[int, ...]:
    """Big-endian bytes of an unsigned integer, most significant first."""
    return tuple((value >> (8 * shift)) & 0xFF for shift in range(count - 1, -1, -1))


def _read_timetag(dgram, index):
    value, index = _parse(osc_types.get_uint64, dgram, index)
    return TimeTag(value >> 32, value & 0xFFFFFFFF), index


def _read_char(dgram, index):
    code, index = _parse(osc_types.get_int, dgram, index)
    try:
        return Char(chr(code)), index
    except (ValueError, OverflowError) as exc:
        raise DecodeError(f"invalid char code {code} at offset {index - 4}") from exc


def _read_color(dgram, index):
    value, index = _parse(osc_types.get_rgba, dgram, index)
    return Color(*_split_bytes(value, 4)), index


def _read_midi(dgram, index):
    midi, index = _parse(osc_types.get_midi, dgram, index)
    return Midi(*midi), index


_READERS: Dict[str, Reader] = {
    "i": _read_int32,
    "h": _read_int64,
    "f": _read_float32,
    "d": _read_float64,
    "s": _read_string,
    "S": _read_string,
    "b": _read_blob,
    "t": _read_timetag,
    "c": _read_char,
    "r": _read_color,
    "m": _read_midi,
}

# Tags that carry no payload bytes
_CONSTANTS: Dict[str, OscArg] = {
    "T": Bool(True),
    "F": Bool(False),
    "N": Nil(),
    "I": Infinity(),
}


# =============================================================================
# DECODING
# =============================================================================

def decode_packet(dgram: bytes) -> OscPacket:
    """
    Decode a raw datagram into a Message or a (possibly nested) Bundle.

    Args:
        dgram: Received datagram bytes

    Returns:
        The decoded packet tree

    Raises:
        DecodeError: If the datagram is not valid OSC, or bundles nest
            deeper than MAX_BUNDLE_DEPTH
    """
    return _decode(bytes(dgram), 0)


def _decode(dgram: bytes, depth: int) -> OscPacket:
    if dgram.startswith(BUNDLE_PREFIX):
        return _decode_bundle(dgram, depth + 1)
    if dgram.startswith(b"/"):
        return _decode_message(dgram)
    if not dgram:
        raise DecodeError("empty packet")
    raise DecodeError(f"packet must start with '/' or '#bundle', got {dgram[:8]!r}")


def _decode_bundle(dgram: bytes, depth: int) -> Bundle:
    if depth > MAX_BUNDLE_DEPTH:
        raise BundleDepthError(depth, MAX_BUNDLE_DEPTH)

    timetag, index = _read_timetag(dgram, len(BUNDLE_PREFIX))
    contents: List[OscPacket] = []
    while index < len(dgram):
        size, index = _parse(osc_types.get_int, dgram, index)
        if size <= 0 or index + size > len(dgram):
            raise DecodeError(f"bundle element size {size} out of range at offset {index - 4}")
        contents.append(_decode(dgram[index:index + size], depth))
        index += size
    return Bundle(contents=tuple(contents), timetag=timetag)


def _decode_message(dgram: bytes) -> Message:
    address, index = _parse(osc_types.get_string, dgram, 0)
    if index >= len(dgram):
        # Pre-1.0 senders may omit the type tag string entirely
        return Message(address)

    type_tags, index = _parse(osc_types.get_string, dgram, index)
    if not type_tags.startswith(","):
        raise DecodeError(f"type tag string must start with ',', got {type_tags!r}")

    # Innermost array last; stack[0] holds the message arguments
    stack: List[List[OscArg]] = [[]]
    for tag in type_tags[1:]:
        if tag == "[":
            stack.append([])
        elif tag == "]":
            if len(stack) == 1:
                raise DecodeError(f"unbalanced ']' in type tags {type_tags!r}")
            items = stack.pop()
            stack[-1].append(Array(tuple(items)))
        elif tag in _CONSTANTS:
            stack[-1].append(_CONSTANTS[tag])
        elif tag in _READERS:
            arg, index = _READERS[tag](dgram, index)
            stack[-1].append(arg)
        else:
            raise DecodeError(f"unsupported type tag {tag!r}")

    if len(stack) != 1:
        raise DecodeError(f"unterminated array in type tags {type_tags!r}")
    return Message(address, tuple(stack[0]))


# =============================================================================
# ENCODING
# =============================================================================

def encode_reply(reply: ReplyPacket) -> bytes:
    """
    Serialise a reply as an OSC message with two string arguments.

    Raises:
        EncodeError: If python-osc refuses to build the message
    """
    try:
        builder = OscMessageBuilder(address=reply.address)
        builder.add_arg(reply.request_address, OscMessageBuilder.ARG_TYPE_STRING)
        builder.add_arg(reply.detail, OscMessageBuilder.ARG_TYPE_STRING)
        return builder.build().dgram
    except (BuildError, ValueError) as exc:
        raise EncodeError(f"failed to serialise {reply.address} reply for {reply.request_address}: {exc}") from exc

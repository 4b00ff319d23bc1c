"""
OSC Commands

Runs configured shell commands in response to Open Sound Control messages
received over UDP, and answers each message with an OSC reply.

Features:
- OSC 1.0 packet decoding, including nested bundles (depth-capped)
- `$i` argument substitution into command templates, quoted per argument
- Shell-style word splitting with no shell in between
- /success and /error replies sent back to the requester
- Bounded worker pool so slow commands never block the receive loop

Usage:
    from osc_commands import CommandServer, load_config

    config = load_config()          # ./config.json, ~/.osc-commands.config.json, ...
    server = CommandServer(config, workers=4)
    server.start()
    ...
    server.stop()

Replies:
    /success [request_address, trimmed_stdout]
    /error   [request_address, "unknown command" | "invalid command" | "exec error"]
"""

from .model import (
    # Arguments
    Int32, Int64, Float32, Float64, String, TimeTag, Char, Color,
    Bool, Nil, Infinity, Blob, Midi, Array, OscArg,
    # Packets
    Message, Bundle, OscPacket,
    # Commands and replies
    ResolvedCommand, ReplyPacket,
    MAX_BUNDLE_DEPTH, SUCCESS_ADDRESS, ERROR_ADDRESS,
    UNKNOWN_COMMAND, EXEC_ERROR, INVALID_COMMAND,
)
from .errors import (
    OscCommandError,
    ConfigError,
    DecodeError,
    BundleDepthError,
    CommandError,
    UnknownCommandError,
    TemplateParseError,
    ExecError,
    EncodeError,
    SendError,
)
from .codec import decode_packet, encode_reply
from .templating import render_arg, substitute, tokenize, resolve_command
from .executor import ExecResult, run_command
from .replies import send_reply
from .dispatcher import flatten, handle_message, handle_packet, handle_datagram
from .pool import WorkerPool, DEFAULT_WORKERS
from .config import Configuration, load_config, parse_config, find_config
from .server import CommandServer, MAX_DATAGRAM_SIZE

__all__ = [
    # Arguments
    "Int32", "Int64", "Float32", "Float64", "String", "TimeTag", "Char", "Color",
    "Bool", "Nil", "Infinity", "Blob", "Midi", "Array", "OscArg",
    # Packets
    "Message",
    "Bundle",
    "OscPacket",
    # Commands and replies
    "ResolvedCommand",
    "ReplyPacket",
    "MAX_BUNDLE_DEPTH",
    "SUCCESS_ADDRESS",
    "ERROR_ADDRESS",
    "UNKNOWN_COMMAND",
    "EXEC_ERROR",
    "INVALID_COMMAND",
    # Errors
    "OscCommandError",
    "ConfigError",
    "DecodeError",
    "BundleDepthError",
    "CommandError",
    "UnknownCommandError",
    "TemplateParseError",
    "ExecError",
    "EncodeError",
    "SendError",
    # Pipeline
    "decode_packet",
    "encode_reply",
    "render_arg",
    "substitute",
    "tokenize",
    "resolve_command",
    "ExecResult",
    "run_command",
    "send_reply",
    "flatten",
    "handle_message",
    "handle_packet",
    "handle_datagram",
    # Runtime
    "WorkerPool",
    "DEFAULT_WORKERS",
    "CommandServer",
    "MAX_DATAGRAM_SIZE",
    # Configuration
    "Configuration",
    "load_config",
    "parse_config",
    "find_config",
]

__version__ = "1.0.0"

"""
Dispatcher

The per-datagram pipeline run inside a worker:

    decode -> flatten bundles -> resolve -> execute -> reply

Every failure is handled here, at the message it belongs to. A bad
message inside a bundle never stops its siblings, and nothing propagates
back to the receive loop.
"""

import logging
from typing import List

from .codec import decode_packet
from .config import Configuration
from .errors import (
    BundleDepthError,
    DecodeError,
    EncodeError,
    ExecError,
    SendError,
    TemplateParseError,
    UnknownCommandError,
)
from .executor import run_command
from .model import (
    EXEC_ERROR,
    INVALID_COMMAND,
    MAX_BUNDLE_DEPTH,
    UNKNOWN_COMMAND,
    Message,
    OscPacket,
    ReplyPacket,
)
from .replies import Address, ReplySink, send_reply
from .templating import resolve_command

logger = logging.getLogger(__name__)


def flatten(packet: OscPacket, max_depth: int = MAX_BUNDLE_DEPTH) -> List[Message]:
    """
    Expand bundles into their messages, in declared order.

    Walks the tree with an explicit stack, so nesting depth is bounded by
    `max_depth` rather than the interpreter's recursion limit.

    Raises:
        BundleDepthError: If bundles nest deeper than `max_depth`; nothing
            from the packet is returned in that case
    """
    messages: List[Message] = []
    stack = [(packet, 0)]
    while stack:
        current, depth = stack.pop()
        if isinstance(current, Message):
            messages.append(current)
            continue
        depth += 1
        if depth > max_depth:
            raise BundleDepthError(depth, max_depth)
        stack.extend((child, depth) for child in reversed(current.contents))
    return messages


def _reply(reply: ReplySink, packet: ReplyPacket, src: Address) -> None:
    try:
        reply(packet, src)
    except EncodeError as exc:
        logger.error(f"  failed to serialise the response into an OSC packet: {exc}")
    except SendError as exc:
        logger.error(f"  failed to send the OSC packet back over the socket: {exc}")


def handle_message(
    config: Configuration,
    message: Message,
    src: Address,
    reply: ReplySink = send_reply,
) -> None:
    """Resolve, execute and answer one message."""
    try:
        command = resolve_command(config.commands, message)
    except UnknownCommandError:
        logger.warning(f"  {message.addr}: command was not recognised in the configuration")
        _reply(reply, ReplyPacket.error(message.addr, UNKNOWN_COMMAND), src)
        return
    except TemplateParseError as exc:
        logger.error(f"  command in configuration was not valid after replacement - {exc.reason}")
        _reply(reply, ReplyPacket.error(message.addr, INVALID_COMMAND), src)
        return

    logger.info(f"  executing => {list(command.tokens)}")

    try:
        result = run_command(message.addr, command)
    except ExecError as exc:
        logger.error(f"  {exc}")
        _reply(reply, ReplyPacket.error(message.addr, EXEC_ERROR), src)
        return

    _reply(reply, ReplyPacket.success(message.addr, result.output), src)


def handle_packet(
    config: Configuration,
    packet: OscPacket,
    src: Address,
    reply: ReplySink = send_reply,
) -> None:
    """Dispatch every message of a decoded packet, one after another."""
    try:
        messages = flatten(packet)
    except BundleDepthError as exc:
        logger.error(f"Dropping bundle from {src}: {exc}")
        return

    for message in messages:
        try:
            handle_message(config, message, src, reply)
        except Exception:
            logger.exception(f"  unexpected error while handling {message.addr}")


def handle_datagram(
    config: Configuration,
    data: bytes,
    src: Address,
    reply: ReplySink = send_reply,
) -> None:
    """
    Full pipeline for one received datagram.

    Args:
        config: This task's own copy of the configuration
        data: Raw datagram
        src: Sender address; replies go back here
        reply: Reply sink, send_reply unless overridden
    """
    try:
        packet = decode_packet(data)
    except DecodeError as exc:
        logger.error(f"Failed to parse incoming OSC message from {src}: {exc}")
        return

    logger.debug(f"OSC: {packet} {src}")
    handle_packet(config, packet, src, reply)

"""
Reply Sender

Sends a /success or /error reply back to whoever sent the request.
Each reply gets its own short-lived UDP socket bound to an ephemeral
port; delivery is fire-and-forget.
"""

import logging
import socket
from typing import Any, Callable, Tuple

from .codec import encode_reply
from .errors import SendError
from .model import ReplyPacket

logger = logging.getLogger(__name__)

# (host, port) for IPv4, (host, port, flowinfo, scope_id) for IPv6
Address = Tuple[Any, ...]

ReplySink = Callable[[ReplyPacket, Address], None]


def _wildcard_for(destination: Address) -> Tuple[int, str]:
    if ":" in str(destination[0]):
        return socket.AF_INET6, "::"
    return socket.AF_INET, "0.0.0.0"


def send_reply(reply: ReplyPacket, destination: Address) -> None:
    """
    Encode `reply` and send it to `destination`.

    Raises:
        EncodeError: If the reply cannot be serialised
        SendError: If the socket cannot be bound or the send fails
    """
    payload = encode_reply(reply)
    family, wildcard = _wildcard_for(destination)

    try:
        with socket.socket(family, socket.SOCK_DGRAM) as sock:
            sock.bind((wildcard, 0))
            sock.sendto(payload, destination)
    except OSError as exc:
        raise SendError(f"failed to send {reply.address} reply to {destination}: {exc}") from exc

    logger.debug(f"  replied {reply.address} [{reply.request_address!r}, {reply.detail!r}] to {destination}")

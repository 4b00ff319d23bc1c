"""
Pytest configuration and fixtures for osc_commands tests.
"""

import shutil
import socket

import pytest

from osc_commands.codec import decode_packet
from osc_commands.config import Configuration
from osc_commands.model import ReplyPacket


class RecordingReplies:
    """Reply sink that keeps every (reply, destination) instead of sending."""

    def __init__(self):
        self.sent = []

    def __call__(self, reply, destination):
        self.sent.append((reply, destination))

    @property
    def packets(self):
        return [reply for reply, _ in self.sent]


class ReplyListener:
    """
    Client-side UDP socket.

    Requests sent through it carry its address as the source, so the
    server's replies come back to the same socket.
    """

    def __init__(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(5.0)

    @property
    def address(self):
        return self.sock.getsockname()

    def send(self, dgram, destination):
        self.sock.sendto(dgram, destination)

    def receive(self, timeout=5.0):
        self.sock.settimeout(timeout)
        data, _ = self.sock.recvfrom(65536)
        return ReplyPacket.from_message(decode_packet(data))

    def close(self):
        self.sock.close()


@pytest.fixture
def replies():
    """Recording reply sink."""
    return RecordingReplies()


@pytest.fixture
def listener():
    """UDP socket that sends requests and receives replies."""
    sock = ReplyListener()
    yield sock
    sock.close()


@pytest.fixture
def make_config():
    """Factory for loopback configurations on an ephemeral port."""
    def _make(commands=None, bind="127.0.0.1", port=0):
        return Configuration(bind=bind, port=port, commands=commands or {})
    return _make


@pytest.fixture
def requires_posix_shell():
    """Skip unless sh, echo and sleep are on PATH."""
    for tool in ("sh", "echo", "sleep"):
        if shutil.which(tool) is None:
            pytest.skip(f"{tool} not available")

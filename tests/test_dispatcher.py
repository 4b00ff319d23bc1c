"""
Tests for bundle flattening and the per-datagram pipeline.

Replies are captured with the recording sink from conftest instead of
going over the network.
"""

import logging
import struct

import pytest
from pythonosc.osc_bundle_builder import IMMEDIATELY, OscBundleBuilder
from pythonosc.osc_message_builder import OscMessageBuilder

from osc_commands import dispatcher
from osc_commands.codec import BUNDLE_PREFIX
from osc_commands.dispatcher import flatten, handle_datagram, handle_message, handle_packet
from osc_commands.errors import BundleDepthError, EncodeError, SendError
from osc_commands.model import (
    EXEC_ERROR,
    INVALID_COMMAND,
    MAX_BUNDLE_DEPTH,
    UNKNOWN_COMMAND,
    Blob, Bundle, Int32, Message, ReplyPacket, String,
)

SRC = ("127.0.0.1", 50000)


def message_dgram(address, *args):
    builder = OscMessageBuilder(address=address)
    for arg in args:
        builder.add_arg(arg)
    return builder.build()


def bundle_dgram(*contents):
    builder = OscBundleBuilder(IMMEDIATELY)
    for content in contents:
        builder.add_content(content)
    return builder.build()


def nested(depth):
    packet = Message("/deep")
    for _ in range(depth):
        packet = Bundle((packet,))
    return packet


@pytest.fixture
def no_spawn(monkeypatch):
    """Fail the test if anything tries to start a process."""
    def _run_command(address, command):
        pytest.fail(f"process spawned for {address}: {command}")
    monkeypatch.setattr(dispatcher, "run_command", _run_command)


# =============================================================================
# Flattening
# =============================================================================

class TestFlatten:
    """Test bundle flattening."""

    def test_single_message(self):
        msg = Message("/a")
        assert flatten(msg) == [msg]

    def test_nested_order(self):
        """[A, Bundle[B, C]] flattens to A, B, C."""
        a, b, c = Message("/a"), Message("/b"), Message("/c")

        assert flatten(Bundle((a, Bundle((b, c))))) == [a, b, c]

    def test_deep_left_branch_order(self):
        a, b, c, d = (Message(f"/{n}") for n in "abcd")
        packet = Bundle((Bundle((a, Bundle((b,)))), c, Bundle((d,))))

        assert flatten(packet) == [a, b, c, d]

    def test_empty_bundles(self):
        assert flatten(Bundle((Bundle(()), Bundle(())))) == []

    def test_depth_limit(self):
        assert flatten(nested(MAX_BUNDLE_DEPTH)) == [Message("/deep")]
        with pytest.raises(BundleDepthError):
            flatten(nested(MAX_BUNDLE_DEPTH + 1))

    def test_custom_limit(self):
        with pytest.raises(BundleDepthError):
            flatten(nested(3), max_depth=2)


# =============================================================================
# Message Handling
# =============================================================================

@pytest.mark.usefixtures("requires_posix_shell")
class TestHandleMessage:
    """Test resolve -> execute -> reply for one message."""

    def test_success_reply(self, make_config, replies):
        """Example: /play "hi" with 'echo $0' replies /success [/play, hi]."""
        config = make_config({"/play": "echo $0"})

        handle_message(config, Message("/play", (String("hi"),)), SRC, replies)

        assert replies.sent == [(ReplyPacket.success("/play", "hi"), SRC)]

    def test_unknown_command(self, make_config, replies, no_spawn):
        """Example: /unknown replies /error [/unknown, unknown command]."""
        config = make_config({"/play": "echo $0"})

        handle_message(config, Message("/unknown"), SRC, replies)

        assert replies.packets == [ReplyPacket.error("/unknown", UNKNOWN_COMMAND)]

    def test_invalid_template_replies_error(self, make_config, replies, no_spawn):
        config = make_config({"/bad": 'echo "oops $0'})

        handle_message(config, Message("/bad", (Int32(1),)), SRC, replies)

        assert replies.packets == [ReplyPacket.error("/bad", INVALID_COMMAND)]

    def test_exec_error(self, make_config, replies):
        config = make_config({"/missing": "osc-commands-no-such-program-xyz $0"})

        handle_message(config, Message("/missing", (Int32(1),)), SRC, replies)

        assert replies.packets == [ReplyPacket.error("/missing", EXEC_ERROR)]

    def test_nonzero_exit_still_success(self, make_config, replies):
        config = make_config({"/fail": "sh -c 'echo nope; exit 1'"})

        handle_message(config, Message("/fail"), SRC, replies)

        assert replies.packets == [ReplyPacket.success("/fail", "nope")]

    def test_unsupported_argument_left_in_place(self, make_config, replies):
        config = make_config({"/blob": "echo $0 $1"})

        handle_message(config, Message("/blob", (Blob(b"\x01"), String("x"))), SRC, replies)

        assert replies.packets == [ReplyPacket.success("/blob", "$0 x")]

    def test_send_failure_is_logged(self, make_config, caplog):
        def failing_sink(reply, destination):
            raise SendError("network unreachable")

        config = make_config({"/play": "echo $0"})
        with caplog.at_level(logging.ERROR, logger="osc_commands.dispatcher"):
            handle_message(config, Message("/play", (String("hi"),)), SRC, failing_sink)

        assert "network unreachable" in caplog.text

    def test_encode_failure_is_logged(self, make_config, caplog, no_spawn):
        def failing_sink(reply, destination):
            raise EncodeError("bad string")

        with caplog.at_level(logging.ERROR, logger="osc_commands.dispatcher"):
            handle_message(make_config(), Message("/x"), SRC, failing_sink)

        assert "bad string" in caplog.text


# =============================================================================
# Packet and Datagram Handling
# =============================================================================

@pytest.mark.usefixtures("requires_posix_shell")
class TestHandleDatagram:
    """Test the full pipeline from raw bytes."""

    def test_single_message(self, make_config, replies):
        config = make_config({"/play": "echo $0"})

        handle_datagram(config, message_dgram("/play", "hi").dgram, SRC, replies)

        assert replies.packets == [ReplyPacket.success("/play", "hi")]

    def test_bundle_dispatches_each_message_in_order(self, make_config, replies):
        config = make_config({"/a": "echo A", "/b": "echo B$0", "/c": "echo C"})
        inner = bundle_dgram(message_dgram("/b", 1), message_dgram("/c"))
        outer = bundle_dgram(message_dgram("/a"), inner)

        handle_datagram(config, outer.dgram, SRC, replies)

        assert replies.packets == [
            ReplyPacket.success("/a", "A"),
            ReplyPacket.success("/b", "B1"),
            ReplyPacket.success("/c", "C"),
        ]

    def test_sibling_failure_does_not_abort(self, make_config, replies):
        config = make_config({"/ok": "echo ok"})
        packet = bundle_dgram(message_dgram("/nope"), message_dgram("/ok"))

        handle_datagram(config, packet.dgram, SRC, replies)

        assert replies.packets == [
            ReplyPacket.error("/nope", UNKNOWN_COMMAND),
            ReplyPacket.success("/ok", "ok"),
        ]

    def test_malformed_datagram_is_dropped(self, make_config, replies, caplog):
        with caplog.at_level(logging.ERROR, logger="osc_commands.dispatcher"):
            handle_datagram(make_config({"/a": "echo"}), b"not osc", SRC, replies)

        assert replies.sent == []
        assert "Failed to parse incoming OSC message from" in caplog.text
        assert "50000" in caplog.text

    def test_too_deep_bundle_is_dropped(self, make_config, replies, no_spawn):
        dgram = message_dgram("/deep").dgram
        for _ in range(MAX_BUNDLE_DEPTH + 1):
            dgram = BUNDLE_PREFIX + struct.pack(">II", 0, 1) + struct.pack(">i", len(dgram)) + dgram

        handle_datagram(make_config({"/deep": "echo"}), dgram, SRC, replies)

        assert replies.sent == []


class TestHandlePacket:
    """Test per-message isolation inside one packet."""

    def test_unexpected_error_does_not_stop_siblings(self, make_config, replies, monkeypatch, caplog):
        calls = []

        def flaky_resolve(commands, message):
            calls.append(message.addr)
            if message.addr == "/boom":
                raise RuntimeError("boom")
            raise dispatcher.UnknownCommandError(message.addr)

        monkeypatch.setattr(dispatcher, "resolve_command", flaky_resolve)
        packet = Bundle((Message("/boom"), Message("/after")))

        with caplog.at_level(logging.ERROR, logger="osc_commands.dispatcher"):
            handle_packet(make_config(), packet, SRC, replies)

        assert calls == ["/boom", "/after"]
        assert replies.packets == [ReplyPacket.error("/after", UNKNOWN_COMMAND)]
        assert "boom" in caplog.text

    def test_too_deep_packet_dispatches_nothing(self, make_config, replies, no_spawn):
        packet = Bundle((Message("/first"), nested(MAX_BUNDLE_DEPTH)))

        handle_packet(make_config({"/first": "echo"}), packet, SRC, replies)

        assert replies.sent == []

"""
Tests for the chat client

Socket I/O is mocked; the loops are driven one item at a time.
"""

import threading
import uuid
from unittest.mock import MagicMock

import pytest

from udprelay.client import HISTORY, TRANSCRIPT_WIDTH, UDPChatClient
from udprelay.protocol import (
    MessageType,
    content_message,
    functional_message,
    make_packet,
    parse_packet,
)
from udprelay.server import UDPRelayServer

SERVER = ("127.0.0.1", 5000)


@pytest.fixture
def sock():
    return MagicMock()


@pytest.fixture
def client(sock):
    return UDPChatClient(*SERVER, sock=sock)


def sent_messages(sock):
    return [parse_packet(c.args[0]) for c in sock.send.call_args_list]


def render_pending(client):
    """Draw everything queued for the render loop, as that loop would."""
    while len(client.render):
        client.draw(client.render.take(timeout=1))


class TestIdentity:

    def test_user_id_is_uuid_and_stable(self, client):
        first = client.user_id

        uuid.UUID(first)                             # Raises if not a UUID
        client.submit("alice")
        assert client.user_id == first

    def test_starts_logged_out(self, client):
        assert client.author == ""
        assert not client.logged_in

    def test_distinct_processes_get_distinct_ids(self, sock):
        assert UDPChatClient(*SERVER, sock=sock).user_id != UDPChatClient(*SERVER, sock=sock).user_id


class TestLoginPhase:

    def test_first_line_sets_author_and_sends_connect(self, client, sock):
        assert client.submit("alice")

        assert client.author == "alice"
        assert client.logged_in
        assert sent_messages(sock) == [functional_message(client.user_id, "alice", "connect_me")]

    def test_blank_name_gets_guest_name(self, client):
        client.submit("   ")

        assert client.author.startswith("Guest")

    def test_quit_during_login_sends_nothing(self, client, sock):
        assert not client.submit("/quit")

        client.quit()
        sock.send.assert_not_called()
        assert not client.running.is_set()


class TestChatPhase:

    def test_text_goes_to_egress_queue_as_is(self, client):
        client.submit("alice")
        client.submit("hello there")

        assert client.egress.take(timeout=1) == "hello there"

    def test_own_message_is_echoed_through_render_queue(self, client):
        client.submit("alice")
        client.submit("hello")

        assert list(client.messages) == []           # Nothing drawn on the input thread
        render_pending(client)

        assert list(client.messages) == [content_message(client.user_id, "alice", "hello")]
        assert list(client.transcript) == ["alice: hello"]

    def test_empty_line_is_ignored(self, client):
        client.submit("alice")

        assert client.submit("")
        assert len(client.egress) == 0

    @pytest.mark.parametrize("command", ["/quit", "qqq", "QQQ"])
    def test_quit_commands(self, client, command):
        client.submit("alice")

        assert not client.submit(command)

    def test_quit_sends_functional_quit_once(self, client, sock):
        client.submit("alice")
        client.quit()
        client.quit()

        quits = [m for m in sent_messages(sock) if m.content == "quit"]
        assert quits == [functional_message(client.user_id, "alice", "quit")]
        assert quits[0].type is MessageType.FUNCTIONAL

    def test_quit_survives_send_failure(self, client, sock):
        client.submit("alice")
        sock.send.side_effect = OSError("network down")

        client.quit()

        assert not client.running.is_set()


class TestQuitOrdering:

    def test_pending_text_is_flushed_before_quit(self, client, sock):
        client.submit("alice")
        client.submit("one")
        client.submit("bye")

        client.quit()

        assert [m.content for m in sent_messages(sock)] == ["connect_me", "one", "bye", "quit"]
        assert len(client.egress) == 0

    def test_quit_waits_for_send_in_flight(self, client, sock):
        client.submit("alice")
        in_send = threading.Event()
        release = threading.Event()

        def send(pkt):
            if parse_packet(pkt).content == "bye":
                in_send.set()
                release.wait(timeout=5)

        sock.send.side_effect = send
        client._egress_thread = threading.Thread(target=client._egress_loop, daemon=True)
        client._egress_thread.start()
        client.submit("bye")
        assert in_send.wait(timeout=5)               # Egress loop is mid-send

        quitter = threading.Thread(target=client.quit)
        quitter.start()
        release.set()
        quitter.join(timeout=5)

        assert [m.content for m in sent_messages(sock)] == ["connect_me", "bye", "quit"]
        assert not client._egress_thread.is_alive()

    def test_server_directory_empty_after_replaying_wire(self, client, sock):
        client.submit("alice")
        client.submit("bye")
        client.quit()

        server = UDPRelayServer("127.0.0.1", 5000, sock=MagicMock())
        try:
            for call in sock.send.call_args_list:
                server.handle_datagram(call.args[0], ("127.0.0.1", 6001))
        finally:
            server.close()

        assert len(server.directory) == 0


class TestLoops:

    def test_egress_loop_encodes_content(self, client, sock):
        client.submit("alice")
        sock.send.reset_mock()
        client.egress.push("hi")
        client.egress.close()

        client._egress_loop()

        assert sent_messages(sock) == [
            content_message(client.user_id, "alice", "hi"),
            functional_message(client.user_id, "alice", "quit"),
        ]

    def test_consume_loop_hands_messages_to_render_queue_in_order(self, client):
        client.submit("alice")
        first = content_message("u2", "bob", "one")
        second = content_message("u3", "carol", "two")
        client.ingress.offer((make_packet(first), SERVER))
        client.ingress.offer((b"broken", SERVER))
        client.ingress.offer((make_packet(second), SERVER))
        client.ingress.offer((make_packet(first), SERVER))   # Duplicates are kept

        original_push = client.render.push

        def push(message):
            original_push(message)
            if len(client.render) == 3:
                client.running.clear()

        client.render.push = push
        client._consume_loop()
        render_pending(client)

        assert list(client.messages) == [first, second, first]

    def test_render_loop_draws_queued_messages(self, client):
        message = content_message("u2", "bob", "yo")
        client.render.push(message)

        original_draw = client.draw

        def draw(m):
            original_draw(m)
            client.running.clear()

        client.draw = draw
        client._render_loop()

        assert list(client.transcript) == ["bob: yo"]

    def test_recv_loop_hands_off_datagrams(self, client, sock):
        pkt = make_packet(content_message("u2", "bob", "yo"))

        def recv(size):
            client.running.clear()
            return pkt

        sock.recv.side_effect = recv
        client._recv_loop()

        assert client.ingress.take(timeout=1) == (pkt, SERVER)

    def test_long_messages_are_wrapped(self, client):
        client.draw(content_message("u2", "bob", "y" * 200))

        assert len(client.transcript) > 1
        assert all(len(line) <= TRANSCRIPT_WIDTH for line in client.transcript)

    def test_history_is_bounded(self, client):
        for i in range(HISTORY + 10):
            client.draw(content_message("u2", "bob", str(i)))

        assert len(client.messages) == HISTORY
        assert client.messages[-1].content == str(HISTORY + 9)

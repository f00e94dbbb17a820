#!/usr/bin/env python3
"""Command-line UDP chat *client*:

* Login phase - the first line typed becomes the display name and a
  ``connect_me`` control message is sent (no acknowledgement is awaited).
* Chat phase - every line is pushed to the egress queue as chat text, other
  participants' messages are printed in arrival order.
* ``/quit``, ``qqq``, Ctrl-C or Ctrl-D send a best-effort ``quit`` and exit.
* ANSI-coloured output via *colorama*.

Usage (after installing package locally):

    SERVER_HOST=203.0.113.22 SERVER_PORT=5000 udprelay-client
"""

from __future__ import annotations                # type hints forward refs OK

import argparse                                    # For CLI parsing
import logging
import queue                                       # queue.Empty from take()
import random                                      # Random guest name
import socket                                      # Low-level UDP API
import sys                                         # Needed for prompt redraw
import threading                                   # Background loops
import uuid                                        # Per-process user id
from collections import deque
from typing import Deque, Optional, Tuple

from colorama import Fore, Style, init

from .config import load_settings
from .errors import ConfigurationError, MalformedMessage, TransportError
from .protocol import (
    BUF_SIZE, CONNECT_ME, DEFAULT_PORT, QUIT, Message, content_message,
    functional_message, make_packet, parse_packet,
)
from .queues import EgressQueue, IngressQueue, RenderQueue
from .util import LOG, chunk, configure_logging

POLL_INTERVAL: float = 0.5             # Loops wake this often to check `running`
TRANSCRIPT_WIDTH: int = 79             # Wrap width of rendered chat lines
HISTORY: int = 500                     # Messages / lines kept in memory
QUIT_COMMANDS = {"/quit", "qqq"}

WELCOME = "Welcome to the chat room!\nType a message and Enter to send it."


class UDPChatClient:
    """Embeds the entire client state machine - can also be used programmatically."""

    def __init__(
        self,
        server_host: str,
        server_port: int = DEFAULT_PORT,
        sock: Optional[socket.socket] = None,
    ) -> None:
        # -------- server endpoint --------
        self.server: Tuple[str, int] = (server_host, server_port)

        # -------- connected UDP socket: only the server's datagrams reach us --------
        if sock is None:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.connect(self.server)
            LOG.info("Client bound on %s:%d", *sock.getsockname()[:2])
        self.sock = sock

        # -------- identity --------
        self.user_id: str = str(uuid.uuid4())      # Stable for this process
        self.author: str = ""                      # Empty until login completes

        # -------- hand-off queues --------
        self.ingress = IngressQueue()              # recv loop ➜ consume loop
        self.egress = EgressQueue()                # UI ➜ egress loop
        self.render = RenderQueue()                # UI / consume loop ➜ render loop

        # -------- transcript (written by the render loop only) --------
        self.messages: Deque[Message] = deque(maxlen=HISTORY)   # Arrival order, no dedup
        self.transcript: Deque[str] = deque(maxlen=HISTORY)     # Wrapped lines as displayed

        # -------- control flags --------
        self.running = threading.Event()           # Cooperative shutdown across threads
        self.running.set()
        self._quit_sent = False
        self._egress_thread: Optional[threading.Thread] = None

    @property
    def logged_in(self) -> bool:
        return self.author != ""

    # ================================================================== main ===
    def start(self) -> None:
        """Blocking run-loop: interactively read stdin while background threads
        receive, decode, render and send datagrams.
        """
        for target in (self._recv_loop, self._consume_loop, self._render_loop):
            threading.Thread(target=target, name=target.__name__.strip("_"), daemon=True).start()
        self._egress_thread = threading.Thread(target=self._egress_loop, name="egress_loop", daemon=True)
        self._egress_thread.start()

        print(WELCOME)
        print("What's your name?")
        try:
            while self.running.is_set():               # until /quit or Ctrl-C
                try:
                    line = input(self._prompt())       # Blocking stdin read
                except EOFError:                       # Ctrl-D on *nix
                    break
                if not self.submit(line):
                    break
        except KeyboardInterrupt:                      # Graceful Ctrl-C
            pass
        finally:
            self.quit()
            self.sock.close()
            LOG.info("Disconnected")

    # ---------------------------------------------------------------- user input
    def submit(self, line: str) -> bool:
        """Feed one line of user input; returns False once the user asked to quit."""
        if line.strip().lower() in QUIT_COMMANDS:
            return False

        if not self.logged_in:
            self.login(line.strip() or f"Guest{random.randint(1000, 9999)}")
            return True

        if line == "":                                  # Nothing to send
            return True
        self.say(line)
        return True

    def login(self, name: str) -> None:
        """Set the display name and announce ourselves; switches to chat phase.

        Nothing can sit in the egress queue before login, so ``connect_me`` is
        written directly.
        """
        self.author = name
        LOG.info("Welcome, %s", self.author)
        self._send_quietly(functional_message(self.user_id, self.author, CONNECT_ME))

    def say(self, text: str) -> None:
        """Queue chat text for the egress loop and its local echo for the render loop."""
        self.egress.push(text)
        self.render.push(content_message(self.user_id, self.author, text))

    def quit(self) -> None:
        """Best-effort ``quit`` notification, then stop every loop.

        ``quit`` leaves through the egress loop behind any text still queued,
        so no chat datagram can follow it onto the wire.
        """
        if self.logged_in and not self._quit_sent:
            self._quit_sent = True
            self.egress.close()
            if self._egress_thread is not None and self._egress_thread.is_alive():
                self._egress_thread.join()
            else:
                self._egress_loop()                     # No writer thread: drain here
        self.running.clear()

    # ---------------------------------------------------------------- networking
    def send(self, message: Message) -> None:
        """Encode and write one datagram to the server."""
        try:
            self.sock.send(make_packet(message))
        except OSError as exc:
            raise TransportError(f"send to {self.server} failed: {exc}") from exc

    def _send_quietly(self, message: Message) -> None:
        try:
            self.send(message)
        except TransportError as exc:
            LOG.error("Send failed: %s", exc)

    # ---------------------------------------------------------------- loops
    def _recv_loop(self) -> None:
        """Background thread - hand every datagram to the ingress queue."""
        while self.running.is_set():
            try:
                data = self.sock.recv(BUF_SIZE)            # Blocking recv
            except OSError as exc:
                if not self.running.is_set():              # Socket closed on exit
                    break
                LOG.error("Error reading datagram: %s", exc)
                continue
            self.ingress.offer((data, self.server))

    def _consume_loop(self) -> None:
        """Background thread - decode one datagram at a time, hand it to the render loop."""
        while self.running.is_set():
            try:
                data, _ = self.ingress.take(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue
            try:
                message = parse_packet(data)
            except MalformedMessage as exc:
                LOG.warning("Dropped malformed datagram: %s", exc.reason)
                continue
            self.render.push(message)

    def _egress_loop(self) -> None:
        """Serialize outbound chat text onto the socket; ``quit`` goes last."""
        while True:
            try:
                text = self.egress.take(timeout=POLL_INTERVAL)
            except queue.Empty:
                if not self.running.is_set():
                    return
                continue
            if text is None:                                # End of stream
                self._send_quietly(functional_message(self.user_id, self.author, QUIT))
                return
            self._send_quietly(content_message(self.user_id, self.author, text))

    def _render_loop(self) -> None:
        """Background thread - the only writer of the transcript and the screen."""
        while self.running.is_set():
            try:
                message = self.render.take(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue
            self.draw(message)

    # ---------------------------------------------------------------- rendering
    def draw(self, message: Message) -> None:
        """Append ``message`` to the transcript, print it and redraw the prompt."""
        self.messages.append(message)
        pieces = chunk(f"{message.author}: {message.content}", TRANSCRIPT_WIDTH)
        self.transcript.extend(pieces)

        # Colour the "author:" prefix when it fits on the first line
        prefix = f"{message.author}:"
        lines = list(pieces)
        if lines[0].startswith(prefix):
            lines[0] = f"{Fore.MAGENTA}{prefix}{Style.RESET_ALL}{lines[0][len(prefix):]}"
        print("\r" + "\n".join(lines))
        sys.stdout.write(self._prompt())
        sys.stdout.flush()

    def _prompt(self) -> str:
        """Name prompt during login, plain "> " afterwards."""
        return "> " if self.logged_in else "name: "

# ======================================================================
#  Command-line entry point
# ======================================================================

def add_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--host", help="address of chat server (default: $SERVER_HOST)")
    parser.add_argument("--port", type=int, help=f"UDP port of server (default: $SERVER_PORT, e.g. {DEFAULT_PORT})")
    parser.add_argument("--log-file", default="udprelay-client.log", help="rotating log file")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")


def run(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    # Log to file only so records don't land in the middle of the chat
    configure_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file, console=False)
    try:
        settings = load_settings(host=args.host, port=args.port)
    except ConfigurationError as exc:
        parser.error(str(exc))

    try:
        client = UDPChatClient(settings.host, settings.port)
    except OSError as exc:
        print(f"Error has occurred: {exc}", file=sys.stderr)
        sys.exit(1)
    client.start()


def main() -> None:
    """Parse CLI args then instantiate & run the chat client."""
    init(autoreset=True)                               # Reset colour after each print
    parser = argparse.ArgumentParser("UDP chat client")
    add_arguments(parser)
    run(parser.parse_args(), parser)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""UDP relay server:

* Receive thread - drains the socket into the ingress queue, nothing else.
* Consume loop - decodes one datagram at a time, keeps the session directory
  up to date and relays chat text to everybody except its author.
* Operator view - join/leave notices, participant list and the chat stream
  printed on the server's terminal.

No persistence and no expiry: a client that vanishes without ``quit`` stays
in the directory until the process exits.
"""

from __future__ import annotations

import argparse                       # CLI parsing
import logging
import queue                          # queue.Empty from IngressQueue.take()
import socket                         # UDP socket operations
import sys
import threading                      # Receive thread + cooperative shutdown flag
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Deque, List, Optional

from colorama import Fore, Style, init

from .config import load_settings
from .directory import Address, Session, SessionDirectory
from .errors import ConfigurationError, MalformedMessage, TransportError
from .protocol import (
    BUF_SIZE, DEFAULT_PORT, Connect, Message, Quit, Unknown, make_packet,
    parse_control, parse_packet,
)
from .queues import IngressQueue
from .util import LOG, chunk, configure_logging

POLL_INTERVAL: float = 0.5            # Consume loop wakes this often to check `running`
BROADCAST_WORKERS: int = 4            # Threads writing fan-out datagrams
MAX_PENDING_BROADCASTS: int = 64      # Fan-outs queued before the consume loop sends inline
VIEW_WIDTH: int = 83                  # Operator view wraps chat lines here
VIEW_HISTORY: int = 500               # Operator view lines kept in memory

NO_USERS = "No users connected"


class UDPRelayServer:
    """Event-driven UDP server / message relay."""

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        sock: Optional[socket.socket] = None,
    ) -> None:
        self.host = host
        self.port = port

        # ------ bind socket ------
        if sock is None:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            self.port = sock.getsockname()[1]      # Resolves port 0 to the real one
        self.sock = sock

        # ------ runtime state ------
        self.directory = SessionDirectory()        # Written by the consume loop only
        self.ingress = IngressQueue()              # recv-thread pushes, consume loop pops
        self.terminal_lines: Deque[str] = deque(maxlen=VIEW_HISTORY)

        # ------ broadcast pool ------
        self._pool = ThreadPoolExecutor(
            max_workers=BROADCAST_WORKERS, thread_name_prefix="broadcast"
        )
        self._pending = threading.BoundedSemaphore(MAX_PENDING_BROADCASTS)

        # Flag to shut all loops down cooperatively.
        self.running = threading.Event()
        self.running.set()

    # ================================================================= main ===
    def start(self) -> None:
        """Blocking run-loop; returns after :meth:`stop` or Ctrl-C."""
        LOG.info("Server listening on %s:%d", self.host, self.port)
        self._notify(f"Server Running...\nListening on {self.host}:{self.port}\nWaiting for client...")
        threading.Thread(target=self._recv_loop, name="recv", daemon=True).start()
        try:
            self._process_loop()
        except KeyboardInterrupt:
            LOG.info("Shutdown requested")
        finally:
            self.stop()
            self.close()

    def stop(self) -> None:
        self.running.clear()

    def close(self) -> None:
        """Wait for in-flight broadcasts, then release the socket."""
        self._pool.shutdown(wait=True)
        self.sock.close()

    # ---------------------------------------------------------------- loops
    def _recv_loop(self) -> None:
        """Listener thread - immediately enqueue received datagrams."""
        while self.running.is_set():
            try:
                data, addr = self.sock.recvfrom(BUF_SIZE)
            except OSError as exc:
                if not self.running.is_set():      # Socket closed during shutdown
                    break
                LOG.error("Error reading datagram: %s", exc)
                continue
            self.ingress.offer((data, addr))

    def _process_loop(self) -> None:
        """Single-threaded consumer - one datagram handled at a time."""
        while self.running.is_set():
            try:
                data, addr = self.ingress.take(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue                           # Allow shutdown check
            self.handle_datagram(data, addr)

    # ---------------------------------------------------------------- dispatch
    def handle_datagram(self, data: bytes, addr: Address) -> Optional[Message]:
        """Decode one raw datagram and hand it to :meth:`handle`; garbage is dropped."""
        try:
            message = parse_packet(data)
        except MalformedMessage as exc:
            LOG.warning("Dropped malformed datagram from %s: %s", addr, exc.reason)
            return None
        self.handle(message, addr)
        return message

    def handle(self, message: Message, addr: Address) -> None:
        """Apply one decoded message to the directory and the operator view."""
        control = parse_control(message) if message.is_functional else None

        # Any message from an unseen user registers it; quit only ever removes.
        if not isinstance(control, Quit):
            self.directory.upsert(message.user_id, addr, message.author)

        match control:
            case None:
                self._handle_content(message)
            case Connect():
                self._handle_connect(message)
            case Quit():
                self._handle_quit(message)
            case Unknown(token=token):
                LOG.warning("Unrecognized control message %r from %s", token, message.user_id)
                self._notify(f"Random Functional Command Found: {token}")

    def _handle_connect(self, message: Message) -> None:
        LOG.info("%s joined the chat (%s)", message.author, message.user_id)
        self._notify(f"A new user has connected: {message.author}")
        self._show_participants()

    def _handle_quit(self, message: Message) -> None:
        session = self.directory.remove(message.user_id)
        if session is None:
            LOG.debug("Ignoring quit from unregistered user %s", message.user_id)
            return
        LOG.info("%s left the chat (%s)", message.author, message.user_id)
        self._notify(f"User {message.author} has left the server.")
        self._show_participants()

    def _handle_content(self, message: Message) -> None:
        self.dispatch_broadcast(message)
        LOG.debug("<%s> %s", message.author, message.content)
        self._notify(f"{message.author}: {message.content}", author=message.author)

    # ---------------------------------------------------------------- broadcast
    def dispatch_broadcast(self, message: Message) -> Optional[Future]:
        """Relay ``message`` off the consume loop.

        The recipient list is snapshotted here, on the consume loop, so the
        worker never touches the directory.  When too many fan-outs are
        outstanding the send happens inline instead of queueing more work.
        """
        recipients = [s for s in self.directory.all() if s.user_id != message.user_id]
        if not recipients:
            return None

        if self._pending.acquire(blocking=False):
            try:
                future = self._pool.submit(self.broadcast, message, recipients)
            except RuntimeError:                   # Pool already shut down
                self._pending.release()
                raise
            future.add_done_callback(lambda _f: self._pending.release())
            return future

        LOG.debug("Broadcast backlog full - relaying inline")
        self.broadcast(message, recipients)
        return None

    def broadcast(
        self, message: Message, recipients: Optional[List[Session]] = None
    ) -> List[Session]:
        """Send ``message`` to every session except its author.

        Best effort: a failed write is logged and skipped, the rest still get
        the datagram.  Returns the sessions that could not be reached.
        """
        if recipients is None:
            recipients = list(self.directory.all())
        pkt = make_packet(message)

        failed: List[Session] = []
        for session in recipients:
            if session.user_id == message.user_id:   # Don't echo to sender
                continue
            try:
                self._send(pkt, session.addr)
            except TransportError as exc:
                LOG.error("Broadcast to %s (%s) failed: %s", session.author, session.addr, exc)
                failed.append(session)
        return failed

    def _send(self, pkt: bytes, addr: Address) -> None:
        try:
            self.sock.sendto(pkt, addr)
        except OSError as exc:
            raise TransportError(f"sendto {addr} failed: {exc}") from exc

    # ---------------------------------------------------------------- operator view
    def participants_view(self) -> str:
        """One author per line, or a placeholder when nobody is connected."""
        authors = self.directory.authors()
        return "\n".join(authors) if authors else NO_USERS

    def _show_participants(self) -> None:
        print(f"{Fore.CYAN}[USERS]{Style.RESET_ALL} " + self.participants_view().replace("\n", ", "))

    def _notify(self, text: str, author: Optional[str] = None) -> None:
        """Append ``text`` to the operator transcript and print it."""
        for line in text.split("\n"):
            pieces = chunk(line, VIEW_WIDTH)
            self.terminal_lines.extend(pieces)
            for i, piece in enumerate(pieces):
                if i == 0 and author and piece.startswith(author):
                    piece = f"{Fore.MAGENTA}{author}{Style.RESET_ALL}{piece[len(author):]}"
                print(piece)

# ======================================================================
#  Command-line entry point
# ======================================================================

def add_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--host", help="address to bind (default: $SERVER_HOST)")
    parser.add_argument("--port", type=int, help=f"UDP port to listen on (default: $SERVER_PORT, e.g. {DEFAULT_PORT})")
    parser.add_argument("--log-file", default="udprelay-server.log", help="rotating log file")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")


def run(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    configure_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)
    try:
        settings = load_settings(host=args.host, port=args.port)
    except ConfigurationError as exc:
        parser.error(str(exc))                 # Exits with status 2

    try:
        server = UDPRelayServer(settings.host, settings.port)
    except OSError as exc:
        LOG.error("Error listening on %s:%d: %s", settings.host, settings.port, exc)
        sys.exit(1)
    server.start()


def main() -> None:
    init(autoreset=True)                       # Reset colour after each print
    parser = argparse.ArgumentParser("UDP relay server")
    add_arguments(parser)
    run(parser.parse_args(), parser)


if __name__ == "__main__":
    main()

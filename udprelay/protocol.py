#!/usr/bin/env python3
"""Shared constants, the ``Message`` record and the wire codec used by **both**
client & server.

Everything that travels over the network is encoded/decoded here so that
client & server never disagree on wire-format details.  A datagram is one
record of four fields joined by a non-printable separator::

    UserID \\x01 Author \\x01 Type(int as text) \\x01 Content

There is no escaping: a field that contains the separator misaligns the
record on the receiving side.
"""

from __future__ import annotations       # Postponed annotation evaluation (PEP 563)
from dataclasses import dataclass        # Plain records for messages & control variants
from enum import IntEnum                 # Type travels as its integer value
from typing import Union

from .errors import MalformedMessage

# --- Network configuration -------------------------------------------------
BUF_SIZE: int = 1024          # Max UDP datagram size we read (bytes) - longer is truncated
DEFAULT_PORT: int = 5000      # Port suggested in help texts

# --- Wire format -----------------------------------------------------------
SEPARATOR: str = "\x01"       # Field separator, never expected in typed text
FIELD_COUNT: int = 4          # UserID, Author, Type, Content
ENCODING: str = "utf-8"

# --- Control tokens (Content of a FUNCTIONAL message) -----------------------
CONNECT_ME = "connect_me"     # A client announces itself after login
QUIT = "quit"                 # A client leaves


class MessageType(IntEnum):
    """Discriminator carried in field #2 of every record."""

    FUNCTIONAL = 0            # Control plane: connect_me / quit / anything else
    CONTENT = 1               # Chat text


@dataclass(frozen=True, slots=True)
class Message:
    """One chat datagram, decoded."""

    user_id: str              # Stable per client process
    author: str               # Display name, not unique
    content: str              # Chat text or control token
    type: MessageType = MessageType.CONTENT

    @property
    def is_functional(self) -> bool:
        return self.type is MessageType.FUNCTIONAL


def functional_message(user_id: str, author: str, token: str) -> Message:
    """Build a control-plane message (``connect_me`` / ``quit``)."""
    return Message(user_id, author, token, MessageType.FUNCTIONAL)


def content_message(user_id: str, author: str, text: str) -> Message:
    """Build a chat-text message."""
    return Message(user_id, author, text, MessageType.CONTENT)


# --- Text codec ------------------------------------------------------------

def encode(message: Message) -> str:
    """``Message`` ⟶ one separator-delimited record."""
    return SEPARATOR.join(
        (message.user_id, message.author, str(int(message.type)), message.content)
    )


def decode(record: str) -> Message:
    """Inverse of :func:`encode`.

    Fields are read by position; surplus segments (content that itself held
    the separator) are discarded.

    Raises:
        MalformedMessage: fewer than four segments, a non-integer type or an
            integer that is not a known :class:`MessageType`.
    """
    fields = record.split(SEPARATOR)
    if len(fields) < FIELD_COUNT:
        raise MalformedMessage(
            f"expected {FIELD_COUNT} fields, got {len(fields)}", record
        )

    user_id, author, raw_type, content = fields[0], fields[1], fields[2], fields[3]
    try:
        mtype = MessageType(int(raw_type))
    except ValueError:                   # Covers both int() and MessageType() failures
        raise MalformedMessage(f"unrecognized message type {raw_type!r}", record) from None

    return Message(user_id, author, content, mtype)


# --- Datagram helpers ------------------------------------------------------

def make_packet(message: Message) -> bytes:
    """Serialize a ``Message`` ⟶ record ⟶ UTF-8 bytes suitable for ``sendto()``."""
    return encode(message).encode(ENCODING)


def parse_packet(data: bytes) -> Message:
    """Inverse of :func:`make_packet` - bytes ⟶ ``Message``.

    Oversized datagrams arrive cut at ``BUF_SIZE``; a multi-byte character
    split by that cut is dropped so the rest of the content survives.
    """
    return decode(data.decode(ENCODING, errors="ignore"))


# --- Control variant -------------------------------------------------------
# FUNCTIONAL content is turned into one of these once, then dispatched with
# ``match`` instead of comparing strings all over the place.

@dataclass(frozen=True, slots=True)
class Connect:
    """``connect_me``"""


@dataclass(frozen=True, slots=True)
class Quit:
    """``quit``"""


@dataclass(frozen=True, slots=True)
class Unknown:
    """Any other control token."""

    token: str


Control = Union[Connect, Quit, Unknown]


def parse_control(message: Message) -> Control:
    """Map the content of a FUNCTIONAL message to its control variant."""
    match message.content:
        case "connect_me":
            return Connect()
        case "quit":
            return Quit()
        case other:
            return Unknown(other)

"""UDP Relay - a minimal chat relay over UDP datagrams.

Importing this package exposes :class:`udprelay.UDPRelayServer`,
:class:`udprelay.UDPChatClient` and the wire codec, allowing the whole stack
to be embedded in another application or launched via ``python -m udprelay``.
"""

from .client import UDPChatClient   # noqa: F401
from .directory import Session, SessionDirectory   # noqa: F401
from .errors import (   # noqa: F401
    ConfigurationError, ConfigurationMissing, MalformedMessage, RelayError,
    TransportError,
)
from .protocol import Message, MessageType, decode, encode   # noqa: F401
from .server import UDPRelayServer   # noqa: F401

__all__: list[str] = [
    "UDPChatClient",
    "UDPRelayServer",
    "Session",
    "SessionDirectory",
    "Message",
    "MessageType",
    "encode",
    "decode",
    "RelayError",
    "TransportError",
    "MalformedMessage",
    "ConfigurationError",
    "ConfigurationMissing",
]

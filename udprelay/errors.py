"""Exception taxonomy shared by client & server.

Every failure in the relay is either logged-and-continued (transport,
malformed datagrams) or fatal at startup (configuration).
"""

from __future__ import annotations

__all__ = [
    "RelayError",
    "TransportError",
    "MalformedMessage",
    "ConfigurationError",
    "ConfigurationMissing",
]


class RelayError(Exception):
    """Base class for everything this package raises on purpose."""


class TransportError(RelayError, OSError):
    """A socket read/write failed."""


class MalformedMessage(RelayError, ValueError):
    """A datagram could not be decoded into a :class:`~udprelay.protocol.Message`."""

    def __init__(self, reason: str, raw: str | bytes = "") -> None:
        super().__init__(reason)
        self.reason = reason
        self.raw = raw                     # Offending record, kept for logging


class ConfigurationError(RelayError):
    """Startup settings are present but unusable (e.g. a non-numeric port)."""


class ConfigurationMissing(ConfigurationError):
    """A required address component is absent at startup."""

    def __init__(self, setting: str) -> None:
        super().__init__(
            f"No {setting} has been set, please export {setting} or pass it on the command line."
        )
        self.setting = setting

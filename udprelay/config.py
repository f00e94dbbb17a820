"""Startup settings: server host & port from a `.env` file, the environment
or the CLI.

Both components are required; a missing one is fatal.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Union

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigurationError, ConfigurationMissing

HOST_ENV = "SERVER_HOST"
PORT_ENV = "SERVER_PORT"


@dataclass(frozen=True, slots=True)
class Settings:
    host: str
    port: int

    @property
    def address(self) -> tuple[str, int]:
        return (self.host, self.port)


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    host: Optional[str] = None,
    port: Union[int, str, None] = None,
    dotenv_path: Optional[str] = None,
) -> Settings:
    """Resolve the server address.

    Explicit ``host``/``port`` arguments (the CLI flags) win over
    ``SERVER_HOST``/``SERVER_PORT`` from ``environ``.  When ``environ`` is not
    given, a `.env` file (``dotenv_path`` or the nearest one above the working
    directory) is loaded into ``os.environ`` first; real environment variables
    are not overridden.

    Raises:
        ConfigurationMissing: host or port is absent or empty.
        ConfigurationError: the port is not an integer in 1..65535.
    """
    if environ is None:
        path = dotenv_path or find_dotenv(usecwd=True)   # "" when there is none
        if path:
            load_dotenv(path)
        environ = os.environ
    env = environ

    host = host if host is not None else env.get(HOST_ENV)
    if not host:
        raise ConfigurationMissing(HOST_ENV)

    raw_port = port if port is not None else env.get(PORT_ENV)
    if raw_port is None or raw_port == "":
        raise ConfigurationMissing(PORT_ENV)

    try:
        port_num = int(raw_port)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{PORT_ENV} must be an integer, got {raw_port!r}") from None
    if not 0 < port_num < 65536:
        raise ConfigurationError(f"{PORT_ENV} out of range: {port_num}")

    return Settings(host, port_num)

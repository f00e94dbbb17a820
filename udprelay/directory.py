"""Server-side directory of connected participants.

The directory belongs to the server's consume loop: it is the only code that
writes to it, so no locking is done here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

Address = Tuple[str, int]


@dataclass(slots=True)
class Session:
    """Lightweight record for one connected client."""

    user_id: str
    addr: Address             # Client's UDP (ip, port) e.g. ("192.0.2.10", 64233)
    author: str               # Nickname supplied at login


class SessionDirectory:
    """``user_id`` ➜ :class:`Session`."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}

    def upsert(self, user_id: str, addr: Address, author: str) -> Session:
        """Register ``user_id`` unless it is already known.

        First write wins: an existing entry keeps its address and name.
        Returns the entry now stored for ``user_id``.
        """
        session = self._sessions.get(user_id)
        if session is None:
            session = Session(user_id, addr, author)
            self._sessions[user_id] = session
        return session

    def remove(self, user_id: str) -> Optional[Session]:
        """Drop ``user_id``; removing an unknown id is a no-op."""
        return self._sessions.pop(user_id, None)

    def get(self, user_id: str) -> Optional[Session]:
        return self._sessions.get(user_id)

    def all(self) -> Iterator[Session]:
        """Lazily yield the sessions present right now (order is irrelevant).

        The iterator walks a snapshot, so the directory may change while a
        caller is still consuming it.
        """
        return iter(tuple(self._sessions.values()))

    def authors(self) -> List[str]:
        return [s.author for s in self._sessions.values()]

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

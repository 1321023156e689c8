from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Set


class Connection(Protocol):
    """Transport-neutrale Sicht auf eine Client-Verbindung."""

    id: str
    user_agent: str
    ip_address: Optional[str]

    async def send(self, event: str, data: Any) -> bool:
        """Best effort; liefert False, wenn die Verbindung weg ist."""
        ...


class RoomRegistry:
    """Session-ID -> aktive Verbindungen. Wird nur bei join/disconnect verändert."""

    def __init__(self) -> None:
        self._rooms: Dict[str, Set[Connection]] = {}
        self._memberships: Dict[str, Set[str]] = {}

    def join(self, session_id: str, conn: Connection) -> None:
        self._rooms.setdefault(session_id, set()).add(conn)
        self._memberships.setdefault(conn.id, set()).add(session_id)

    def leave_all(self, conn: Connection) -> List[str]:
        left = sorted(self._memberships.pop(conn.id, set()))
        for session_id in left:
            members = self._rooms.get(session_id)
            if members is None:
                continue
            members.discard(conn)
            if not members:
                del self._rooms[session_id]
        return left

    def members(self, session_id: str) -> List[Connection]:
        # Snapshot, damit joins während eines awaits die Iteration nicht stören
        return list(self._rooms.get(session_id, ()))

    def rooms_of(self, conn: Connection) -> Set[str]:
        return set(self._memberships.get(conn.id, ()))

    def is_member(self, session_id: str, conn: Connection) -> bool:
        return conn in self._rooms.get(session_id, ())

    def __len__(self) -> int:
        return len(self._rooms)

"""
Set of open listener connections held by a notifier.
"""

from typing import Iterator, List, Set

from aiohttp import web


class ConnectionSet:
    """Open WebSocket connections, keyed by the connection object itself.

    Only ever touched from the notifier's event loop.
    """

    def __init__(self):
        self._connections: Set[web.WebSocketResponse] = set()

    def add(self, conn: web.WebSocketResponse) -> None:
        self._connections.add(conn)

    def discard(self, conn: web.WebSocketResponse) -> bool:
        """Remove ``conn``; returns False when it was not a member."""
        if conn in self._connections:
            self._connections.remove(conn)
            return True
        return False

    def snapshot(self) -> List[web.WebSocketResponse]:
        """Members at this instant; later joins do not affect the returned list."""
        return list(self._connections)

    def prune_closed(self) -> int:
        """Drop connections whose socket is already closed."""
        closed = [conn for conn in self._connections if conn.closed]
        for conn in closed:
            self._connections.remove(conn)
        return len(closed)

    def clear(self) -> None:
        self._connections.clear()

    def __contains__(self, conn) -> bool:
        return conn in self._connections

    def __iter__(self) -> Iterator[web.WebSocketResponse]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._connections)

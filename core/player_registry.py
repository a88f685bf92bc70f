"""Registry of currently connected players."""

import logging
import threading
from typing import Any, Dict, Iterator, List, Optional

from models import Player

logger = logging.getLogger(__name__)


class PlayerRegistry:
    """Tracks connected players keyed by player id.

    This is the source of truth for "is anyone present". Round objects only
    ever hold snapshots of the public fields.
    """

    def __init__(self):
        self._players: Dict[str, Player] = {}
        self._lock = threading.Lock()

    def upsert(
        self,
        player_id: str,
        name: str,
        profile: Optional[str],
        connection_id: str,
    ) -> Player:
        """Insert or overwrite the entry for ``player_id``.

        A rejoin with the same identity replaces the previous entry, including
        its connection id.
        """
        player = Player(
            player_id=player_id,
            name=name,
            profile=profile,
            connection_id=connection_id,
        )
        with self._lock:
            replaced = player_id in self._players
            self._players[player_id] = player
        logger.info(
            f"Player {player_id} ({name}) {'rejoined' if replaced else 'joined'} "
            f"on connection {connection_id}"
        )
        return player

    def remove(self, connection_id: str) -> List[Player]:
        """Remove every player bound to ``connection_id``.

        Transport teardown only knows the connection, so this is a lookup by
        value. One connection may have joined under several identities; all
        of them go. Returns the removed players, empty when nothing matched
        (e.g. a duplicate disconnect, or a connection that never joined).
        """
        with self._lock:
            removed = [p for p in self._players.values() if p.connection_id == connection_id]
            for player in removed:
                del self._players[player.player_id]
        for player in removed:
            logger.info(f"Player {player.player_id} left (connection {connection_id})")
        return removed

    def get(self, player_id: str) -> Optional[Player]:
        with self._lock:
            return self._players.get(player_id)

    def is_empty(self) -> bool:
        with self._lock:
            return not self._players

    def __len__(self) -> int:
        with self._lock:
            return len(self._players)

    def snapshot(self) -> Iterator[Dict[str, Any]]:
        """Lazily yield the public fields of every current entry.

        The entries are copied under the lock first, so iteration never sees
        a half-applied join or disconnect.
        """
        with self._lock:
            players = tuple(self._players.values())
        return (player.public_view() for player in players)

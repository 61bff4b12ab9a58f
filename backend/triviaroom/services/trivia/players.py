import logging
import math
import numbers
from threading import RLock
from typing import Dict, List, Optional

from .domain import Player
from .errors import DuplicateConnection, ValidationError

logger = logging.getLogger(__name__)


class PlayerLedger:
    """In-memory registry of connected players, keyed by connection id.

    A connection belongs to at most one room. Each room keeps an
    insertion-ordered index so rosters come back in join order.
    """

    def __init__(self, store=None):
        self._lock = RLock()
        self._players: Dict[str, Player] = {}
        self._room_index: Dict[str, Dict[str, None]] = {}
        self.store = store

    def add(self, connection_id, display_name, room_id, user_id=None, replace=True) -> Player:
        if not connection_id or not (display_name or '').strip():
            raise ValidationError('connection id and display name are required')
        with self._lock:
            if connection_id in self._players:
                if not replace:
                    raise DuplicateConnection(f'connection {connection_id} is already registered')
                self._detach(connection_id)
            player = Player(
                connection_id=connection_id,
                display_name=display_name.strip(),
                room_id=room_id,
                user_id=user_id,
            )
            self._players[connection_id] = player
            if room_id is not None:
                self._room_index.setdefault(room_id, {})[connection_id] = None
        logger.info(f"[player-add] conn={connection_id} room={room_id} name={player.display_name}")
        if self.store:
            self.store.save_player(player)
        return player

    def remove(self, connection_id) -> bool:
        with self._lock:
            if connection_id not in self._players:
                return False
            self._detach(connection_id)
        logger.info(f"[player-remove] conn={connection_id}")
        if self.store:
            self.store.delete_player(connection_id)
        return True

    def _detach(self, connection_id) -> Optional[Player]:
        player = self._players.pop(connection_id, None)
        if player and player.room_id is not None:
            members = self._room_index.get(player.room_id)
            if members is not None:
                members.pop(connection_id, None)
                if not members:
                    del self._room_index[player.room_id]
        return player

    def get(self, connection_id) -> Optional[Player]:
        with self._lock:
            return self._players.get(connection_id)

    def players_in_room(self, room_id) -> List[Player]:
        with self._lock:
            members = self._room_index.get(room_id, {})
            return [self._players[cid] for cid in members]

    def add_score(self, connection_id, delta) -> Optional[int]:
        """Add ``delta`` points; returns the new total or None when absent."""
        if isinstance(delta, bool) or not isinstance(delta, numbers.Real) or not math.isfinite(delta):
            raise ValidationError(f'score delta must be a finite number, got {delta!r}')
        if delta < 0:
            raise ValidationError('score delta must not be negative')
        with self._lock:
            player = self._players.get(connection_id)
            if player is None:
                return None
            player.score += delta
            total = player.score
        if self.store:
            self.store.update_player_score(player)
        return total

    def reset_room_scores(self, room_id) -> None:
        with self._lock:
            for player in self.players_in_room(room_id):
                player.score = 0
        if self.store:
            self.store.reset_room_scores(room_id)

    def clear_all(self) -> None:
        with self._lock:
            self._players.clear()
            self._room_index.clear()
        if self.store:
            self.store.clear_players()

    def player_count(self) -> int:
        with self._lock:
            return len(self._players)

    def room_player_count(self, room_id) -> int:
        with self._lock:
            return len(self._room_index.get(room_id, {}))

    def is_player_in_room(self, connection_id, room_id) -> bool:
        player = self.get(connection_id)
        return bool(player and player.room_id == room_id)

    def active_room_ids(self) -> List[str]:
        with self._lock:
            return list(self._room_index.keys())

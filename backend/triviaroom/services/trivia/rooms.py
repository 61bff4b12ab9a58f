import logging
import random
import string
import uuid
from threading import RLock
from typing import Dict, List, Optional

from .domain import Room, RoomStatus
from .errors import CodeSpaceExhausted

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


class RoomRegistry:
    """Live rooms by id, plus the join-code index.

    Allocation and destruction hold the registry lock so a code is never
    visible without its room, and the other way round.
    """

    def __init__(self, store=None, code_length=6, max_attempts=100, rng=None):
        self._lock = RLock()
        self._rooms: Dict[str, Room] = {}
        self._codes: Dict[str, str] = {}
        self.store = store
        self.code_length = code_length
        self.max_attempts = max_attempts
        self._rng = rng or random.SystemRandom()
        # Refuse new rooms well before the code space gets crowded
        self.capacity = (len(CODE_ALPHABET) ** code_length) // 2

    def _generate_code(self) -> str:
        return ''.join(self._rng.choice(CODE_ALPHABET) for _ in range(self.code_length))

    def create_room(self, host_id=None, question_set_ref=None) -> Room:
        with self._lock:
            if len(self._codes) >= self.capacity:
                raise CodeSpaceExhausted(f'{len(self._codes)} active rooms, no codes left')
            for _ in range(self.max_attempts):
                code = self._generate_code()
                if code not in self._codes:
                    break
            else:
                raise CodeSpaceExhausted(f'no free room code after {self.max_attempts} attempts')
            room = Room(
                id=uuid.uuid4().hex,
                code=code,
                host_id=host_id,
                question_set_ref=question_set_ref,
            )
            self._rooms[room.id] = room
            self._codes[code] = room.id
        logger.info(f"[room-create] room={room.id} code={room.code} host={host_id} set={question_set_ref}")
        if self.store:
            self.store.save_room(room)
        return room

    def lookup_by_id(self, room_id) -> Optional[Room]:
        if room_id is None:
            return None
        with self._lock:
            return self._rooms.get(room_id)

    def lookup_by_code(self, code) -> Optional[Room]:
        if not code:
            return None
        with self._lock:
            room_id = self._codes.get(str(code).strip().upper())
            return self._rooms.get(room_id) if room_id else None

    def resolve(self, room_id=None, code=None) -> Optional[Room]:
        return self.lookup_by_id(room_id) if room_id else self.lookup_by_code(code)

    def destroy(self, room_id) -> Optional[Room]:
        """Drop the room and free its code. Missing ids are a no-op."""
        with self._lock:
            room = self._rooms.pop(room_id, None)
            if room is None:
                return None
            self._codes.pop(room.code, None)
            room.cancel_pending_timer()
        logger.info(f"[room-destroy] room={room_id} code={room.code}")
        if self.store:
            self.store.delete_room(room_id)
        return room

    def set_status(self, room: Room, status: RoomStatus) -> None:
        room.status = status
        if self.store:
            self.store.update_room(room)

    def active_rooms(self) -> List[Room]:
        with self._lock:
            return list(self._rooms.values())

    def active_codes(self) -> List[str]:
        with self._lock:
            return list(self._codes.keys())

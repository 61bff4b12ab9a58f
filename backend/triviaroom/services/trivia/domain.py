from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RoomStatus(str, Enum):
    WAITING = 'waiting'
    PLAYING = 'playing'
    FINISHED = 'finished'


class SessionPhase(str, Enum):
    IDLE = 'idle'
    ASKING = 'asking'
    REVEALING = 'revealing'
    FINISHED = 'finished'


@dataclass(frozen=True)
class Question:
    id: Any
    content: str
    options: Tuple[str, ...]
    correct_answer: Any
    time_limit_seconds: float
    base_points: int

    def public_view(self) -> dict:
        """Client projection; the correct answer is never part of it."""
        return {
            'id': self.id,
            'text': self.content,
            'options': list(self.options),
            'timeLimitSeconds': self.time_limit_seconds,
        }


@dataclass
class Room:
    id: str
    code: str
    host_id: Optional[Any] = None
    question_set_ref: Optional[Any] = None
    status: RoomStatus = RoomStatus.WAITING
    phase: SessionPhase = SessionPhase.IDLE
    questions: Tuple[Question, ...] = ()
    current_index: int = 0
    pending_timer: Optional[Any] = None
    created_at: datetime = field(default_factory=utcnow)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    def index_of(self, question_id) -> Optional[int]:
        for idx, question in enumerate(self.questions):
            if str(question.id) == str(question_id):
                return idx
        return None

    def cancel_pending_timer(self) -> None:
        if self.pending_timer is not None:
            self.pending_timer.cancel()
            self.pending_timer = None

    def to_dict(self) -> dict:
        return {
            'roomId': self.id,
            'code': self.code,
            'hostId': self.host_id,
            'questionSetRef': self.question_set_ref,
            'status': self.status.value,
            'phase': self.phase.value,
            'currentIndex': self.current_index,
            'total': len(self.questions),
        }


@dataclass
class Player:
    connection_id: str
    display_name: str
    room_id: Optional[str]
    user_id: Optional[Any] = None
    score: int = 0
    joined_at: datetime = field(default_factory=utcnow)

    def public_view(self) -> dict:
        return {'id': self.connection_id, 'name': self.display_name, 'score': self.score}


@dataclass(frozen=True)
class AnswerResult:
    correct: bool
    gained: int = 0
    advanced: bool = False

    def to_dict(self) -> dict:
        return {'correct': self.correct, 'gained': self.gained}

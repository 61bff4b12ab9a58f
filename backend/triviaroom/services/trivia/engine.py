import logging
import math
from typing import List, Optional, Tuple

from .domain import AnswerResult, Player, Question, Room, RoomStatus, SessionPhase
from .errors import NotFoundError, ValidationError
from .grading import correct_index, is_correct
from .ranking import RankingService
from .scoring import points_gained

logger = logging.getLogger(__name__)


class SessionEngine:
    """Per-room question cycle: ask, reveal, advance, finish.

    Two triggers can advance a room: the question timeout and a correct
    submission. Both take the room lock and compare the room's live
    ``(phase, current_index)`` with the index they were scheduled or graded
    for, so exactly one of them advances each question. The winner cancels
    the other's pending handle before releasing the lock.
    """

    def __init__(self, registry, ledger, catalog, scheduler, broadcaster,
                 ranking=None, reveal_pause_seconds=0.7, destroy_finished=True):
        self.registry = registry
        self.ledger = ledger
        self.catalog = catalog
        self.scheduler = scheduler
        self.broadcaster = broadcaster
        self.ranking = ranking or RankingService(ledger)
        self.reveal_pause_seconds = reveal_pause_seconds
        self.destroy_finished = destroy_finished

    # -- rooms and membership --

    def create_room(self, host_id=None, question_set_ref=None) -> Room:
        return self.registry.create_room(host_id=host_id, question_set_ref=question_set_ref)

    def require_room(self, room_id=None, code=None) -> Room:
        room = self.registry.resolve(room_id=room_id, code=code)
        if room is None:
            raise NotFoundError(f'room {room_id or code} not found')
        return room

    def join(self, connection_id, display_name, room_id=None, code=None, user_id=None) -> Tuple[Room, Player]:
        room = self.require_room(room_id=room_id, code=code)
        previous = self.ledger.get(connection_id)
        player = self.ledger.add(connection_id, display_name, room.id, user_id=user_id)
        if previous and previous.room_id not in (None, room.id):
            self._emit_roster(previous.room_id)
        self._emit_roster(room.id)
        return room, player

    def leave(self, connection_id) -> Optional[Player]:
        """Drop the player. The room's timer keeps running for the others."""
        player = self.ledger.get(connection_id)
        if player is None or not self.ledger.remove(connection_id):
            return None
        if player.room_id is not None:
            self._emit_roster(player.room_id)
        return player

    def roster(self, room_id) -> List[dict]:
        return [p.public_view() for p in self.ledger.players_in_room(room_id)]

    def teardown(self, room_id) -> bool:
        room = self.registry.lookup_by_id(room_id)
        if room is None:
            return False
        with room.lock:
            room.cancel_pending_timer()
            room.phase = SessionPhase.FINISHED
            self.registry.destroy(room.id)
        return True

    def question_sets(self) -> List[dict]:
        return self.catalog.list_sets()

    # -- starting a game --

    def _resolve_questions(self, set_id=None, set_name=None):
        if set_id is None and set_name is None:
            default = self.catalog.default_set()
            if default:
                return default['set']['id'], default['questions']
            return None, self.catalog.questions_for_set(None)
        if set_id is None:
            found = self.catalog.set_by_name(set_name)
            if not found:
                raise NotFoundError(f'question set {set_name!r} not found')
            set_id = found['id']
        return set_id, self.catalog.questions_for_set(set_id)

    def choose_set(self, room_id, set_id=None, set_name=None) -> int:
        room = self.require_room(room_id)
        # Catalog failures surface before the room is touched
        set_ref, questions = self._resolve_questions(set_id, set_name)
        with room.lock:
            self.load_questions(room.id, questions, question_set_ref=set_ref)
            self.begin_question(room.id)
        logger.info(f"[choose-set] room={room.id} set={set_ref} questions={len(questions)}")
        return len(questions)

    def start_game(self, room_id) -> int:
        room = self.require_room(room_id)
        ref = room.question_set_ref
        if isinstance(ref, str) and not ref.strip().isdigit():
            return self.choose_set(room.id, set_name=ref)
        return self.choose_set(room.id, set_id=ref)

    def load_questions(self, room_id, questions, question_set_ref=None) -> Room:
        room = self.require_room(room_id)
        with room.lock:
            if room.phase not in (SessionPhase.IDLE, SessionPhase.FINISHED):
                raise ValidationError(f'room {room.id} already has a game in progress')
            restarting = room.phase == SessionPhase.FINISHED
            room.cancel_pending_timer()
            room.questions = tuple(questions or ())
            room.current_index = 0
            room.phase = SessionPhase.IDLE
            if question_set_ref is not None:
                room.question_set_ref = question_set_ref
            self.registry.set_status(room, RoomStatus.PLAYING)
            if restarting:
                self.ledger.reset_room_scores(room.id)
        return room

    # -- the question cycle --

    def begin_question(self, room_id) -> None:
        room = self.registry.lookup_by_id(room_id)
        if room is None:
            return
        with room.lock:
            if room.phase == SessionPhase.FINISHED:
                return
            question = room.current_question
            if question is None:
                self._finish(room)
                return
            index = room.current_index
            room.phase = SessionPhase.ASKING
            self.broadcaster.emit('new_question', {
                'index': index + 1,
                'total': len(room.questions),
                'question': question.public_view(),
            }, to=room.id)
            room.pending_timer = self.scheduler.schedule(
                question.time_limit_seconds, self._on_timeout, room.id, index,
                label=f'room={room.id} stage=question index={index}',
            )

    def _on_timeout(self, room_id, index) -> None:
        room = self.registry.lookup_by_id(room_id)
        if room is None:
            logger.info(f"[timer-abort] room={room_id} index={index} room gone")
            return
        with room.lock:
            if room.phase != SessionPhase.ASKING or room.current_index != index:
                logger.info(
                    f"[timer-abort] room={room_id} expected_index={index} "
                    f"actual_index={room.current_index} phase={room.phase.value}"
                )
                return
            self._advance(room)

    def _advance(self, room: Room, answered_by=None) -> None:
        """Reveal the live question and move the cursor. Caller holds the lock."""
        question = room.current_question
        room.cancel_pending_timer()
        reveal = {'correctIndex': correct_index(question)}
        if answered_by is None:
            self.broadcaster.emit('timeUp', dict(reveal), to=room.id)
        else:
            reveal['answeredBy'] = answered_by
        self.broadcaster.emit('reveal_answer', reveal, to=room.id)
        room.current_index += 1
        room.phase = SessionPhase.REVEALING
        logger.info(
            f"[advance] room={room.id} index={room.current_index - 1} -> {room.current_index} "
            f"trigger={'submission' if answered_by else 'timeout'}"
        )
        room.pending_timer = self.scheduler.schedule(
            self.reveal_pause_seconds, self._on_reveal_elapsed, room.id, room.current_index,
            label=f'room={room.id} stage=reveal index={room.current_index}',
        )

    def _on_reveal_elapsed(self, room_id, index) -> None:
        room = self.registry.lookup_by_id(room_id)
        if room is None:
            return
        with room.lock:
            if room.phase != SessionPhase.REVEALING or room.current_index != index:
                logger.info(f"[timer-abort] room={room_id} reveal for index={index} is stale")
                return
            room.pending_timer = None
            self.begin_question(room.id)

    def _finish(self, room: Room) -> None:
        room.cancel_pending_timer()
        room.phase = SessionPhase.FINISHED
        self.registry.set_status(room, RoomStatus.FINISHED)
        ranking = self.ranking.rank_payload(room.id)
        self.broadcaster.emit('game_over', {'ranking': ranking}, to=room.id)
        logger.info(f"[finish] room={room.id} questions={len(room.questions)} players={len(ranking)}")
        if self.destroy_finished:
            self.registry.destroy(room.id)

    # -- answers --

    def submit_answer(self, room_id, connection_id, question_id, answer, time_used_seconds=0) -> AnswerResult:
        if question_id is None or question_id == '':
            raise ValidationError('questionId required')
        room = self.require_room(room_id)
        time_used = _coerce_seconds(time_used_seconds)
        with room.lock:
            if not self.ledger.is_player_in_room(connection_id, room.id):
                raise NotFoundError(f'player {connection_id} is not in room {room.id}')
            index = room.index_of(question_id)
            if index is not None:
                _ensure_asked(room, index)
                result = self._grade_in_room(room, index, connection_id, answer, time_used)
                self.broadcaster.emit('rankingData', self.ranking.rank_payload(room.id), to=room.id)
                return result
        # Not one of this room's questions: grade against the catalog, no points
        return self.check_answer(connection_id, question_id, answer)

    def check_answer(self, connection_id, question_id, answer) -> AnswerResult:
        """Grade against the catalog outside any session. Never scores."""
        if question_id is None or question_id == '':
            raise ValidationError('questionId required')
        if self._withheld(question_id):
            raise ValidationError(f'question {question_id} has not been asked yet')
        result = AnswerResult(correct=self.catalog.check_answer(question_id, answer))
        self.broadcaster.emit('answerResult', result.to_dict(), to=connection_id)
        return result

    def _withheld(self, question_id) -> bool:
        for room in self.registry.active_rooms():
            with room.lock:
                index = room.index_of(question_id)
                if index is not None and not _was_asked(room, index):
                    return True
        return False

    def client_questions(self, set_id=None, set_name=None) -> List[dict]:
        """Question listing without answers, for set previews."""
        _, questions = self._resolve_questions(set_id, set_name)
        return [q.public_view() for q in questions]

    def _grade_in_room(self, room: Room, index, connection_id, answer, time_used) -> AnswerResult:
        if index >= len(room.questions):
            raise ValidationError(f'room {room.id} has no question in play')
        question: Question = room.questions[index]
        correct = is_correct(question, answer)
        live = room.phase == SessionPhase.ASKING and room.current_index == index
        if not (correct and live):
            result = AnswerResult(correct=correct)
            self.broadcaster.emit('answerResult', result.to_dict(), to=connection_id)
            return result
        gained = points_gained(question.base_points, question.time_limit_seconds, time_used)
        self.ledger.add_score(connection_id, gained)
        result = AnswerResult(correct=True, gained=gained, advanced=True)
        self.broadcaster.emit('answerResult', result.to_dict(), to=connection_id)
        self._advance(room, answered_by=connection_id)
        return result

    def _emit_roster(self, room_id) -> None:
        self.broadcaster.emit('players_updated', self.roster(room_id), to=room_id)


def _was_asked(room: Room, index) -> bool:
    if index < room.current_index:
        return True
    return index == room.current_index and room.phase == SessionPhase.ASKING


def _ensure_asked(room: Room, index) -> None:
    if not _was_asked(room, index):
        raise ValidationError(f'question {index + 1} of room {room.id} has not been asked yet')


def _coerce_seconds(value) -> float:
    if value is None or value == '':
        return 0.0
    if isinstance(value, bool):
        raise ValidationError('timeUsedSeconds must be a number')
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError('timeUsedSeconds must be a number') from exc
    if not math.isfinite(seconds):
        raise ValidationError('timeUsedSeconds must be finite')
    return seconds

"""Best-effort durable mirror of live rooms and players.

The in-memory registry and ledger are the source of truth for a running
session. Every write here is fire-and-forget: failures are logged and
dropped, never raised into game flow.
"""

import logging
import threading
from collections import deque

from sqlalchemy.exc import SQLAlchemyError

from triviaroom import db
from triviaroom.models import Room as RoomRow, RoomPlayer

from .domain import RoomStatus, utcnow
from .errors import PersistenceError

logger = logging.getLogger(__name__)


class PersistenceStore:
    """Applies mirror writes in submission order.

    In background mode a single drain task owns the queue, so a player row is
    never written before its room and a score update never precedes the
    insert it modifies.
    """

    def __init__(self, app, socketio=None, background=True):
        self.app = app
        self.socketio = socketio
        self.background = background and socketio is not None
        self._pending = deque()
        self._lock = threading.Lock()
        self._draining = False

    def _submit(self, label, fn, *args):
        if not self.background:
            self._mirror(label, fn, *args)
            return
        with self._lock:
            self._pending.append((label, fn, args))
            if self._draining:
                return
            self._draining = True
        self.socketio.start_background_task(self._drain)

    def _drain(self):
        while True:
            with self._lock:
                if not self._pending:
                    self._draining = False
                    return
                label, fn, args = self._pending.popleft()
            try:
                self._mirror(label, fn, *args)
            except Exception:
                # Keep draining; a background task has no caller to report to
                logger.exception(f"[persist-error] op={label}")

    def _mirror(self, label, fn, *args):
        try:
            with self.app.app_context():
                self._write(fn, *args)
        except PersistenceError as exc:
            logger.warning(f"[persist-failed] op={label} error={exc}")

    def _write(self, fn, *args):
        try:
            fn(*args)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(str(exc)) from exc

    # -- rooms --

    def save_room(self, room):
        self._submit('save_room', self._save_room, room.id, room.code, room.host_id,
                     room.question_set_ref, room.status.value)

    def _save_room(self, room_id, code, host_id, set_ref, status):
        db.session.add(RoomRow(
            id=room_id,
            code=code,
            host_user_id=str(host_id) if host_id is not None else None,
            question_set_id=str(set_ref) if set_ref is not None else None,
            status=status,
        ))

    def update_room(self, room):
        self._submit('update_room', self._update_room, room.id, room.status.value,
                     room.question_set_ref)

    def _update_room(self, room_id, status, set_ref):
        row = db.session.get(RoomRow, room_id)
        if row is None:
            return
        row.status = status
        row.question_set_id = str(set_ref) if set_ref is not None else None
        if status == RoomStatus.PLAYING.value:
            row.started_at = utcnow()
        elif status == RoomStatus.FINISHED.value:
            row.ended_at = utcnow()

    def delete_room(self, room_id):
        self._submit('delete_room', self._delete_room, room_id)

    def _delete_room(self, room_id):
        RoomPlayer.query.filter_by(room_id=room_id).delete()
        RoomRow.query.filter_by(id=room_id).delete()

    # -- players --

    def save_player(self, player):
        self._submit('save_player', self._save_player, player.connection_id, player.room_id,
                     player.user_id, player.display_name)

    def _save_player(self, connection_id, room_id, user_id, display_name):
        # A reconnect under the same id replaces the earlier row
        RoomPlayer.query.filter_by(socket_id=connection_id).delete()
        if room_id is None:
            return
        db.session.add(RoomPlayer(
            room_id=room_id,
            user_id=str(user_id) if user_id is not None else None,
            display_name=display_name,
            socket_id=connection_id,
            score=0,
        ))

    def update_player_score(self, player):
        self._submit('update_player_score', self._update_player_score, player.connection_id, int(player.score))

    def _update_player_score(self, connection_id, score):
        RoomPlayer.query.filter_by(socket_id=connection_id).update({'score': score})

    def delete_player(self, connection_id):
        self._submit('delete_player', self._delete_player, connection_id)

    def _delete_player(self, connection_id):
        RoomPlayer.query.filter_by(socket_id=connection_id).delete()

    def reset_room_scores(self, room_id):
        self._submit('reset_room_scores', self._reset_room_scores, room_id)

    def _reset_room_scores(self, room_id):
        RoomPlayer.query.filter_by(room_id=room_id).update({'score': 0})

    def clear_players(self):
        self._submit('clear_players', self._clear_players)

    def _clear_players(self):
        RoomPlayer.query.delete()

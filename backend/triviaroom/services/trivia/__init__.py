"""Trivia session services: rooms, players, grading, scoring and the engine.

Transport code (socket handlers, HTTP routes) talks to the
:class:`~.engine.SessionEngine` built here and keeps game mechanics out of
the handlers.
"""

from triviaroom import SOCKET_NAMESPACE

from .broadcast import SocketIOBroadcaster
from .catalog import QuestionCatalog
from .engine import SessionEngine
from .persistence import PersistenceStore
from .players import PlayerLedger
from .ranking import RankingService
from .rooms import RoomRegistry
from .scheduler import SocketIOScheduler


def build_engine(app, socketio, scheduler=None, broadcaster=None) -> SessionEngine:
    cfg = app.config
    store = PersistenceStore(app, socketio, background=cfg.get('PERSIST_IN_BACKGROUND', True))
    registry = RoomRegistry(
        store=store,
        code_length=int(cfg.get('ROOM_CODE_LENGTH', 6)),
        max_attempts=int(cfg.get('ROOM_CODE_MAX_ATTEMPTS', 100)),
    )
    ledger = PlayerLedger(store=store)
    catalog = QuestionCatalog(
        default_set_name=cfg.get('DEFAULT_SET_NAME', 'Default Set'),
        default_time_limit=int(cfg.get('QUESTION_TIME_LIMIT_SEC', 15)),
        default_points=int(cfg.get('QUESTION_BASE_POINTS', 1000)),
    )
    return SessionEngine(
        registry=registry,
        ledger=ledger,
        catalog=catalog,
        scheduler=scheduler or SocketIOScheduler(socketio),
        broadcaster=broadcaster or SocketIOBroadcaster(socketio, namespace=SOCKET_NAMESPACE),
        ranking=RankingService(ledger),
        reveal_pause_seconds=int(cfg.get('REVEAL_PAUSE_MS', 700)) / 1000.0,
        destroy_finished=bool(cfg.get('DESTROY_FINISHED_ROOMS', True)),
    )

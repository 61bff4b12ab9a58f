import heapq
import itertools
import os
import sys
import threading
import pytest

# Ensure the backend root (containing the `triviaroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from triviaroom import create_app, db, socketio
from triviaroom.services.trivia.scheduler import ScheduledTask


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    CORS_ORIGINS = '*'
    QUESTION_TIME_LIMIT_SEC = 15
    QUESTION_BASE_POINTS = 1000
    REVEAL_PAUSE_MS = 700
    ROOM_CODE_LENGTH = 6
    ROOM_CODE_MAX_ATTEMPTS = 100
    DESTROY_FINISHED_ROOMS = True
    DEFAULT_SET_NAME = 'Default Set'
    PERSIST_IN_BACKGROUND = False


class ManualScheduler:
    """Virtual clock: tasks only run when a test advances time."""

    def __init__(self):
        self.now = 0.0
        self._heap = []
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def schedule(self, delay, callback, *args, label=''):
        task = ScheduledTask(delay, callback, args, label)
        with self._lock:
            heapq.heappush(self._heap, (self.now + delay, next(self._seq), task))
        return task

    def pending(self):
        with self._lock:
            return [task for _, _, task in sorted(self._heap) if not task.cancelled]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            with self._lock:
                if not self._heap or self._heap[0][0] > target:
                    break
                due, _, task = heapq.heappop(self._heap)
            self.now = due
            task.run()
        self.now = target


class RecordingBroadcaster:
    def __init__(self):
        self.events = []

    def emit(self, event, payload, to):
        self.events.append((event, payload, to))

    def names(self, to=None):
        return [e for e, _, t in self.events if to is None or t == to]

    def payloads(self, event):
        return [p for e, p, _ in self.events if e == event]

    def clear(self):
        self.events.clear()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture()
def flask_app(scheduler):
    application = create_app(TestConfig, scheduler=scheduler)
    with application.app_context():
        # Ensure models are imported so tables are created
        import triviaroom.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def engine(flask_app):
    return flask_app.extensions['trivia']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws'
        )
        clients.append(test_client)
        return test_client

    yield make
    for test_client in clients:
        try:
            test_client.disconnect(namespace='/ws')
        except Exception:
            pass


@pytest.fixture()
def capitals_set(flask_app):
    """Two-question set: answers stored as a letter and as an index."""
    from triviaroom.models import seed_default_set
    question_set = seed_default_set('Capitals', [
        {'content': 'Capital of Japan?', 'choices': ['Seoul', 'Tokyo', 'Beijing'], 'correct_answer': 'B', 'time_limit': 20},
        {'content': 'Capital of Peru?', 'choices': ['Lima', 'Quito'], 'correct_answer': '0', 'time_limit': 10, 'points': 500},
    ])
    return question_set.id

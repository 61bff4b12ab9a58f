from functools import wraps

from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from triviaroom import socketio, SOCKET_NAMESPACE
from triviaroom.services.trivia.errors import TriviaError, ValidationError


def _engine():
    return current_app.extensions['trivia']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _require(data, *keys):
    missing = [k for k in keys if (data or {}).get(k) in (None, '')]
    if missing:
        raise ValidationError(f"{', '.join(missing)} required")


def command(handler):
    """Wrap a command handler so it always acknowledges.

    Success returns ``{'ok': True, ...}``. A TriviaError becomes
    ``{'ok': False, 'error': code, 'message': ...}`` and is also emitted to
    the caller as an ``error`` event.
    """
    @wraps(handler)
    def wrapper(data=None):
        try:
            result = handler(data if isinstance(data, dict) else {})
        except TriviaError as exc:
            current_app.logger.info(f"[command-rejected] event={handler.__name__} sid={_get_sid()} error={exc.code}: {exc.message}")
            emit('error', exc.to_dict())
            return {'ok': False, **exc.to_dict()}
        return {'ok': True, **(result or {})}
    return wrapper


def _display_name(data) -> str:
    name = str(data.get('displayName') or '').strip()
    if not name:
        raise ValidationError('displayName required')
    return name


def _enter_room(engine, room, name, user_id=None):
    """Register the caller, then subscribe it to the room's broadcasts."""
    sid = _get_sid()
    previous = engine.ledger.get(sid)
    engine.join(sid, name, room_id=room.id, user_id=user_id)
    if previous and previous.room_id not in (None, room.id):
        leave_room(previous.room_id)
    join_room(room.id)
    # The roster broadcast went out before the caller was subscribed
    emit('players_updated', engine.roster(room.id))


def handle_connect(auth=None):
    emit('connected', {'message': f'Connected to {SOCKET_NAMESPACE}'})


def handle_disconnect(*args):
    # Leaving never advances the room; the timer keeps running for the rest
    _engine().leave(_get_sid())


@command
def handle_create_room(data):
    name = _display_name(data) if 'displayName' in data else None
    engine = _engine()
    room = engine.create_room(host_id=data.get('hostId'), question_set_ref=data.get('questionSetRef'))
    if name:
        try:
            _enter_room(engine, room, name, user_id=data.get('hostId'))
        except TriviaError:
            engine.teardown(room.id)
            raise
    return {'roomId': room.id, 'code': room.code}


@command
def handle_join_room(data):
    if not (data.get('roomId') or data.get('code')):
        raise ValidationError('roomId or code required')
    name = _display_name(data)
    engine = _engine()
    room = engine.require_room(room_id=data.get('roomId'), code=data.get('code'))
    _enter_room(engine, room, name, user_id=data.get('userId'))
    return {'roomId': room.id, 'code': room.code}


@command
def handle_leave_room(data):
    _require(data, 'roomId')
    engine = _engine()
    sid = _get_sid()
    player = engine.ledger.get(sid)
    if player is not None and player.room_id != data['roomId']:
        raise ValidationError(f"not a member of room {data['roomId']}")
    removed = engine.leave(sid) is not None
    leave_room(data['roomId'])
    return {'removed': removed}


@command
def handle_choose_set(data):
    _require(data, 'roomId')
    total = _engine().choose_set(data['roomId'], set_id=data.get('setId'), set_name=data.get('setName'))
    return {'total': total}


@command
def handle_start_game(data):
    _require(data, 'roomId')
    return {'total': _engine().start_game(data['roomId'])}


@command
def handle_submit_answer(data):
    _require(data, 'roomId', 'questionId')
    result = _engine().submit_answer(
        data['roomId'],
        _get_sid(),
        data['questionId'],
        data.get('answerIndex'),
        data.get('timeUsedSeconds', 0),
    )
    return {'correct': result.correct, 'gained': result.gained, 'advanced': result.advanced}


@command
def handle_check_answer(data):
    _require(data, 'questionId')
    result = _engine().check_answer(_get_sid(), data['questionId'], data.get('answerIndex'))
    return {'correct': result.correct}


@command
def handle_get_question_sets(data):
    sets = _engine().question_sets()
    emit('question_sets', sets)
    return {'sets': sets}


@command
def handle_get_questions(data):
    questions = _engine().client_questions(set_id=data.get('setId'), set_name=data.get('setName'))
    emit('questions_data', questions)
    return {'count': len(questions)}


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the game namespace."""
    socketio.on_event('connect', handle_connect, namespace=SOCKET_NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=SOCKET_NAMESPACE)
    socketio.on_event('create_room', handle_create_room, namespace=SOCKET_NAMESPACE)
    socketio.on_event('join_room', handle_join_room, namespace=SOCKET_NAMESPACE)
    socketio.on_event('leave_room', handle_leave_room, namespace=SOCKET_NAMESPACE)
    socketio.on_event('choose_set', handle_choose_set, namespace=SOCKET_NAMESPACE)
    socketio.on_event('start_game', handle_start_game, namespace=SOCKET_NAMESPACE)
    socketio.on_event('submit_answer', handle_submit_answer, namespace=SOCKET_NAMESPACE)
    socketio.on_event('check_answer', handle_check_answer, namespace=SOCKET_NAMESPACE)
    socketio.on_event('get_question_sets', handle_get_question_sets, namespace=SOCKET_NAMESPACE)
    socketio.on_event('get_questions', handle_get_questions, namespace=SOCKET_NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=SOCKET_NAMESPACE)

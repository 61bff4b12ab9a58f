from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user

from triviaroom.services.trivia.errors import TriviaError


rooms = Blueprint('rooms', __name__)


def _engine():
    return current_app.extensions['trivia']


@rooms.errorhandler(TriviaError)
def handle_trivia_error(exc):
    return jsonify(exc.to_dict()), exc.http_status


@rooms.route('/create', methods=['POST'])
def create_room():
    data = request.get_json(silent=True) or {}
    room = _engine().create_room(host_id=data.get('hostId'), question_set_ref=data.get('questionSetRef'))
    return jsonify({
        'message': 'New room created!',
        'roomId': room.id,
        'code': room.code,
    }), 201


@rooms.route('/sets', methods=['GET'])
def list_question_sets():
    return jsonify(_engine().question_sets())


@rooms.route('/sets', methods=['POST'])
def create_question_set():
    data = request.get_json(silent=True) or {}
    user_id = current_user.id if current_user.is_authenticated else None
    question_set = _engine().catalog.create_set(
        data.get('name'), user_id=user_id, is_public=data.get('isPublic', True)
    )
    return jsonify(question_set), 201


@rooms.route('/sets/<int:set_id>/questions', methods=['GET'])
def list_set_questions(set_id):
    return jsonify(_engine().catalog.questions_for_client(set_id))


@rooms.route('/sets/<int:set_id>/questions', methods=['POST'])
def add_set_question(set_id):
    question = _engine().catalog.add_question(set_id, request.get_json(silent=True) or {})
    return jsonify(question.public_view()), 201


@rooms.route('/sets/<int:set_id>/questions/<int:question_id>', methods=['DELETE'])
def remove_set_question(set_id, question_id):
    _engine().catalog.remove_question(question_id, set_id=set_id)
    return jsonify({'message': 'Question removed', 'questionId': question_id})


@rooms.route('/<string:code>', methods=['GET'])
def get_room_state(code):
    engine = _engine()
    room = engine.require_room(code=code)
    payload = room.to_dict()
    payload['players'] = engine.roster(room.id)
    payload['ranking'] = engine.ranking.rank_payload(room.id)
    return jsonify(payload)


@rooms.route('/<string:room_id>', methods=['DELETE'])
def teardown_room(room_id):
    if not _engine().teardown(room_id):
        return jsonify({'error': 'not_found', 'message': f'room {room_id} not found'}), 404
    return jsonify({'message': 'Room closed', 'roomId': room_id})

def _events(sio_client, name):
    return [pkt['args'][0] for pkt in sio_client.get_received('/ws') if pkt['name'] == name]


def _split(received, name):
    return [pkt['args'][0] for pkt in received if pkt['name'] == name]


def _open_room(sio_factory):
    host = sio_factory()
    guest = sio_factory()
    assert host.is_connected('/ws')
    created = host.emit('create_room', {'displayName': 'Alice'}, namespace='/ws', callback=True)
    assert created['ok'] is True
    joined = guest.emit('join_room', {'code': created['code'].lower(), 'displayName': 'Bob'},
                        namespace='/ws', callback=True)
    assert joined == {'ok': True, 'roomId': created['roomId'], 'code': created['code']}
    return host, guest, created['roomId']


def test_connect_greets_the_client(sio_factory):
    sio_client = sio_factory()
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'connected' for pkt in received)


def test_full_game_over_sockets(sio_factory, scheduler, capitals_set):
    host, guest, room_id = _open_room(sio_factory)
    rosters = _events(host, 'players_updated')
    assert [p['name'] for p in rosters[-1]] == ['Alice', 'Bob']
    guest.get_received('/ws')

    ack = host.emit('choose_set', {'roomId': room_id, 'setId': capitals_set}, namespace='/ws', callback=True)
    assert ack == {'ok': True, 'total': 2}
    first = _events(guest, 'new_question')
    assert len(first) == 1
    assert first[0]['index'] == 1 and first[0]['total'] == 2
    assert 'correct_answer' not in first[0]['question']
    host.get_received('/ws')

    ack = guest.emit('submit_answer', {
        'roomId': room_id,
        'questionId': first[0]['question']['id'],
        'answerIndex': 1,
        'timeUsedSeconds': 5,
    }, namespace='/ws', callback=True)
    assert ack == {'ok': True, 'correct': True, 'gained': 1375, 'advanced': True}
    received = guest.get_received('/ws')
    assert _split(received, 'answerResult') == [{'correct': True, 'gained': 1375}]
    assert _split(received, 'reveal_answer')[0]['correctIndex'] == 1
    assert _split(received, 'rankingData')[0][0]['displayName'] == 'Bob'
    # The answer result is private to the submitter
    host_received = host.get_received('/ws')
    assert _split(host_received, 'answerResult') == []
    assert len(_split(host_received, 'reveal_answer')) == 1

    scheduler.advance(0.7)
    second = _events(host, 'new_question')
    assert [q['index'] for q in second] == [2]

    scheduler.advance(10)
    received = host.get_received('/ws')
    assert [pkt['name'] for pkt in received] == ['timeUp', 'reveal_answer']

    scheduler.advance(0.7)
    game_over = _events(guest, 'game_over')
    assert [(e['displayName'], e['score']) for e in game_over[0]['ranking']] == [('Bob', 1375), ('Alice', 0)]


def test_start_game_uses_bound_set(sio_factory, capitals_set):
    host = sio_factory()
    created = host.emit('create_room', {'displayName': 'Alice', 'questionSetRef': capitals_set},
                        namespace='/ws', callback=True)
    host.get_received('/ws')
    ack = host.emit('start_game', {'roomId': created['roomId']}, namespace='/ws', callback=True)
    assert ack == {'ok': True, 'total': 2}
    assert _events(host, 'new_question')[0]['question']['text'] == 'Capital of Japan?'


def test_rejected_commands_ack_with_an_error(sio_factory):
    sio_client = sio_factory()
    sio_client.get_received('/ws')
    ack = sio_client.emit('join_room', {'code': 'ABCDEF'}, namespace='/ws', callback=True)
    assert ack['ok'] is False
    assert ack['error'] == 'invalid_payload'
    assert _events(sio_client, 'error')[0]['error'] == 'invalid_payload'

    ack = sio_client.emit('join_room', {'code': 'ZZZZZZ', 'displayName': 'Al'}, namespace='/ws', callback=True)
    assert ack['error'] == 'not_found'

    ack = sio_client.emit('submit_answer', {'answerIndex': 1}, namespace='/ws', callback=True)
    assert ack == {'ok': False, 'error': 'invalid_payload', 'message': 'roomId, questionId required'}


def test_disconnect_removes_the_player(sio_factory, engine):
    host, guest, room_id = _open_room(sio_factory)
    host.get_received('/ws')
    guest.disconnect(namespace='/ws')
    rosters = _events(host, 'players_updated')
    assert [p['name'] for p in rosters[-1]] == ['Alice']
    assert [p.display_name for p in engine.ledger.players_in_room(room_id)] == ['Alice']


def test_leave_room(sio_factory):
    host, guest, room_id = _open_room(sio_factory)
    ack = guest.emit('leave_room', {'roomId': room_id}, namespace='/ws', callback=True)
    assert ack == {'ok': True, 'removed': True}
    ack = guest.emit('leave_room', {'roomId': room_id}, namespace='/ws', callback=True)
    assert ack == {'ok': True, 'removed': False}


def test_question_sets_and_ping(sio_factory, capitals_set):
    sio_client = sio_factory()
    sio_client.get_received('/ws')
    ack = sio_client.emit('get_question_sets', {}, namespace='/ws', callback=True)
    assert ack == {'ok': True, 'sets': [{'id': capitals_set, 'name': 'Capitals', 'count': 2}]}
    assert _events(sio_client, 'question_sets') == [ack['sets']]
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    assert _events(sio_client, 'pong') == [{'n': 1}]


def test_rejected_join_does_not_subscribe(sio_factory, capitals_set, engine):
    host, guest, room_id = _open_room(sio_factory)
    lurker = sio_factory()
    ack = lurker.emit('join_room', {'roomId': room_id, 'displayName': '   '}, namespace='/ws', callback=True)
    assert ack['ok'] is False and ack['error'] == 'invalid_payload'
    lurker.get_received('/ws')

    host.emit('choose_set', {'roomId': room_id, 'setId': capitals_set}, namespace='/ws', callback=True)
    assert len(_events(guest, 'new_question')) == 1
    assert _events(lurker, 'new_question') == []
    assert len(engine.ledger.players_in_room(room_id)) == 2


def test_rejected_create_leaves_no_room(sio_factory, engine):
    sio_client = sio_factory()
    ack = sio_client.emit('create_room', {'displayName': '  '}, namespace='/ws', callback=True)
    assert ack['ok'] is False and ack['error'] == 'invalid_payload'
    assert engine.registry.active_rooms() == []


def test_joiner_receives_its_own_roster(sio_factory):
    host, guest, room_id = _open_room(sio_factory)
    rosters = _events(guest, 'players_updated')
    assert [p['name'] for p in rosters[-1]] == ['Alice', 'Bob']


def test_leave_room_must_name_the_current_room(sio_factory, engine):
    host, guest, room_id = _open_room(sio_factory)
    ack = guest.emit('leave_room', {'roomId': 'elsewhere'}, namespace='/ws', callback=True)
    assert ack['ok'] is False and ack['error'] == 'invalid_payload'
    assert [p.display_name for p in engine.ledger.players_in_room(room_id)] == ['Alice', 'Bob']


def test_get_questions_hides_answers(sio_factory, capitals_set):
    sio_client = sio_factory()
    sio_client.get_received('/ws')
    ack = sio_client.emit('get_questions', {'setId': capitals_set}, namespace='/ws', callback=True)
    assert ack == {'ok': True, 'count': 2}
    questions = _events(sio_client, 'questions_data')[0]
    assert [q['text'] for q in questions] == ['Capital of Japan?', 'Capital of Peru?']
    assert all('correct_answer' not in q and 'correctAnswer' not in q for q in questions)


def test_check_answer_outside_a_room(sio_factory, capitals_set):
    sio_client = sio_factory()
    sio_client.get_received('/ws')
    questions = sio_client.emit('get_questions', {'setId': capitals_set}, namespace='/ws', callback=True)
    assert questions['ok'] is True
    first = _events(sio_client, 'questions_data')[0][0]
    ack = sio_client.emit('check_answer', {'questionId': first['id'], 'answerIndex': 'B'},
                          namespace='/ws', callback=True)
    assert ack == {'ok': True, 'correct': True}
    assert _events(sio_client, 'answerResult') == [{'correct': True, 'gained': 0}]


def test_check_answer_withholds_upcoming_questions(sio_factory, capitals_set):
    host, guest, room_id = _open_room(sio_factory)
    host.emit('choose_set', {'roomId': room_id, 'setId': capitals_set}, namespace='/ws', callback=True)
    first = _events(guest, 'new_question')[0]['question']['id']
    ack = guest.emit('check_answer', {'questionId': first + 1, 'answerIndex': 0}, namespace='/ws', callback=True)
    assert ack['ok'] is False and ack['error'] == 'invalid_payload'

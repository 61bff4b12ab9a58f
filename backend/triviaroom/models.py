from triviaroom import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone


def _utcnow():
    return datetime.now(timezone.utc)


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(100), nullable=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'displayName': self.display_name or self.username,
        }


class QuestionSet(db.Model):
    __tablename__ = 'question_set'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    is_public = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)
    questions = db.relationship('Question', backref='question_set', lazy='dynamic', order_by='Question.id')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'is_public': self.is_public,
        }


class Question(db.Model):
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    question_set_id = db.Column(db.Integer, db.ForeignKey('question_set.id'), nullable=False, index=True)
    content = db.Column(db.Text, nullable=False)
    choice_a = db.Column(db.Text, nullable=False)
    choice_b = db.Column(db.Text, nullable=False)
    choice_c = db.Column(db.Text, nullable=True)
    choice_d = db.Column(db.Text, nullable=True)
    # Letter A-D or a 0-based index, canonicalized when grading
    correct_answer = db.Column(db.String(4), nullable=False)
    points = db.Column(db.Integer, nullable=True)
    time_limit = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=_utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'question_set_id': self.question_set_id,
            'content': self.content,
            'choice_a': self.choice_a,
            'choice_b': self.choice_b,
            'choice_c': self.choice_c,
            'choice_d': self.choice_d,
            'correct_answer': self.correct_answer,
            'points': self.points,
            'time_limit': self.time_limit,
        }


class Room(db.Model):
    """Durable mirror of a live room. The in-memory registry is authoritative."""
    __tablename__ = 'room'
    id = db.Column(db.String(64), primary_key=True)
    code = db.Column(db.String(16), index=True)
    host_user_id = db.Column(db.String(64), nullable=True)
    question_set_id = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), default='waiting')  # waiting, playing, finished
    created_at = db.Column(db.DateTime, default=_utcnow)
    started_at = db.Column(db.DateTime, nullable=True)
    ended_at = db.Column(db.DateTime, nullable=True)
    players = db.relationship('RoomPlayer', back_populates='room')


class RoomPlayer(db.Model):
    __tablename__ = 'room_player'
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.String(64), db.ForeignKey('room.id'), nullable=False, index=True)
    user_id = db.Column(db.String(64), nullable=True)
    display_name = db.Column(db.String(100), nullable=False)
    socket_id = db.Column(db.String(255), nullable=True, index=True)
    score = db.Column(db.Integer, nullable=False, default=0)
    joined_at = db.Column(db.DateTime, default=_utcnow)
    room = db.relationship('Room', back_populates='players')


DEFAULT_QUESTIONS = [
    {'content': 'What is the capital of France?', 'choices': ['Berlin', 'Paris', 'Madrid', 'Rome'], 'correct_answer': 'B'},
    {'content': 'How many legs does a spider have?', 'choices': ['6', '8', '10', '12'], 'correct_answer': '1'},
    {'content': 'Which planet is known as the Red Planet?', 'choices': ['Mars', 'Venus', 'Jupiter', 'Saturn'], 'correct_answer': 'A'},
    {'content': 'What is 7 x 6?', 'choices': ['36', '48', '42', '56'], 'correct_answer': 'c', 'time_limit': 10},
    {'content': 'Which gas do plants absorb from the air?', 'choices': ['Oxygen', 'Nitrogen', 'Helium', 'Carbon dioxide'], 'correct_answer': 'D', 'points': 1500},
]


def seed_default_set(name='Default Set', questions=None):
    """Create a question set and its questions; returns the set."""
    question_set = QuestionSet(name=name)
    db.session.add(question_set)
    db.session.flush()
    for q in questions if questions is not None else DEFAULT_QUESTIONS:
        choices = list(q['choices']) + [None] * (4 - len(q['choices']))
        db.session.add(Question(
            question_set_id=question_set.id,
            content=q['content'],
            choice_a=choices[0],
            choice_b=choices[1],
            choice_c=choices[2],
            choice_d=choices[3],
            correct_answer=str(q['correct_answer']),
            points=q.get('points'),
            time_limit=q.get('time_limit'),
        ))
    db.session.commit()
    return question_set

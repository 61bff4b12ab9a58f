"""Question catalog backed by the SQL store.

This is the only place raw question records are turned into
:class:`~.domain.Question`. Downstream code reads the canonical fields and
never re-normalizes.
"""

import logging
import math
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from triviaroom import db
from triviaroom.models import Question as QuestionRow, QuestionSet

from .domain import Question
from .errors import CatalogUnavailable, NotFoundError, ValidationError
from .grading import is_correct, normalize_answer_representation

logger = logging.getLogger(__name__)

MIN_OPTIONS = 2
MAX_OPTIONS = 4


def _first(raw: dict, *keys):
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def question_from_mapping(raw: dict, default_time_limit=15, default_points=1000) -> Optional[Question]:
    """Build a canonical Question from a record with any known field spelling.

    Returns None (and logs) when the record cannot form a playable question.
    """
    options = _first(raw, 'options', 'choices')
    if not options:
        options = [_first(raw, f'choice_{letter}', f'choice{letter.upper()}') for letter in 'abcd']
    options = tuple(str(opt) for opt in options if opt is not None)

    try:
        time_limit = float(_first(raw, 'time_limit', 'timeLimit', 'timeLimitSeconds') or default_time_limit)
        base_points = int(_first(raw, 'points', 'point', 'basePoints') or default_points)
    except (TypeError, ValueError):
        logger.warning(f"[catalog-skip] question={raw.get('id')} non-numeric limit or points")
        return None

    if not MIN_OPTIONS <= len(options) <= MAX_OPTIONS or time_limit <= 0 or base_points <= 0:
        logger.warning(
            f"[catalog-skip] question={raw.get('id')} options={len(options)} limit={time_limit} points={base_points}"
        )
        return None
    if time_limit.is_integer():
        time_limit = int(time_limit)

    return Question(
        id=raw.get('id'),
        content=str(_first(raw, 'content', 'text', 'question', 'question_text') or ''),
        options=options,
        correct_answer=_first(raw, 'correct_answer', 'correctAnswer'),
        time_limit_seconds=time_limit,
        base_points=base_points,
    )


class QuestionCatalog:
    def __init__(self, default_set_name='Default Set', default_time_limit=15, default_points=1000):
        self.default_set_name = default_set_name
        self.default_time_limit = default_time_limit
        self.default_points = default_points

    def _convert(self, rows) -> List[Question]:
        questions = []
        for row in rows:
            q = question_from_mapping(row.to_dict(), self.default_time_limit, self.default_points)
            if q is not None:
                questions.append(q)
        return questions

    def list_sets(self) -> List[dict]:
        try:
            rows = (
                db.session.query(QuestionSet, func.count(QuestionRow.id))
                .outerjoin(QuestionRow, QuestionRow.question_set_id == QuestionSet.id)
                .group_by(QuestionSet.id)
                .order_by(QuestionSet.id)
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise CatalogUnavailable(f'could not list question sets: {exc}') from exc
        return [{'id': s.id, 'name': s.name or f'Set {s.id}', 'count': count} for s, count in rows]

    def set_by_name(self, name) -> Optional[dict]:
        if not name:
            return None
        try:
            question_set = QuestionSet.query.filter_by(name=name).first()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise CatalogUnavailable(f'could not look up set {name!r}: {exc}') from exc
        return question_set.to_dict() if question_set else None

    def questions_for_set(self, set_id=None) -> List[Question]:
        """Ordered questions of one set; every question when ``set_id`` is None."""
        try:
            if set_id is None:
                rows = QuestionRow.query.order_by(QuestionRow.id).all()
            else:
                if db.session.get(QuestionSet, int(set_id)) is None:
                    raise NotFoundError(f'question set {set_id} not found')
                rows = QuestionRow.query.filter_by(question_set_id=int(set_id)).order_by(QuestionRow.id).all()
        except (TypeError, ValueError) as exc:
            raise NotFoundError(f'question set {set_id!r} not found') from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise CatalogUnavailable(f'could not load set {set_id}: {exc}') from exc
        return self._convert(rows)

    def default_set(self) -> Optional[dict]:
        """``{'set': ..., 'questions': [...]}`` for the default set, or None."""
        found = self.set_by_name(self.default_set_name)
        if not found:
            return None
        return {'set': found, 'questions': self.questions_for_set(found['id'])}

    def question_by_id(self, question_id) -> Optional[Question]:
        try:
            row = db.session.get(QuestionRow, int(question_id))
        except (TypeError, ValueError):
            return None
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise CatalogUnavailable(f'could not load question {question_id}: {exc}') from exc
        if row is None:
            return None
        return question_from_mapping(row.to_dict(), self.default_time_limit, self.default_points)

    def check_answer(self, question_id, answer) -> bool:
        """Grade straight against the catalog, outside any live room."""
        question = self.question_by_id(question_id)
        if question is None:
            raise NotFoundError(f'question {question_id} not found')
        return is_correct(question, answer)

    # -- authoring --

    def _commit(self, action):
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise CatalogUnavailable(f'could not {action}: {exc}') from exc

    def create_set(self, name, user_id=None, is_public=True) -> dict:
        name = str(name or '').strip()
        if not name:
            raise ValidationError('set name required')
        question_set = QuestionSet(name=name, user_id=user_id, is_public=bool(is_public))
        db.session.add(question_set)
        self._commit(f'create set {name!r}')
        logger.info(f"[set-create] set={question_set.id} name={name} user={user_id}")
        return question_set.to_dict()

    def add_question(self, set_id, raw: dict) -> Question:
        """Validate ``raw`` like any stored record, then append it to the set."""
        try:
            question_set = db.session.get(QuestionSet, int(set_id))
        except (TypeError, ValueError) as exc:
            raise NotFoundError(f'question set {set_id!r} not found') from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise CatalogUnavailable(f'could not load set {set_id}: {exc}') from exc
        if question_set is None:
            raise NotFoundError(f'question set {set_id} not found')

        question = question_from_mapping(raw or {}, self.default_time_limit, self.default_points)
        if question is None:
            raise ValidationError('a question needs 2-4 options, a positive time limit and positive points')
        if not question.content.strip():
            raise ValidationError('question text required')
        answer = normalize_answer_representation(question.correct_answer)
        if answer is None or answer >= len(question.options):
            raise ValidationError('correct answer must name one of the options')

        choices = list(question.options) + [None] * (MAX_OPTIONS - len(question.options))
        row = QuestionRow(
            question_set_id=question_set.id,
            content=question.content,
            choice_a=choices[0],
            choice_b=choices[1],
            choice_c=choices[2],
            choice_d=choices[3],
            correct_answer=str(answer),
            points=question.base_points,
            time_limit=int(math.ceil(question.time_limit_seconds)),
        )
        db.session.add(row)
        self._commit(f'add a question to set {set_id}')
        logger.info(f"[question-add] set={question_set.id} question={row.id}")
        return question_from_mapping(row.to_dict(), self.default_time_limit, self.default_points)

    def remove_question(self, question_id, set_id=None) -> None:
        try:
            row = db.session.get(QuestionRow, int(question_id))
        except (TypeError, ValueError) as exc:
            raise NotFoundError(f'question {question_id!r} not found') from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise CatalogUnavailable(f'could not load question {question_id}: {exc}') from exc
        if row is None or (set_id is not None and row.question_set_id != int(set_id)):
            raise NotFoundError(f'question {question_id} not found')
        db.session.delete(row)
        self._commit(f'remove question {question_id}')
        logger.info(f"[question-remove] question={question_id}")

    def questions_for_client(self, set_id=None) -> List[dict]:
        return [q.public_view() for q in self.questions_for_set(set_id)]

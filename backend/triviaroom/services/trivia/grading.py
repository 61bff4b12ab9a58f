import math
import re
from typing import Any, Optional

_LETTER_TO_INDEX = {'A': 0, 'B': 1, 'C': 2, 'D': 3}
_DIGITS = re.compile(r'^\d+$')


def normalize_answer_representation(value: Any) -> Optional[int]:
    """Map an answer representation to a 0-based option index.

    Accepts a non-negative integer (or integral float), a digit string such
    as ``"2"``, or a single letter A-D in either case. Anything else maps to
    ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and value >= 0:
            return int(value)
        return None
    if isinstance(value, str):
        text = value.strip()
        if _DIGITS.match(text):
            return int(text)
        return _LETTER_TO_INDEX.get(text.upper()) if len(text) == 1 else None
    return None


def correct_index(question) -> Optional[int]:
    return normalize_answer_representation(question.correct_answer)


def is_correct(question, submitted: Any) -> bool:
    """Grade ``submitted`` against the question's stored answer.

    Both sides go through the same normalizer; an unparseable value on
    either side is a wrong answer, never an error.
    """
    expected = correct_index(question)
    provided = normalize_answer_representation(submitted)
    if expected is None or provided is None:
        return False
    return expected == provided

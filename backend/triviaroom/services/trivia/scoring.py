import math

from .errors import ValidationError

# Fastest correct answer earns base_points * (1 + MAX_TIME_BONUS)
MAX_TIME_BONUS = 0.5


def points_gained(base_points, time_limit_seconds, time_used_seconds) -> int:
    """Points for a correct answer, decayed by the time it took.

    A correct answer at or past the limit still earns full ``base_points``.
    Wrong answers earn nothing and never reach this function.
    """
    if not time_limit_seconds or time_limit_seconds <= 0:
        raise ValidationError('time limit must be positive')
    used = max(0.0, float(time_used_seconds or 0))
    remaining = max(0.0, time_limit_seconds - used)
    bonus_factor = 1 + (remaining / time_limit_seconds) * MAX_TIME_BONUS
    # Round half up, not banker's rounding
    return int(math.floor(base_points * bonus_factor + 0.5))

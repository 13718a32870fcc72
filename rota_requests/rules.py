"""
Request rules shared by the server of record and the client editing engine.

Both sides must agree on what a week is, how many requests fit in one and
which values carry a priority rank, so the constants live here rather than in
the Flask config.
"""
from datetime import date, datetime, timedelta
from typing import Optional, Union

# Maximum distinct days with a request per user per week
MAX_REQUESTS_PER_WEEK = 5

# Strong preference ranks available per user per week
PRIORITY_RANKS = (1, 2)

# Weeks shown in one rota window
WINDOW_WEEKS = 5

# Hours before the deadline at which a period counts as "closing soon"
CLOSE_SOON_HOURS = 24

# Value stored for an "off" request
OFF_CODE = 'O'

# Picker choice meaning "off, and cycle the strong preference rank"
STRONG_OFF_CHOICE = 'O*'

# Picker choice meaning "remove the request"
CLEAR_CHOICE = 'CLEAR'

# Longest preference code the store accepts
MAX_CODE_LENGTH = 8

# Week open flag used when no row of a calendar window carried a known flag.
# False keeps such weeks closed until an administrator opens them.
UNKNOWN_WEEK_FLAG_POLICY = False

SUPPORTED_LANGUAGES = ('en', 'es')
DEFAULT_LANGUAGE = 'en'


class RoleTier:
    """Role tiers used for roster sections and notice targeting."""
    CHARGE_NURSE = 1
    STAFF_NURSE = 2
    NURSING_ASSISTANT = 3

    ALL = (CHARGE_NURSE, STAFF_NURSE, NURSING_ASSISTANT)

    LABELS = {
        CHARGE_NURSE: 'Charge Nurses',
        STAFF_NURSE: 'Staff Nurses',
        NURSING_ASSISTANT: 'Nursing Assistants',
    }


def as_date(value: Union[str, date, datetime]) -> date:
    """Coerce an ISO string, date or datetime to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def week_start(value: Union[str, date, datetime]) -> date:
    """Return the Sunday that starts the 7-day window containing ``value``."""
    day = as_date(value)
    # weekday(): Monday=0 .. Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def same_week(a: Union[str, date], b: Union[str, date]) -> bool:
    return week_start(a) == week_start(b)


def normalize_language(lang: Optional[str]) -> str:
    return 'es' if (lang or '').lower() == 'es' else DEFAULT_LANGUAGE


def rank_is_meaningful(value: Optional[str], rank: Optional[int]) -> bool:
    """A rank only counts on an off request and only for the known ranks."""
    return value == OFF_CODE and rank in PRIORITY_RANKS

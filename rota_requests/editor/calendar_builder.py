"""
Calendar window builder and roster grouping

Turns the flat per-period date rows into Sunday-anchored 7-day windows, and
the user list into the role sections the rota is drawn in.
"""
from collections import OrderedDict
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional

from rota_requests import rules
from rota_requests.editor.types import Actor, CalendarWeek, RosterSection, RotaDateRow


def _resolve_flag(values: List[Optional[bool]]) -> bool:
    """AND over the known flags; with none known the policy constant decides."""
    known = [v for v in values if v is not None]
    if not known:
        return rules.UNKNOWN_WEEK_FLAG_POLICY
    return all(known)


def group_dates_into_weeks(rows: Iterable[Any]) -> List[CalendarWeek]:
    """
    Group date rows into Sunday-anchored weeks.

    Args:
        rows: RotaDateRow values, or dicts in the read-model shape

    Returns:
        CalendarWeek list sorted by week start. Each window holds exactly
        seven days; dates missing from the input are filled with synthetic
        rows carrying the window's week id and resolved flags.
    """
    buckets: Dict = OrderedDict()
    for row in rows:
        if not isinstance(row, RotaDateRow):
            row = RotaDateRow.from_dict(row)
        buckets.setdefault(rules.week_start(row.date), []).append(row)

    weeks = []
    for start in sorted(buckets):
        members = buckets[start]
        week_id = next((r.week_id for r in members if r.week_id is not None), None)
        is_open = _resolve_flag([r.week_open for r in members])
        open_after_close = _resolve_flag([r.week_open_after_close for r in members])

        by_date = {r.date: r for r in members}
        days = []
        for offset in range(7):
            day = start + timedelta(days=offset)
            days.append(by_date.get(day) or RotaDateRow(
                date=day,
                week_id=week_id,
                week_open=is_open,
                week_open_after_close=open_after_close,
                synthetic=True,
            ))

        weeks.append(CalendarWeek(
            week_start=start,
            week_end=start + timedelta(days=6),
            week_id=week_id,
            open=is_open,
            open_after_close=open_after_close,
            days=tuple(days),
        ))
    return weeks


def week_for_date(weeks: Iterable[CalendarWeek], day) -> Optional[CalendarWeek]:
    day = rules.as_date(day)
    return next((w for w in weeks if w.contains(day)), None)


def group_users(users: Iterable[Any]) -> List[RosterSection]:
    """
    Active users in roster sections: charge nurses, staff nurses, nursing
    assistants. Unknown role tiers join the staff nurses; empty sections are
    left out.
    """
    sections = OrderedDict((role, []) for role in rules.RoleTier.ALL)
    for user in users:
        if not isinstance(user, Actor):
            user = Actor.from_dict(user)
        if not user.is_active:
            continue
        role = user.role_id if user.role_id in sections else rules.RoleTier.STAFF_NURSE
        sections[role].append(user)

    return [
        RosterSection(rules.RoleTier.LABELS[role],
                      tuple(sorted(members, key=lambda u: (u.display_order, u.name.lower()))))
        for role, members in sections.items()
        if members
    ]

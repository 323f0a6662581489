"""
Calendar derivations over an events snapshot.

An event is active on every day of the closed interval [start_date, end_date];
without an end date it is active on its start date only. Nothing here mutates
the events passed in, and the same inputs always give the same output.
"""

import calendar
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

from schemas import DayCell, Event


def active_interval(event: Event) -> Optional[Tuple[date, date]]:
    if event.start_date is None:
        return None
    return event.start_date, event.end_date or event.start_date


def month_bounds(month_ref: date) -> Tuple[date, date]:
    last = calendar.monthrange(month_ref.year, month_ref.month)[1]
    return month_ref.replace(day=1), month_ref.replace(day=last)


def shift_month(month_ref: date, direction: int) -> date:
    """First day of the month `direction` months away from `month_ref`."""
    index = month_ref.year * 12 + (month_ref.month - 1) + direction
    return date(index // 12, index % 12 + 1, 1)


def events_on(day: date, events: Sequence[Event]) -> List[Event]:
    active = []
    for event in events:
        interval = active_interval(event)
        if interval and interval[0] <= day <= interval[1]:
            active.append(event)
    return active


def days_in_month(month_ref: date, events: Sequence[Event], today: Optional[date] = None) -> List[Optional[DayCell]]:
    """Cells for a Sunday-first, 7-column month grid.

    Leading None placeholders push the 1st under its weekday column; then one
    DayCell per day in ascending order.
    """
    today = today or date.today()
    first, last = month_bounds(month_ref)
    # date.weekday() counts from Monday; the grid counts from Sunday
    cells: List[Optional[DayCell]] = [None] * ((first.weekday() + 1) % 7)

    day = first
    while day <= last:
        cells.append(DayCell(
            day=day,
            date_str=day.isoformat(),
            is_past=day < today,
            is_today=day == today,
            is_sunday=day.weekday() == 6,
            events=events_on(day, events),
        ))
        day += timedelta(days=1)
    return cells


def monthly_filter(month_ref: date, events: Sequence[Event]) -> List[Event]:
    """Events whose active interval touches the month of `month_ref`."""
    first, last = month_bounds(month_ref)
    selected = []
    for event in events:
        interval = active_interval(event)
        if interval is None:
            continue
        start, end = interval
        if first <= start <= last or first <= end <= last or (start < first and end > last):
            selected.append(event)
    return selected


def upcoming_events(events: Sequence[Event], today: Optional[date] = None, limit: int = 5,
                    status: Optional[str] = None) -> List[Event]:
    """Next `limit` events starting today or later, optionally only those with `status`."""
    today = today or date.today()
    upcoming = [e for e in events if e.start_date is not None and e.start_date >= today]
    if status:
        upcoming = [e for e in upcoming if e.status == status]
    upcoming.sort(key=lambda e: e.start_date)
    return upcoming[:limit]


def sort_by_start(events: Sequence[Event]) -> List[Event]:
    return sorted(events, key=lambda e: (e.start_date is None, e.start_date or date.min))

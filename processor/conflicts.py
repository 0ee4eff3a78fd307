"""Detection of overlapping bookings on the club's fields."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List

from processor.models import CalendarEvent

logger = logging.getLogger(__name__)


@dataclass
class FieldConflict:
    """Two events booked on the same field at overlapping times."""
    event1: CalendarEvent
    event2: CalendarEvent
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event1': _event_summary(self.event1),
            'event2': _event_summary(self.event2),
            'reason': self.reason,
        }


def _event_summary(event: CalendarEvent) -> Dict[str, Any]:
    return {
        'eventId': event.event_id,
        'title': event.title,
        'date': event.date,
        'startTime': event.start_time,
        'endTime': event.end_time,
        'field': event.field,
    }


def _minutes(time_str: str) -> int:
    hours, minutes = time_str.split(':')
    return int(hours) * 60 + int(minutes)


def overlaps(first: CalendarEvent, second: CalendarEvent) -> bool:
    """
    Check whether two events block the same field at the same time.

    Events without a field never conflict. Intervals are half-open, so an
    event ending at 17:00 and one starting at 17:00 do not overlap.
    """
    if first.date != second.date:
        return False
    if not first.field or first.field != second.field:
        return False

    return (_minutes(first.start_time) < _minutes(second.end_time)
            and _minutes(second.start_time) < _minutes(first.end_time))


def find_conflicts(events: List[CalendarEvent]) -> List[FieldConflict]:
    """
    Report every pair of overlapping events on the same field.

    Args:
        events: Events to check, in any order

    Returns:
        FieldConflict per overlapping pair, in input order
    """
    conflicts = []

    for i, first in enumerate(events):
        for second in events[i + 1:]:
            if overlaps(first, second):
                conflicts.append(FieldConflict(
                    event1=first,
                    event2=second,
                    reason=f"Overlapping bookings on {first.field}"
                ))

    return conflicts


def find_field_conflicts(store, start_date: str,
                         end_date: str) -> List[FieldConflict]:
    """
    Find field conflicts among the active events of a date range.

    Args:
        store: Calendar store providing get_events_by_date_range()
        start_date: First day of the range (YYYY-MM-DD)
        end_date: Last day of the range (YYYY-MM-DD), inclusive

    Returns:
        List of FieldConflict objects

    Raises:
        ValueError: If a date is malformed or the range is reversed
    """
    for value in (start_date, end_date):
        datetime.strptime(value, '%Y-%m-%d')
    if start_date > end_date:
        raise ValueError(f"Start date {start_date} is after end date {end_date}")

    events = store.get_events_by_date_range(start_date, end_date)
    conflicts = find_conflicts(events)

    logger.info(
        f"Found {len(conflicts)} field conflicts among {len(events)} events "
        f"between {start_date} and {end_date}"
    )
    return conflicts

"""Change detection between stored events and incoming fixtures."""
from dataclasses import dataclass, field
from typing import List, Optional

from processor.models import CalendarEvent, ParsedMatch


@dataclass
class ChangeSet:
    """Outcome of comparing a stored event with an incoming match."""
    needs_update: bool
    changes: List[str] = field(default_factory=list)


def _describe(label: str, old: Optional[str], new: Optional[str]) -> str:
    return f"{label}: {old or 'none'} -> {new}"


def needs_update(existing: CalendarEvent, match: ParsedMatch,
                 resolved_field: Optional[str] = None) -> ChangeSet:
    """
    Compare a stored event with an incoming match.

    Date and times are always compared. Field, location and competition only
    count as changed when the incoming side carries a value, so a blank
    incoming value never triggers an update on its own. Once an update is
    triggered by another difference, the incoming values are written as
    they are.

    Args:
        existing: Stored CalendarEvent
        match: Incoming ParsedMatch
        resolved_field: Default field resolved for the match, if any

    Returns:
        ChangeSet listing each difference as "label: old -> new"
    """
    changes = []

    if existing.date != match.date:
        changes.append(_describe('date', existing.date, match.date))
    if existing.start_time != match.start_time:
        changes.append(
            _describe('start_time', existing.start_time, match.start_time)
        )
    if existing.end_time != match.end_time:
        changes.append(
            _describe('end_time', existing.end_time, match.end_time)
        )
    if resolved_field and existing.field != resolved_field:
        changes.append(_describe('field', existing.field, resolved_field))
    if match.location and existing.location != match.location:
        changes.append(
            _describe('location', existing.location, match.location)
        )
    if match.competition and existing.competition != match.competition:
        changes.append(
            _describe('competition', existing.competition, match.competition)
        )

    return ChangeSet(needs_update=len(changes) > 0, changes=changes)

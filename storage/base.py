"""Persistence port used by the fixture reconciler."""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from processor.models import CalendarEvent, ImportHistoryRecord


class DuplicateExternalIdError(Exception):
    """Raised when (source, external_id) is already taken by another event."""

    def __init__(self, source: str, external_id: str):
        super().__init__(
            f"External ID '{external_id}' already exists for source '{source}'"
        )
        self.source = source
        self.external_id = external_id


class EventNotFoundError(Exception):
    """Raised when an update targets an event that does not exist."""


class InvalidEventError(ValueError):
    """Raised when an event or field mapping carries a value outside its enumeration."""


class CalendarStore(ABC):
    """Keyed calendar storage with the queries the reconciler needs."""

    @abstractmethod
    def find_by_source_and_external_id(
        self, source: str, external_id: str
    ) -> Optional[CalendarEvent]:
        """Return the event stored under (source, external_id), any status."""

    @abstractmethod
    def find_by_source_and_teams(
        self, source: str, team_home: str, team_away: str
    ) -> Optional[CalendarEvent]:
        """Return an active event of the source with the given team names."""

    @abstractmethod
    def list_active_external_ids(self, source: str) -> List[str]:
        """Return external IDs of all active events of the source."""

    @abstractmethod
    def create(self, event: CalendarEvent) -> CalendarEvent:
        """Insert a new event, raising DuplicateExternalIdError on conflict."""

    @abstractmethod
    def update(self, event_id: str, fields: Dict[str, Any]) -> CalendarEvent:
        """Overwrite the given attributes of an event and bump updated_at."""

    @abstractmethod
    def archive(self, event_id: str) -> bool:
        """Set the event status to archived."""

    @abstractmethod
    def get_default_field(self, team: str, event_type: str) -> Optional[str]:
        """Return the default field mapped to (team, event_type)."""

    @abstractmethod
    def append_import_history(
        self, record: ImportHistoryRecord
    ) -> ImportHistoryRecord:
        """Persist one import history record."""

    @abstractmethod
    def get_events_by_date_range(
        self, start_date: str, end_date: str
    ) -> List[CalendarEvent]:
        """Return active events dated between start_date and end_date, inclusive."""

"""Data models for fixture import and the club calendar."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Event sources
SOURCE_BFV = 'bfv'
SOURCE_MANUAL = 'manual'
EVENT_SOURCES = (SOURCE_BFV, SOURCE_MANUAL)

# Event types
EVENT_TYPE_MATCH = 'match'
EVENT_TYPES = (
    EVENT_TYPE_MATCH,
    'training',
    'tournament',
    'club_event',
    'field_closure',
    'other',
)

# Event statuses
STATUS_ACTIVE = 'active'
STATUS_CANCELLED = 'cancelled'
STATUS_ARCHIVED = 'archived'
EVENT_STATUSES = (STATUS_ACTIVE, STATUS_CANCELLED, STATUS_ARCHIVED)

# Club squads
TEAMS = (
    'herren',
    'herren2',
    'a-jugend',
    'b-jugend',
    'c-jugend',
    'd-jugend',
    'e-jugend',
    'f-jugend',
    'g-jugend',
    'damen',
    'alte-herren',
)

# Physical venues
FIELDS = ('a-platz', 'b-platz')


@dataclass
class RawMatch:
    """Fixture candidate as found by an extractor, before normalization."""
    match_id: str
    date: str
    time: str
    home_team: str
    away_team: str
    is_home: bool
    team: str
    competition: str
    match_type: Optional[str] = None
    location: Optional[str] = None


@dataclass
class ParsedMatch:
    """Normalized fixture ready for reconciliation."""
    external_id: str
    date: str
    start_time: str
    end_time: str
    team_home: str
    team_away: str
    team: str
    is_home_game: bool
    opponent: str
    competition: str
    location: Optional[str] = None
    raw_data: Optional[Dict[str, Any]] = None


@dataclass
class CalendarEvent:
    """Stored calendar entry."""
    event_id: str
    source: str
    event_type: str
    title: str
    date: str
    start_time: str
    end_time: str
    status: str = STATUS_ACTIVE
    external_id: Optional[str] = None
    recurring_group_id: Optional[str] = None
    team: Optional[str] = None
    field: Optional[str] = None
    is_home_game: Optional[bool] = None
    opponent: Optional[str] = None
    location: Optional[str] = None
    competition: Optional[str] = None
    description: Optional[str] = None
    raw_payload: Optional[Dict[str, Any]] = None
    team_home: Optional[str] = None
    team_away: Optional[str] = None
    created_at: int = 0
    updated_at: int = 0


@dataclass
class FieldMapping:
    """Default venue for a (team, event type) pair."""
    team: str
    event_type: str
    default_field: str


@dataclass
class ImportHistoryRecord:
    """Audit row written once per reconciliation run."""
    record_id: str
    imported_at: int
    created_count: int
    updated_count: int
    unchanged_count: int
    archived_count: int
    error_count: int
    file_name: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class ImportSummary:
    """Result of a reconciliation run."""
    created_count: int = 0
    updated_count: int = 0
    unchanged_count: int = 0
    archived_count: int = 0
    error_count: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'createdCount': self.created_count,
            'updatedCount': self.updated_count,
            'unchangedCount': self.unchanged_count,
            'archivedCount': self.archived_count,
            'errorCount': self.error_count,
            'errors': list(self.errors),
        }

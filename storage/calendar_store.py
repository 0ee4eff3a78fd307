"""DynamoDB calendar store."""
import dataclasses
import json
import logging
import time
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from processor.models import (
    EVENT_SOURCES,
    EVENT_STATUSES,
    EVENT_TYPES,
    FIELDS,
    STATUS_ACTIVE,
    STATUS_ARCHIVED,
    TEAMS,
    CalendarEvent,
    FieldMapping,
    ImportHistoryRecord,
)
from storage.base import (
    CalendarStore,
    DuplicateExternalIdError,
    EventNotFoundError,
    InvalidEventError,
)

logger = logging.getLogger(__name__)

# Bootstrap field assignments for the club's squads
DEFAULT_FIELD_MAPPINGS = [
    FieldMapping(team='herren', event_type='match', default_field='a-platz'),
    FieldMapping(team='herren', event_type='training', default_field='a-platz'),
    FieldMapping(team='herren2', event_type='match', default_field='a-platz'),
    FieldMapping(team='a-jugend', event_type='match', default_field='a-platz'),
    FieldMapping(team='b-jugend', event_type='match', default_field='b-platz'),
    FieldMapping(team='c-jugend', event_type='match', default_field='b-platz'),
    FieldMapping(team='d-jugend', event_type='match', default_field='b-platz'),
    FieldMapping(team='e-jugend', event_type='match', default_field='b-platz'),
    FieldMapping(team='f-jugend', event_type='match', default_field='b-platz'),
    FieldMapping(team='g-jugend', event_type='match', default_field='b-platz'),
]

# Optional event attributes, omitted from the item when unset
OPTIONAL_EVENT_ATTRIBUTES = (
    'external_id',
    'recurring_group_id',
    'team',
    'field',
    'is_home_game',
    'opponent',
    'location',
    'competition',
    'description',
    'team_home',
    'team_away',
)

HISTORY_PK = 'IMPORT_HISTORY'


class DynamoDBCalendarStore(CalendarStore):
    """
    Calendar store on a single DynamoDB table.

    Items are keyed by ``pk``/``sk``:

    - events: ``EVENT#<event_id>`` / ``EVENT``
    - external ID guards: ``EXTERNAL#<source>#<external_id>`` / ``EXTERNAL``
    - field mappings: ``FIELDMAP#<team>`` / ``<event_type>``
    - import history: ``IMPORT_HISTORY`` / ``<imported_at>#<record_id>``

    A guard item is written in the same transaction as its event, which
    keeps (source, external_id) unique.
    """

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        """
        Initialize DynamoDB resource and table reference.

        Args:
            table_name: Name of the DynamoDB table
            region_name: AWS region, defaults to the environment's region
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        self.client = self.dynamodb.meta.client
        self._serializer = TypeSerializer()
        logger.info(f"Initialized DynamoDBCalendarStore for table: {table_name}")

    # Events

    def get_event(self, event_id: str) -> Optional[CalendarEvent]:
        response = self.table.get_item(Key=self._event_key(event_id))
        item = response.get('Item')
        return self._item_to_event(item) if item else None

    def get_all_events(self) -> Dict[str, CalendarEvent]:
        """
        Retrieve all events regardless of source and status.

        Returns:
            Dictionary mapping event_id to CalendarEvent objects
        """
        events = {}
        for item in self._scan(Attr('item_type').eq('event')):
            event = self._item_to_event(item)
            if event:
                events[event.event_id] = event

        logger.info(f"Retrieved {len(events)} events from DynamoDB")
        return events

    def find_by_source_and_external_id(
        self, source: str, external_id: str
    ) -> Optional[CalendarEvent]:
        response = self.table.get_item(
            Key=self._external_key(source, external_id)
        )
        guard = response.get('Item')
        if not guard:
            return None
        return self.get_event(guard['event_id'])

    def find_by_source_and_teams(
        self, source: str, team_home: str, team_away: str
    ) -> Optional[CalendarEvent]:
        items = self._scan(
            Attr('item_type').eq('event')
            & Attr('source').eq(source)
            & Attr('team_home').eq(team_home)
            & Attr('team_away').eq(team_away)
            & Attr('status').eq(STATUS_ACTIVE)
        )
        for item in items:
            event = self._item_to_event(item)
            if event:
                return event
        return None

    def list_active_external_ids(self, source: str) -> List[str]:
        items = self._scan(
            Attr('item_type').eq('event')
            & Attr('source').eq(source)
            & Attr('status').eq(STATUS_ACTIVE)
            & Attr('external_id').exists()
        )
        return [item['external_id'] for item in items]

    def get_events_by_date_range(
        self, start_date: str, end_date: str
    ) -> List[CalendarEvent]:
        """
        Retrieve active events between two dates, inclusive.

        Args:
            start_date: First day (YYYY-MM-DD)
            end_date: Last day (YYYY-MM-DD)

        Returns:
            CalendarEvent objects ordered by date and start time
        """
        items = self._scan(
            Attr('item_type').eq('event')
            & Attr('status').eq(STATUS_ACTIVE)
            & Attr('date').between(start_date, end_date)
        )
        events = [e for e in map(self._item_to_event, items) if e]
        return sorted(events, key=lambda e: (e.date, e.start_time))

    def create(self, event: CalendarEvent) -> CalendarEvent:
        """
        Insert a new event together with its external ID guard.

        Args:
            event: CalendarEvent to insert

        Returns:
            The stored CalendarEvent with timestamps set

        Raises:
            DuplicateExternalIdError: If (source, external_id) is taken
            InvalidEventError: If source, type, status or field is unknown
        """
        self._validate_event(event)
        now = int(time.time())
        event = dataclasses.replace(
            event,
            created_at=event.created_at or now,
            updated_at=now
        )

        transact_items = [self._put(self._event_to_item(event), must_exist=False)]
        if event.external_id:
            transact_items.append(
                self._put(self._guard_item(event), must_exist=False)
            )

        self._transact(transact_items, event.source, event.external_id)
        logger.debug(f"Created event {event.event_id}: {event.title}")
        return event

    def update(self, event_id: str, fields: Dict[str, Any]) -> CalendarEvent:
        """
        Overwrite attributes of an existing event.

        Attributes set to None are removed. A changed external_id moves the
        guard item in the same transaction.

        Args:
            event_id: ID of the event to update
            fields: CalendarEvent attribute names mapped to new values

        Returns:
            The updated CalendarEvent

        Raises:
            EventNotFoundError: If the event does not exist
            DuplicateExternalIdError: If the new external_id is taken
            InvalidEventError: If a field leaves its enumeration
        """
        current = self.get_event(event_id)
        if current is None:
            raise EventNotFoundError(f"Event {event_id} not found")

        updated = dataclasses.replace(
            current, **fields, updated_at=int(time.time())
        )
        self._validate_event(updated)

        if updated.external_id == current.external_id:
            try:
                self.table.put_item(
                    Item=self._event_to_item(updated),
                    ConditionExpression=Attr('pk').exists()
                )
            except ClientError as e:
                if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                    raise EventNotFoundError(f"Event {event_id} not found") from e
                raise
            return updated

        transact_items = [self._put(self._event_to_item(updated), must_exist=True)]
        if current.external_id:
            transact_items.append({
                'Delete': {
                    'TableName': self.table_name,
                    'Key': self._serialize(
                        self._external_key(current.source, current.external_id)
                    ),
                }
            })
        if updated.external_id:
            transact_items.append(
                self._put(self._guard_item(updated), must_exist=False)
            )

        self._transact(
            transact_items, updated.source, updated.external_id,
            existing_event_id=event_id
        )
        logger.debug(
            f"Moved event {event_id} from external ID "
            f"'{current.external_id}' to '{updated.external_id}'"
        )
        return updated

    def archive(self, event_id: str) -> bool:
        try:
            self.table.update_item(
                Key=self._event_key(event_id),
                UpdateExpression='SET #status = :status, updated_at = :now',
                ConditionExpression=Attr('pk').exists(),
                ExpressionAttributeNames={'#status': 'status'},
                ExpressionAttributeValues={
                    ':status': STATUS_ARCHIVED,
                    ':now': int(time.time()),
                }
            )
            return True
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                logger.warning(f"Cannot archive missing event {event_id}")
                return False
            raise

    # Field mappings

    def get_default_field(self, team: str, event_type: str) -> Optional[str]:
        response = self.table.get_item(
            Key={'pk': f'FIELDMAP#{team}', 'sk': event_type}
        )
        item = response.get('Item')
        return item['default_field'] if item else None

    def put_field_mapping(self, mapping: FieldMapping) -> FieldMapping:
        if (mapping.team not in TEAMS or mapping.event_type not in EVENT_TYPES
                or mapping.default_field not in FIELDS):
            raise InvalidEventError(f"Invalid field mapping: {mapping}")

        self.table.put_item(Item={
            'pk': f'FIELDMAP#{mapping.team}',
            'sk': mapping.event_type,
            'item_type': 'field_mapping',
            'team': mapping.team,
            'event_type': mapping.event_type,
            'default_field': mapping.default_field,
        })
        return mapping

    def list_field_mappings(self) -> List[FieldMapping]:
        return [
            FieldMapping(
                team=item['team'],
                event_type=item['event_type'],
                default_field=item['default_field']
            )
            for item in self._scan(Attr('item_type').eq('field_mapping'))
        ]

    def initialize_default_field_mappings(self) -> int:
        """
        Write the club's default field mappings if none exist yet.

        Returns:
            Number of mappings written
        """
        if self.list_field_mappings():
            return 0

        for mapping in DEFAULT_FIELD_MAPPINGS:
            self.put_field_mapping(mapping)

        logger.info(f"Initialized {len(DEFAULT_FIELD_MAPPINGS)} default field mappings")
        return len(DEFAULT_FIELD_MAPPINGS)

    # Import history

    def append_import_history(
        self, record: ImportHistoryRecord
    ) -> ImportHistoryRecord:
        item = {
            'pk': HISTORY_PK,
            'sk': f"{record.imported_at:010d}#{record.record_id}",
            'item_type': 'import_history',
            'record_id': record.record_id,
            'imported_at': record.imported_at,
            'created_count': record.created_count,
            'updated_count': record.updated_count,
            'unchanged_count': record.unchanged_count,
            'archived_count': record.archived_count,
            'error_count': record.error_count,
        }
        if record.file_name:
            item['file_name'] = record.file_name
        if record.notes:
            item['notes'] = record.notes

        self.table.put_item(
            Item=item,
            ConditionExpression=Attr('pk').not_exists()
        )
        return record

    def list_import_history(self, limit: int = 20) -> List[ImportHistoryRecord]:
        """Return the most recent import history records, newest first."""
        response = self.table.query(
            KeyConditionExpression=Key('pk').eq(HISTORY_PK),
            ScanIndexForward=False,
            Limit=limit
        )
        return [
            ImportHistoryRecord(
                record_id=item['record_id'],
                imported_at=int(item['imported_at']),
                created_count=int(item['created_count']),
                updated_count=int(item['updated_count']),
                unchanged_count=int(item['unchanged_count']),
                archived_count=int(item['archived_count']),
                error_count=int(item['error_count']),
                file_name=item.get('file_name'),
                notes=item.get('notes')
            )
            for item in response.get('Items', [])
        ]

    # Helpers

    def _scan(self, filter_expression) -> List[dict]:
        """Scan the table, following pagination."""
        response = self.table.scan(FilterExpression=filter_expression)
        items = response.get('Items', [])

        while 'LastEvaluatedKey' in response:
            response = self.table.scan(
                FilterExpression=filter_expression,
                ExclusiveStartKey=response['LastEvaluatedKey']
            )
            items.extend(response.get('Items', []))

        return items

    def _transact(self, transact_items: List[dict], source: str,
                  external_id: Optional[str],
                  existing_event_id: Optional[str] = None) -> None:
        """
        Write the items in one transaction, the event Put first.

        Raises:
            EventNotFoundError: If existing_event_id is given and the event
                Put failed its condition
            DuplicateExternalIdError: If an external ID guard was taken
        """
        try:
            self.client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            if e.response['Error']['Code'] != 'TransactionCanceledException':
                logger.error(f"Error writing to DynamoDB table {self.table_name}: {e}")
                raise

            reasons = e.response.get('CancellationReasons') or []
            if (existing_event_id and reasons
                    and reasons[0].get('Code') == 'ConditionalCheckFailed'):
                raise EventNotFoundError(f"Event {existing_event_id} not found") from e
            raise DuplicateExternalIdError(source, external_id) from e

    def _put(self, item: dict, must_exist: bool) -> dict:
        condition = 'attribute_exists(pk)' if must_exist else 'attribute_not_exists(pk)'
        return {
            'Put': {
                'TableName': self.table_name,
                'Item': self._serialize(item),
                'ConditionExpression': condition,
            }
        }

    def _serialize(self, item: dict) -> dict:
        return {key: self._serializer.serialize(value) for key, value in item.items()}

    @staticmethod
    def _event_key(event_id: str) -> dict:
        return {'pk': f'EVENT#{event_id}', 'sk': 'EVENT'}

    @staticmethod
    def _external_key(source: str, external_id: str) -> dict:
        return {'pk': f'EXTERNAL#{source}#{external_id}', 'sk': 'EXTERNAL'}

    @staticmethod
    def _validate_event(event: CalendarEvent) -> None:
        if event.source not in EVENT_SOURCES:
            raise InvalidEventError(f"Unknown source: {event.source}")
        if event.event_type not in EVENT_TYPES:
            raise InvalidEventError(f"Unknown event type: {event.event_type}")
        if event.status not in EVENT_STATUSES:
            raise InvalidEventError(f"Unknown status: {event.status}")
        if event.field is not None and event.field not in FIELDS:
            raise InvalidEventError(f"Unknown field: {event.field}")

    def _guard_item(self, event: CalendarEvent) -> dict:
        item = self._external_key(event.source, event.external_id)
        item['item_type'] = 'external_id'
        item['event_id'] = event.event_id
        return item

    def _event_to_item(self, event: CalendarEvent) -> dict:
        """
        Convert CalendarEvent object to DynamoDB item.

        Args:
            event: CalendarEvent object

        Returns:
            DynamoDB item dictionary
        """
        item = self._event_key(event.event_id)
        item.update({
            'item_type': 'event',
            'event_id': event.event_id,
            'source': event.source,
            'event_type': event.event_type,
            'title': event.title,
            'date': event.date,
            'start_time': event.start_time,
            'end_time': event.end_time,
            'status': event.status,
            'created_at': event.created_at,
            'updated_at': event.updated_at,
        })

        # Add optional fields if present
        for name in OPTIONAL_EVENT_ATTRIBUTES:
            value = getattr(event, name)
            if value is not None:
                item[name] = value
        if event.raw_payload is not None:
            item['raw_payload'] = json.dumps(event.raw_payload, ensure_ascii=False)

        return item

    def _item_to_event(self, item: dict) -> Optional[CalendarEvent]:
        """
        Convert DynamoDB item to CalendarEvent object.

        Args:
            item: DynamoDB item dictionary

        Returns:
            CalendarEvent object or None if conversion fails
        """
        try:
            raw_payload = item.get('raw_payload')
            return CalendarEvent(
                event_id=item['event_id'],
                source=item['source'],
                event_type=item['event_type'],
                title=item['title'],
                date=item['date'],
                start_time=item['start_time'],
                end_time=item['end_time'],
                status=item['status'],
                external_id=item.get('external_id'),
                recurring_group_id=item.get('recurring_group_id'),
                team=item.get('team'),
                field=item.get('field'),
                is_home_game=item.get('is_home_game'),
                opponent=item.get('opponent'),
                location=item.get('location'),
                competition=item.get('competition'),
                description=item.get('description'),
                raw_payload=json.loads(raw_payload) if raw_payload else None,
                team_home=item.get('team_home'),
                team_away=item.get('team_away'),
                created_at=int(item['created_at']),
                updated_at=int(item['updated_at'])
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Failed to convert item to CalendarEvent: {e}")
            return None

"""Shared fixtures for DynamoDB-backed tests."""
import boto3
import pytest
from moto import mock_aws

from processor.models import CalendarEvent, ParsedMatch
from storage.calendar_store import DynamoDBCalendarStore

TABLE_NAME = 'test-club-calendar'
REGION = 'us-east-1'


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake AWS credentials so no test can reach a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', REGION)


def create_calendar_table(region_name: str = REGION):
    dynamodb = boto3.resource('dynamodb', region_name=region_name)
    return dynamodb.create_table(
        TableName=TABLE_NAME,
        KeySchema=[
            {'AttributeName': 'pk', 'KeyType': 'HASH'},
            {'AttributeName': 'sk', 'KeyType': 'RANGE'}
        ],
        AttributeDefinitions=[
            {'AttributeName': 'pk', 'AttributeType': 'S'},
            {'AttributeName': 'sk', 'AttributeType': 'S'}
        ],
        BillingMode='PAY_PER_REQUEST'
    )


@pytest.fixture
def dynamodb_table():
    """Create a mock DynamoDB table for testing."""
    with mock_aws():
        yield create_calendar_table()


@pytest.fixture
def calendar_store(dynamodb_table):
    """Create DynamoDBCalendarStore instance with mock table."""
    return DynamoDBCalendarStore(TABLE_NAME, region_name=REGION)


def make_match(**overrides) -> ParsedMatch:
    values = {
        'external_id': 'bfv-1001',
        'date': '2026-03-01',
        'start_time': '15:00',
        'end_time': '17:00',
        'team_home': 'TSV Greding',
        'team_away': 'SV A',
        'team': 'herren',
        'is_home_game': True,
        'opponent': 'SV A',
        'competition': 'Kreisliga',
    }
    values.update(overrides)
    return ParsedMatch(**values)


def make_event(**overrides) -> CalendarEvent:
    values = {
        'event_id': 'event-1',
        'source': 'bfv',
        'external_id': 'bfv-1001',
        'event_type': 'match',
        'title': 'TSV Greding vs SV A',
        'team': 'herren',
        'team_home': 'TSV Greding',
        'team_away': 'SV A',
        'field': 'a-platz',
        'date': '2026-03-01',
        'start_time': '15:00',
        'end_time': '17:00',
        'is_home_game': True,
        'opponent': 'SV A',
        'competition': 'Kreisliga',
    }
    values.update(overrides)
    return CalendarEvent(**values)

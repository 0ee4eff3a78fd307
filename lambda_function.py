"""AWS Lambda handler for BFV fixture imports into the club calendar."""
import json
import logging
import os
import posixpath
import time
from dataclasses import dataclass
from typing import Dict, Any, Optional

import boto3

from processor.conflicts import find_field_conflicts
from processor.match_processor import MatchProcessor
from processor.models import TEAMS
from processor.reconciler import ImportReconciler
from scraper.bfv_fixtures import DEFAULT_CLUB_NAME, BfvFixtureScraper
from scraper.pdf_schedule import extract_from_pdf_text, pdf_bytes_to_text
from storage.calendar_store import DynamoDBCalendarStore


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        # Fields passed through extra=
        for key, value in vars(record).items():
            if key not in self.RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Create new handler with JSON formatter
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    # Set log level
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@dataclass
class ImportConfig:
    """Runtime configuration read from the environment."""
    table_name: str
    log_level: str
    timeout_seconds: int
    club_name: str
    region_name: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'ImportConfig':
        return cls(
            table_name=os.environ.get('TABLE_NAME', 'club-calendar'),
            log_level=os.environ.get('LOG_LEVEL', 'INFO'),
            timeout_seconds=int(os.environ.get('TIMEOUT_SECONDS', '30')),
            club_name=os.environ.get('CLUB_NAME', DEFAULT_CLUB_NAME),
            region_name=os.environ.get('AWS_REGION')
        )


class InvalidRequestError(ValueError):
    """Raised for import requests missing or carrying invalid parameters."""


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body)}


def _require(event: Dict[str, Any], name: str) -> str:
    value = event.get(name)
    if not value or not isinstance(value, str):
        raise InvalidRequestError(f"Missing required parameter: {name}")
    return value


def fetch_html_matches(event: Dict[str, Any], config: ImportConfig,
                       processor: MatchProcessor):
    """Fetch a BFV team page and return (raw matches, parsed matches, label)."""
    url = _require(event, 'url')
    team = _require(event, 'team')
    if team not in TEAMS:
        raise InvalidRequestError(f"Unknown team: {team}")

    scraper = BfvFixtureScraper(
        timeout=config.timeout_seconds,
        club_name=config.club_name
    )
    raw_matches = scraper.fetch_matches(url, team)
    return raw_matches, processor.process_html_matches(raw_matches), f"bfv-html-{team}"


def fetch_pdf_matches(event: Dict[str, Any], config: ImportConfig,
                      processor: MatchProcessor):
    """Read a schedule PDF from S3 and return (raw matches, parsed matches, label)."""
    bucket = _require(event, 'bucket')
    key = _require(event, 'key')

    s3 = boto3.client('s3', region_name=config.region_name)
    response = s3.get_object(Bucket=bucket, Key=key)
    text = pdf_bytes_to_text(response['Body'].read())

    raw_matches = extract_from_pdf_text(text, config.club_name)
    return raw_matches, processor.process_pdf_matches(raw_matches), posixpath.basename(key)


def check_conflicts(event: Dict[str, Any], config: ImportConfig) -> Dict[str, Any]:
    """Report overlapping field bookings in a date range."""
    logger = logging.getLogger(__name__)

    try:
        start_date = _require(event, 'start_date')
        end_date = _require(event, 'end_date')
        store = DynamoDBCalendarStore(
            table_name=config.table_name,
            region_name=config.region_name
        )
        conflicts = find_field_conflicts(store, start_date, end_date)
    except ValueError as e:
        logger.warning(f"Rejected conflict check: {e}")
        return _response(400, {
            'message': 'Invalid conflict check',
            'error': str(e)
        })
    except Exception as e:
        logger.error(
            f"Conflict check failed: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _response(500, {
            'message': 'Conflict check failed',
            'error': str(e),
            'error_type': type(e).__name__
        })

    return _response(200, {
        'message': 'Conflict check completed',
        'conflicts': [conflict.to_dict() for conflict in conflicts]
    })


FETCHERS = {
    'html': fetch_html_matches,
    'pdf': fetch_pdf_matches,
}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for BFV fixture imports.

    The event selects the import source:

    - ``{"source": "html", "url": ..., "team": ...}`` imports a team page
    - ``{"source": "pdf", "bucket": ..., "key": ...}`` imports a schedule PDF

    Both accept ``"archive_missing": true`` to archive imported events that
    are no longer listed.

    ``{"action": "conflicts", "start_date": ..., "end_date": ...}`` reports
    overlapping field bookings instead of importing.

    Args:
        event: Import request payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and the import summary
    """
    config = ImportConfig.from_env()

    # Initialize logging
    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    source = event.get('source')
    archive_missing = bool(event.get('archive_missing', False))
    logger.info(
        "Lambda execution started",
        extra={
            'table_name': config.table_name,
            'source': source,
            'archive_missing': archive_missing
        }
    )

    if event.get('action') == 'conflicts':
        return check_conflicts(event, config)

    fetcher = FETCHERS.get(source)
    if fetcher is None:
        logger.warning(f"Rejected import request with source: {source}")
        return _response(400, {
            'message': 'Invalid import request',
            'error': f"Unknown source: {source}"
        })

    try:
        store = DynamoDBCalendarStore(
            table_name=config.table_name,
            region_name=config.region_name
        )
        store.initialize_default_field_mappings()
        processor = MatchProcessor(club_name=config.club_name)

        # Fetch fixtures with error handling
        try:
            raw_matches, parsed_matches, source_label = fetcher(event, config, processor)
            logger.info(
                f"Fetched {len(raw_matches)} raw matches, "
                f"{len(parsed_matches)} valid"
            )
        except InvalidRequestError as e:
            logger.warning(f"Rejected import request: {e}")
            return _response(400, {
                'message': 'Invalid import request',
                'error': str(e)
            })
        except Exception as e:
            logger.error(
                f"Failed to fetch fixtures: {str(e)}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            duration = time.time() - start_time
            return _response(500, {
                'message': 'Failed to fetch fixtures',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })

        reconciler = ImportReconciler(store)
        summary = reconciler.reconcile(
            parsed_matches,
            source_label=source_label,
            archive_missing=archive_missing
        )

        duration = time.time() - start_time
        logger.info(
            "Lambda execution completed successfully",
            extra={
                'duration_seconds': round(duration, 2),
                'events_created': summary.created_count,
                'events_updated': summary.updated_count,
                'events_unchanged': summary.unchanged_count,
                'events_archived': summary.archived_count,
                'error_count': summary.error_count
            }
        )

        return _response(200, {
            'message': 'Import completed successfully',
            'source_label': source_label,
            'raw_matches': len(raw_matches),
            'parsed_matches': len(parsed_matches),
            'summary': summary.to_dict(),
            'duration_seconds': round(duration, 2)
        })

    except Exception as e:
        duration = time.time() - start_time

        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        return _response(500, {
            'message': 'Import failed',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })

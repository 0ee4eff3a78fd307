"""Reconciliation of imported fixtures with the stored calendar."""
import logging
import time
import uuid
from typing import Callable, List, Optional, Set, Tuple

from processor.change_detector import needs_update
from processor.field_resolver import FieldResolver
from processor.match_keys import external_id as compute_external_id
from processor.models import (
    EVENT_TYPE_MATCH,
    SOURCE_BFV,
    STATUS_ACTIVE,
    CalendarEvent,
    ImportHistoryRecord,
    ImportSummary,
    ParsedMatch,
)

logger = logging.getLogger(__name__)


def match_title(match: ParsedMatch) -> str:
    """Title of an imported fixture; home/away is carried by is_home_game."""
    return f"{match.team_home} vs {match.team_away}"


def record_label(match) -> str:
    """Label of a batch record for error reports, safe for malformed records."""
    return (
        f"{getattr(match, 'team_home', None) or '?'} vs "
        f"{getattr(match, 'team_away', None) or '?'}"
    )


class ImportReconciler:
    """
    Merges parsed fixtures into the calendar store.

    Each match is created, updated or left unchanged on its own; a failing
    match is counted and reported without aborting the batch. Events are
    never deleted here, fixtures that disappeared upstream are archived.
    """

    def __init__(self, store, field_resolver: Optional[FieldResolver] = None,
                 source: str = SOURCE_BFV):
        """
        Args:
            store: CalendarStore implementation
            field_resolver: Default field lookup (built from the store if omitted)
            source: Source tag of the imported events
        """
        self.store = store
        self.field_resolver = field_resolver or FieldResolver(store)
        self.source = source

    def reconcile(self, matches: List[ParsedMatch],
                  source_label: Optional[str] = None,
                  archive_missing: bool = False) -> ImportSummary:
        """
        Import a batch of parsed matches.

        Args:
            matches: ParsedMatch objects in import order
            source_label: Name of the imported file or feed, kept in history
            archive_missing: Archive active imported events absent from the batch

        Returns:
            ImportSummary with per-outcome counts and error messages

        Raises:
            ValueError: If the batch is not a list of matches
        """
        if matches is None or isinstance(matches, (str, bytes, dict)):
            raise ValueError("matches must be a list of ParsedMatch objects")

        summary = ImportSummary()
        seen_ids: Set[str] = set()

        logger.info(f"Starting import of {len(matches)} matches")

        for match in matches:
            try:
                self._reconcile_match(match, summary, seen_ids)
            except Exception as e:
                label = record_label(match)
                summary.error_count += 1
                summary.errors.append(f"{label}: {e}")
                logger.warning(
                    f"Failed to import {label}: {e}",
                    exc_info=True
                )
                continue

        if archive_missing and seen_ids:
            self._archive_missing(seen_ids, summary)

        self.store.append_import_history(ImportHistoryRecord(
            record_id=str(uuid.uuid4()),
            imported_at=int(time.time()),
            created_count=summary.created_count,
            updated_count=summary.updated_count,
            unchanged_count=summary.unchanged_count,
            archived_count=summary.archived_count,
            error_count=summary.error_count,
            file_name=source_label or None,
            notes='\n'.join(summary.errors) if summary.errors else None
        ))

        logger.info(
            f"Import complete: {summary.created_count} created, "
            f"{summary.updated_count} updated, "
            f"{summary.unchanged_count} unchanged, "
            f"{summary.archived_count} archived, "
            f"{summary.error_count} errors"
        )
        return summary

    def _reconcile_match(self, match: ParsedMatch, summary: ImportSummary,
                         seen_ids: Set[str]) -> None:
        external_id = compute_external_id(match)
        seen_ids.add(external_id)

        existing = self._resolve_existing(match, external_id)
        resolved_field = self.field_resolver.default_field(
            match.team, match.is_home_game
        )

        if existing is None:
            self._create(match, external_id, resolved_field)
            summary.created_count += 1
            return

        changes = needs_update(existing, match, resolved_field).changes
        # Matched by team names under a new upstream ID: adopt the new ID
        if existing.external_id != external_id:
            changes.append(
                f"external_id: {existing.external_id or 'none'} -> {external_id}"
            )
        if not changes:
            summary.unchanged_count += 1
            return

        self.store.update(existing.event_id, {
            'external_id': external_id,
            'title': match_title(match),
            'date': match.date,
            'start_time': match.start_time,
            'end_time': match.end_time,
            'field': resolved_field if match.is_home_game else None,
            'location': match.location or None,
            'competition': match.competition or None,
            'team_home': match.team_home,
            'team_away': match.team_away,
            'raw_payload': match.raw_data or None,
        })
        summary.updated_count += 1
        logger.info(
            f"Updated: {match_title(match)} ({', '.join(changes)})"
        )

    def _lookups(self, match: ParsedMatch,
                 external_id: str) -> List[Tuple[str, Callable]]:
        """Ordered lookups for an existing event; the first hit wins."""
        return [
            ('external_id', lambda: self.store.find_by_source_and_external_id(
                self.source, external_id
            )),
            ('teams', lambda: self.store.find_by_source_and_teams(
                self.source, match.team_home, match.team_away
            )),
        ]

    def _resolve_existing(self, match: ParsedMatch,
                          external_id: str) -> Optional[CalendarEvent]:
        for name, lookup in self._lookups(match, external_id):
            event = lookup()
            if event is not None:
                if name != 'external_id':
                    logger.info(
                        f"Matched {match_title(match)} by {name} "
                        f"(stored ID '{event.external_id}', new ID '{external_id}')"
                    )
                return event
        return None

    def _create(self, match: ParsedMatch, external_id: str,
                resolved_field: Optional[str]) -> CalendarEvent:
        event = self.store.create(CalendarEvent(
            event_id=str(uuid.uuid4()),
            source=self.source,
            external_id=external_id,
            event_type=EVENT_TYPE_MATCH,
            title=match_title(match),
            team=match.team,
            team_home=match.team_home,
            team_away=match.team_away,
            field=resolved_field if match.is_home_game else None,
            date=match.date,
            start_time=match.start_time,
            end_time=match.end_time,
            is_home_game=match.is_home_game,
            opponent=match.opponent,
            location=match.location or None,
            competition=match.competition or None,
            raw_payload=match.raw_data or None,
            status=STATUS_ACTIVE
        ))
        logger.info(
            f"Created: {event.title} ({event.date} {event.start_time})"
        )
        return event

    def _archive_missing(self, seen_ids: Set[str],
                         summary: ImportSummary) -> None:
        """Archive active imported events not seen in this run; never raises."""
        try:
            for stored_id in self.store.list_active_external_ids(self.source):
                if stored_id in seen_ids:
                    continue
                event = self.store.find_by_source_and_external_id(
                    self.source, stored_id
                )
                if event is None or event.status != STATUS_ACTIVE:
                    continue
                if self.store.archive(event.event_id):
                    summary.archived_count += 1
                    logger.info(f"Archived: {event.title}")
        except Exception as e:
            logger.error(f"Error archiving missing events: {e}", exc_info=True)

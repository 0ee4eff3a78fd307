"""Match processor for validating and normalizing extracted fixtures."""
import dataclasses
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from processor.models import TEAMS, ParsedMatch, RawMatch

logger = logging.getLogger(__name__)


def add_hours(time_str: str, hours: int) -> str:
    """Add hours to an HH:MM time, wrapping past midnight."""
    time_obj = datetime.strptime(time_str, '%H:%M')
    return (time_obj + timedelta(hours=hours)).strftime('%H:%M')


class MatchProcessor:
    """Turns extractor output into ParsedMatch objects for reconciliation."""

    MATCH_DURATION_HOURS = 2
    EXTERNAL_ID_NAME_LENGTH = 10

    def __init__(self, club_name: str):
        """
        Args:
            club_name: Club name, used as the club's side of HTML fixtures
        """
        self.club_name = club_name

    def process_html_matches(self, raw_matches: List[RawMatch]) -> List[ParsedMatch]:
        """
        Process fixtures extracted from a team page.

        The page lists the opponent against the club; the external ID is
        the BFV match ID, left empty when the page carries none.
        """
        return self._process(raw_matches, self._from_html)

    def process_pdf_matches(self, raw_matches: List[RawMatch]) -> List[ParsedMatch]:
        """
        Process fixtures extracted from a schedule PDF.

        The schedule carries no match IDs, so one is derived from date,
        time and both team names.
        """
        return self._process(raw_matches, self._from_pdf)

    def _process(self, raw_matches, convert) -> List[ParsedMatch]:
        parsed_matches = []

        for raw in raw_matches:
            try:
                parsed = convert(raw)
                if parsed:
                    parsed_matches.append(parsed)
            except Exception as e:
                logger.warning(
                    f"Failed to process match '{raw.home_team} - {raw.away_team}': {e}"
                )
                continue

        logger.info(
            f"Processed {len(parsed_matches)} valid matches out of "
            f"{len(raw_matches)} total matches"
        )
        return parsed_matches

    def _normalized(self, raw: RawMatch):
        """Validate a raw match and return (date, start_time) or None."""
        if not self._validate_required_fields(raw):
            return None

        normalized_date = self._normalize_date(raw.date)
        if not normalized_date:
            logger.warning(
                f"Invalid date format for match '{raw.home_team} - {raw.away_team}': "
                f"{raw.date}"
            )
            return None

        normalized_time = self._normalize_time(raw.time)
        if not normalized_time:
            logger.warning(
                f"Invalid time format for match '{raw.home_team} - {raw.away_team}': "
                f"{raw.time}"
            )
            return None

        return normalized_date, normalized_time

    def _from_html(self, raw: RawMatch) -> Optional[ParsedMatch]:
        normalized = self._normalized(raw)
        if not normalized:
            return None
        date, start_time = normalized

        opponent = raw.away_team if raw.is_home else raw.home_team
        return ParsedMatch(
            external_id=raw.match_id or '',
            date=date,
            start_time=start_time,
            end_time=add_hours(start_time, self.MATCH_DURATION_HOURS),
            team_home=self.club_name if raw.is_home else opponent,
            team_away=opponent if raw.is_home else self.club_name,
            team=raw.team,
            is_home_game=raw.is_home,
            opponent=opponent,
            competition=raw.competition or '',
            location=raw.location,
            raw_data=dataclasses.asdict(raw)
        )

    def _from_pdf(self, raw: RawMatch) -> Optional[ParsedMatch]:
        normalized = self._normalized(raw)
        if not normalized:
            return None
        date, start_time = normalized

        return ParsedMatch(
            external_id=self.pdf_external_id(
                date, start_time, raw.home_team, raw.away_team
            ),
            date=date,
            start_time=start_time,
            end_time=add_hours(start_time, self.MATCH_DURATION_HOURS),
            team_home=raw.home_team,
            team_away=raw.away_team,
            team=raw.team,
            is_home_game=raw.is_home,
            opponent=raw.away_team if raw.is_home else raw.home_team,
            competition=raw.competition or '',
            location=None if raw.is_home else raw.location,
            raw_data=dataclasses.asdict(raw)
        )

    def pdf_external_id(self, date: str, start_time: str,
                        team_home: str, team_away: str) -> str:
        """
        Derive the external ID of a schedule fixture.

        Returns:
            "pdf-<date>-<time>-<home>-<away>" with team names cut to ten
            characters and all whitespace removed
        """
        size = self.EXTERNAL_ID_NAME_LENGTH
        composite = f"pdf-{date}-{start_time}-{team_home[:size]}-{team_away[:size]}"
        return ''.join(composite.split())

    def _validate_required_fields(self, raw: RawMatch) -> bool:
        """
        Validate that required fields are present and known.

        Args:
            raw: RawMatch object to validate

        Returns:
            True if valid, False otherwise
        """
        if not raw.home_team or not raw.home_team.strip():
            logger.warning("Match missing required field: home_team")
            return False

        if not raw.away_team or not raw.away_team.strip():
            logger.warning("Match missing required field: away_team")
            return False

        if not raw.date or not raw.date.strip():
            logger.warning(
                f"Match '{raw.home_team} - {raw.away_team}' missing required field: date"
            )
            return False

        if not raw.time or not raw.time.strip():
            logger.warning(
                f"Match '{raw.home_team} - {raw.away_team}' missing required field: time"
            )
            return False

        if raw.team not in TEAMS:
            logger.warning(
                f"Match '{raw.home_team} - {raw.away_team}' has unknown team: {raw.team}"
            )
            return False

        return True

    def _normalize_date(self, date_str: str) -> Optional[str]:
        """
        Normalize date to ISO 8601 format (YYYY-MM-DD).

        Args:
            date_str: Date string in various formats

        Returns:
            ISO 8601 formatted date string or None if parsing fails
        """
        # Try common date formats
        date_formats = [
            '%Y-%m-%d',      # ISO 8601
            '%d.%m.%Y',      # German format
            '%d.%m.%y',      # German format, short year
            '%Y/%m/%d',      # Alternative ISO format
        ]

        for fmt in date_formats:
            try:
                date_obj = datetime.strptime(date_str.strip(), fmt)
                return date_obj.strftime('%Y-%m-%d')
            except ValueError:
                continue

        return None

    def _normalize_time(self, time_str: str) -> Optional[str]:
        """
        Normalize time to 24-hour format (HH:MM).

        Args:
            time_str: Time string, optionally suffixed with "Uhr"

        Returns:
            24-hour formatted time string or None if parsing fails
        """
        time_formats = [
            '%H:%M',         # 24-hour format
            '%H.%M',         # German dotted format
            '%H:%M:%S',      # 24-hour with seconds
        ]

        time_str = time_str.strip()
        if time_str.lower().endswith('uhr'):
            time_str = time_str[:-3].strip()

        for fmt in time_formats:
            try:
                time_obj = datetime.strptime(time_str, fmt)
                return time_obj.strftime('%H:%M')
            except ValueError:
                continue

        return None

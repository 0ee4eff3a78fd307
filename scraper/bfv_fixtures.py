"""Fixture scraper for BFV team pages."""
import logging
import re
import time
from typing import List, Optional

import requests
from bs4 import BeautifulSoup

from processor.models import RawMatch

logger = logging.getLogger(__name__)

DEFAULT_CLUB_NAME = "TSV Greding"
DEFAULT_COMPETITION = "Liga"

HOME_TEAM_CLASS = re.compile(r'home-team')
AWAY_TEAM_CLASS = re.compile(r'away-team')
LOCATION_CLASS = re.compile(r'location')


def _marker(element, name: str) -> Optional[str]:
    """Read a data attribute from the element or its first descendant carrying it."""
    value = element.get(name)
    if value is None:
        child = element.find(attrs={name: True})
        value = child.get(name) if child else None
    if value is None:
        return None
    value = value.strip()
    return value or None


def _span_text(element, class_pattern) -> Optional[str]:
    span = element.find('span', class_=class_pattern)
    if span is None:
        return None
    text = span.get_text(strip=True)
    return text or None


def _parse_match_element(element, team: str, club_name: str) -> Optional[RawMatch]:
    """
    Parse a single fixture element.

    Args:
        element: BeautifulSoup element carrying a data-match-id attribute
        team: Club team the page belongs to
        club_name: Club name used to decide home/away

    Returns:
        RawMatch object or None if required markers are missing
    """
    match_id = _marker(element, 'data-match-id')
    date = _marker(element, 'data-date')
    match_time = _marker(element, 'data-time')
    home_team = _span_text(element, HOME_TEAM_CLASS)
    away_team = _span_text(element, AWAY_TEAM_CLASS)

    if not all([match_id, date, match_time, home_team, away_team]):
        return None

    return RawMatch(
        match_id=match_id,
        date=date,
        time=match_time,
        home_team=home_team,
        away_team=away_team,
        is_home=club_name.lower() in home_team.lower(),
        team=team,
        competition=_marker(element, 'data-competition') or DEFAULT_COMPETITION,
        location=_span_text(element, LOCATION_CLASS)
    )


def extract_from_html(html: str, team: str,
                      club_name: str = DEFAULT_CLUB_NAME) -> List[RawMatch]:
    """
    Extract fixtures from a BFV team fixture page.

    Every element with a data-match-id attribute is a fixture candidate;
    candidates missing a date, time or team name are skipped.

    Args:
        html: Page HTML
        team: Club team the page belongs to
        club_name: Club name used to decide home/away

    Returns:
        List of RawMatch objects in page order
    """
    soup = BeautifulSoup(html, 'html.parser')
    matches = []

    for element in soup.find_all(attrs={'data-match-id': True}):
        try:
            match = _parse_match_element(element, team, club_name)
            if match:
                matches.append(match)
        except Exception as e:
            logger.warning(f"Failed to parse fixture element: {e}")
            continue

    return matches


class BfvFixtureScraper:
    """Fetches BFV team fixture pages."""

    USER_AGENT = "Mozilla/5.0 (compatible; ClubCalendar/1.0)"

    def __init__(self, timeout: int = 30, club_name: str = DEFAULT_CLUB_NAME):
        """
        Initialize the fixture scraper.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            club_name: Club name used to decide home/away
        """
        self.timeout = timeout
        self.club_name = club_name

    def fetch_matches(self, url: str, team: str) -> List[RawMatch]:
        """
        Fetch and extract the fixtures of one team page.

        Args:
            url: BFV team page URL
            team: Club team the page belongs to

        Returns:
            List of RawMatch objects
        """
        logger.info(f"Fetching fixtures for team '{team}' from {url}")

        html_content = self._fetch_html(url)
        matches = extract_from_html(html_content, team, self.club_name)

        logger.info(f"Successfully extracted {len(matches)} fixtures")
        return matches

    def _fetch_html(self, url: str) -> str:
        """
        Fetch page HTML with retry logic.

        Args:
            url: Page URL

        Returns:
            HTML content as string

        Raises:
            requests.RequestException: If all retry attempts fail
        """
        headers = {
            'User-Agent': self.USER_AGENT,
            'Accept': 'text/html,application/xhtml+xml',
        }

        max_retries = 3
        base_delay = 1  # seconds

        for attempt in range(max_retries):
            try:
                logger.info(f"Fetching fixture page (attempt {attempt + 1}/{max_retries})")
                response = requests.get(
                    url,
                    headers=headers,
                    timeout=self.timeout
                )
                response.raise_for_status()
                return response.text

            except requests.RequestException as e:
                if attempt < max_retries - 1:
                    # Calculate exponential backoff delay
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {max_retries} retry attempts failed. Last error: {e}"
                    )
                    raise

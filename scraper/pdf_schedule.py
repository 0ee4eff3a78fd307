"""Extraction of fixtures from BFV club schedule PDFs ("Vereinsspielplan")."""
import io
import logging
import re
from typing import List, Optional, Tuple

import pdfplumber

from processor.models import RawMatch
from scraper.bfv_fixtures import DEFAULT_CLUB_NAME
from scraper.team_classifier import classify_team

logger = logging.getLogger(__name__)

MATCH_TYPES = ('FS', 'ME', 'HM', 'PO')
NO_MATCH_PLACEHOLDER = 'SPIELFREI'

SECTION_NAMES = (
    r'Alte Herren|Herren|Damen|[A-G]-Jugend|[A-G]-Junioren'
)
SECTION_PATTERN = re.compile(rf'\b({SECTION_NAMES})\b', re.IGNORECASE)

VENUE_WORDS = (
    'Sportanlage', 'Sportplatz', 'Sportpark', 'Sporthalle', 'Stadion',
    'Arena', 'Gemeindehalle', 'Turnhalle', 'Bezirkssportanlage',
    'Rasenplatz', 'Kunstrasen', 'Hartplatz',
)
PAGE_MARKERS = ('Kursiv', 'Seite', 'Vereinsspielplan', 'Stand:')


def build_match_pattern(club_name: str = DEFAULT_CLUB_NAME) -> re.Pattern:
    """
    Build the fixture pattern for continuous schedule text.

    Matches "TYPE LEAGUE DD.MM.YYYY HH:MM Home - Away". The away team ends at
    the next venue word, the club name, type code, section header, page
    marker, date, newline or the end of the text.
    """
    terminators = '|'.join(
        [re.escape(word) for word in VENUE_WORDS]
        + [re.escape(club_name)]
        + list(MATCH_TYPES)
        + [SECTION_NAMES]
        + [re.escape(marker) for marker in PAGE_MARKERS]
        + [r'\d{2}\.\d{2}\.\d{4}']
    )
    return re.compile(
        rf'\b({"|".join(MATCH_TYPES)})\s+([\w\s-]+?)\s+'
        r'(\d{2}\.\d{2}\.\d{4})\s+(\d{2}:\d{2})\s+'
        r'([^-\n]+?)\s+-\s+([A-Za-zÄÖÜäöüß0-9 ()/.]+?)'
        rf'(?=[ \t]*\n|\s+(?:{terminators})(?!\w)|\s*$)',
        re.IGNORECASE
    )


def find_sections(text: str) -> List[Tuple[int, str]]:
    """Return (position, header) for every section header in the text."""
    return [(m.start(), m.group(1)) for m in SECTION_PATTERN.finditer(text)]


def section_at(sections: List[Tuple[int, str]], position: int) -> Optional[str]:
    """Return the last section header starting before position."""
    current = None
    for start, name in sections:
        if start >= position:
            break
        current = name
    return current


def extract_from_pdf_text(text: str,
                          club_name: str = DEFAULT_CLUB_NAME) -> List[RawMatch]:
    """
    Extract the club's fixtures from schedule text.

    Fragments that do not match the fixture pattern are skipped, as are
    entries against "SPIELFREI" and fixtures not involving the club.

    Args:
        text: Text of the schedule PDF
        club_name: Club name used to keep and orient fixtures

    Returns:
        List of RawMatch objects in document order
    """
    pattern = build_match_pattern(club_name)
    sections = find_sections(text)
    club = club_name.lower()
    matches = []

    for found in pattern.finditer(text):
        match_type, league, date, match_time, home_raw, away_raw = found.groups()
        home_team = ' '.join(home_raw.split())
        away_team = ' '.join(away_raw.split())

        if NO_MATCH_PLACEHOLDER in (home_team.upper(), away_team.upper()):
            continue

        is_home = club in home_team.lower()
        if not is_home and club not in away_team.lower():
            continue

        club_side = home_team if is_home else away_team
        team = classify_team(club_side, section_at(sections, found.start()))

        matches.append(RawMatch(
            match_id='',
            date=date,
            time=match_time,
            home_team=home_team,
            away_team=away_team,
            is_home=is_home,
            team=team,
            competition=' '.join(league.split()),
            match_type=match_type.upper()
        ))

    logger.info(f"Extracted {len(matches)} club fixtures from schedule text")
    return matches


def pdf_bytes_to_text(data: bytes) -> str:
    """
    Extract the text of a PDF, one line per page.

    Args:
        data: PDF file content

    Returns:
        Text of all pages joined by newlines
    """
    pages = []
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        for page in pdf.pages:
            page_text = page.extract_text() or ''
            pages.append(' '.join(page_text.split()))

    logger.info(f"Extracted text from {len(pages)} PDF pages")
    return '\n'.join(pages)

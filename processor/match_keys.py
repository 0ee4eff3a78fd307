"""Identity keys for imported fixtures."""
from typing import Optional

from processor.models import ParsedMatch


def match_key(team_home: str, team_away: str, date: str,
              competition: Optional[str] = None) -> str:
    """
    Build a content key for a fixture.

    Team names and competition are lowercased and trimmed, so the key is
    insensitive to case and surrounding whitespace.

    Args:
        team_home: Home team name
        team_away: Away team name
        date: Match date (ISO 8601 format)
        competition: Optional competition name

    Returns:
        Key of the form "home|away|date[|competition]"
    """
    key = f"{team_home.lower().strip()}|{team_away.lower().strip()}|{date}"
    if competition and competition.strip():
        return f"{key}|{competition.lower().strip()}"
    return key


def external_id(match: ParsedMatch) -> str:
    """
    Return the identifier used to store a fixture.

    The upstream ID is used verbatim when present, otherwise the content
    key of the match.
    """
    if match.external_id:
        return match.external_id
    return match_key(
        match.team_home,
        match.team_away,
        match.date,
        match.competition
    )

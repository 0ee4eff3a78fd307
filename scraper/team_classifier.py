"""Mapping of free-text team names and section headers to club squads."""
import re
from typing import Optional

DEFAULT_TEAM = 'herren'
RESERVE_TEAM = 'herren2'

AGE_GROUP_PATTERN = re.compile(r'\b([a-g])-(?:jugend|junioren|juni)', re.IGNORECASE)
RESERVE_PATTERN = re.compile(r'\bII\b|\s2$|\D2$', re.IGNORECASE)
VETERANS_PATTERN = re.compile(r'alte\s+herren|\bah\b', re.IGNORECASE)
WOMEN_PATTERN = re.compile(r'damen|frauen', re.IGNORECASE)


def _is_reserve(name: str) -> bool:
    return bool(RESERVE_PATTERN.search(name.strip()))


def team_from_section(section: str) -> Optional[str]:
    """
    Return the squad named by a section header.

    A plain "Herren" section, or an unknown header, does not decide the
    squad on its own and returns None.
    """
    age_group = AGE_GROUP_PATTERN.search(section)
    if age_group:
        return f"{age_group.group(1).lower()}-jugend"
    if WOMEN_PATTERN.search(section):
        return 'damen'
    if VETERANS_PATTERN.search(section):
        return 'alte-herren'
    return None


def classify_team(name: str, section_hint: Optional[str] = None) -> str:
    """
    Map a team name to one of the club's squads.

    A recognised section header takes priority over the name. Otherwise the
    name is checked for age groups, women's and veterans' tokens and a
    reserve suffix ("II" or "2"), defaulting to the first team.

    Args:
        name: Team name as printed by the federation
        section_hint: Header of the schedule section the fixture appears in

    Returns:
        Team key
    """
    if section_hint:
        team = team_from_section(section_hint)
        if team:
            return team
        return RESERVE_TEAM if _is_reserve(name) else DEFAULT_TEAM

    team = team_from_section(name)
    if team:
        return team
    if _is_reserve(name):
        return RESERVE_TEAM
    return DEFAULT_TEAM

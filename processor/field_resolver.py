"""Default venue lookup for home fixtures."""
import logging
from typing import Optional

from processor.models import EVENT_TYPE_MATCH

logger = logging.getLogger(__name__)


class FieldResolver:
    """Resolves the default field of a home game from the field mappings."""

    def __init__(self, store):
        """
        Args:
            store: Calendar store providing get_default_field()
        """
        self.store = store

    def default_field(self, team: str, is_home_game: bool) -> Optional[str]:
        """
        Return the default field for a fixture.

        Away games never get a field. A missing mapping is not an error,
        the field is simply left unassigned.

        Args:
            team: Club team key
            is_home_game: Whether the club plays at home

        Returns:
            Field key or None
        """
        if not is_home_game:
            return None

        default = self.store.get_default_field(team, EVENT_TYPE_MATCH)
        if default is None:
            logger.debug(f"No field mapping for team '{team}'")
        return default

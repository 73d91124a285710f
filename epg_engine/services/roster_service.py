import logging
from collections.abc import Sequence

from epg_engine.epg_types import Channel


logger = logging.getLogger(__name__)


class RosterService:
    """Holds the current channel roster; a new playlist replaces it wholesale"""

    def __init__(self, channels: Sequence[Channel] = ()):
        self._channels: tuple[Channel, ...] = tuple(channels)

    @property
    def channels(self) -> tuple[Channel, ...]:
        return self._channels

    def replace(self, channels: Sequence[Channel]) -> None:
        previous = len(self._channels)
        self._channels = tuple(channels)
        logger.info("Roster replaced: %s -> %s channels", previous, len(self._channels))

    def categories(self) -> list[str]:
        """Distinct categories in roster order"""
        seen: dict[str, None] = {}
        for channel in self._channels:
            if channel.category:
                seen.setdefault(channel.category, None)
        return list(seen)

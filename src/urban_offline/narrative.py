"""Save slots for interactive narrative (ink story) state.

The interpreter decides when to save, restore or clear. This module only
keeps one overwrite-in-place record per story id in the ``ink_state`` store.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from urban_offline.errors import InvalidInputError
from urban_offline.storage.base import StorageAdapter
from urban_offline.storage.stores import INK_STATE

logger = logging.getLogger(__name__)


def _check_story_id(story_id: str) -> str:
    if not isinstance(story_id, str) or not story_id.strip():
        raise InvalidInputError("story_id must be a non-empty string")
    return story_id


class NarrativeStateStore:
    """``save_state`` / ``get_state`` / ``clear_state`` over ``ink_state``."""

    def __init__(self, storage: StorageAdapter) -> None:
        self._storage = storage

    async def save_state(self, story_id: str, state_json: str) -> None:
        """Overwrite the saved state of *story_id*. No history is kept."""
        story_id = _check_story_id(story_id)
        if not isinstance(state_json, str):
            raise InvalidInputError("state_json must be the interpreter's serialised state string")
        record = {
            "storyId": story_id,
            "stateJson": state_json,
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        }
        await self._storage.put(INK_STATE, record, story_id)
        logger.debug("Saved narrative state for %s", story_id)

    async def get_state(self, story_id: str) -> str | None:
        """The saved state string, or None when the story has no save."""
        record = await self._storage.get(INK_STATE, _check_story_id(story_id))
        if not isinstance(record, dict):
            return None
        return record.get("stateJson")

    async def clear_state(self, story_id: str) -> None:
        await self._storage.delete(INK_STATE, _check_story_id(story_id))

    async def saved_stories(self) -> list[str]:
        return await self._storage.get_all_keys(INK_STATE)

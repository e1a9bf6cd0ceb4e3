"""
core.history

Undo/redo over EntitySnapshot values.

- Only entity commands are recorded. Anything else handed to dispatch()
  (e.g. a playback action) passes through untouched and does not break
  the current undo group.
- Consecutive commands with the same group key collapse into a single undo
  step: a selection-box sweep (select/deselect) or a delete-on-hover
  sweep undoes in one go.
- A command that leaves the snapshot unchanged records nothing.
- Groups stay open until end_group(), undo() or a command from another
  group. Nothing here knows when a pointer gesture ends; the input layer
  calls end_group() on release.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from core.commands import (
    BulkDeleteEvent,
    BulkDeleteNote,
    DeselectEvent,
    DeselectNote,
    DeselectObstacle,
    SelectEvent,
    SelectNote,
    SelectObstacle,
    is_entity_command,
)
from core.entity_models import EntitySnapshot
from core.entity_store import apply_command

logger = logging.getLogger(__name__)

SELECTION_GROUP = "selection"
BULK_DELETE_GROUP = "bulk-delete"

COMMAND_GROUPS: Dict[type, str] = {
    SelectEvent: SELECTION_GROUP,
    DeselectEvent: SELECTION_GROUP,
    SelectNote: SELECTION_GROUP,
    DeselectNote: SELECTION_GROUP,
    SelectObstacle: SELECTION_GROUP,
    DeselectObstacle: SELECTION_GROUP,
    BulkDeleteEvent: BULK_DELETE_GROUP,
    BulkDeleteNote: BULK_DELETE_GROUP,
}


def group_for(command) -> Optional[str]:
    return COMMAND_GROUPS.get(type(command))


class HistoryManager:
    def __init__(self, initial: Optional[EntitySnapshot] = None, *, limit: int = 100) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit
        self.present: EntitySnapshot = initial if initial is not None else EntitySnapshot.empty()
        self.past: List[EntitySnapshot] = []
        self.future: List[EntitySnapshot] = []
        self._group: Optional[str] = None

    # ----------------------------
    # Read
    # ----------------------------
    @property
    def can_undo(self) -> bool:
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.future)

    @property
    def current_group(self) -> Optional[str]:
        return self._group

    # ----------------------------
    # Write
    # ----------------------------
    def dispatch(self, command) -> EntitySnapshot:
        if not is_entity_command(command):
            return self.present

        result = apply_command(self.present, command)
        if result is self.present:
            return self.present

        group = group_for(command)
        if group is None or group != self._group:
            self.past.append(self.present)
            if len(self.past) > self.limit:
                del self.past[0]
        # else: coalesce into the step opened by the first command of the group

        self.present = result
        self.future.clear()
        self._group = group
        return self.present

    def dispatch_all(self, commands) -> EntitySnapshot:
        for command in commands:
            self.dispatch(command)
        return self.present

    def end_group(self) -> None:
        """Close the current group so the next grouped command opens a new undo step."""
        self._group = None

    def undo(self) -> EntitySnapshot:
        if not self.past:
            return self.present
        self.future.insert(0, self.present)
        self.present = self.past.pop()
        self._group = None
        logger.debug("undo: past=%d future=%d", len(self.past), len(self.future))
        return self.present

    def redo(self) -> EntitySnapshot:
        if not self.future:
            return self.present
        self.past.append(self.present)
        self.present = self.future.pop(0)
        self._group = None
        logger.debug("redo: past=%d future=%d", len(self.past), len(self.future))
        return self.present

    def clear(self) -> None:
        """Forget undo/redo steps, keep the present snapshot."""
        self.past.clear()
        self.future.clear()
        self._group = None

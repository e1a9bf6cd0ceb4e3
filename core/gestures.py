"""
core.gestures

Pointer input -> entity commands.

PlacementGridGesture follows one press-to-release interaction on the 3x4
placement grid:

    Idle --pointer_down(left)--> Pressed --pointer_move(new dir)--> Dragging
      ^                             |                                  |
      +-------- pointer_up (anywhere, always) --------------------------+

While a block tool is active, pointer moves are folded into a discrete
drag direction and a SetNoteByDragging command is emitted only when that
direction changes. Pointer-move events arrive far faster than directions
change; emitting per move would flood the command channel.

entity_pointer_down / entity_pointer_over handle clicks and hovers directly
on an existing entity (select toggle, color cycle, delete, delete-on-hover).

Neither closes an undo group. Selection clicks and delete-on-hover sweeps
share a history group (see core.history), so the caller calls
HistoryManager.end_group() when a click or sweep finishes; otherwise two
separate clicks undo as one step.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import List, Optional, Tuple, Type, TypeVar, Union

from core.commands import (
    BulkDeleteEvent,
    BulkDeleteNote,
    CreateObstacle,
    DeleteEvent,
    DeleteNote,
    DeleteObstacle,
    DeselectEvent,
    DeselectNote,
    DeselectObstacle,
    PlaceNote,
    SelectEvent,
    SelectNote,
    SelectObstacle,
    SetNoteByDragging,
    SwitchEventColor,
    SwitchNoteColor,
)
from core.config import get_settings
from core.coordinates import GridCell, PointerPosition, get_direction_for_drag
from core.entity_models import NUM_ROWS, Direction, Event, Note, NoteColor, Obstacle, ObstacleType
from core.errors import InvalidEnumerationError

logger = logging.getLogger(__name__)

EnumT = TypeVar("EnumT", bound=Enum)
Entity = Union[Event, Note, Obstacle]


class SelectedTool(str, Enum):
    red_block = "red-block"
    blue_block = "blue-block"
    obstacle = "obstacle"


class EditMode(str, Enum):
    place = "place"
    select = "select"


class PointerButton(IntEnum):
    """`button` of a pointer event (which button changed)."""
    left = 0
    middle = 1
    right = 2


# `buttons` bitmask value when only the primary button is held
PRIMARY_BUTTONS = 1

BLOCK_TOOL_COLORS = {
    SelectedTool.red_block: NoteColor.red,
    SelectedTool.blue_block: NoteColor.blue,
}


def _coerce(enum_cls: Type[EnumT], value: object, kind: str) -> EnumT:
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidEnumerationError(kind, value) from None


# ---------------------------
# Gesture states
# ---------------------------
@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Pressed:
    origin_cell: GridCell
    origin_pointer: PointerPosition


@dataclass(frozen=True)
class Dragging:
    origin_cell: GridCell
    origin_pointer: PointerPosition
    committed_direction: Direction


GestureState = Union[Idle, Pressed, Dragging]

IDLE = Idle()


def advance_drag(
    state: GestureState,
    pointer: PointerPosition,
    threshold: float,
) -> Tuple[GestureState, Optional[Direction]]:
    """
    One pointer-move step. Returns the next state and the direction to
    emit, which is None unless the discrete direction changed.
    """
    if isinstance(state, Idle):
        return state, None

    direction = get_direction_for_drag(state.origin_pointer, pointer, threshold)
    committed = state.committed_direction if isinstance(state, Dragging) else None

    if direction is None or direction == committed:
        return state, None

    return Dragging(state.origin_cell, state.origin_pointer, direction), direction


def obstacle_for_span(
    origin: GridCell,
    release: GridCell,
    beat_num: float,
    beat_duration: float,
) -> CreateObstacle:
    lane = min(origin.col_index, release.col_index)
    colspan = abs(origin.col_index - release.col_index) + 1
    top_row = NUM_ROWS - 1
    kind = (
        ObstacleType.ceiling
        if origin.row_index == top_row and release.row_index == top_row
        else ObstacleType.wall
    )
    return CreateObstacle(
        beat_start=beat_num,
        beat_duration=beat_duration,
        lane=lane,
        colspan=colspan,
        type=kind,
    )


# ---------------------------
# Placement grid session
# ---------------------------
class PlacementGridGesture:
    """
    Gesture session for the placement grid. Methods return the commands to
    apply (possibly none); the caller feeds them to the store/history.
    """

    def __init__(
        self,
        *,
        drag_threshold: Optional[float] = None,
        obstacle_beat_duration: Optional[float] = None,
    ) -> None:
        s = get_settings()
        self.drag_threshold = s.drag_threshold_px if drag_threshold is None else float(drag_threshold)
        self.obstacle_beat_duration = (
            s.obstacle_beat_duration if obstacle_beat_duration is None else float(obstacle_beat_duration)
        )
        self.state: GestureState = IDLE
        # hovered_cell stays locked on the origin while a press is active;
        # mouse_over_cell always follows the pointer
        self.hovered_cell: Optional[GridCell] = None
        self.mouse_over_cell: Optional[GridCell] = None

    @property
    def is_active(self) -> bool:
        return not isinstance(self.state, Idle)

    @property
    def origin_cell(self) -> Optional[GridCell]:
        return None if isinstance(self.state, Idle) else self.state.origin_cell

    @property
    def committed_direction(self) -> Optional[Direction]:
        return self.state.committed_direction if isinstance(self.state, Dragging) else None

    # ---- hover ----
    def pointer_over(self, cell: GridCell) -> None:
        self.mouse_over_cell = cell
        if not self.is_active:
            self.hovered_cell = cell

    def pointer_out(self, cell: GridCell) -> None:
        if self.is_active:
            return
        # pointer_out for the old cell can arrive after pointer_over for the new one
        if self.hovered_cell == cell:
            self.hovered_cell = None

    # ---- press / drag / release ----
    def pointer_down(self, cell: GridCell, pointer: PointerPosition, *, buttons: int, tool) -> List:
        tool = _coerce(SelectedTool, tool, "tool")

        # only the primary button starts a gesture; others pass through
        if buttons != PRIMARY_BUTTONS:
            return []

        if tool == SelectedTool.obstacle:
            self.hovered_cell = None

        self.state = Pressed(origin_cell=cell, origin_pointer=pointer)
        self.mouse_over_cell = cell
        return []

    def pointer_move(self, pointer: PointerPosition, *, tool, beat_num: float) -> List:
        tool = _coerce(SelectedTool, tool, "tool")
        if tool not in BLOCK_TOOL_COLORS or not self.is_active:
            return []

        self.state, direction = advance_drag(self.state, pointer, self.drag_threshold)
        if direction is None:
            return []

        origin = self.state.origin_cell
        logger.debug("drag direction -> %s at %s", direction.value, origin)
        return [
            SetNoteByDragging(
                beat_num=beat_num,
                row_index=origin.row_index,
                col_index=origin.col_index,
                direction=direction,
                color=BLOCK_TOOL_COLORS[tool],
            )
        ]

    def pointer_up(
        self,
        cell: Optional[GridCell],
        *,
        button: int,
        tool,
        beat_num: float,
        mode=EditMode.place,
        selected_direction=Direction.down,
        hovered_entity: Optional[Entity] = None,
        selection_mode: bool = False,
    ) -> List:
        """
        Ends the session wherever the pointer is released (`cell=None` means
        outside the grid). Returns the finalizing commands, if any.
        """
        tool = _coerce(SelectedTool, tool, "tool")
        mode = _coerce(EditMode, mode, "edit mode")
        button = _coerce(PointerButton, button, "pointer button")
        selected_direction = _coerce(Direction, selected_direction, "direction")

        state = self.state
        self.reset()

        # release without a press of ours (press started elsewhere)
        if isinstance(state, Idle) or cell is None:
            return []

        if tool == SelectedTool.obstacle:
            if button != PointerButton.left:
                return []
            return [obstacle_for_span(state.origin_cell, cell, beat_num, self.obstacle_beat_duration)]

        # finishing a select/deselect/delete sweep over the grid places nothing
        if selection_mode or button != PointerButton.left:
            return []

        # the drag already placed (and oriented) the block
        if isinstance(state, Dragging):
            return []

        # pressed on one cell, released on another: the drag passed through
        if cell != state.origin_cell:
            return []

        if mode == EditMode.select:
            return [toggle_selection(hovered_entity)] if hovered_entity is not None else []

        return [
            PlaceNote(
                beat_num=beat_num,
                row_index=cell.row_index,
                col_index=cell.col_index,
                direction=selected_direction,
                color=BLOCK_TOOL_COLORS[tool],
            )
        ]

    def reset(self) -> None:
        self.state = IDLE
        self.hovered_cell = None
        self.mouse_over_cell = None


# ---------------------------
# Pointer on an existing entity
# ---------------------------
def toggle_selection(entity: Entity):
    if isinstance(entity, Event):
        cmd = DeselectEvent if entity.selected else SelectEvent
        return cmd(id=entity.id, track_id=entity.track_id)
    if isinstance(entity, Note):
        cmd = DeselectNote if entity.selected else SelectNote
        return cmd(id=entity.id)
    cmd = DeselectObstacle if entity.selected else SelectObstacle
    return cmd(id=entity.id)


def _delete(entity: Entity, *, bulk: bool):
    if isinstance(entity, Event):
        cmd = BulkDeleteEvent if bulk else DeleteEvent
        return cmd(id=entity.id, track_id=entity.track_id)
    if isinstance(entity, Note):
        cmd = BulkDeleteNote if bulk else DeleteNote
        return cmd(id=entity.id)
    return DeleteObstacle(id=entity.id)


def _switch_color(entity: Entity):
    if isinstance(entity, Event):
        return SwitchEventColor(id=entity.id, track_id=entity.track_id)
    if isinstance(entity, Note):
        return SwitchNoteColor(id=entity.id)
    return None


def entity_pointer_down(entity: Entity, button: int) -> List:
    """
    left   -> toggle selection
    middle -> cycle color
    right  -> delete
    Independent of any placement-grid gesture in progress.
    """
    button = _coerce(PointerButton, button, "pointer button")

    if button == PointerButton.left:
        return [toggle_selection(entity)]
    if button == PointerButton.middle:
        cmd = _switch_color(entity)
        return [cmd] if cmd is not None else []
    return [_delete(entity, bulk=False)]


def entity_pointer_over(entity: Entity, *, delete_on_hover: bool) -> List:
    """Sweeping over entities with delete-on-hover held removes each one."""
    if not delete_on_hover:
        return []
    return [_delete(entity, bulk=True)]

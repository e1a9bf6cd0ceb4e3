"""
core.commands

Every mutation of the entity store is one of the command models below.
The union is closed: `EntityCommand` is discriminated on `kind`, and the
store refuses anything that is not listed in ENTITY_COMMAND_TYPES.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict

from core.entity_models import (
    Direction,
    EditorView,
    Event,
    EventColor,
    EventType,
    Note,
    NoteColor,
    Obstacle,
    ObstacleType,
    TrackId,
)
from core.utils import new_entity_id


class _CommandBaseModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ---- Whole-store ----
class CreateNewSong(_CommandBaseModel):
    kind: Literal["create_new_song"] = "create_new_song"


class ClearEntities(_CommandBaseModel):
    kind: Literal["clear_entities"] = "clear_entities"


class LoadEntities(_CommandBaseModel):
    """
    Entities arrive as flat sequences (the way they are saved).
    `None` entries in `events` are skipped; empty/absent sequences leave
    the stored collection untouched.
    """
    kind: Literal["load_entities"] = "load_entities"
    events: Tuple[Optional[Event], ...] = ()
    notes: Tuple[Note, ...] = ()
    obstacles: Tuple[Obstacle, ...] = ()


# ---- Events view ----
class PlaceEvent(_CommandBaseModel):
    kind: Literal["place_event"] = "place_event"
    id: str = Field(default_factory=new_entity_id)
    track_id: TrackId
    beat_num: float
    event_type: EventType
    event_color: Optional[EventColor] = None
    event_laser_speed: Optional[int] = Field(default=None, ge=0)


class DeleteEvent(_CommandBaseModel):
    kind: Literal["delete_event"] = "delete_event"
    id: str
    track_id: TrackId


class BulkDeleteEvent(_CommandBaseModel):
    kind: Literal["bulk_delete_event"] = "bulk_delete_event"
    id: str
    track_id: TrackId


class SelectEvent(_CommandBaseModel):
    kind: Literal["select_event"] = "select_event"
    id: str
    track_id: TrackId


class DeselectEvent(_CommandBaseModel):
    kind: Literal["deselect_event"] = "deselect_event"
    id: str
    track_id: TrackId


class SwitchEventColor(_CommandBaseModel):
    kind: Literal["switch_event_color"] = "switch_event_color"
    id: str
    track_id: TrackId


# ---- Notes view ----
class PlaceNote(_CommandBaseModel):
    """Click on a placement-grid cell."""
    kind: Literal["place_note"] = "place_note"
    id: str = Field(default_factory=new_entity_id)
    beat_num: float
    row_index: int = Field(..., ge=0, le=2)
    col_index: int = Field(..., ge=0, le=3)
    direction: Direction
    color: NoteColor


class SetNoteByDragging(_CommandBaseModel):
    """Drag from a placement-grid cell; direction comes from the drag."""
    kind: Literal["set_note_by_dragging"] = "set_note_by_dragging"
    id: str = Field(default_factory=new_entity_id)
    beat_num: float
    row_index: int = Field(..., ge=0, le=2)
    col_index: int = Field(..., ge=0, le=3)
    direction: Direction
    color: NoteColor


class DeleteNote(_CommandBaseModel):
    kind: Literal["delete_note"] = "delete_note"
    id: str


class BulkDeleteNote(_CommandBaseModel):
    kind: Literal["bulk_delete_note"] = "bulk_delete_note"
    id: str


class SelectNote(_CommandBaseModel):
    kind: Literal["select_note"] = "select_note"
    id: str


class DeselectNote(_CommandBaseModel):
    kind: Literal["deselect_note"] = "deselect_note"
    id: str


class SwitchNoteColor(_CommandBaseModel):
    kind: Literal["switch_note_color"] = "switch_note_color"
    id: str


class CreateObstacle(_CommandBaseModel):
    kind: Literal["create_obstacle"] = "create_obstacle"
    id: str = Field(default_factory=new_entity_id)
    beat_start: float
    beat_duration: float = Field(..., gt=0.0)
    lane: int = Field(..., ge=0, le=3)
    colspan: int = Field(1, ge=1, le=4)
    type: ObstacleType = ObstacleType.wall


class DeleteObstacle(_CommandBaseModel):
    kind: Literal["delete_obstacle"] = "delete_obstacle"
    id: str


class SelectObstacle(_CommandBaseModel):
    kind: Literal["select_obstacle"] = "select_obstacle"
    id: str


class DeselectObstacle(_CommandBaseModel):
    kind: Literal["deselect_obstacle"] = "deselect_obstacle"
    id: str


# ---- View-scoped ----
class CutSelection(_CommandBaseModel):
    kind: Literal["cut_selection"] = "cut_selection"
    view: EditorView


class PasteSelection(_CommandBaseModel):
    """
    `data` must be sorted by beat ascending: the earliest beat is read
    from the first element, not searched for.
    """
    kind: Literal["paste_selection"] = "paste_selection"
    view: EditorView
    data: Tuple[Union[Event, Note, Obstacle], ...]
    paste_at_beat: float


class SelectAll(_CommandBaseModel):
    kind: Literal["select_all"] = "select_all"
    view: EditorView
    start_beat: float
    end_beat: float


class DeselectAll(_CommandBaseModel):
    kind: Literal["deselect_all"] = "deselect_all"
    view: EditorView


EntityCommand = Annotated[
    Union[
        CreateNewSong,
        ClearEntities,
        LoadEntities,
        PlaceEvent,
        DeleteEvent,
        BulkDeleteEvent,
        SelectEvent,
        DeselectEvent,
        SwitchEventColor,
        PlaceNote,
        SetNoteByDragging,
        DeleteNote,
        BulkDeleteNote,
        SelectNote,
        DeselectNote,
        SwitchNoteColor,
        CreateObstacle,
        DeleteObstacle,
        SelectObstacle,
        DeselectObstacle,
        CutSelection,
        PasteSelection,
        SelectAll,
        DeselectAll,
    ],
    Field(discriminator="kind"),
]

ENTITY_COMMAND_TYPES: Tuple[type, ...] = (
    CreateNewSong,
    ClearEntities,
    LoadEntities,
    PlaceEvent,
    DeleteEvent,
    BulkDeleteEvent,
    SelectEvent,
    DeselectEvent,
    SwitchEventColor,
    PlaceNote,
    SetNoteByDragging,
    DeleteNote,
    BulkDeleteNote,
    SelectNote,
    DeselectNote,
    SwitchNoteColor,
    CreateObstacle,
    DeleteObstacle,
    SelectObstacle,
    DeselectObstacle,
    CutSelection,
    PasteSelection,
    SelectAll,
    DeselectAll,
)

_command_adapter: TypeAdapter = TypeAdapter(EntityCommand)


def parse_command(raw: Mapping[str, Any]) -> Any:
    """
    Validate a JSON-shaped command (camelCase or snake_case keys).
    Raises pydantic.ValidationError for an unknown `kind` or bad fields.
    """
    return _command_adapter.validate_python(raw)


def is_entity_command(obj: object) -> bool:
    return isinstance(obj, ENTITY_COMMAND_TYPES)

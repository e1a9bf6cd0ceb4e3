"""
core.serializer

Entity <-> external map schema.

External records use underscore-prefixed keys:

    notes      {_time, _lineIndex, _lineLayer, _type, _cutDirection}
    events     {_time, _type, _value}
    obstacles  {_time, _lineIndex, _type, _duration, _width}

Every discriminant goes through a closed lookup table in both directions;
a value that is not in the table raises SerializationError instead of
being coerced. Entity ids are not part of the schema: they are generated
on import and dropped on export.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from core.commands import LoadEntities
from core.entity_models import (
    LASER_SPEED_TRACKS,
    LIGHTING_TRACKS,
    NUM_COLS,
    NUM_ROWS,
    RING_TRACKS,
    Direction,
    EntitySnapshot,
    Event,
    EventColor,
    EventType,
    Note,
    NoteColor,
    Obstacle,
    ObstacleType,
    TrackId,
)
from core.errors import SerializationError

logger = logging.getLogger(__name__)


# =========================
# Lookup tables (Frozen)
# =========================
NOTE_TYPE_TO_COLOR: Dict[int, NoteColor] = {
    0: NoteColor.blue,
    1: NoteColor.red,
}
NOTE_COLOR_TO_TYPE: Dict[NoteColor, int] = {v: k for k, v in NOTE_TYPE_TO_COLOR.items()}

CUT_DIRECTION_TO_DIRECTION: Dict[int, Direction] = {
    0: Direction.up,
    1: Direction.down,
    2: Direction.left,
    3: Direction.right,
    4: Direction.upLeft,
    5: Direction.upRight,
    6: Direction.downLeft,
    7: Direction.downRight,
    8: Direction.none,
}
DIRECTION_TO_CUT_DIRECTION: Dict[Direction, int] = {v: k for k, v in CUT_DIRECTION_TO_DIRECTION.items()}

EVENT_TYPE_TO_TRACK: Dict[int, TrackId] = {
    0: TrackId.laserBack,
    1: TrackId.trackNeons,
    2: TrackId.laserLeft,
    3: TrackId.laserRight,
    4: TrackId.primaryLight,
    8: TrackId.largeRing,
    9: TrackId.smallRing,
    12: TrackId.laserSpeedLeft,
    13: TrackId.laserSpeedRight,
}
TRACK_TO_EVENT_TYPE: Dict[TrackId, int] = {v: k for k, v in EVENT_TYPE_TO_TRACK.items()}

# lighting tracks only; value 0 ("off") carries no color
LIGHT_VALUE_TO_EFFECT: Dict[int, tuple] = {
    0: (EventType.off, None),
    1: (EventType.on, EventColor.blue),
    2: (EventType.flash, EventColor.blue),
    3: (EventType.fade, EventColor.blue),
    5: (EventType.on, EventColor.red),
    6: (EventType.flash, EventColor.red),
    7: (EventType.fade, EventColor.red),
}
LIGHT_EFFECT_TO_VALUE: Dict[tuple, int] = {v: k for k, v in LIGHT_VALUE_TO_EFFECT.items()}

OBSTACLE_TYPE_TO_KIND: Dict[int, ObstacleType] = {
    0: ObstacleType.wall,
    1: ObstacleType.ceiling,
}
OBSTACLE_KIND_TO_TYPE: Dict[ObstacleType, int] = {v: k for k, v in OBSTACLE_TYPE_TO_KIND.items()}


# =========================
# External record shapes
# =========================
class _ExternalBaseModel(BaseModel):
    # unknown keys (e.g. _customData) are ignored
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ExternalNote(_ExternalBaseModel):
    time: float = Field(..., alias="_time")
    line_index: int = Field(..., alias="_lineIndex")
    line_layer: int = Field(..., alias="_lineLayer")
    type: int = Field(..., alias="_type")
    cut_direction: int = Field(..., alias="_cutDirection")


class ExternalEvent(_ExternalBaseModel):
    time: float = Field(..., alias="_time")
    type: int = Field(..., alias="_type")
    value: int = Field(..., alias="_value")


class ExternalObstacle(_ExternalBaseModel):
    time: float = Field(..., alias="_time")
    line_index: int = Field(..., alias="_lineIndex")
    type: int = Field(..., alias="_type")
    duration: float = Field(..., alias="_duration")
    width: int = Field(..., alias="_width")


def _lookup(table: Mapping, key: Any, field: str, record: Any = None):
    try:
        return table[key]
    except KeyError:
        raise SerializationError(field, key, record) from None


# =========================
# Notes
# =========================
def note_to_external(note: Note) -> Dict[str, Any]:
    return {
        "_time": note.beat_num,
        "_lineIndex": note.col_index,
        "_lineLayer": note.row_index,
        "_type": NOTE_COLOR_TO_TYPE[note.color],
        "_cutDirection": DIRECTION_TO_CUT_DIRECTION[note.direction],
    }


def note_from_external(record: Mapping[str, Any]) -> Note:
    ext = ExternalNote.model_validate(record)

    if not 0 <= ext.line_index < NUM_COLS:
        raise SerializationError("_lineIndex", ext.line_index, record)
    if not 0 <= ext.line_layer < NUM_ROWS:
        raise SerializationError("_lineLayer", ext.line_layer, record)

    return Note(
        beat_num=ext.time,
        color=_lookup(NOTE_TYPE_TO_COLOR, ext.type, "_type", record),
        direction=_lookup(CUT_DIRECTION_TO_DIRECTION, ext.cut_direction, "_cutDirection", record),
        row_index=ext.line_layer,
        col_index=ext.line_index,
    )


def notes_to_external(notes: Iterable[Note]) -> List[Dict[str, Any]]:
    return [note_to_external(n) for n in notes]


def notes_from_external(records: Iterable[Mapping[str, Any]]) -> List[Note]:
    return [note_from_external(r) for r in records]


# =========================
# Events
# =========================
def event_to_external(event: Event) -> Dict[str, Any]:
    track_id = event.track_id

    if track_id in LIGHTING_TRACKS:
        color = None if event.type == EventType.off else event.color
        value = _lookup(LIGHT_EFFECT_TO_VALUE, (event.type, color), "type/color")
    elif track_id in RING_TRACKS:
        if event.type != EventType.rotate:
            raise SerializationError("type", event.type.value)
        value = 0
    else:
        value = event.laser_speed or 0

    return {
        "_time": event.beat_num,
        "_type": TRACK_TO_EVENT_TYPE[track_id],
        "_value": value,
    }


def event_from_external(record: Mapping[str, Any]) -> Event:
    ext = ExternalEvent.model_validate(record)
    track_id = _lookup(EVENT_TYPE_TO_TRACK, ext.type, "_type", record)

    if track_id in LIGHTING_TRACKS:
        event_type, color = _lookup(LIGHT_VALUE_TO_EFFECT, ext.value, "_value", record)
        return Event(track_id=track_id, beat_num=ext.time, type=event_type, color=color)

    if track_id in RING_TRACKS:
        if ext.value != 0:
            raise SerializationError("_value", ext.value, record)
        return Event(track_id=track_id, beat_num=ext.time, type=EventType.rotate)

    if ext.value < 0:
        raise SerializationError("_value", ext.value, record)
    return Event(
        track_id=track_id,
        beat_num=ext.time,
        type=EventType.change_speed,
        laser_speed=ext.value,
    )


# =========================
# Obstacles
# =========================
def obstacle_to_external(obstacle: Obstacle) -> Dict[str, Any]:
    return {
        "_time": obstacle.beat_start,
        "_lineIndex": obstacle.lane,
        "_type": OBSTACLE_KIND_TO_TYPE[obstacle.type],
        "_duration": obstacle.beat_duration,
        "_width": obstacle.colspan,
    }


def obstacle_from_external(record: Mapping[str, Any]) -> Obstacle:
    ext = ExternalObstacle.model_validate(record)
    kind = _lookup(OBSTACLE_TYPE_TO_KIND, ext.type, "_type", record)

    if not 0 <= ext.line_index < NUM_COLS:
        raise SerializationError("_lineIndex", ext.line_index, record)
    if ext.width < 1 or ext.line_index + ext.width > NUM_COLS:
        raise SerializationError("_width", ext.width, record)
    if ext.duration <= 0:
        raise SerializationError("_duration", ext.duration, record)

    return Obstacle(
        beat_start=ext.time,
        beat_duration=ext.duration,
        lane=ext.line_index,
        colspan=ext.width,
        type=kind,
    )


# =========================
# Whole map
# =========================
def map_to_external(snapshot: EntitySnapshot) -> Dict[str, List[Dict[str, Any]]]:
    """
    Events are emitted in `snapshot.event_order` (the order they were
    loaded, placed or pasted in); events missing from it follow in track
    order. Notes and obstacles keep their stored order.
    """
    position = {eid: i for i, eid in enumerate(snapshot.event_order)}
    events = [ev for track_events in snapshot.tracks.values() for ev in track_events]
    events.sort(key=lambda ev: position.get(ev.id, len(position)))

    return {
        "_events": [event_to_external(ev) for ev in events],
        "_notes": notes_to_external(snapshot.notes),
        "_obstacles": [obstacle_to_external(o) for o in snapshot.obstacles],
    }


def map_from_external(payload: Mapping[str, Any]) -> LoadEntities:
    """External map JSON -> a LoadEntities command (apply it to a snapshot to load)."""
    events = tuple(event_from_external(r) for r in payload.get("_events") or [])
    notes = tuple(notes_from_external(payload.get("_notes") or []))
    obstacles = tuple(obstacle_from_external(r) for r in payload.get("_obstacles") or [])

    logger.info(
        "Parsed external map: events=%d notes=%d obstacles=%d",
        len(events),
        len(notes),
        len(obstacles),
    )
    return LoadEntities(events=events, notes=notes, obstacles=obstacles)

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict

from core.utils import new_entity_id


# =========================
# Enums (Frozen)
# =========================
class TrackId(str, Enum):
    laserLeft = "laserLeft"
    laserRight = "laserRight"
    laserBack = "laserBack"
    primaryLight = "primaryLight"
    trackNeons = "trackNeons"
    largeRing = "largeRing"
    smallRing = "smallRing"
    laserSpeedLeft = "laserSpeedLeft"
    laserSpeedRight = "laserSpeedRight"


LIGHTING_TRACKS = frozenset(
    {
        TrackId.laserLeft,
        TrackId.laserRight,
        TrackId.laserBack,
        TrackId.primaryLight,
        TrackId.trackNeons,
    }
)
LASER_SPEED_TRACKS = frozenset({TrackId.laserSpeedLeft, TrackId.laserSpeedRight})
RING_TRACKS = frozenset({TrackId.largeRing, TrackId.smallRing})


class EventType(str, Enum):
    on = "on"
    off = "off"
    flash = "flash"
    fade = "fade"
    rotate = "rotate"
    change_speed = "change-speed"


EVENT_TYPES_BY_CATEGORY = {
    "lighting": frozenset({EventType.on, EventType.off, EventType.flash, EventType.fade}),
    "ring": frozenset({EventType.rotate}),
    "laser-speed": frozenset({EventType.change_speed}),
}


def track_category(track_id: TrackId) -> str:
    if track_id in LIGHTING_TRACKS:
        return "lighting"
    if track_id in RING_TRACKS:
        return "ring"
    return "laser-speed"


class EventColor(str, Enum):
    red = "red"
    blue = "blue"


class NoteColor(str, Enum):
    red = "red"
    blue = "blue"


class Direction(str, Enum):
    up = "up"
    down = "down"
    left = "left"
    right = "right"
    upLeft = "upLeft"
    upRight = "upRight"
    downLeft = "downLeft"
    downRight = "downRight"
    none = "none"


class ObstacleType(str, Enum):
    wall = "wall"
    ceiling = "ceiling"


class EditorView(str, Enum):
    events = "events-view"
    notes = "notes-view"


NUM_ROWS = 3
NUM_COLS = 4


# =========================
# Base Model Config (Frozen)
# =========================
class _EntityBaseModel(BaseModel):
    """
    Entities are immutable: every change goes through a command and yields
    a copy. JSON uses camelCase names (trackId, beatNum, ...).
    """
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =========================
# Entities
# =========================
class Event(_EntityBaseModel):
    """A point-in-time lighting/laser effect on one track."""

    id: str = Field(default_factory=new_entity_id)
    track_id: TrackId
    beat_num: float
    type: EventType
    color: Optional[EventColor] = None
    laser_speed: Optional[int] = Field(default=None, ge=0, description="0 = static")
    selected: bool = False

    @model_validator(mode="after")
    def _validate_track_category(self) -> "Event":
        if self.color is not None and self.laser_speed is not None:
            raise ValueError("An event cannot carry both color and laserSpeed")
        if self.color is not None and self.track_id not in LIGHTING_TRACKS:
            raise ValueError(f"color is only allowed on lighting tracks, not {self.track_id.value}")
        if self.laser_speed is not None and self.track_id not in LASER_SPEED_TRACKS:
            raise ValueError(f"laserSpeed is only allowed on laser-speed tracks, not {self.track_id.value}")

        allowed = EVENT_TYPES_BY_CATEGORY[track_category(self.track_id)]
        if self.type not in allowed:
            raise ValueError(f"{self.type.value} events are not allowed on {self.track_id.value}")

        if self.track_id in LIGHTING_TRACKS:
            # "off" has no color; every other lighting effect needs one
            if self.type == EventType.off and self.color is not None:
                raise ValueError("off events carry no color")
            if self.type != EventType.off and self.color is None:
                raise ValueError(f"{self.type.value} events on {self.track_id.value} need a color")
        if self.track_id in LASER_SPEED_TRACKS and self.laser_speed is None:
            raise ValueError(f"events on {self.track_id.value} need a laserSpeed")
        return self

    @property
    def beat(self) -> float:
        return self.beat_num


class Note(_EntityBaseModel):
    """A directional block placed on the 3x4 grid."""

    id: str = Field(default_factory=new_entity_id)
    beat_num: float
    color: NoteColor
    direction: Direction
    row_index: int = Field(..., ge=0, le=NUM_ROWS - 1)
    col_index: int = Field(..., ge=0, le=NUM_COLS - 1)
    selected: bool = False

    @property
    def beat(self) -> float:
        return self.beat_num


class Obstacle(_EntityBaseModel):
    id: str = Field(default_factory=new_entity_id)
    beat_start: float
    beat_duration: float = Field(..., gt=0.0)
    lane: int = Field(..., ge=0, le=NUM_COLS - 1)
    colspan: int = Field(1, ge=1, le=NUM_COLS)
    type: ObstacleType = ObstacleType.wall
    selected: bool = False

    @model_validator(mode="after")
    def _validate_span(self) -> "Obstacle":
        if self.lane + self.colspan > NUM_COLS:
            raise ValueError(f"Obstacle spans past the grid: lane={self.lane} colspan={self.colspan}")
        return self

    @property
    def beat(self) -> float:
        return self.beat_start


def _empty_tracks() -> Dict[TrackId, Tuple[Event, ...]]:
    return {track_id: () for track_id in TrackId}


class EntitySnapshot(BaseModel):
    """
    One immutable state of the editor's entities.
    Track sequences are in insertion order, not time order.

    `event_order` lists event ids in flat insertion order across all tracks
    (the order they were loaded, placed or pasted in); export follows it.
    """
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    tracks: Dict[TrackId, Tuple[Event, ...]] = Field(default_factory=_empty_tracks)
    notes: Tuple[Note, ...] = ()
    obstacles: Tuple[Obstacle, ...] = ()
    event_order: Tuple[str, ...] = ()

    @field_validator("tracks")
    @classmethod
    def _fill_missing_tracks(cls, v: Dict[TrackId, Tuple[Event, ...]]) -> Dict[TrackId, Tuple[Event, ...]]:
        # every track key is always present, in enum order
        return {track_id: tuple(v.get(track_id, ())) for track_id in TrackId}

    @model_validator(mode="after")
    def _validate_track_membership(self) -> "EntitySnapshot":
        for track_id, events in self.tracks.items():
            for ev in events:
                if ev.track_id != track_id:
                    raise ValueError(f"Event {ev.id} belongs to {ev.track_id.value}, found under {track_id.value}")
        return self

    @classmethod
    def empty(cls) -> "EntitySnapshot":
        return cls()

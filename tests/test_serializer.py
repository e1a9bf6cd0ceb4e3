from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.commands import LoadEntities, PlaceEvent
from core.entity_models import (
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
from core.entity_store import apply_command
from core.errors import SerializationError
from core.serializer import (
    event_from_external,
    event_to_external,
    map_from_external,
    map_to_external,
    note_from_external,
    note_to_external,
    notes_from_external,
    notes_to_external,
    obstacle_from_external,
    obstacle_to_external,
)

BLOCKS = [
    {"_time": 2, "_lineIndex": 2, "_lineLayer": 0, "_type": 0, "_cutDirection": 1},
    {"_time": 3.5, "_lineIndex": 3, "_lineLayer": 0, "_type": 1, "_cutDirection": 0},
]


def _without_id(note: Note) -> dict:
    # ids are random: compare everything else
    return note.model_dump(exclude={"id"})


# ==========================================
# Notes
# ==========================================

def test_notes_from_external_converts():
    actual = notes_from_external(BLOCKS)

    assert [_without_id(n) for n in actual] == [
        {
            "beat_num": 2,
            "color": NoteColor.blue,
            "direction": Direction.down,
            "row_index": 0,
            "col_index": 2,
            "selected": False,
        },
        {
            "beat_num": 3.5,
            "color": NoteColor.red,
            "direction": Direction.up,
            "row_index": 0,
            "col_index": 3,
            "selected": False,
        },
    ]
    assert actual[0].id != actual[1].id


def test_notes_to_external_converts():
    notes = [
        Note(id="a", color="blue", direction="down", beat_num=2, row_index=0, col_index=2),
        Note(id="b", color="red", direction="up", beat_num=3.5, row_index=0, col_index=3),
    ]

    assert notes_to_external(notes) == BLOCKS


def test_notes_full_circle_from_external():
    assert notes_to_external(notes_from_external(BLOCKS)) == BLOCKS


def test_notes_full_circle_from_internal():
    notes = [
        Note(color=NoteColor.red, direction=d, beat_num=1.25 * i, row_index=i % 3, col_index=i % 4)
        for i, d in enumerate(Direction)
    ]

    back = [note_from_external(note_to_external(n)) for n in notes]

    assert [_without_id(n) for n in back] == [_without_id(n) for n in notes]


@pytest.mark.parametrize(
    "field, value",
    [
        ("_type", 3),
        ("_type", -1),
        ("_cutDirection", 9),
        ("_lineIndex", 4),
        ("_lineLayer", 3),
    ],
)
def test_note_from_external_rejects_out_of_range(field, value):
    record = dict(BLOCKS[0], **{field: value})

    with pytest.raises(SerializationError) as exc:
        note_from_external(record)

    assert exc.value.field == field
    assert exc.value.value == value


def test_note_from_external_requires_all_fields():
    record = dict(BLOCKS[0])
    del record["_cutDirection"]

    with pytest.raises(ValidationError):
        note_from_external(record)


def test_note_from_external_ignores_unknown_keys():
    record = dict(BLOCKS[0], _customData={"foo": 1})
    assert note_from_external(record).col_index == 2


# ==========================================
# Events
# ==========================================

@pytest.mark.parametrize(
    "record, track_id, event_type, color, laser_speed",
    [
        ({"_time": 1, "_type": 2, "_value": 0}, TrackId.laserLeft, EventType.off, None, None),
        ({"_time": 1, "_type": 3, "_value": 1}, TrackId.laserRight, EventType.on, EventColor.blue, None),
        ({"_time": 1, "_type": 0, "_value": 2}, TrackId.laserBack, EventType.flash, EventColor.blue, None),
        ({"_time": 1, "_type": 4, "_value": 7}, TrackId.primaryLight, EventType.fade, EventColor.red, None),
        ({"_time": 1, "_type": 1, "_value": 5}, TrackId.trackNeons, EventType.on, EventColor.red, None),
        ({"_time": 1, "_type": 8, "_value": 0}, TrackId.largeRing, EventType.rotate, None, None),
        ({"_time": 1, "_type": 9, "_value": 0}, TrackId.smallRing, EventType.rotate, None, None),
        ({"_time": 1, "_type": 12, "_value": 3}, TrackId.laserSpeedLeft, EventType.change_speed, None, 3),
        ({"_time": 1, "_type": 13, "_value": 0}, TrackId.laserSpeedRight, EventType.change_speed, None, 0),
    ],
)
def test_event_round_trip(record, track_id, event_type, color, laser_speed):
    ev = event_from_external(record)

    assert ev.track_id == track_id
    assert ev.type == event_type
    assert ev.color == color
    assert ev.laser_speed == laser_speed
    assert event_to_external(ev) == record


@pytest.mark.parametrize(
    "record",
    [
        {"_time": 1, "_type": 5, "_value": 0},  # unmapped track
        {"_time": 1, "_type": 2, "_value": 4},  # unused light value
        {"_time": 1, "_type": 2, "_value": 8},
        {"_time": 1, "_type": 8, "_value": 1},  # rings only rotate
        {"_time": 1, "_type": 12, "_value": -1},
    ],
)
def test_event_from_external_rejects_out_of_range(record):
    with pytest.raises(SerializationError):
        event_from_external(record)


def test_unrepresentable_lighting_event_is_rejected_up_front():
    # a lit lighting event without a color has no external _value
    with pytest.raises(ValidationError):
        Event(track_id=TrackId.laserLeft, beat_num=1, type=EventType.on)


def test_placed_off_event_drops_color():
    s = apply_command(
        EntitySnapshot.empty(),
        PlaceEvent(track_id=TrackId.laserLeft, beat_num=1, event_type=EventType.off, event_color=EventColor.red),
    )

    ev = s.tracks[TrackId.laserLeft][0]
    assert ev.color is None
    assert event_to_external(ev) == {"_time": 1, "_type": 2, "_value": 0}


# every (track category, event type) pair: either refused when placed, or
# exported and re-imported unchanged
_PLACEABLE = {
    TrackId.primaryLight: {EventType.on, EventType.off, EventType.flash, EventType.fade},
    TrackId.smallRing: {EventType.rotate},
    TrackId.laserSpeedRight: {EventType.change_speed},
}


@pytest.mark.parametrize("track_id", list(_PLACEABLE))
@pytest.mark.parametrize("event_type", list(EventType))
def test_placed_event_survives_export_or_is_rejected(track_id, event_type):
    place = PlaceEvent(
        track_id=track_id,
        beat_num=2.5,
        event_type=event_type,
        event_color=EventColor.red,
        event_laser_speed=3,
    )

    if event_type not in _PLACEABLE[track_id]:
        with pytest.raises(ValidationError):
            apply_command(EntitySnapshot.empty(), place)
        return

    placed = apply_command(EntitySnapshot.empty(), place)
    reloaded = apply_command(EntitySnapshot.empty(), map_from_external(map_to_external(placed)))

    (before,) = placed.tracks[track_id]
    (after,) = reloaded.tracks[track_id]
    assert after.model_dump(exclude={"id"}) == before.model_dump(exclude={"id"})


@pytest.mark.parametrize(
    "fields",
    [
        {"track_id": TrackId.laserLeft, "type": EventType.on},  # no color
        {"track_id": TrackId.laserLeft, "type": EventType.rotate, "color": EventColor.red},
        {"track_id": TrackId.laserLeft, "type": EventType.off, "color": EventColor.blue},
        {"track_id": TrackId.largeRing, "type": EventType.flash},
        {"track_id": TrackId.laserSpeedLeft, "type": EventType.on, "laser_speed": 3},
        {"track_id": TrackId.laserSpeedLeft, "type": EventType.change_speed},  # no speed
    ],
)
def test_event_type_must_fit_track(fields):
    with pytest.raises(ValidationError):
        Event(beat_num=1, **fields)


# ==========================================
# Obstacles
# ==========================================

def test_obstacle_round_trip():
    record = {"_time": 8, "_lineIndex": 1, "_type": 0, "_duration": 4, "_width": 2}

    ob = obstacle_from_external(record)

    assert ob.type == ObstacleType.wall
    assert ob.lane == 1
    assert ob.colspan == 2
    assert obstacle_to_external(ob) == record


def test_ceiling_obstacle_to_external():
    ob = Obstacle(beat_start=2, beat_duration=1, lane=0, colspan=4, type=ObstacleType.ceiling)
    assert obstacle_to_external(ob)["_type"] == 1


@pytest.mark.parametrize(
    "record",
    [
        {"_time": 8, "_lineIndex": 1, "_type": 2, "_duration": 4, "_width": 2},
        {"_time": 8, "_lineIndex": 3, "_type": 0, "_duration": 4, "_width": 2},
        {"_time": 8, "_lineIndex": 0, "_type": 0, "_duration": 0, "_width": 1},
        {"_time": 8, "_lineIndex": 0, "_type": 0, "_duration": 1, "_width": 0},
    ],
)
def test_obstacle_from_external_rejects_out_of_range(record):
    with pytest.raises(SerializationError):
        obstacle_from_external(record)


# ==========================================
# Whole map
# ==========================================

def test_map_round_trip():
    payload = {
        "_events": [
            {"_time": 0, "_type": 4, "_value": 1},
            {"_time": 1, "_type": 12, "_value": 2},
            {"_time": 2.5, "_type": 8, "_value": 0},
            {"_time": 3, "_type": 2, "_value": 6},
        ],
        "_notes": BLOCKS,
        "_obstacles": [{"_time": 4, "_lineIndex": 0, "_type": 1, "_duration": 2, "_width": 4}],
    }

    command = map_from_external(payload)
    assert isinstance(command, LoadEntities)

    snapshot = apply_command(EntitySnapshot.empty(), command)
    assert len(snapshot.tracks[TrackId.primaryLight]) == 1
    assert len(snapshot.notes) == 2
    assert len(snapshot.obstacles) == 1

    assert map_to_external(snapshot) == payload


def test_map_round_trip_keeps_unsorted_event_order():
    payload = {
        "_events": [
            {"_time": 4, "_type": 2, "_value": 3},
            {"_time": 1, "_type": 2, "_value": 0},
            {"_time": 1, "_type": 4, "_value": 5},
            {"_time": 0, "_type": 2, "_value": 1},
            {"_time": 2, "_type": 9, "_value": 0},
        ],
        "_notes": [],
        "_obstacles": [],
    }

    snapshot = apply_command(EntitySnapshot.empty(), map_from_external(payload))

    assert map_to_external(snapshot) == payload


def test_map_to_external_follows_placement_order():
    s = EntitySnapshot.empty()
    for track_id, beat in ((TrackId.laserLeft, 6), (TrackId.primaryLight, 2), (TrackId.laserLeft, 3)):
        s = apply_command(s, PlaceEvent(track_id=track_id, beat_num=beat, event_type=EventType.off))

    assert [(e["_type"], e["_time"]) for e in map_to_external(s)["_events"]] == [(2, 6), (4, 2), (2, 3)]


def test_map_from_external_tolerates_missing_sections():
    command = map_from_external({"_notes": BLOCKS})

    assert command.events == ()
    assert command.obstacles == ()
    assert len(command.notes) == 2

from __future__ import annotations

import pytest

from core.commands import LoadEntities
from core.density import (
    calculate_note_density,
    compute_entity_stats,
    count_in_window,
    get_density_for_window,
)
from core.entity_models import (
    Direction,
    EntitySnapshot,
    Event,
    EventColor,
    EventType,
    Note,
    NoteColor,
    Obstacle,
    TrackId,
)
from core.entity_store import apply_command


def _note(beat, color=NoteColor.red, selected=False):
    return Note(beat_num=beat, color=color, direction=Direction.down, row_index=0, col_index=0, selected=selected)


@pytest.mark.parametrize(
    "num, beats, bpm, expected",
    [
        (10, 10, 60, 1),
        (15, 10, 100, 2.5),
        (0, 12, 100, 0),
    ],
)
def test_calculate_note_density(num, beats, bpm, expected):
    assert calculate_note_density(num, beats, bpm) == expected


def test_zero_notes_is_zero_even_for_empty_segment():
    assert calculate_note_density(0, 0, 0) == 0


@pytest.mark.parametrize("beats, bpm", [(0, 100), (8, 0)])
def test_zero_divisor_rejected(beats, bpm):
    with pytest.raises(ValueError):
        calculate_note_density(4, beats, bpm)


def test_count_in_window_inclusive():
    notes = [_note(b) for b in (0, 4, 6, 8, 9)]
    assert count_in_window(notes, 4, 4) == 3


def test_get_density_for_window():
    # 4 notes in [0, 8] at 120 bpm: 8 beats = 4 seconds
    notes = [_note(b) for b in (0, 2, 4, 8, 12)]
    assert get_density_for_window(notes, 0, 8, 120) == 1


def test_compute_entity_stats():
    s = apply_command(
        EntitySnapshot.empty(),
        LoadEntities(
            events=(
                Event(track_id=TrackId.laserLeft, beat_num=3, type=EventType.on, color=EventColor.red),
                Event(track_id=TrackId.laserLeft, beat_num=5, type=EventType.off),
                Event(track_id=TrackId.largeRing, beat_num=1, type=EventType.rotate, selected=True),
            ),
            notes=(_note(2), _note(4, NoteColor.blue), _note(6, NoteColor.blue)),
            obstacles=(Obstacle(beat_start=10, beat_duration=2, lane=0),),
        ),
    )

    stats = compute_entity_stats(s)

    assert stats.num_events == 3
    assert stats.events_per_track[TrackId.laserLeft] == 2
    assert stats.events_per_track[TrackId.laserRight] == 0
    assert stats.notes_per_color == {NoteColor.red: 1, NoteColor.blue: 2}
    assert stats.num_notes == 3
    assert stats.num_obstacles == 1
    assert stats.num_selected == 1
    assert (stats.first_beat, stats.last_beat) == (1, 10)


def test_compute_entity_stats_empty():
    stats = compute_entity_stats(EntitySnapshot.empty())
    assert stats.num_events == 0
    assert stats.first_beat is None
    assert stats.last_beat is None

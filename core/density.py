"""
core.density

Note/event density and simple statistics over an entity snapshot.
"""
from __future__ import annotations

from typing import Dict, Iterable, Optional

from pydantic import BaseModel, Field

from core.entity_models import EntitySnapshot, NoteColor, TrackId


def calculate_note_density(num_of_notes: int, segment_length_in_beats: float, bpm: float) -> float:
    """
    Notes per second over a segment:
        num / (segment_length_in_beats / bpm * 60)
    0 notes is always 0. A zero-length segment or zero bpm is rejected.
    """
    if num_of_notes == 0:
        return 0.0
    if segment_length_in_beats == 0 or bpm == 0:
        raise ValueError("segment_length_in_beats and bpm must be non-zero")

    # same as num / (beats / bpm * 60), with one rounding step fewer
    return (num_of_notes * bpm) / (segment_length_in_beats * 60)


def count_in_window(entities: Iterable, start_beat: float, num_beats: float) -> int:
    """Entities whose beat lies in [start_beat, start_beat + num_beats]."""
    end_beat = start_beat + num_beats
    return sum(1 for e in entities if start_beat <= e.beat <= end_beat)


def get_density_for_window(entities: Iterable, start_beat: float, num_beats: float, bpm: float) -> float:
    return calculate_note_density(count_in_window(entities, start_beat, num_beats), num_beats, bpm)


class EntityStats(BaseModel):
    events_per_track: Dict[TrackId, int] = Field(default_factory=dict)
    num_events: int = 0
    notes_per_color: Dict[NoteColor, int] = Field(default_factory=dict)
    num_notes: int = 0
    num_obstacles: int = 0
    num_selected: int = 0
    first_beat: Optional[float] = None
    last_beat: Optional[float] = None


def compute_entity_stats(snapshot: EntitySnapshot) -> EntityStats:
    events_per_track = {track_id: len(events) for track_id, events in snapshot.tracks.items()}
    notes_per_color = {color: 0 for color in NoteColor}
    for n in snapshot.notes:
        notes_per_color[n.color] += 1

    everything = [e for events in snapshot.tracks.values() for e in events]
    everything.extend(snapshot.notes)
    everything.extend(snapshot.obstacles)
    beats = [e.beat for e in everything]

    return EntityStats(
        events_per_track=events_per_track,
        num_events=sum(events_per_track.values()),
        notes_per_color=notes_per_color,
        num_notes=len(snapshot.notes),
        num_obstacles=len(snapshot.obstacles),
        num_selected=sum(1 for e in everything if e.selected),
        first_beat=min(beats) if beats else None,
        last_beat=max(beats) if beats else None,
    )

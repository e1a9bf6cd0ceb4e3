"""
core.entity_store

apply_command(snapshot, command) -> snapshot

Each handler is a pure function: the incoming snapshot is never mutated,
and a command that changes nothing returns the very same snapshot object
(HistoryManager relies on that to skip no-op steps).

Missing ids, empty loads and commands scoped to another view are no-ops.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Sequence, Set, Tuple, TypeVar, Union

from core.commands import (
    ENTITY_COMMAND_TYPES,
    BulkDeleteEvent,
    BulkDeleteNote,
    ClearEntities,
    CreateNewSong,
    CreateObstacle,
    CutSelection,
    DeleteEvent,
    DeleteNote,
    DeleteObstacle,
    DeselectAll,
    DeselectEvent,
    DeselectNote,
    DeselectObstacle,
    LoadEntities,
    PasteSelection,
    PlaceEvent,
    PlaceNote,
    SelectAll,
    SelectEvent,
    SelectNote,
    SelectObstacle,
    SetNoteByDragging,
    SwitchEventColor,
    SwitchNoteColor,
)
from core.entity_models import (
    LASER_SPEED_TRACKS,
    LIGHTING_TRACKS,
    EditorView,
    EntitySnapshot,
    Event,
    EventColor,
    EventType,
    Note,
    NoteColor,
    Obstacle,
    TrackId,
)
from core.errors import UnknownCommandError
from core.utils import flatten, new_entity_id

logger = logging.getLogger(__name__)

E = TypeVar("E", Event, Note, Obstacle)
Entity = Union[Event, Note, Obstacle]


# ---------------------------
# Helpers
# ---------------------------
def _with_track(snapshot: EntitySnapshot, track_id: TrackId, events: Tuple[Event, ...]) -> EntitySnapshot:
    return snapshot.model_copy(update={"tracks": {**snapshot.tracks, track_id: events}})


def _without_id(items: Tuple[E, ...], entity_id: str) -> Tuple[E, ...]:
    return tuple(item for item in items if item.id != entity_id)


def _replace_by_id(items: Tuple[E, ...], entity_id: str, **changes) -> Tuple[E, ...]:
    """Copy of `items` with the matching entity updated; same tuple if nothing matched/changed."""
    out: List[E] = []
    changed = False
    for item in items:
        if item.id == entity_id and any(getattr(item, k) != v for k, v in changes.items()):
            item = item.model_copy(update=changes)
            changed = True
        out.append(item)
    return tuple(out) if changed else items


def _set_selected_where(items: Tuple[E, ...], predicate: Callable[[E], bool]) -> Tuple[E, ...]:
    out: List[E] = []
    changed = False
    for item in items:
        want = bool(predicate(item))
        if item.selected != want:
            item = item.model_copy(update={"selected": want})
            changed = True
        out.append(item)
    return tuple(out) if changed else items


def _shift(entity: E, delta: float, taken_ids: Set[str]) -> E:
    changes: Dict[str, object] = {"selected": False}
    if isinstance(entity, Obstacle):
        changes["beat_start"] = entity.beat_start + delta
    else:
        changes["beat_num"] = entity.beat_num + delta
    # pasting a copy (not a cut) would otherwise duplicate ids
    if entity.id in taken_ids:
        changes["id"] = new_entity_id()
    taken_ids.add(changes.get("id", entity.id))
    return entity.model_copy(update=changes)


def _order_without(order: Tuple[str, ...], removed: Set[str]) -> Tuple[str, ...]:
    return tuple(eid for eid in order if eid not in removed)


def _order_with(order: Tuple[str, ...], added: Sequence[str]) -> Tuple[str, ...]:
    # re-added ids (paste after cut) move to the end
    return _order_without(order, set(added)) + tuple(added)


def _flip(color):
    if isinstance(color, NoteColor):
        return NoteColor.blue if color == NoteColor.red else NoteColor.red
    return EventColor.blue if color == EventColor.red else EventColor.red


# ---------------------------
# Whole-store
# ---------------------------
def _reset(snapshot: EntitySnapshot, command) -> EntitySnapshot:
    return EntitySnapshot.empty()


def _load_entities(snapshot: EntitySnapshot, command: LoadEntities) -> EntitySnapshot:
    # entities are saved as one flat list; regroup events by track
    update: Dict[str, object] = {}

    events = [ev for ev in command.events if ev]
    if events:
        tracks: Dict[TrackId, List[Event]] = {track_id: [] for track_id in TrackId}
        for ev in events:
            tracks[ev.track_id].append(ev)
        update["tracks"] = {track_id: tuple(evs) for track_id, evs in tracks.items()}
        update["event_order"] = tuple(ev.id for ev in events)

    if command.notes:
        update["notes"] = tuple(command.notes)
    if command.obstacles:
        update["obstacles"] = tuple(command.obstacles)

    if not update:
        return snapshot
    return snapshot.model_copy(update=update)


# ---------------------------
# Events view
# ---------------------------
def _place_event(snapshot: EntitySnapshot, command: PlaceEvent) -> EntitySnapshot:
    fields = {
        "id": command.id,
        "track_id": command.track_id,
        "beat_num": command.beat_num,
        "type": command.event_type,
    }
    if command.track_id in LIGHTING_TRACKS:
        # "off" is colorless whatever color the tool had selected
        if command.event_type != EventType.off:
            fields["color"] = command.event_color
    elif command.track_id in LASER_SPEED_TRACKS:
        fields["laser_speed"] = command.event_laser_speed

    new_event = Event(**fields)
    track = snapshot.tracks[command.track_id]
    placed = _with_track(snapshot, command.track_id, track + (new_event,))
    return placed.model_copy(update={"event_order": _order_with(snapshot.event_order, [new_event.id])})


def _delete_event(snapshot: EntitySnapshot, command: Union[DeleteEvent, BulkDeleteEvent]) -> EntitySnapshot:
    track = snapshot.tracks[command.track_id]
    remaining = _without_id(track, command.id)
    if len(remaining) == len(track):
        return snapshot
    trimmed = _with_track(snapshot, command.track_id, remaining)
    return trimmed.model_copy(update={"event_order": _order_without(snapshot.event_order, {command.id})})


def _set_event_selected(snapshot: EntitySnapshot, command: Union[SelectEvent, DeselectEvent]) -> EntitySnapshot:
    track = snapshot.tracks[command.track_id]
    updated = _replace_by_id(track, command.id, selected=isinstance(command, SelectEvent))
    if updated is track:
        return snapshot
    return _with_track(snapshot, command.track_id, updated)


def _switch_event_color(snapshot: EntitySnapshot, command: SwitchEventColor) -> EntitySnapshot:
    if command.track_id not in LIGHTING_TRACKS:
        return snapshot

    track = snapshot.tracks[command.track_id]
    for ev in track:
        if ev.id == command.id and ev.color is not None:
            updated = _replace_by_id(track, command.id, color=_flip(ev.color))
            return _with_track(snapshot, command.track_id, updated)
    return snapshot


# ---------------------------
# Notes view
# ---------------------------
def _put_note(snapshot: EntitySnapshot, command: Union[PlaceNote, SetNoteByDragging]) -> EntitySnapshot:
    # one note per (beat, cell): a new placement replaces whatever is there
    kept = tuple(
        n
        for n in snapshot.notes
        if not (
            n.beat_num == command.beat_num
            and n.row_index == command.row_index
            and n.col_index == command.col_index
        )
    )
    new_note = Note(
        id=command.id,
        beat_num=command.beat_num,
        color=command.color,
        direction=command.direction,
        row_index=command.row_index,
        col_index=command.col_index,
    )
    return snapshot.model_copy(update={"notes": kept + (new_note,)})


def _delete_note(snapshot: EntitySnapshot, command: Union[DeleteNote, BulkDeleteNote]) -> EntitySnapshot:
    remaining = _without_id(snapshot.notes, command.id)
    if len(remaining) == len(snapshot.notes):
        return snapshot
    return snapshot.model_copy(update={"notes": remaining})


def _set_note_selected(snapshot: EntitySnapshot, command: Union[SelectNote, DeselectNote]) -> EntitySnapshot:
    updated = _replace_by_id(snapshot.notes, command.id, selected=isinstance(command, SelectNote))
    if updated is snapshot.notes:
        return snapshot
    return snapshot.model_copy(update={"notes": updated})


def _switch_note_color(snapshot: EntitySnapshot, command: SwitchNoteColor) -> EntitySnapshot:
    for n in snapshot.notes:
        if n.id == command.id:
            updated = _replace_by_id(snapshot.notes, command.id, color=_flip(n.color))
            return snapshot.model_copy(update={"notes": updated})
    return snapshot


def _create_obstacle(snapshot: EntitySnapshot, command: CreateObstacle) -> EntitySnapshot:
    obstacle = Obstacle(
        id=command.id,
        beat_start=command.beat_start,
        beat_duration=command.beat_duration,
        lane=command.lane,
        colspan=command.colspan,
        type=command.type,
    )
    return snapshot.model_copy(update={"obstacles": snapshot.obstacles + (obstacle,)})


def _delete_obstacle(snapshot: EntitySnapshot, command: DeleteObstacle) -> EntitySnapshot:
    remaining = _without_id(snapshot.obstacles, command.id)
    if len(remaining) == len(snapshot.obstacles):
        return snapshot
    return snapshot.model_copy(update={"obstacles": remaining})


def _set_obstacle_selected(
    snapshot: EntitySnapshot, command: Union[SelectObstacle, DeselectObstacle]
) -> EntitySnapshot:
    updated = _replace_by_id(snapshot.obstacles, command.id, selected=isinstance(command, SelectObstacle))
    if updated is snapshot.obstacles:
        return snapshot
    return snapshot.model_copy(update={"obstacles": updated})


# ---------------------------
# View-scoped
# ---------------------------
def _cut_selection(snapshot: EntitySnapshot, command: CutSelection) -> EntitySnapshot:
    if command.view == EditorView.events:
        tracks = {track_id: tuple(ev for ev in evs if not ev.selected) for track_id, evs in snapshot.tracks.items()}
        if all(len(tracks[t]) == len(snapshot.tracks[t]) for t in tracks):
            return snapshot
        cut_ids = {ev.id for evs in snapshot.tracks.values() for ev in evs if ev.selected}
        return snapshot.model_copy(
            update={"tracks": tracks, "event_order": _order_without(snapshot.event_order, cut_ids)}
        )

    notes = tuple(n for n in snapshot.notes if not n.selected)
    obstacles = tuple(o for o in snapshot.obstacles if not o.selected)
    if len(notes) == len(snapshot.notes) and len(obstacles) == len(snapshot.obstacles):
        return snapshot
    return snapshot.model_copy(update={"notes": notes, "obstacles": obstacles})


def _paste_selection(snapshot: EntitySnapshot, command: PasteSelection) -> EntitySnapshot:
    if not command.data:
        return snapshot

    # "earliest" is positional: callers hand the clipboard over sorted by beat
    earliest = command.data[0].beat
    delta = command.paste_at_beat - earliest
    taken_ids = {e.id for e in get_all_events_as_array(snapshot)}
    taken_ids.update(n.id for n in snapshot.notes)
    taken_ids.update(o.id for o in snapshot.obstacles)
    shifted = [_shift(entity, delta, taken_ids) for entity in command.data]

    if command.view == EditorView.events:
        tracks = {track_id: list(evs) for track_id, evs in snapshot.tracks.items()}
        pasted: List[str] = []
        for entity in shifted:
            if isinstance(entity, Event):
                tracks[entity.track_id].append(entity)
                pasted.append(entity.id)
        if not pasted:
            return snapshot
        return snapshot.model_copy(
            update={
                "tracks": {t: tuple(evs) for t, evs in tracks.items()},
                "event_order": _order_with(snapshot.event_order, pasted),
            }
        )

    notes = tuple(e for e in shifted if isinstance(e, Note))
    obstacles = tuple(e for e in shifted if isinstance(e, Obstacle))
    if not notes and not obstacles:
        return snapshot
    return snapshot.model_copy(
        update={
            "notes": snapshot.notes + notes,
            "obstacles": snapshot.obstacles + obstacles,
        }
    )


def _select_all(snapshot: EntitySnapshot, command: SelectAll) -> EntitySnapshot:
    def in_frame(entity: Entity) -> bool:
        return command.start_beat <= entity.beat <= command.end_beat

    return _apply_selection(snapshot, command.view, in_frame)


def _deselect_all(snapshot: EntitySnapshot, command: DeselectAll) -> EntitySnapshot:
    return _apply_selection(snapshot, command.view, lambda _entity: False)


def _apply_selection(
    snapshot: EntitySnapshot, view: EditorView, predicate: Callable[[Entity], bool]
) -> EntitySnapshot:
    if view == EditorView.events:
        tracks = {track_id: _set_selected_where(evs, predicate) for track_id, evs in snapshot.tracks.items()}
        if all(tracks[t] is snapshot.tracks[t] for t in tracks):
            return snapshot
        return snapshot.model_copy(update={"tracks": tracks})

    notes = _set_selected_where(snapshot.notes, predicate)
    obstacles = _set_selected_where(snapshot.obstacles, predicate)
    if notes is snapshot.notes and obstacles is snapshot.obstacles:
        return snapshot
    return snapshot.model_copy(update={"notes": notes, "obstacles": obstacles})


# ---------------------------
# Dispatch
# ---------------------------
_HANDLERS: Dict[type, Callable[[EntitySnapshot, object], EntitySnapshot]] = {
    CreateNewSong: _reset,
    ClearEntities: _reset,
    LoadEntities: _load_entities,
    PlaceEvent: _place_event,
    DeleteEvent: _delete_event,
    BulkDeleteEvent: _delete_event,
    SelectEvent: _set_event_selected,
    DeselectEvent: _set_event_selected,
    SwitchEventColor: _switch_event_color,
    PlaceNote: _put_note,
    SetNoteByDragging: _put_note,
    DeleteNote: _delete_note,
    BulkDeleteNote: _delete_note,
    SelectNote: _set_note_selected,
    DeselectNote: _set_note_selected,
    SwitchNoteColor: _switch_note_color,
    CreateObstacle: _create_obstacle,
    DeleteObstacle: _delete_obstacle,
    SelectObstacle: _set_obstacle_selected,
    DeselectObstacle: _set_obstacle_selected,
    CutSelection: _cut_selection,
    PasteSelection: _paste_selection,
    SelectAll: _select_all,
    DeselectAll: _deselect_all,
}

_unhandled = set(ENTITY_COMMAND_TYPES) - set(_HANDLERS)
if _unhandled:  # pragma: no cover
    raise RuntimeError(f"Commands without a handler: {sorted(c.__name__ for c in _unhandled)}")


def apply_command(snapshot: EntitySnapshot, command) -> EntitySnapshot:
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise UnknownCommandError(f"Not an entity command: {type(command).__name__}")

    result = handler(snapshot, command)
    if result is snapshot:
        logger.debug("%s: no-op", command.kind)
    else:
        logger.debug("%s: applied", command.kind)
    return result


def apply_commands(snapshot: EntitySnapshot, commands: Sequence) -> EntitySnapshot:
    for command in commands:
        snapshot = apply_command(snapshot, command)
    return snapshot


# ---------------------------
# Selectors
# ---------------------------
def get_events_for_track(
    snapshot: EntitySnapshot,
    track_id: TrackId,
    start_beat: float,
    num_beats_to_show: float,
) -> List[Event]:
    end_beat = start_beat + num_beats_to_show
    return [ev for ev in snapshot.tracks[TrackId(track_id)] if start_beat <= ev.beat_num <= end_beat]


def get_all_events_as_array(snapshot: EntitySnapshot) -> List[Event]:
    return flatten(snapshot.tracks.values())


def get_selected_events(snapshot: EntitySnapshot) -> List[Event]:
    return [ev for ev in get_all_events_as_array(snapshot) if ev.selected]


def get_notes_in_range(snapshot: EntitySnapshot, start_beat: float, num_beats_to_show: float) -> List[Note]:
    end_beat = start_beat + num_beats_to_show
    return [n for n in snapshot.notes if start_beat <= n.beat_num <= end_beat]


def get_selected_notes(snapshot: EntitySnapshot) -> List[Note]:
    return [n for n in snapshot.notes if n.selected]


def get_selected_obstacles(snapshot: EntitySnapshot) -> List[Obstacle]:
    return [o for o in snapshot.obstacles if o.selected]


def get_selection(snapshot: EntitySnapshot, view: EditorView) -> List[Entity]:
    """Selected entities of one view, sorted by beat (ready for PasteSelection)."""
    if view == EditorView.events:
        selected: List[Entity] = list(get_selected_events(snapshot))
    else:
        selected = [*get_selected_notes(snapshot), *get_selected_obstacles(snapshot)]
    return sorted(selected, key=lambda e: e.beat)

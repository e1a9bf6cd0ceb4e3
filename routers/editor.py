from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Body, HTTPException, Query
from pydantic import ValidationError

from core.commands import parse_command
from core.config import get_settings
from core.density import compute_entity_stats, get_density_for_window
from core.entity_models import EditorView, TrackId
from core.entity_store import get_events_for_track, get_selection
from core.errors import SerializationError, SessionNotFoundError
from core.serializer import map_from_external, map_to_external
from core.session_manager import session_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Editor"])


def _not_found(e: Exception) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e) or "Session not found")


def _session_view(session_id: str) -> Dict[str, Any]:
    try:
        history = session_manager.get_history(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)

    return {
        "session_id": session_id,
        "can_undo": history.can_undo,
        "can_redo": history.can_redo,
        "snapshot": history.present.model_dump(mode="json", by_alias=True),
    }


def _entities_json(entities) -> List[Dict[str, Any]]:
    return [e.model_dump(mode="json", by_alias=True) for e in entities]


@router.post("/sessions")
def create_session() -> Dict[str, Any]:
    sid = session_manager.create_session()
    return _session_view(str(sid))


@router.get("/sessions/{session_id}")
def get_session(session_id: str) -> Dict[str, Any]:
    return _session_view(session_id)


@router.delete("/sessions/{session_id}")
def delete_session(session_id: str) -> Dict[str, Any]:
    if not session_manager.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"ok": True, "session_id": session_id}


@router.post("/sessions/{session_id}/commands")
def post_commands(
    session_id: str,
    payload: Union[Dict[str, Any], List[Dict[str, Any]]] = Body(...),
) -> Dict[str, Any]:
    """
    Apply one command (object) or several (array, applied in order).
    Each command is discriminated by its `kind` field.
    """
    raw_commands = payload if isinstance(payload, list) else [payload]
    try:
        commands = [parse_command(raw) for raw in raw_commands]
    except ValidationError as e:
        logger.warning("Rejected command payload for session %s: %s", session_id, e)
        raise HTTPException(status_code=422, detail=str(e))

    try:
        session_manager.dispatch(session_id, commands)
    except SessionNotFoundError as e:
        raise _not_found(e)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return _session_view(session_id)


@router.post("/sessions/{session_id}/undo")
def undo(session_id: str) -> Dict[str, Any]:
    try:
        session_manager.undo(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)
    return _session_view(session_id)


@router.post("/sessions/{session_id}/redo")
def redo(session_id: str) -> Dict[str, Any]:
    try:
        session_manager.redo(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)
    return _session_view(session_id)


@router.post("/sessions/{session_id}/end-group")
def end_group(session_id: str) -> Dict[str, Any]:
    try:
        session_manager.end_group(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)
    return {"ok": True, "session_id": session_id}


@router.get("/sessions/{session_id}/tracks/{track_id}/events")
def get_track_events(
    session_id: str,
    track_id: TrackId,
    start_beat: float = Query(0.0),
    num_beats: Optional[float] = Query(None, gt=0.0),
) -> List[Dict[str, Any]]:
    if num_beats is None:
        num_beats = get_settings().default_beats_to_show
    try:
        snapshot = session_manager.get_snapshot(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)
    return _entities_json(get_events_for_track(snapshot, track_id, start_beat, num_beats))


@router.get("/sessions/{session_id}/selection")
def get_session_selection(
    session_id: str,
    view: EditorView = Query(EditorView.events),
) -> List[Dict[str, Any]]:
    try:
        snapshot = session_manager.get_snapshot(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)
    return _entities_json(get_selection(snapshot, view))


@router.get("/sessions/{session_id}/density")
def get_density(
    session_id: str,
    bpm: float = Query(..., gt=0.0),
    start_beat: float = Query(0.0),
    num_beats: Optional[float] = Query(None, gt=0.0),
    view: EditorView = Query(EditorView.notes),
) -> Dict[str, Any]:
    if num_beats is None:
        num_beats = get_settings().default_beats_to_show
    try:
        snapshot = session_manager.get_snapshot(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)

    if view == EditorView.events:
        entities = [ev for evs in snapshot.tracks.values() for ev in evs]
    else:
        entities = list(snapshot.notes)

    return {
        "view": view.value,
        "start_beat": start_beat,
        "num_beats": num_beats,
        "bpm": bpm,
        "density": get_density_for_window(entities, start_beat, num_beats, bpm),
    }


@router.get("/sessions/{session_id}/stats")
def get_stats(session_id: str) -> Dict[str, Any]:
    try:
        snapshot = session_manager.get_snapshot(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)
    return compute_entity_stats(snapshot).model_dump(mode="json")


@router.post("/sessions/{session_id}/import")
def import_map(session_id: str, payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    """Load an external map (`_events`, `_notes`, `_obstacles`) into the session."""
    try:
        command = map_from_external(payload)
    except (ValidationError, SerializationError) as e:
        logger.warning("Rejected map import for session %s: %s", session_id, e)
        raise HTTPException(status_code=422, detail=str(e))

    try:
        session_manager.dispatch(session_id, [command])
    except SessionNotFoundError as e:
        raise _not_found(e)

    return _session_view(session_id)


@router.get("/sessions/{session_id}/export")
def export_map(session_id: str) -> Dict[str, Any]:
    try:
        snapshot = session_manager.get_snapshot(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)

    try:
        return map_to_external(snapshot)
    except SerializationError as e:
        logger.exception("Failed to export session %s: %s", session_id, e)
        raise HTTPException(status_code=409, detail=str(e))

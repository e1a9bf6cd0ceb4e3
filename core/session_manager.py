from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Iterable, Optional, Union
from uuid import UUID, uuid4

from core.config import get_settings
from core.entity_models import EntitySnapshot
from core.errors import SessionNotFoundError
from core.history import HistoryManager

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Helper for strictly UTC aware datetime."""
    return datetime.now(timezone.utc)


def _ensure_uuid(session_id: Union[str, UUID]) -> UUID:
    """Helper to handle both str and UUID input."""
    if isinstance(session_id, UUID):
        return session_id
    try:
        return UUID(str(session_id))
    except ValueError as e:
        raise SessionNotFoundError(f"Invalid session id: {session_id}") from e


@dataclass
class _SessionRecord:
    """
    One editor session: the undo history (whose `present` is the current
    snapshot) plus bookkeeping.
    """
    session_id: UUID
    history: HistoryManager
    created_at: datetime
    updated_at: datetime
    lock: Lock = field(default_factory=Lock, repr=False)


class SessionManager:
    """
    In-memory registry of editor sessions.

    The engine itself is single-threaded; the registry lock only protects
    the dict, and each session's lock serializes commands for that session
    so they apply strictly in arrival order.
    """

    def __init__(self, *, history_limit: Optional[int] = None) -> None:
        self._lock = Lock()
        self._sessions: Dict[UUID, _SessionRecord] = {}
        self._history_limit = history_limit

    # ----------------------------
    # Core helpers
    # ----------------------------
    def _get_record(self, session_id: Union[str, UUID]) -> _SessionRecord:
        sid = _ensure_uuid(session_id)
        with self._lock:
            rec = self._sessions.get(sid)
        if rec is None:
            raise SessionNotFoundError(f"Session not found: {sid}")
        return rec

    def _limit(self) -> int:
        if self._history_limit is not None:
            return self._history_limit
        return get_settings().history_limit

    # ----------------------------
    # Read Methods
    # ----------------------------
    def exists(self, session_id: Union[str, UUID]) -> bool:
        try:
            self._get_record(session_id)
        except SessionNotFoundError:
            return False
        return True

    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def get_snapshot(self, session_id: Union[str, UUID]) -> EntitySnapshot:
        return self._get_record(session_id).history.present

    def get_history(self, session_id: Union[str, UUID]) -> HistoryManager:
        return self._get_record(session_id).history

    # ----------------------------
    # Write Methods (Mutations)
    # ----------------------------
    def create_session(self, initial: Optional[EntitySnapshot] = None) -> UUID:
        now = _utcnow()
        sid = uuid4()
        rec = _SessionRecord(
            session_id=sid,
            history=HistoryManager(initial, limit=self._limit()),
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._sessions[sid] = rec
        logger.info("Session created: %s", sid)
        return sid

    def delete_session(self, session_id: Union[str, UUID]) -> bool:
        try:
            sid = _ensure_uuid(session_id)
        except SessionNotFoundError:
            return False
        with self._lock:
            removed = self._sessions.pop(sid, None) is not None
        if removed:
            logger.info("Session deleted: %s", sid)
        return removed

    def dispatch(self, session_id: Union[str, UUID], commands: Iterable) -> EntitySnapshot:
        rec = self._get_record(session_id)
        with rec.lock:
            snapshot = rec.history.dispatch_all(commands)
            rec.updated_at = _utcnow()
        return snapshot

    def undo(self, session_id: Union[str, UUID]) -> EntitySnapshot:
        rec = self._get_record(session_id)
        with rec.lock:
            snapshot = rec.history.undo()
            rec.updated_at = _utcnow()
        return snapshot

    def redo(self, session_id: Union[str, UUID]) -> EntitySnapshot:
        rec = self._get_record(session_id)
        with rec.lock:
            snapshot = rec.history.redo()
            rec.updated_at = _utcnow()
        return snapshot

    def end_group(self, session_id: Union[str, UUID]) -> None:
        rec = self._get_record(session_id)
        with rec.lock:
            rec.history.end_group()

    def prune(self, *, max_age_seconds: Optional[int] = None) -> int:
        """
        Maintenance: drop sessions idle for longer than max_age_seconds.
        """
        if max_age_seconds is None:
            max_age_seconds = get_settings().session_max_age_seconds

        now = _utcnow()
        with self._lock:
            to_del = [
                sid
                for sid, rec in self._sessions.items()
                if (now - rec.updated_at).total_seconds() > max_age_seconds
            ]
            for sid in to_del:
                del self._sessions[sid]
        return len(to_del)


# Singleton Instance
session_manager = SessionManager()

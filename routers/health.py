"""
Health check route
Used by deployment/monitoring to confirm the service is alive.
"""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter

from core.config import get_settings
from core.session_manager import session_manager

router = APIRouter(prefix="/api/v1", tags=["Health"])


@router.get("/health")
def health() -> Dict[str, Any]:
    """
    - always returns ok=True if the API is alive
    - extra diagnostics: active sessions, engine limits
    """
    s = get_settings()

    return {
        "ok": True,
        "env": s.app_env,
        "sessions": session_manager.session_count(),
        "limits": {
            "history_limit": s.history_limit,
            "drag_threshold_px": s.drag_threshold_px,
            "default_beats_to_show": s.default_beats_to_show,
        },
    }

# app.py
"""
mapedit main entry (FastAPI)

- App Factory pattern for testing & packaging
- Lifespan: prune idle editor sessions on startup, log shutdown
- Dev CORS: allow localhost any port (supports credentials)
- Prod CORS: MUST specify explicit origins (no wildcard with credentials)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import get_settings
from core.session_manager import session_manager
from routers.editor import router as editor_router
from routers.health import router as health_router

logger = logging.getLogger("mapedit")


def _is_dev(app_env: str) -> bool:
    v = (app_env or "").strip().lower()
    return v in {"dev", "development", "local"}


def _parse_origins(raw: Optional[str]) -> list[str]:
    """
    Parse comma-separated origins string into list.
    Example: "https://a.com,https://b.com"
    """
    if not raw:
        return []
    parts = [p.strip() for p in raw.split(",")]
    return [p for p in parts if p]


@asynccontextmanager
async def lifespan(_: FastAPI):
    try:
        removed = session_manager.prune()
        if removed:
            logger.info("Session prune: removed=%s", removed)
    except Exception as e:
        logger.warning("Session prune warning: %s", e)

    yield
    logger.info("Service shutting down...")


def create_app() -> FastAPI:
    s = get_settings()

    # logging once (avoid duplicated handlers in reload/test)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=getattr(logging, s.log_level, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    app = FastAPI(
        title="mapedit",
        version="0.1.0",
        description="Entity & gesture engine for a beat-synchronized map editor",
        lifespan=lifespan,
    )

    # expose settings for debugging
    app.state.settings = s

    # ---- CORS ----
    if _is_dev(s.app_env):
        allow_origins: list[str] = []
        allow_origin_regex = r"http://(?:localhost|127\.0\.0\.1)(?::\d+)?"
        allow_credentials = True
    else:
        allow_origins = _parse_origins(s.cors_allow_origins)
        allow_origin_regex = None
        # no explicit origins -> credentials disabled
        allow_credentials = bool(allow_origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_origin_regex=allow_origin_regex,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---- Routers ----
    app.include_router(health_router)
    app.include_router(editor_router)

    @app.get("/", include_in_schema=False)
    def root():
        return {
            "service": "mapedit",
            "status": "ok",
            "docs_url": "/docs",
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app:app", host=get_settings().host, port=get_settings().port, reload=True)

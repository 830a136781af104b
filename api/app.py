from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reading_tracker.progress import ProgressRepository, StorageFailure, seed_default_data

from api.dependencies import build_repository, env_flag
from api.routes.goals import router as goals_router
from api.routes.reading_logs import router as reading_logs_router
from api.routes.stats import router as stats_router

logger = logging.getLogger(__name__)


def create_app(repository: Optional[ProgressRepository] = None, seed_defaults: Optional[bool] = None) -> FastAPI:
    """
    Build the API around an explicit repository. Without one, the backend is
    chosen from DATABASE_URL. Run with `uvicorn api.app:create_app --factory`.
    """
    app = FastAPI(title="Reading Tracker API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    repo = repository if repository is not None else build_repository()
    if seed_defaults is None:
        seed_defaults = env_flag("SEED_DEFAULT_DATA", True)
    if seed_defaults:
        seed_default_data(repo)
    app.state.repository = repo

    app.include_router(reading_logs_router)
    app.include_router(goals_router)
    app.include_router(stats_router)

    @app.exception_handler(StorageFailure)
    async def storage_failure_handler(request: Request, exc: StorageFailure) -> JSONResponse:
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": "Storage failure"})

    @app.get("/healthz")
    def health() -> dict:
        return {"status": "ok"}

    return app

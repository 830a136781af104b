from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.engine import make_url

from reading_tracker.progress import (
    AggregationEngine,
    InMemoryProgressRepository,
    ProgressRepository,
    ReplayConfig,
    ReplayJobQueue,
    SqlAlchemyProgressRepository,
)

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///./data/reading_tracker.db"


def env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def consistency_window_days() -> int:
    return int(os.getenv("CONSISTENCY_WINDOW_DAYS", "30"))


def remote_timeout_seconds() -> float:
    return float(os.getenv("REMOTE_TIMEOUT_SECONDS", "10"))


def _ensure_sqlite_dir(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def build_repository() -> ProgressRepository:
    """DATABASE_URL=memory selects the ephemeral backend."""
    db_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    if db_url == "memory":
        return InMemoryProgressRepository()
    _ensure_sqlite_dir(db_url)
    return SqlAlchemyProgressRepository(db_url)


def get_repo(request: Request) -> ProgressRepository:
    return request.app.state.repository


def get_engine(repo: ProgressRepository = Depends(get_repo)) -> AggregationEngine:
    return AggregationEngine(repo)


def build_replay_config(
    database_url: Optional[str] = None, remote_base_url: Optional[str] = None
) -> Optional[ReplayConfig]:
    """
    Replay settings from the environment, with explicit arguments taking
    precedence. None when no remote is configured or the database is the
    in-memory store.
    """
    remote_url = remote_base_url or os.getenv("REMOTE_BASE_URL")
    db_url = database_url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    if not remote_url or db_url == "memory":
        return None
    return ReplayConfig(database_url=db_url, remote_base_url=remote_url, timeout_seconds=remote_timeout_seconds())


@lru_cache(maxsize=1)
def get_replay_queue() -> ReplayJobQueue:
    redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    queue_name = os.getenv("REPLAY_QUEUE_NAME", "outbox-replay")
    return ReplayJobQueue(redis_url=redis_url, queue_name=queue_name)

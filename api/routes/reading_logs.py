from __future__ import annotations

import datetime as dt

from fastapi import APIRouter, Depends, HTTPException, Query

from reading_tracker.progress import (
    TOTAL_PARTITIONS,
    NewReadingEvent,
    ProgressRepository,
    ValidationFailure,
    validate_new_event,
)
from reading_tracker.progress.serializers import event_to_dict

from api.dependencies import get_repo
from api.schemas import ReadingEventCreate

router = APIRouter(prefix="/api/users/{user_id}/reading-logs", tags=["reading-logs"])


@router.post("", status_code=201)
def create_reading_log(user_id: int, body: ReadingEventCreate, repo: ProgressRepository = Depends(get_repo)):
    event = NewReadingEvent(user_id=user_id, **body.model_dump())
    try:
        validate_new_event(event)
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return event_to_dict(repo.append_event(event))


@router.get("")
def list_reading_logs(user_id: int, repo: ProgressRepository = Depends(get_repo)):
    return [event_to_dict(e) for e in repo.list_events(user_id)]


@router.get("/recent")
def list_recent_reading_logs(
    user_id: int,
    limit: int = Query(10, ge=1, le=500),
    repo: ProgressRepository = Depends(get_repo),
):
    return [event_to_dict(e) for e in repo.list_recent_events(user_id, limit)]


@router.get("/range")
def list_reading_logs_by_date_range(
    user_id: int,
    start: dt.date,
    end: dt.date,
    repo: ProgressRepository = Depends(get_repo),
):
    if end < start:
        raise HTTPException(status_code=400, detail=f"end {end} is before start {start}")
    return [event_to_dict(e) for e in repo.list_events_by_date_range(user_id, start, end)]


@router.get("/partition/{partition_number}")
def list_reading_logs_by_partition(user_id: int, partition_number: int, repo: ProgressRepository = Depends(get_repo)):
    if not 1 <= partition_number <= TOTAL_PARTITIONS:
        raise HTTPException(status_code=404, detail=f"Partition not found: {partition_number}")
    return [event_to_dict(e) for e in repo.list_events_by_partition(user_id, partition_number)]

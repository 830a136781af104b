from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from reading_tracker.progress import AggregationEngine
from reading_tracker.progress.serializers import partition_to_dict, stats_to_dict

from api.dependencies import consistency_window_days, get_engine

router = APIRouter(prefix="/api/users/{user_id}", tags=["stats"])


@router.get("/stats")
def get_stats(
    user_id: int,
    days: Optional[int] = Query(None, ge=1, le=366),
    engine: AggregationEngine = Depends(get_engine),
):
    window = days if days is not None else consistency_window_days()
    return stats_to_dict(engine.stats(user_id, days=window))


@router.get("/partition-map")
def get_partition_map(user_id: int, engine: AggregationEngine = Depends(get_engine)):
    return [partition_to_dict(p) for p in engine.partition_map(user_id)]

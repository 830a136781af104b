"""
JSON shapes shared by the HTTP surface and the remote client, so a record
read over the network is indistinguishable from one read locally.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional

from .models import (
    NewReadingEvent,
    NewReadingGoal,
    PartitionProgress,
    PartitionStatus,
    ProgressStats,
    ReadingEvent,
    ReadingGoal,
)


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def event_to_dict(event: ReadingEvent) -> Dict[str, Any]:
    return {
        "id": event.id,
        "user_id": event.user_id,
        "date": _iso(event.date),
        "partition_number": event.partition_number,
        "pages_read": event.pages_read,
        "start_page": event.start_page,
        "end_page": event.end_page,
        "created_at": _iso(event.created_at),
    }


def event_from_dict(data: Dict[str, Any]) -> ReadingEvent:
    return ReadingEvent(
        id=data["id"],
        user_id=data["user_id"],
        date=date.fromisoformat(data["date"]),
        partition_number=data["partition_number"],
        pages_read=data["pages_read"],
        start_page=data.get("start_page"),
        end_page=data.get("end_page"),
        created_at=datetime.fromisoformat(data["created_at"]),
    )


def new_event_to_dict(event: NewReadingEvent) -> Dict[str, Any]:
    # user_id travels in the URL path, not the body
    return {
        "date": _iso(event.date),
        "partition_number": event.partition_number,
        "pages_read": event.pages_read,
        "start_page": event.start_page,
        "end_page": event.end_page,
    }


def new_event_from_dict(user_id: int, data: Dict[str, Any]) -> NewReadingEvent:
    return NewReadingEvent(
        user_id=user_id,
        date=date.fromisoformat(data["date"]),
        partition_number=data["partition_number"],
        pages_read=data["pages_read"],
        start_page=data.get("start_page"),
        end_page=data.get("end_page"),
    )


def goal_to_dict(goal: ReadingGoal) -> Dict[str, Any]:
    return {
        "id": goal.id,
        "user_id": goal.user_id,
        "daily_target": goal.daily_target,
        "weekly_target": goal.weekly_target,
        "total_pages": goal.total_pages,
        "is_active": goal.is_active,
        "created_at": _iso(goal.created_at),
        "updated_at": _iso(goal.updated_at),
    }


def goal_from_dict(data: Dict[str, Any]) -> ReadingGoal:
    return ReadingGoal(
        id=data["id"],
        user_id=data["user_id"],
        daily_target=data["daily_target"],
        weekly_target=data["weekly_target"],
        total_pages=data["total_pages"],
        is_active=data["is_active"],
        created_at=datetime.fromisoformat(data["created_at"]),
        updated_at=datetime.fromisoformat(data["updated_at"]),
    )


def new_goal_to_dict(goal: NewReadingGoal) -> Dict[str, Any]:
    return {
        "daily_target": goal.daily_target,
        "weekly_target": goal.weekly_target,
        "total_pages": goal.total_pages,
        "is_active": goal.is_active,
    }


def new_goal_from_dict(user_id: int, data: Dict[str, Any]) -> NewReadingGoal:
    return NewReadingGoal(
        user_id=user_id,
        daily_target=data["daily_target"],
        weekly_target=data["weekly_target"],
        total_pages=data["total_pages"],
        is_active=data["is_active"],
    )


def partition_to_dict(progress: PartitionProgress) -> Dict[str, Any]:
    return {
        "partition_number": progress.partition_number,
        "status": progress.status.value,
        "pages_read": progress.pages_read,
        "total_pages": progress.total_pages,
        "percent_complete": progress.percent_complete,
    }


def partition_from_dict(data: Dict[str, Any]) -> PartitionProgress:
    return PartitionProgress(
        partition_number=data["partition_number"],
        status=PartitionStatus(data["status"]),
        pages_read=data["pages_read"],
        total_pages=data["total_pages"],
        percent_complete=float(data["percent_complete"]),
    )


def stats_to_dict(stats: ProgressStats) -> Dict[str, Any]:
    return {
        "user_id": stats.user_id,
        "total_pages_read": stats.total_pages_read,
        "completed_cycles": stats.completed_cycles,
        "pages_into_current_cycle": stats.pages_into_current_cycle,
        "completed_partitions": stats.completed_partitions,
        "current_streak": stats.current_streak,
        "longest_streak": stats.longest_streak,
        "consistency_percentage": stats.consistency_percentage,
        "consistency_days": stats.consistency_days,
        "pages_today": stats.pages_today,
        "pages_last_7_days": stats.pages_last_7_days,
    }


def stats_from_dict(data: Dict[str, Any]) -> ProgressStats:
    return ProgressStats(
        user_id=data["user_id"],
        total_pages_read=data["total_pages_read"],
        completed_cycles=data["completed_cycles"],
        pages_into_current_cycle=data["pages_into_current_cycle"],
        completed_partitions=data["completed_partitions"],
        current_streak=data["current_streak"],
        longest_streak=data["longest_streak"],
        consistency_percentage=float(data["consistency_percentage"]),
        consistency_days=data["consistency_days"],
        pages_today=data["pages_today"],
        pages_last_7_days=data["pages_last_7_days"],
    )

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .partitions import TOTAL_PAGES


def utcnow() -> datetime:
    # Naive UTC so in-memory and SQL backends hand back identical values.
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PartitionStatus(str, Enum):
    NOT_STARTED = "not-started"
    PARTIAL = "partial"
    COMPLETED = "completed"


class OutboxOperation(str, Enum):
    CREATE_EVENT = "create_event"
    CREATE_GOAL = "create_goal"
    UPDATE_GOAL = "update_goal"


@dataclass
class User:
    id: int
    username: str
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class NewReadingEvent:
    user_id: int
    date: date
    partition_number: int
    pages_read: int
    start_page: Optional[int] = None
    end_page: Optional[int] = None


@dataclass(frozen=True)
class ReadingEvent:
    id: int
    user_id: int
    date: date
    partition_number: int
    pages_read: int
    start_page: Optional[int]
    end_page: Optional[int]
    created_at: datetime

    @property
    def has_explicit_range(self) -> bool:
        return self.start_page is not None and self.end_page is not None


@dataclass
class NewReadingGoal:
    user_id: int
    daily_target: int
    weekly_target: int
    total_pages: int = TOTAL_PAGES
    is_active: bool = True


@dataclass
class ReadingGoal:
    id: int
    user_id: int
    daily_target: int
    weekly_target: int
    total_pages: int = TOTAL_PAGES
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class PartitionProgress:
    partition_number: int
    status: PartitionStatus
    pages_read: int
    total_pages: int
    percent_complete: float

    @property
    def completed(self) -> bool:
        return self.status == PartitionStatus.COMPLETED


@dataclass
class ProgressStats:
    user_id: int
    total_pages_read: int
    completed_cycles: int
    pages_into_current_cycle: int
    completed_partitions: int
    current_streak: int
    longest_streak: int
    consistency_percentage: float
    consistency_days: int
    pages_today: int
    pages_last_7_days: int


@dataclass
class OutboxEntry:
    id: int
    operation: OutboxOperation
    payload: Dict[str, Any]
    created_at: datetime = field(default_factory=utcnow)

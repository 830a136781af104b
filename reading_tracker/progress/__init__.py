"""
Progress subsystem exports.
"""

from .engine import AggregationEngine, partition_map, summarize
from .job_queue import ReplayConfig, ReplayJobQueue, run_outbox_replay
from .errors import ProgressError, StorageFailure, TransportFailure, ValidationFailure
from .models import (
    NewReadingEvent,
    NewReadingGoal,
    OutboxEntry,
    OutboxOperation,
    PartitionProgress,
    PartitionStatus,
    ProgressStats,
    ReadingEvent,
    ReadingGoal,
    User,
)
from .partitions import TOTAL_PAGES, TOTAL_PARTITIONS, partition_range
from .remote import RemoteProgressClient
from .repository import InMemoryProgressRepository, ProgressRepository, SqlAlchemyProgressRepository
from .router import RequestRouter, RouteState
from .sample_data import seed_default_data
from .validation import validate_new_event, validate_new_goal

__all__ = [
    "AggregationEngine",
    "InMemoryProgressRepository",
    "NewReadingEvent",
    "NewReadingGoal",
    "OutboxEntry",
    "OutboxOperation",
    "PartitionProgress",
    "PartitionStatus",
    "ProgressError",
    "ProgressRepository",
    "ProgressStats",
    "ReadingEvent",
    "ReadingGoal",
    "RemoteProgressClient",
    "ReplayConfig",
    "ReplayJobQueue",
    "RequestRouter",
    "RouteState",
    "SqlAlchemyProgressRepository",
    "StorageFailure",
    "TOTAL_PAGES",
    "TOTAL_PARTITIONS",
    "TransportFailure",
    "User",
    "ValidationFailure",
    "partition_map",
    "partition_range",
    "run_outbox_replay",
    "seed_default_data",
    "summarize",
    "validate_new_event",
    "validate_new_goal",
]

from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .engine import DEFAULT_CONSISTENCY_DAYS, AggregationEngine
from .errors import TransportFailure
from .models import (
    NewReadingEvent,
    NewReadingGoal,
    OutboxEntry,
    OutboxOperation,
    PartitionProgress,
    ProgressStats,
    ReadingEvent,
    ReadingGoal,
)
from .remote import RemoteProgressClient
from .repository import ProgressRepository
from .serializers import new_event_from_dict, new_event_to_dict, new_goal_from_dict, new_goal_to_dict
from .validation import validate_new_event, validate_new_goal

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RouteState(str, Enum):
    ATTEMPT_REMOTE = "attempt_remote"
    SUCCESS = "success"
    FALLBACK_LOCAL = "fallback_local"


def _always_online() -> bool:
    return True


class RequestRouter:
    """
    Answers each call from the remote store when it can and from the local
    repository when it cannot. One remote attempt per call, no retries: if
    connectivity is known to be down the remote is skipped, otherwise any
    TransportFailure switches the same operation over to the local store.

    Writes answered locally while a remote is configured are recorded in the
    local outbox so `replay_outbox` can push them once the remote is back.
    """

    def __init__(
        self,
        local: ProgressRepository,
        remote: Optional[RemoteProgressClient] = None,
        is_online: Callable[[], bool] = _always_online,
    ):
        self.local = local
        self.remote = remote
        self.is_online = is_online
        self.engine = AggregationEngine(local)
        self.last_state: Optional[RouteState] = None

    def _route(
        self,
        name: str,
        remote_call: Callable[[RemoteProgressClient], T],
        local_call: Callable[[], T],
        outbox: Optional[Callable[[T], Any]] = None,
    ) -> T:
        if self.remote is None:
            self.last_state = RouteState.FALLBACK_LOCAL
            return local_call()
        if not self.is_online():
            logger.info("Offline, answering %s from the local store", name)
        else:
            self.last_state = RouteState.ATTEMPT_REMOTE
            try:
                result = remote_call(self.remote)
            except TransportFailure as exc:
                logger.warning("Remote %s failed (%s), falling back to the local store", name, exc)
            else:
                self.last_state = RouteState.SUCCESS
                return result
        self.last_state = RouteState.FALLBACK_LOCAL
        result = local_call()
        if outbox is not None and result is not None:
            outbox(result)
        return result

    # Reading events
    def create_event(self, event: NewReadingEvent) -> ReadingEvent:
        validate_new_event(event)
        payload = {"user_id": event.user_id, **new_event_to_dict(event)}
        return self._route(
            "create_event",
            lambda remote: remote.create_event(event),
            lambda: self.local.append_event(event),
            outbox=lambda created: self.local.enqueue_outbox(OutboxOperation.CREATE_EVENT, payload),
        )

    def list_events(self, user_id: int) -> List[ReadingEvent]:
        return self._route(
            "list_events",
            lambda remote: remote.list_events(user_id),
            lambda: self.local.list_events(user_id),
        )

    def list_recent_events(self, user_id: int, limit: int = 10) -> List[ReadingEvent]:
        return self._route(
            "list_recent_events",
            lambda remote: remote.list_recent_events(user_id, limit),
            lambda: self.local.list_recent_events(user_id, limit),
        )

    def list_events_by_date_range(self, user_id: int, start: date, end: date) -> List[ReadingEvent]:
        return self._route(
            "list_events_by_date_range",
            lambda remote: remote.list_events_by_date_range(user_id, start, end),
            lambda: self.local.list_events_by_date_range(user_id, start, end),
        )

    def list_events_by_partition(self, user_id: int, partition_number: int) -> List[ReadingEvent]:
        return self._route(
            "list_events_by_partition",
            lambda remote: remote.list_events_by_partition(user_id, partition_number),
            lambda: self.local.list_events_by_partition(user_id, partition_number),
        )

    # Analytics
    def get_stats(self, user_id: int, days: int = DEFAULT_CONSISTENCY_DAYS) -> ProgressStats:
        return self._route(
            "get_stats",
            lambda remote: remote.get_stats(user_id, days),
            lambda: self.engine.stats(user_id, days=days),
        )

    def get_partition_map(self, user_id: int) -> List[PartitionProgress]:
        return self._route(
            "get_partition_map",
            lambda remote: remote.get_partition_map(user_id),
            lambda: self.engine.partition_map(user_id),
        )

    # Goals
    def create_goal(self, goal: NewReadingGoal) -> ReadingGoal:
        validate_new_goal(goal)
        payload = {"user_id": goal.user_id, **new_goal_to_dict(goal)}
        return self._route(
            "create_goal",
            lambda remote: remote.create_goal(goal),
            lambda: self.local.create_goal(goal),
            outbox=lambda created: self.local.enqueue_outbox(
                OutboxOperation.CREATE_GOAL, {**payload, "local_goal_id": created.id}
            ),
        )

    def get_active_goal(self, user_id: int) -> Optional[ReadingGoal]:
        return self._route(
            "get_active_goal",
            lambda remote: remote.get_active_goal(user_id),
            lambda: self.local.get_active_goal(user_id),
        )

    def update_goal(
        self,
        goal_id: int,
        daily_target: Optional[int] = None,
        weekly_target: Optional[int] = None,
        total_pages: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> Optional[ReadingGoal]:
        changes: Dict[str, Any] = {
            key: value
            for key, value in (
                ("daily_target", daily_target),
                ("weekly_target", weekly_target),
                ("total_pages", total_pages),
                ("is_active", is_active),
            )
            if value is not None
        }
        return self._route(
            "update_goal",
            lambda remote: remote.update_goal(goal_id, changes),
            lambda: self.local.update_goal(goal_id, **changes),
            outbox=lambda updated: self.local.enqueue_outbox(
                OutboxOperation.UPDATE_GOAL, {"goal_id": goal_id, "user_id": updated.user_id, "changes": changes}
            ),
        )

    # Outbox replay
    def _remote_goal_id(self, entry: OutboxEntry) -> Optional[int]:
        """
        Remote id of the goal an UPDATE_GOAL entry targets, or None when the
        remote goal with that id belongs to a different user. Goals created
        offline carry the remote id recorded when their CREATE_GOAL replayed.
        """
        payload = entry.payload
        if payload.get("remote_goal_id") is not None:
            return payload["remote_goal_id"]
        remote_goal = self.remote.get_goal(payload["goal_id"])
        if remote_goal.user_id != payload.get("user_id"):
            return None
        return remote_goal.id

    def _remap_goal_updates(self, pending: List[OutboxEntry], local_goal_id: int, remote_goal_id: int) -> None:
        for entry in pending:
            if entry.operation != OutboxOperation.UPDATE_GOAL or entry.payload["goal_id"] != local_goal_id:
                continue
            if entry.payload.get("remote_goal_id") is not None:
                continue
            entry.payload = {**entry.payload, "remote_goal_id": remote_goal_id}
            self.local.update_outbox_payload(entry.id, entry.payload)

    def _replay_entry(self, entry: OutboxEntry, pending: List[OutboxEntry]) -> bool:
        payload = dict(entry.payload)
        if entry.operation == OutboxOperation.CREATE_EVENT:
            user_id = payload.pop("user_id")
            self.remote.create_event(new_event_from_dict(user_id, payload))
        elif entry.operation == OutboxOperation.CREATE_GOAL:
            user_id = payload.pop("user_id")
            local_goal_id = payload.pop("local_goal_id", None)
            created = self.remote.create_goal(new_goal_from_dict(user_id, payload))
            if local_goal_id is not None:
                self._remap_goal_updates(pending, local_goal_id, created.id)
        elif entry.operation == OutboxOperation.UPDATE_GOAL:
            goal_id = self._remote_goal_id(entry)
            if goal_id is None:
                logger.warning(
                    "Dropping outbox entry %s: remote goal %s is not owned by user %s",
                    entry.id,
                    payload["goal_id"],
                    payload.get("user_id"),
                )
                return False
            self.remote.update_goal(goal_id, payload["changes"])
        else:
            raise ValueError(f"Unknown outbox operation: {entry.operation}")
        return True

    def replay_outbox(self) -> int:
        """
        Push locally recorded writes to the remote store in the order they were
        made. Stops at the first transport failure so ordering is preserved.

        Goal updates are matched to remote goals before they are sent: a goal
        created offline is addressed by the id the remote assigned when its
        creation replayed, and any other update is sent only if the remote goal
        with that id belongs to the same user. Updates the remote cannot match
        are dropped. Returns the number of entries delivered.
        """
        if self.remote is None or not self.is_online():
            return 0
        delivered = 0
        entries = self.local.list_outbox()
        for index, entry in enumerate(entries):
            try:
                sent = self._replay_entry(entry, entries[index + 1:])
            except TransportFailure as exc:
                if entry.operation == OutboxOperation.UPDATE_GOAL and exc.status_code == 404:
                    logger.warning("Dropping outbox entry %s: remote has no goal %s", entry.id, entry.payload["goal_id"])
                    self.local.delete_outbox(entry.id)
                    continue
                logger.warning("Outbox replay stopped at entry %s: %s", entry.id, exc)
                break
            self.local.delete_outbox(entry.id)
            if sent:
                delivered += 1
        logger.info("Replayed %s outbox entries", delivered)
        return delivered

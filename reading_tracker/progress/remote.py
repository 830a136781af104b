from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from .errors import TransportFailure
from .models import NewReadingEvent, NewReadingGoal, PartitionProgress, ProgressStats, ReadingEvent, ReadingGoal
from .serializers import (
    event_from_dict,
    goal_from_dict,
    new_event_to_dict,
    new_goal_to_dict,
    partition_from_dict,
    stats_from_dict,
)

logger = logging.getLogger(__name__)


class RemoteProgressClient:
    """
    HTTP client for the progress API. Any transport error or non-2xx status
    becomes a TransportFailure; responses are decoded into the same
    dataclasses the local repository returns.

    `session` only needs a requests-style `request(method, url, params=...,
    json=..., timeout=...)` method, so a FastAPI TestClient works too.
    """

    def __init__(self, base_url: str, session=None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, params=params, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportFailure(f"{method} {path} failed: {exc}") from exc
        if not 200 <= response.status_code < 300:
            raise TransportFailure(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise TransportFailure(f"{method} {path} returned a non-JSON body") from exc

    # Reading events
    def create_event(self, event: NewReadingEvent) -> ReadingEvent:
        data = self._request("POST", f"/api/users/{event.user_id}/reading-logs", payload=new_event_to_dict(event))
        return event_from_dict(data)

    def list_events(self, user_id: int) -> List[ReadingEvent]:
        data = self._request("GET", f"/api/users/{user_id}/reading-logs")
        return [event_from_dict(item) for item in data]

    def list_recent_events(self, user_id: int, limit: int) -> List[ReadingEvent]:
        data = self._request("GET", f"/api/users/{user_id}/reading-logs/recent", params={"limit": limit})
        return [event_from_dict(item) for item in data]

    def list_events_by_date_range(self, user_id: int, start: date, end: date) -> List[ReadingEvent]:
        data = self._request(
            "GET",
            f"/api/users/{user_id}/reading-logs/range",
            params={"start": start.isoformat(), "end": end.isoformat()},
        )
        return [event_from_dict(item) for item in data]

    def list_events_by_partition(self, user_id: int, partition_number: int) -> List[ReadingEvent]:
        data = self._request("GET", f"/api/users/{user_id}/reading-logs/partition/{partition_number}")
        return [event_from_dict(item) for item in data]

    # Analytics
    def get_stats(self, user_id: int, days: int) -> ProgressStats:
        return stats_from_dict(self._request("GET", f"/api/users/{user_id}/stats", params={"days": days}))

    def get_partition_map(self, user_id: int) -> List[PartitionProgress]:
        data = self._request("GET", f"/api/users/{user_id}/partition-map")
        return [partition_from_dict(item) for item in data]

    # Goals
    def create_goal(self, goal: NewReadingGoal) -> ReadingGoal:
        data = self._request("POST", f"/api/users/{goal.user_id}/reading-goals", payload=new_goal_to_dict(goal))
        return goal_from_dict(data)

    def get_active_goal(self, user_id: int) -> Optional[ReadingGoal]:
        data = self._request("GET", f"/api/users/{user_id}/reading-goals/active")
        return goal_from_dict(data) if data else None

    def update_goal(self, goal_id: int, changes: Dict[str, Any]) -> ReadingGoal:
        return goal_from_dict(self._request("PATCH", f"/api/reading-goals/{goal_id}", payload=changes))

    def get_goal(self, goal_id: int) -> ReadingGoal:
        return goal_from_dict(self._request("GET", f"/api/reading-goals/{goal_id}"))

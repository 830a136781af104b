from __future__ import annotations

from .errors import ValidationFailure
from .models import NewReadingEvent, NewReadingGoal
from .partitions import TOTAL_PAGES, TOTAL_PARTITIONS


def _require_int(name: str, value) -> int:
    if value is None or isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailure(f"{name} must be an integer, got {value!r}")
    return value


def validate_new_event(event: NewReadingEvent) -> NewReadingEvent:
    """
    Reject malformed reading events before they reach a store. Returns the
    event unchanged so callers can chain it into `append_event`.
    """
    _require_int("user_id", event.user_id)
    if event.date is None:
        raise ValidationFailure("date is required")
    partition_number = _require_int("partition_number", event.partition_number)
    if not 1 <= partition_number <= TOTAL_PARTITIONS:
        raise ValidationFailure(f"partition_number must be between 1 and {TOTAL_PARTITIONS}, got {partition_number}")
    pages_read = _require_int("pages_read", event.pages_read)
    if pages_read < 1:
        raise ValidationFailure(f"pages_read must be at least 1, got {pages_read}")

    if (event.start_page is None) != (event.end_page is None):
        raise ValidationFailure("start_page and end_page must be given together")
    if event.start_page is not None:
        start = _require_int("start_page", event.start_page)
        end = _require_int("end_page", event.end_page)
        if not 1 <= start <= TOTAL_PAGES or not 1 <= end <= TOTAL_PAGES:
            raise ValidationFailure(f"page range must lie within 1..{TOTAL_PAGES}, got {start}..{end}")
        if end < start:
            raise ValidationFailure(f"end_page {end} is before start_page {start}")
    return event


def validate_new_goal(goal: NewReadingGoal) -> NewReadingGoal:
    _require_int("user_id", goal.user_id)
    for name in ("daily_target", "weekly_target", "total_pages"):
        value = _require_int(name, getattr(goal, name))
        if value < 1:
            raise ValidationFailure(f"{name} must be at least 1, got {value}")
    return goal

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional

from .models import NewReadingEvent, NewReadingGoal, User
from .partitions import TOTAL_PAGES, TOTAL_PARTITIONS, inferred_page_range
from .repository import ProgressRepository

logger = logging.getLogger(__name__)

DEFAULT_USERNAME = "reader"
DEFAULT_DAILY_TARGET = 5
DEFAULT_WEEKLY_TARGET = 35
HISTORY_DAYS = 30
GAP_EVERY = 5


def seed_default_data(repository: ProgressRepository, today: Optional[date] = None) -> User:
    """
    Seed the default user, an active 604/5/35 goal and a 30-day history on
    first initialization. Every fifth day is left empty so streaks break, and
    one extra event is dated today. Calling it again is a no-op that returns
    the existing default user.

    Page counts are deterministic so every backend seeds the same history.
    """
    existing = repository.get_user_by_username(DEFAULT_USERNAME)
    if existing:
        return existing

    today = today or date.today()
    user = repository.create_user(DEFAULT_USERNAME)
    repository.create_goal(
        NewReadingGoal(
            user_id=user.id,
            daily_target=DEFAULT_DAILY_TARGET,
            weekly_target=DEFAULT_WEEKLY_TARGET,
            total_pages=TOTAL_PAGES,
            is_active=True,
        )
    )

    seeded = 0
    for days_ago in range(HISTORY_DAYS, 0, -1):
        if days_ago % GAP_EVERY == 0:
            continue
        partition_number = min(days_ago // 3 + 1, TOTAL_PARTITIONS)
        pages_read = 3 + days_ago % 5
        start_page, end_page = inferred_page_range(partition_number, pages_read)
        repository.append_event(
            NewReadingEvent(
                user_id=user.id,
                date=today - timedelta(days=days_ago),
                partition_number=partition_number,
                pages_read=pages_read,
                start_page=start_page,
                end_page=end_page,
            )
        )
        seeded += 1

    repository.append_event(
        NewReadingEvent(
            user_id=user.id,
            date=today,
            partition_number=5,
            pages_read=12,
            start_page=81,
            end_page=92,
        )
    )
    seeded += 1
    logger.info("Seeded default user %s with %s reading events", user.id, seeded)
    return user

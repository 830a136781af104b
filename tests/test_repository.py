import threading
from datetime import date, timedelta

import pytest

from reading_tracker.progress import (
    AggregationEngine,
    InMemoryProgressRepository,
    NewReadingEvent,
    NewReadingGoal,
    OutboxOperation,
    SqlAlchemyProgressRepository,
    StorageFailure,
    seed_default_data,
)
from reading_tracker.progress.repository import Base

TODAY = date(2024, 3, 15)


@pytest.fixture(params=["memory", "sqlalchemy"])
def repo(request, tmp_path):
    if request.param == "memory":
        return InMemoryProgressRepository()
    return SqlAlchemyProgressRepository(f"sqlite+pysqlite:///{tmp_path / 'progress.db'}")


def event(day, partition_number=1, pages_read=2, user_id=1, start_page=None, end_page=None):
    return NewReadingEvent(
        user_id=user_id,
        date=day,
        partition_number=partition_number,
        pages_read=pages_read,
        start_page=start_page,
        end_page=end_page,
    )


def projection(events):
    return [(e.id, e.user_id, e.date, e.partition_number, e.pages_read, e.start_page, e.end_page) for e in events]


def test_append_assigns_monotonic_ids(repo):
    first = repo.append_event(event(TODAY))
    second = repo.append_event(event(TODAY - timedelta(days=3), start_page=5, end_page=6))
    assert second.id > first.id
    assert first.created_at is not None
    assert (second.start_page, second.end_page) == (5, 6)
    assert first.start_page is None and first.end_page is None


def test_append_never_merges_duplicates(repo):
    repo.append_event(event(TODAY))
    repo.append_event(event(TODAY))
    assert len(repo.list_events(1)) == 2


def test_list_orders_newest_date_first_then_newest_insert(repo):
    older = repo.append_event(event(TODAY - timedelta(days=1)))
    same_day_first = repo.append_event(event(TODAY, partition_number=2))
    same_day_second = repo.append_event(event(TODAY, partition_number=3))
    repo.append_event(event(TODAY, user_id=2))
    ids = [e.id for e in repo.list_events(1)]
    assert ids == [same_day_second.id, same_day_first.id, older.id]


def test_date_range_is_inclusive_and_ascending(repo):
    for offset in range(6):
        repo.append_event(event(TODAY - timedelta(days=offset)))
    result = repo.list_events_by_date_range(1, TODAY - timedelta(days=4), TODAY - timedelta(days=1))
    assert [e.date for e in result] == [TODAY - timedelta(days=o) for o in (4, 3, 2, 1)]


def test_by_partition_filters_and_orders(repo):
    repo.append_event(event(TODAY - timedelta(days=2), partition_number=4))
    repo.append_event(event(TODAY, partition_number=5))
    repo.append_event(event(TODAY, partition_number=4))
    result = repo.list_events_by_partition(1, 4)
    assert [e.date for e in result] == [TODAY, TODAY - timedelta(days=2)]
    assert all(e.partition_number == 4 for e in result)


def test_recent_is_prefix_of_full_list(repo):
    for offset in range(8):
        repo.append_event(event(TODAY - timedelta(days=offset % 3)))
    assert projection(repo.list_recent_events(1, 5)) == projection(repo.list_events(1))[:5]
    assert repo.list_recent_events(1, 0) == []


def test_users(repo):
    user = repo.create_user("alice")
    assert repo.get_user(user.id).username == "alice"
    assert repo.get_user_by_username("alice").id == user.id
    assert repo.get_user(999) is None
    assert repo.get_user_by_username("bob") is None


def test_second_active_goal_replaces_first(repo):
    first = repo.create_goal(NewReadingGoal(user_id=1, daily_target=5, weekly_target=35))
    other_user = repo.create_goal(NewReadingGoal(user_id=2, daily_target=1, weekly_target=7))
    second = repo.create_goal(NewReadingGoal(user_id=1, daily_target=10, weekly_target=70))
    active = repo.get_active_goal(1)
    assert active.id == second.id
    assert repo.get_goal(first.id).is_active is False
    assert repo.get_active_goal(2).id == other_user.id


def test_inactive_goal_leaves_current_goal_alone(repo):
    current = repo.create_goal(NewReadingGoal(user_id=1, daily_target=5, weekly_target=35))
    repo.create_goal(NewReadingGoal(user_id=1, daily_target=9, weekly_target=9, is_active=False))
    assert repo.get_active_goal(1).id == current.id


def test_update_goal_activation_deactivates_others(repo):
    first = repo.create_goal(NewReadingGoal(user_id=1, daily_target=5, weekly_target=35))
    second = repo.create_goal(NewReadingGoal(user_id=1, daily_target=8, weekly_target=40))
    updated = repo.update_goal(first.id, is_active=True, daily_target=6)
    assert updated.is_active is True
    assert updated.daily_target == 6
    assert updated.weekly_target == 35
    assert repo.get_goal(second.id).is_active is False
    assert repo.get_active_goal(1).id == first.id


def test_update_unknown_goal_returns_none(repo):
    assert repo.update_goal(12345, daily_target=3) is None


def test_outbox_keeps_insertion_order(repo):
    first = repo.enqueue_outbox(OutboxOperation.CREATE_EVENT, {"user_id": 1, "pages_read": 3})
    second = repo.enqueue_outbox(OutboxOperation.UPDATE_GOAL, {"goal_id": 4, "changes": {"is_active": True}})
    entries = repo.list_outbox()
    assert [e.id for e in entries] == [first.id, second.id]
    assert entries[1].operation == OutboxOperation.UPDATE_GOAL
    assert entries[1].payload == {"goal_id": 4, "changes": {"is_active": True}}
    repo.update_outbox_payload(second.id, {"goal_id": 4, "remote_goal_id": 9, "changes": {"is_active": True}})
    assert repo.list_outbox()[1].payload["remote_goal_id"] == 9
    repo.delete_outbox(first.id)
    assert [e.id for e in repo.list_outbox()] == [second.id]


def test_seed_default_data(repo):
    user = seed_default_data(repo, today=TODAY)
    events = repo.list_events(user.id)
    # 30 days minus every fifth day, plus today's event
    assert len(events) == 25
    assert events[0].date == TODAY
    assert (events[0].start_page, events[0].end_page) == (81, 92)
    assert TODAY - timedelta(days=5) not in {e.date for e in events}
    goal = repo.get_active_goal(user.id)
    assert (goal.total_pages, goal.daily_target, goal.weekly_target) == (604, 5, 35)
    assert seed_default_data(repo, today=TODAY).id == user.id
    assert len(repo.list_events(user.id)) == 25


def test_backends_seed_and_aggregate_identically(tmp_path):
    memory = InMemoryProgressRepository()
    sql = SqlAlchemyProgressRepository(f"sqlite+pysqlite:///{tmp_path / 'same.db'}")
    for backend in (memory, sql):
        user = seed_default_data(backend, today=TODAY)
        backend.append_event(event(TODAY - timedelta(days=1), partition_number=2, pages_read=30, user_id=user.id))
    assert projection(memory.list_events(1)) == projection(sql.list_events(1))
    memory_engine, sql_engine = AggregationEngine(memory), AggregationEngine(sql)
    assert memory_engine.stats(1, days=30, today=TODAY) == sql_engine.stats(1, days=30, today=TODAY)
    assert memory_engine.partition_map(1) == sql_engine.partition_map(1)


def test_sql_backend_is_durable_across_instances(tmp_path):
    url = f"sqlite+pysqlite:///{tmp_path / 'durable.db'}"
    SqlAlchemyProgressRepository(url).append_event(event(TODAY, pages_read=7))
    reopened = SqlAlchemyProgressRepository(url)
    assert [e.pages_read for e in reopened.list_events(1)] == [7]


def test_sql_backend_raises_storage_failure_without_partial_write(tmp_path):
    repo = SqlAlchemyProgressRepository(f"sqlite+pysqlite:///{tmp_path / 'broken.db'}")
    Base.metadata.tables["reading_events"].drop(repo.engine)
    with pytest.raises(StorageFailure):
        repo.append_event(event(TODAY))
    assert repo.list_outbox() == []


def test_memory_readers_tolerate_concurrent_writers():
    repo = InMemoryProgressRepository()
    repo.append_event(event(TODAY))
    repo.create_goal(NewReadingGoal(user_id=1, daily_target=5, weekly_target=35))
    done = threading.Event()
    errors = []

    def write():
        try:
            for i in range(2000):
                repo.append_event(event(TODAY, user_id=2))
                repo.create_user(f"user-{i}")
                repo.enqueue_outbox(OutboxOperation.CREATE_EVENT, {"n": i})
        finally:
            done.set()

    def read():
        try:
            while not done.is_set():
                assert len(repo.list_events(1)) == 1
                repo.list_events_by_date_range(1, TODAY, TODAY)
                repo.get_user_by_username("missing")
                repo.get_goal(1)
                repo.list_outbox()
        except Exception as exc:  # collected and asserted below
            errors.append(exc)

    threads = [threading.Thread(target=write)] + [threading.Thread(target=read) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(repo.list_events(2)) == 2000
    assert len(repo.list_outbox()) == 2000

from datetime import date, datetime, timedelta

from reading_tracker.progress import InMemoryProgressRepository, NewReadingEvent, PartitionStatus, ReadingEvent
from reading_tracker.progress.engine import (
    AggregationEngine,
    completed_cycles,
    consistency_percentage,
    current_streak,
    longest_streak,
    pages_into_current_cycle,
    partition_coverage,
    partition_map,
    summarize,
    total_pages_read,
)
from reading_tracker.progress.partitions import partition_range

TODAY = date(2024, 3, 15)


def make_event(event_id, day, partition_number, pages_read, start_page=None, end_page=None):
    return ReadingEvent(
        id=event_id,
        user_id=1,
        date=day,
        partition_number=partition_number,
        pages_read=pages_read,
        start_page=start_page,
        end_page=end_page,
        created_at=datetime(day.year, day.month, day.day, 12, 0, 0) + timedelta(seconds=event_id),
    )


def full_cycle_events(first_day):
    events = []
    for n in range(1, 31):
        start, end = partition_range(n)
        events.append(make_event(n, first_day + timedelta(days=n - 1), n, end - start + 1, start, end))
    return events


def test_empty_history_is_all_zero():
    stats = summarize(1, [], days=30, today=TODAY)
    assert stats.total_pages_read == 0
    assert stats.completed_cycles == 0
    assert stats.pages_into_current_cycle == 0
    assert stats.completed_partitions == 0
    assert stats.current_streak == 0
    assert stats.longest_streak == 0
    assert stats.consistency_percentage == 0
    partitions = partition_map([])
    assert len(partitions) == 30
    assert all(p.status == PartitionStatus.NOT_STARTED and p.pages_read == 0 for p in partitions)


def test_total_pages_count_overlaps_twice():
    events = [make_event(1, TODAY, 1, 20, 1, 20), make_event(2, TODAY, 1, 20, 1, 20)]
    assert total_pages_read(events) == 40


def test_cycle_arithmetic():
    assert completed_cycles(603) == 0
    assert completed_cycles(604) == 1
    assert completed_cycles(1300) == 2
    assert pages_into_current_cycle(1300) == 1300 - 2 * 604


def test_one_full_cycle_resets_every_partition():
    events = full_cycle_events(TODAY - timedelta(days=40))
    stats = summarize(1, events, today=TODAY)
    assert stats.completed_cycles == 1
    assert stats.pages_into_current_cycle == 0
    assert stats.completed_partitions == 0
    assert all(p.status == PartitionStatus.NOT_STARTED for p in partition_map(events))


def test_reading_after_a_cycle_only_credits_the_new_cycle():
    events = full_cycle_events(TODAY - timedelta(days=40))
    events.append(make_event(99, TODAY, 1, 10, 1, 10))
    partitions = partition_map(events)
    assert partitions[0].status == PartitionStatus.PARTIAL
    assert partitions[0].pages_read == 10
    assert all(p.status == PartitionStatus.NOT_STARTED for p in partitions[1:])


def test_event_straddling_cycle_boundary_contributes_trailing_pages():
    events = [
        make_event(1, TODAY - timedelta(days=2), 30, 600, 1, 600),
        make_event(2, TODAY, 1, 10, 1, 10),
    ]
    coverage = partition_coverage(events)
    # 610 pages read, 6 of them in the new cycle: pages 5..10 of the last event
    assert coverage[1] == 6
    assert sum(coverage.values()) == 6


def test_full_overlap_is_clamped_to_partition_size():
    events = [make_event(1, TODAY, 1, 20, 1, 20), make_event(2, TODAY, 1, 20, 1, 20)]
    assert partition_coverage(events)[1] == 40
    first = partition_map(events)[0]
    assert first.pages_read == 20
    assert first.total_pages == 20
    assert first.status == PartitionStatus.COMPLETED
    assert first.percent_complete == 100.0


def test_missing_range_is_inferred_from_partition_and_count():
    partitions = partition_map([make_event(1, TODAY, 3, 5)])
    assert partitions[2].pages_read == 5
    assert partitions[2].status == PartitionStatus.PARTIAL
    assert partitions[2].percent_complete == 25.0
    assert partitions[1].status == PartitionStatus.NOT_STARTED


def test_explicit_range_spanning_partitions_splits_coverage():
    partitions = partition_map([make_event(1, TODAY, 1, 16, 15, 30)])
    assert partitions[0].pages_read == 6
    assert partitions[1].pages_read == 10
    assert partitions[1].percent_complete == 50.0


def test_last_partition_percent_uses_its_own_size():
    partitions = partition_map([make_event(1, TODAY, 30, 8, 581, 588)])
    assert partitions[29].total_pages == 24
    assert partitions[29].percent_complete == 33.3


def test_current_streak_stops_at_first_gap():
    events = [make_event(i, TODAY - timedelta(days=offset), 1, 1) for i, offset in enumerate([0, 1, 2, 4, 5], 1)]
    assert current_streak(events, today=TODAY) == 3


def test_current_streak_is_zero_without_reading_today():
    events = [make_event(1, TODAY - timedelta(days=1), 1, 1)]
    assert current_streak(events, today=TODAY) == 0


def test_longest_streak_finds_best_run():
    offsets = [0, 1, 3, 4, 5, 6, 10]
    events = [make_event(i, TODAY - timedelta(days=o), 1, 1) for i, o in enumerate(offsets, 1)]
    events.append(make_event(50, TODAY - timedelta(days=4), 2, 3))
    assert longest_streak(events) == 4


def test_longest_streak_single_day_is_one():
    assert longest_streak([make_event(1, TODAY, 1, 1)]) == 1


def test_consistency_counts_distinct_days_in_window():
    offsets = [0, 0, 2, 5, 9, 10]
    events = [make_event(i, TODAY - timedelta(days=o), 1, 1) for i, o in enumerate(offsets, 1)]
    # offsets 0, 2, 5, 9 fall inside a 10-day window ending today
    assert consistency_percentage(events, days=10, today=TODAY) == 40.0
    assert consistency_percentage(events, days=3, today=TODAY) == 66.7
    assert consistency_percentage(events, days=0, today=TODAY) == 0.0


def test_summary_reports_recent_page_counts():
    events = [
        make_event(1, TODAY, 1, 4),
        make_event(2, TODAY, 1, 3),
        make_event(3, TODAY - timedelta(days=6), 2, 5),
        make_event(4, TODAY - timedelta(days=7), 3, 9),
    ]
    stats = summarize(7, events, days=30, today=TODAY)
    assert stats.user_id == 7
    assert stats.pages_today == 7
    assert stats.pages_last_7_days == 12
    assert stats.total_pages_read == 21


def test_aggregation_engine_reads_through_repository():
    repo = InMemoryProgressRepository()
    repo.append_event(NewReadingEvent(user_id=1, date=TODAY, partition_number=1, pages_read=20, start_page=1, end_page=20))
    repo.append_event(NewReadingEvent(user_id=2, date=TODAY, partition_number=2, pages_read=3))
    engine = AggregationEngine(repo)
    stats = engine.stats(1, days=7, today=TODAY)
    assert stats.total_pages_read == 20
    assert stats.completed_partitions == 1
    assert stats.current_streak == 1
    assert engine.partition_map(2)[1].pages_read == 3

from __future__ import annotations

from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .models import PartitionProgress, PartitionStatus, ProgressStats, ReadingEvent
from .partitions import TOTAL_PAGES, TOTAL_PARTITIONS, all_partition_ranges, inferred_page_range, partition_size
from .repository import ProgressRepository

STREAK_SEARCH_DAYS = 366
DEFAULT_CONSISTENCY_DAYS = 30


def total_pages_read(events: Iterable[ReadingEvent]) -> int:
    # Overlapping ranges are not deduplicated; every event counts in full.
    return sum(e.pages_read for e in events)


def completed_cycles(total_pages: int, document_pages: int = TOTAL_PAGES) -> int:
    return total_pages // document_pages


def pages_into_current_cycle(total_pages: int, document_pages: int = TOTAL_PAGES) -> int:
    return total_pages - completed_cycles(total_pages, document_pages) * document_pages


def event_page_range(event: ReadingEvent) -> Tuple[int, int]:
    if event.has_explicit_range:
        return event.start_page, event.end_page
    return inferred_page_range(event.partition_number, event.pages_read)


def _chronological(events: Iterable[ReadingEvent]) -> List[ReadingEvent]:
    return sorted(events, key=lambda e: (e.date, e.created_at, e.id))


def _overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> int:
    return max(0, min(a_end, b_end) - max(a_start, b_start) + 1)


def partition_coverage(events: Sequence[ReadingEvent], document_pages: int = TOTAL_PAGES) -> Dict[int, int]:
    """
    Raw page coverage per partition for the current cycle.

    Events are replayed in chronological order against a running page count.
    Events that finish at or before the last completed cycle boundary are
    ignored; an event straddling the boundary contributes only its trailing
    pages. Overlap is summed, not deduplicated, so the result may exceed a
    partition's size.
    """
    coverage = {n: 0 for n in range(1, TOTAL_PARTITIONS + 1)}
    total = total_pages_read(events)
    in_cycle = pages_into_current_cycle(total, document_pages)
    if in_cycle == 0:
        return coverage

    cycle_start = total - in_cycle
    running = 0
    for event in _chronological(events):
        before = running
        running += event.pages_read
        if running <= cycle_start:
            continue
        start, end = event_page_range(event)
        credited = running - max(before, cycle_start)
        if credited < event.pages_read:
            start = max(start, end - credited + 1)
        for partition_number, (p_start, p_end) in enumerate(all_partition_ranges(), 1):
            coverage[partition_number] += _overlap(start, end, p_start, p_end)
    return coverage


def _partition_progress(partition_number: int, accumulated: int) -> PartitionProgress:
    size = partition_size(partition_number)
    pages = min(int(round(accumulated)), size)
    if pages >= size:
        status = PartitionStatus.COMPLETED
    elif pages > 0:
        status = PartitionStatus.PARTIAL
    else:
        status = PartitionStatus.NOT_STARTED
    return PartitionProgress(
        partition_number=partition_number,
        status=status,
        pages_read=pages,
        total_pages=size,
        percent_complete=round(pages / size * 100, 1),
    )


def partition_map(events: Sequence[ReadingEvent], document_pages: int = TOTAL_PAGES) -> List[PartitionProgress]:
    coverage = partition_coverage(events, document_pages)
    return [_partition_progress(n, coverage[n]) for n in range(1, TOTAL_PARTITIONS + 1)]


def _active_dates(events: Iterable[ReadingEvent]) -> Set[date]:
    return {e.date for e in events}


def current_streak(events: Iterable[ReadingEvent], today: Optional[date] = None) -> int:
    """Consecutive days with activity, counting back from today."""
    today = today or date.today()
    dates = _active_dates(events)
    streak = 0
    for offset in range(STREAK_SEARCH_DAYS):
        if today - timedelta(days=offset) not in dates:
            break
        streak += 1
    return streak


def longest_streak(events: Iterable[ReadingEvent]) -> int:
    dates = sorted(_active_dates(events))
    if not dates:
        return 0
    longest = run = 1
    for previous, current in zip(dates, dates[1:]):
        if (current - previous).days == 1:
            run += 1
        else:
            run = 1
        longest = max(longest, run)
    return longest


def consistency_percentage(
    events: Iterable[ReadingEvent],
    days: int = DEFAULT_CONSISTENCY_DAYS,
    today: Optional[date] = None,
) -> float:
    """
    Share of the trailing `days` calendar days (today included) with at least
    one event, rounded to one decimal place.
    """
    if days <= 0:
        return 0.0
    today = today or date.today()
    window_start = today - timedelta(days=days - 1)
    active = {d for d in _active_dates(events) if window_start <= d <= today}
    return round(len(active) / days * 100, 1)


def pages_between(events: Iterable[ReadingEvent], start: date, end: date) -> int:
    return sum(e.pages_read for e in events if start <= e.date <= end)


def summarize(
    user_id: int,
    events: Sequence[ReadingEvent],
    days: int = DEFAULT_CONSISTENCY_DAYS,
    today: Optional[date] = None,
    document_pages: int = TOTAL_PAGES,
) -> ProgressStats:
    today = today or date.today()
    total = total_pages_read(events)
    partitions = partition_map(events, document_pages)
    return ProgressStats(
        user_id=user_id,
        total_pages_read=total,
        completed_cycles=completed_cycles(total, document_pages),
        pages_into_current_cycle=pages_into_current_cycle(total, document_pages),
        completed_partitions=sum(1 for p in partitions if p.completed),
        current_streak=current_streak(events, today),
        longest_streak=longest_streak(events),
        consistency_percentage=consistency_percentage(events, days, today),
        consistency_days=days,
        pages_today=pages_between(events, today, today),
        pages_last_7_days=pages_between(events, today - timedelta(days=6), today),
    )


class AggregationEngine:
    """
    Computes progress analytics from whatever repository answers
    `list_events`. It holds no state of its own, so the same numbers come out
    regardless of which backend stored the events.
    """

    def __init__(self, repository: ProgressRepository, document_pages: int = TOTAL_PAGES):
        self.repo = repository
        self.document_pages = document_pages

    def stats(self, user_id: int, days: int = DEFAULT_CONSISTENCY_DAYS, today: Optional[date] = None) -> ProgressStats:
        events = self.repo.list_events(user_id)
        return summarize(user_id, events, days=days, today=today, document_pages=self.document_pages)

    def partition_map(self, user_id: int) -> List[PartitionProgress]:
        return partition_map(self.repo.list_events(user_id), self.document_pages)

from __future__ import annotations

from typing import List, Tuple

TOTAL_PAGES = 604
TOTAL_PARTITIONS = 30
PAGES_PER_PARTITION = 20


def partition_range(partition_number: int) -> Tuple[int, int]:
    """
    Absolute inclusive page range of a partition. Partitions are 20 pages
    wide; the last one absorbs the remainder up to TOTAL_PAGES.
    """
    if not 1 <= partition_number <= TOTAL_PARTITIONS:
        raise ValueError(f"Partition number must be between 1 and {TOTAL_PARTITIONS}: {partition_number}")
    start = (partition_number - 1) * PAGES_PER_PARTITION + 1
    if partition_number == TOTAL_PARTITIONS:
        return start, TOTAL_PAGES
    return start, start + PAGES_PER_PARTITION - 1


def partition_size(partition_number: int) -> int:
    start, end = partition_range(partition_number)
    return end - start + 1


def all_partition_ranges() -> List[Tuple[int, int]]:
    return [partition_range(n) for n in range(1, TOTAL_PARTITIONS + 1)]


def inferred_page_range(partition_number: int, pages_read: int) -> Tuple[int, int]:
    """
    Page range assumed for an event that only recorded a page count: it starts
    at the fixed-width 20-page offset of the partition and covers
    `pages_read` consecutive pages.
    """
    start = (partition_number - 1) * PAGES_PER_PARTITION + 1
    return start, start + pages_read - 1

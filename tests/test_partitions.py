import pytest

from reading_tracker.progress.partitions import (
    TOTAL_PAGES,
    TOTAL_PARTITIONS,
    all_partition_ranges,
    inferred_page_range,
    partition_range,
    partition_size,
)


def test_ranges_are_contiguous_and_exhaustive():
    ranges = all_partition_ranges()
    assert len(ranges) == TOTAL_PARTITIONS
    assert ranges[0][0] == 1
    assert ranges[-1][1] == TOTAL_PAGES
    for (_, prev_end), (next_start, _) in zip(ranges, ranges[1:]):
        assert prev_end + 1 == next_start
    assert sum(end - start + 1 for start, end in ranges) == 604


def test_first_and_last_partition_bounds():
    assert partition_range(1) == (1, 20)
    assert partition_range(2) == (21, 40)
    assert partition_range(29) == (561, 580)
    assert partition_range(30) == (581, 604)
    assert partition_size(30) == 24


@pytest.mark.parametrize("partition_number", [0, 31, -1])
def test_partition_range_rejects_unknown_partitions(partition_number):
    with pytest.raises(ValueError):
        partition_range(partition_number)


def test_partition_sizes_follow_ranges():
    for n, (start, end) in enumerate(all_partition_ranges(), 1):
        assert partition_size(n) == end - start + 1
    assert [partition_size(n) for n in range(1, TOTAL_PARTITIONS)] == [20] * 29


def test_inferred_range_uses_fixed_width_offsets():
    assert inferred_page_range(1, 5) == (1, 5)
    assert inferred_page_range(3, 20) == (41, 60)

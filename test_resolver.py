"""
test_resolver.py — pytest suite for epoch_sim.resolver
======================================================
Covers: group ranges, logical sizes, index resolution (ungrouped, grouped,
infinite absorption, exhaustion), segment starts, and completion counts.
"""

import math

from epoch_sim.models import QueueEntry, REPEAT_FOREVER, ResolvedPosition, Segment
from epoch_sim.resolver import (
    count_completions, find_segment_at, get_all_group_ranges, get_group_range,
    get_queue_logical_size, has_infinite_repeat, iter_segments,
    logical_start_of_entry, logical_start_of_segment, resolve_logical_index,
)


# ─────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────

def _e(n, action, repeat=1, gid=None, grepeat=None):
    return QueueEntry(f'q_{n}', action, repeat, gid, grepeat)


# [A×2] [B×1, C×2](×3) [D×∞]
MIXED = [
    _e(1, 'farm', 2),
    _e(2, 'gather_wood', 1, 'g_1', 3),
    _e(3, 'train_militia', 2, 'g_1', 3),
    _e(4, 'scout', REPEAT_FOREVER),
]

FINITE = [_e(1, 'farm', 2), _e(2, 'gather_wood', 1)]


def _actions(queue, n):
    return [queue[resolve_logical_index(queue, i).array_index].action_id for i in range(n)]


# ─────────────────────────────────────────────────────
# Structure
# ─────────────────────────────────────────────────────

class TestGroupRange:
    def test_ungrouped_entry_has_no_range(self):
        assert get_group_range(MIXED, 0) is None

    def test_range_found_from_any_member(self):
        first = get_group_range(MIXED, 1)
        last  = get_group_range(MIXED, 2)
        assert first == last
        assert (first.start_idx, first.end_idx) == (1, 3)
        assert first.group_repeat == 3
        assert first.iteration_size == 3

    def test_out_of_bounds_index(self):
        assert get_group_range(MIXED, 10) is None
        assert get_group_range(MIXED, -1) is None

    def test_infinite_member_counts_once_per_iteration(self):
        queue = [_e(1, 'farm', REPEAT_FOREVER, 'g_1', 2), _e(2, 'scout', 2, 'g_1', 2)]
        assert get_group_range(queue, 0).iteration_size == 3

    def test_segments_cover_queue(self):
        assert list(iter_segments(MIXED)) == [
            Segment(0, 1), Segment(1, 3, 'g_1'), Segment(3, 4)]

    def test_all_group_ranges(self):
        ranges = get_all_group_ranges(MIXED)
        assert list(ranges) == ['g_1']
        assert ranges['g_1'].start_idx == 1


# ─────────────────────────────────────────────────────
# Sizes
# ─────────────────────────────────────────────────────

class TestLogicalSize:
    def test_finite_queue_size(self):
        assert get_queue_logical_size(FINITE) == 3
        assert not has_infinite_repeat(FINITE)

    def test_infinite_entry_makes_size_unbounded(self):
        assert get_queue_logical_size(MIXED) == math.inf
        assert has_infinite_repeat(MIXED)

    def test_group_size_is_iteration_times_repeat(self):
        queue = MIXED[1:3]
        assert get_queue_logical_size(queue) == 9

    def test_empty_queue(self):
        assert get_queue_logical_size([]) == 0
        assert resolve_logical_index([], 0) is None


# ─────────────────────────────────────────────────────
# Resolution
# ─────────────────────────────────────────────────────

class TestResolveLogicalIndex:
    def test_ungrouped_repeats(self):
        assert resolve_logical_index(MIXED, 0) == ResolvedPosition(0, 0, 0)
        assert resolve_logical_index(MIXED, 1) == ResolvedPosition(0, 0, 1)

    def test_boundary_belongs_to_next_entry(self):
        assert resolve_logical_index(MIXED, 2).array_index == 1

    def test_group_iterations(self):
        # offset 3 inside the group: second iteration, first member
        assert resolve_logical_index(MIXED, 5) == ResolvedPosition(1, 1, 0)
        # offset 5: second iteration, second repeat of the second member
        assert resolve_logical_index(MIXED, 7) == ResolvedPosition(2, 1, 1)

    def test_group_repeat_expansion_order(self):
        queue = [_e(1, 'farm', 2, 'g_1', 3), _e(2, 'gather_wood', 1, 'g_1', 3)]
        assert _actions(queue, 9) == ['farm', 'farm', 'gather_wood'] * 3
        assert resolve_logical_index(queue, 9) is None

    def test_infinite_entry_absorbs_everything(self):
        for i in (11, 12, 500, 10 ** 9):
            assert resolve_logical_index(MIXED, i).array_index == 3

    def test_infinite_group_absorbs_overflow(self):
        queue = [_e(1, 'farm'),
                 _e(2, 'gather_wood', 1, 'g_1', REPEAT_FOREVER),
                 _e(3, 'scout', 1, 'g_1', REPEAT_FOREVER),
                 _e(4, 'train_militia')]
        resolved = resolve_logical_index(queue, 1001)
        assert resolved.array_index in (1, 2)
        assert resolved.group_iteration == 500

    def test_exhausted_finite_queue_returns_none(self):
        assert resolve_logical_index(FINITE, 2).array_index == 1
        assert resolve_logical_index(FINITE, 3) is None
        assert resolve_logical_index(FINITE, 50) is None

    def test_negative_index(self):
        assert resolve_logical_index(FINITE, -1) is None

    def test_zero_repeat_entry_is_skipped(self):
        queue = [_e(1, 'farm', 0), _e(2, 'scout', 1)]
        assert resolve_logical_index(queue, 0).array_index == 1

    def test_round_trip_with_entry_start(self):
        for i in range(12):
            resolved = resolve_logical_index(MIXED, i)
            start    = logical_start_of_entry(MIXED, resolved.array_index)
            rng      = get_group_range(MIXED, resolved.array_index)
            per_iter = rng.iteration_size if rng else 0
            assert start + resolved.group_iteration * per_iter + resolved.repeat_within_entry == i


class TestSegmentLookup:
    def test_find_segment_at(self):
        assert find_segment_at(MIXED, 0) == Segment(0, 1)
        assert find_segment_at(MIXED, 6) == Segment(1, 3, 'g_1')
        assert find_segment_at(FINITE, 3) is None

    def test_logical_start_of_segment(self):
        assert logical_start_of_segment(MIXED, 0) == 0
        assert logical_start_of_segment(MIXED, 2) == 2
        assert logical_start_of_segment(MIXED, 3) == 11

    def test_logical_start_of_entry_inside_group(self):
        assert logical_start_of_entry(MIXED, 1) == 2
        assert logical_start_of_entry(MIXED, 2) == 3


# ─────────────────────────────────────────────────────
# Completion counts
# ─────────────────────────────────────────────────────

class TestCountCompletions:
    def test_nothing_done_at_start(self):
        assert count_completions(MIXED, 0) == [0, 0, 0, 0]

    def test_partial_group_iteration(self):
        # A A | B C C | B  → index 6
        assert count_completions(MIXED, 6) == [2, 2, 2, 0]

    def test_overflow_goes_to_infinite_entry(self):
        assert count_completions(MIXED, 15) == [2, 3, 6, 4]

    def test_overflow_past_finite_queue(self):
        assert count_completions(FINITE, 5) == [2, 1]
        assert count_completions(FINITE, 5, repeat_last_action=True) == [2, 3]

    def test_empty_group_is_skipped(self):
        queue = [QueueEntry('q_1', 'farm', 0, 'g_1', 2), QueueEntry('q_2', 'scout', 2)]
        assert count_completions(queue, 1) == [0, 1]
        assert count_completions(queue, 3) == [0, 2]
        assert resolve_logical_index(queue, 1).array_index == 1

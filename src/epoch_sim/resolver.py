# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
resolver.py — Maps a logical action-tick index onto a queue position.

The queue is a flat list of QueueEntry.  Adjacent entries sharing a group_id
form a group that cycles through all its members group_repeat times before
the queue moves on.  The "logical index" counts action completions since the
queue started; it only ever grows.

Layout of logical space for  [A×2] [B×1, C×2](×3) [D×∞]

    0 1 | 2 3 4  5 6 7  8 9 10 | 11 12 13 …
    A A | B C C  B C C  B C C  | D  D  D  …

Every scan over the queue in this project goes through this module; no other
module walks logical space itself.

Conventions
───────────
  REPEAT_FOREVER on an ungrouped entry, or as a group's group_repeat,
  absorbs every logical index from its start onwards.
  Entries (or group members) with a repeat of 0 contribute nothing; a group
  whose members sum to 0 is skipped entirely.
  Boundaries belong to the next entry: entry k covers [pos, pos + repeat).
"""

import math
from typing import Iterator, Optional

from .models import (
    GroupRange, QueueEntry, REPEAT_FOREVER, ResolvedPosition, Segment,
)


def _member_repeat(entry: QueueEntry) -> int:
    """A group member's per-iteration share (infinite members count once)."""
    if entry.repeat == REPEAT_FOREVER:
        return 1
    return max(0, entry.repeat)


def _group_repeat(entry: QueueEntry) -> int:
    if entry.group_repeat is None:
        return 1
    if entry.group_repeat == REPEAT_FOREVER:
        return REPEAT_FOREVER
    return max(0, entry.group_repeat)


# ══════════════════════════════════════════════════════════════════════════
# Structure
# ══════════════════════════════════════════════════════════════════════════

def get_group_range(queue: list, member_index: int) -> Optional[GroupRange]:
    """Contiguous span sharing queue[member_index]'s group_id, or None if ungrouped."""
    if member_index < 0 or member_index >= len(queue):
        return None
    gid = queue[member_index].group_id
    if gid is None:
        return None
    start = member_index
    while start > 0 and queue[start - 1].group_id == gid:
        start -= 1
    end = member_index + 1
    while end < len(queue) and queue[end].group_id == gid:
        end += 1
    return GroupRange(
        start_idx=start,
        end_idx=end,
        group_repeat=_group_repeat(queue[start]),
        iteration_size=sum(_member_repeat(e) for e in queue[start:end]),
    )


def iter_segments(queue: list) -> Iterator[Segment]:
    """Yield top-level blocks left to right: single entries and whole groups."""
    i = 0
    while i < len(queue):
        gid = queue[i].group_id
        if gid is None:
            yield Segment(i, i + 1)
            i += 1
            continue
        j = i + 1
        while j < len(queue) and queue[j].group_id == gid:
            j += 1
        yield Segment(i, j, gid)
        i = j


def get_all_group_ranges(queue: list) -> dict:
    """group_id → GroupRange for every group in the queue."""
    return {seg.group_id: get_group_range(queue, seg.start_idx)
            for seg in iter_segments(queue) if seg.group_id is not None}


# ══════════════════════════════════════════════════════════════════════════
# Sizes
# ══════════════════════════════════════════════════════════════════════════

def segment_logical_size(queue: list, segment: Segment) -> float:
    """Action ticks this block contributes (math.inf if it never ends)."""
    first = queue[segment.start_idx]
    if segment.group_id is None:
        if first.repeat == REPEAT_FOREVER:
            return math.inf
        return max(0, first.repeat)
    rng = get_group_range(queue, segment.start_idx)
    if rng.iteration_size == 0:
        return 0
    if rng.group_repeat == REPEAT_FOREVER:
        return math.inf
    return rng.iteration_size * rng.group_repeat


def get_queue_logical_size(queue: list) -> float:
    """Total action ticks in the queue; math.inf when any block repeats forever.

    Check has_infinite_repeat() first where a finite number is required.
    """
    total = 0
    for seg in iter_segments(queue):
        size = segment_logical_size(queue, seg)
        if size == math.inf:
            return math.inf
        total += size
    return total


def has_infinite_repeat(queue: list) -> bool:
    return any(segment_logical_size(queue, seg) == math.inf
               for seg in iter_segments(queue))


# ══════════════════════════════════════════════════════════════════════════
# Resolution
# ══════════════════════════════════════════════════════════════════════════

def resolve_logical_index(queue: list, logical_index: int) -> Optional[ResolvedPosition]:
    """Which array slot is active at *logical_index*, or None once the queue is exhausted."""
    if logical_index < 0:
        return None
    pos = 0
    for seg in iter_segments(queue):
        size = segment_logical_size(queue, seg)
        if logical_index >= pos + size:
            pos += size
            continue
        offset = logical_index - pos
        if seg.group_id is None:
            return ResolvedPosition(seg.start_idx, 0, offset)
        rng = get_group_range(queue, seg.start_idx)
        iteration, within = divmod(offset, rng.iteration_size)
        for k in range(rng.start_idx, rng.end_idx):
            share = _member_repeat(queue[k])
            if within < share:
                return ResolvedPosition(k, iteration, within)
            within -= share
    return None


def find_segment_at(queue: list, logical_index: int) -> Optional[Segment]:
    """The top-level block containing *logical_index*, or None past the end."""
    resolved = resolve_logical_index(queue, logical_index)
    if resolved is None:
        return None
    return _segment_of(queue, resolved.array_index)


def _segment_of(queue: list, array_index: int) -> Segment:
    rng = get_group_range(queue, array_index)
    if rng is None:
        return Segment(array_index, array_index + 1)
    return Segment(rng.start_idx, rng.end_idx, queue[array_index].group_id)


def logical_start_of_segment(queue: list, array_index: int) -> float:
    """Logical index where the block holding queue[array_index] begins."""
    target = _segment_of(queue, array_index)
    pos = 0
    for seg in iter_segments(queue):
        if seg.start_idx == target.start_idx:
            return pos
        pos += segment_logical_size(queue, seg)
    return pos


def logical_start_of_entry(queue: list, array_index: int) -> float:
    """Logical index of the entry's first repeat (first group iteration)."""
    pos = logical_start_of_segment(queue, array_index)
    rng = get_group_range(queue, array_index)
    if rng is not None:
        pos += sum(_member_repeat(e) for e in queue[rng.start_idx:array_index])
    return pos


def count_completions(queue: list, logical_index: int,
                      repeat_last_action: bool = False) -> list:
    """Per array slot, how many of its repeats had finished by *logical_index*.

    Overflow past a finite queue is credited to the last slot when
    *repeat_last_action* is set, mirroring how the engine keeps running it.
    """
    done      = [0] * len(queue)
    remaining = max(0, logical_index)
    for seg in iter_segments(queue):
        if remaining <= 0:
            break
        size     = segment_logical_size(queue, seg)
        if size == 0:
            continue
        consumed = min(size, remaining)
        if seg.group_id is None:
            done[seg.start_idx] += consumed
        else:
            rng = get_group_range(queue, seg.start_idx)
            full, partial = divmod(consumed, rng.iteration_size)
            for k in range(rng.start_idx, rng.end_idx):
                share = _member_repeat(queue[k])
                done[k] += full * share + min(share, max(0, partial))
                partial -= share
        remaining -= consumed
    if remaining > 0 and repeat_last_action and queue:
        done[-1] += remaining
    return [int(n) for n in done]

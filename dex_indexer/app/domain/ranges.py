from __future__ import annotations

from typing import Iterable, Sequence

Interval = tuple[int, int]


def _require_int(name: str, value: object) -> None:
    # bool is an int subclass but never a valid block number
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")


def is_in_range(value: int, from_block: int, to_block: int) -> bool:
    """Inclusive on both ends."""
    return from_block <= value <= to_block


def split(from_block: int, to_block: int, max_size: int) -> list[Interval]:
    """
    Partition [from_block, to_block] into consecutive chunks of at most max_size.

    Chunks share their boundaries (chunk[i].to == chunk[i + 1].from) and the
    last chunk absorbs the remainder:

        split(0, 101, 50) -> [(0, 50), (50, 100), (100, 101)]
    """
    _require_int("from_block", from_block)
    _require_int("to_block", to_block)
    _require_int("max_size", max_size)
    if to_block < from_block:
        raise ValueError(f"Invalid range: to_block ({to_block}) < from_block ({from_block})")
    if max_size < 1:
        raise ValueError(f"max_size must be positive, got {max_size}")

    out: list[Interval] = []
    start, end = from_block, from_block + max_size
    while to_block - end > 0:
        out.append((start, end))
        start, end = end, end + max_size
    out.append((start, to_block))
    return out


def merge(intervals: Iterable[Sequence[int]]) -> list[Interval]:
    """
    Coalesce intervals into a sorted, non-overlapping list.

    Touching intervals merge: [(10, 20), (20, 30)] -> [(10, 30)].
    """
    widest: dict[int, int] = {}
    for start, end in intervals:
        if start not in widest or widest[start] < end:
            widest[start] = end
    if not widest:
        return []

    ordered = sorted(widest.items())
    out: list[Interval] = []
    start, end = ordered[0]
    for s, e in ordered[1:]:
        if s <= end:
            end = max(end, e)
        else:
            out.append((start, end))
            start, end = s, e
    out.append((start, end))
    return out


def gaps(
    from_block: int,
    to_block: int,
    max_size: int,
    covered: Iterable[Sequence[int]],
) -> list[Interval]:
    """
    Return the uncovered parts of [from_block, to_block], each at most max_size long.

    `covered` does not need to be merged or clipped to the bound. A zero-length
    covered interval covers nothing but still splits the surrounding gap:

        gaps(0, 200, 300, [(1, 1)]) -> [(0, 1), (1, 200)]
    """
    relevant = [(s, e) for s, e in covered if e >= from_block and s <= to_block]
    if not relevant:
        return split(from_block, to_block, max_size)
    if max_size < 1:
        raise ValueError(f"max_size must be positive, got {max_size}")

    merged = merge(relevant)
    out: list[Interval] = []
    cursor = from_block
    idx = 0
    while True:
        if idx < len(merged):
            cov_start, cov_end = merged[idx]
            if cov_start <= cursor:
                cursor = max(cursor, cov_end)
                idx += 1
                continue
            end = min(cursor + max_size, cov_start)
        else:
            end = cursor + max_size

        if end >= to_block:
            if cursor < to_block:
                out.append((cursor, to_block))
            break

        out.append((cursor, end))
        cursor = end

    return out


def intersect(a: Sequence[Interval], b: Sequence[Interval]) -> list[Interval]:
    """Intersection of two merged interval lists. Single-point overlaps are dropped."""
    out: list[Interval] = []
    i = j = 0
    while i < len(a) and j < len(b):
        lo = max(a[i][0], b[j][0])
        hi = min(a[i][1], b[j][1])
        if lo < hi:
            out.append((lo, hi))
        if a[i][1] < b[j][1]:
            i += 1
        else:
            j += 1
    return out


def lowest_denominator_gaps(
    from_block: int,
    to_block: int,
    max_size: int,
    covered_per_track: Iterable[Iterable[Sequence[int]]],
) -> list[Interval]:
    """
    Gaps that are still uncovered on at least one track.

    A sub-range only counts as covered when every track covers it, so the
    effective coverage is the intersection of all tracks.
    """
    common: list[Interval] | None = None
    for track in covered_per_track:
        merged = merge(track)
        common = merged if common is None else intersect(common, merged)
        if not common:
            break

    return gaps(from_block, to_block, max_size, common or [])

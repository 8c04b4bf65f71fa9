import pytest

from dex_indexer.app.domain.ranges import (
    gaps,
    intersect,
    is_in_range,
    lowest_denominator_gaps,
    merge,
    split,
)


class TestSplit:
    @pytest.mark.parametrize(
        ("from_block", "to_block", "max_size", "expected"),
        [
            (0, 100, 50, [(0, 50), (50, 100)]),
            (0, 101, 50, [(0, 50), (50, 100), (100, 101)]),
            (0, 100, 200, [(0, 100)]),
            (0, 2, 200, [(0, 2)]),
            (7, 7, 5, [(7, 7)]),
        ],
    )
    def test_examples(self, from_block, to_block, max_size, expected):
        assert split(from_block, to_block, max_size) == expected

    def test_chunks_are_contiguous_and_bounded(self):
        chunks = split(6809737, 9809737, 15000)
        assert chunks[0][0] == 6809737
        assert chunks[-1][1] == 9809737
        for (_, end), (start, _) in zip(chunks, chunks[1:]):
            assert end == start
        assert all(0 <= t - f <= 15000 for f, t in chunks)

    @pytest.mark.parametrize(
        ("from_block", "to_block", "max_size"),
        [
            (10, 5, 1),
            (0, 10, 0),
            (0, 10, -5),
            (0.5, 10, 1),
            (0, "10", 1),
            (0, 10, True),
        ],
    )
    def test_invalid_input(self, from_block, to_block, max_size):
        with pytest.raises(ValueError):
            split(from_block, to_block, max_size)


class TestMerge:
    def test_touching_intervals_coalesce(self):
        assert merge([(10, 20), (20, 30), (40, 50)]) == [(10, 30), (40, 50)]

    def test_overlapping_intervals_coalesce(self):
        assert merge([(10, 20), (15, 25), (40, 50)]) == [(10, 25), (40, 50)]

    def test_unsorted_and_duplicate_starts(self):
        assert merge([(40, 50), (10, 12), (10, 20), (5, 6)]) == [(5, 6), (10, 20), (40, 50)]

    def test_empty(self):
        assert merge([]) == []

    def test_nested(self):
        assert merge([(0, 100), (10, 20), (30, 40)]) == [(0, 100)]


class TestGaps:
    @pytest.mark.parametrize(
        ("from_block", "to_block", "max_size", "covered", "expected"),
        [
            (0, 100, 50, [], [(0, 50), (50, 100)]),
            (
                0,
                200,
                50,
                [(10, 20), (90, 100), (160, 170)],
                [(0, 10), (20, 70), (70, 90), (100, 150), (150, 160), (170, 200)],
            ),
            (
                0,
                200,
                50,
                [(0, 20), (90, 100), (160, 200)],
                [(20, 70), (70, 90), (100, 150), (150, 160)],
            ),
            (0, 200, 300, [(100, 150)], [(0, 100), (150, 200)]),
            (0, 200, 300, [(1, 1)], [(0, 1), (1, 200)]),
            (0, 200, 50, [(50, 70)], [(0, 50), (70, 120), (120, 170), (170, 200)]),
            (0, 200, 50, [(50, 200)], [(0, 50)]),
            (50, 200, 50, [(50, 180)], [(180, 200)]),
            (50, 200, 200, [(60, 90)], [(50, 60), (90, 200)]),
            (50, 200, 200, [(40, 60)], [(60, 200)]),
            (50, 200, 200, [(180, 220)], [(50, 180)]),
            (50, 200, 200, [(10, 20), (210, 220)], [(50, 200)]),
            (50, 200, 200, [(10, 60), (180, 220)], [(60, 180)]),
            (
                50,
                200,
                50,
                [(0, 20), (90, 100), (160, 200), (220, 300)],
                [(50, 90), (100, 150), (150, 160)],
            ),
        ],
    )
    def test_examples(self, from_block, to_block, max_size, covered, expected):
        assert gaps(from_block, to_block, max_size, covered) == expected

    def test_contiguous_claims_leave_one_tail_gap(self):
        covered = [(start, start + 5000) for start in range(6809737, 6869737, 5000)]
        assert gaps(6809737, 9809737, 3000000, covered) == [(6869737, 9809737)]

    def test_fully_covered_bound(self):
        assert gaps(0, 50, 10, [(0, 50)]) == []
        assert gaps(10, 20, 10, [(0, 100)]) == []

    def test_gaps_never_exceed_max_size_or_the_bound(self):
        covered = [(13, 17), (40, 41), (41, 44), (90, 120)]
        result = gaps(5, 100, 7, covered)
        assert all(5 <= f < t <= 100 for f, t in result)
        assert all(t - f <= 7 for f, t in result)
        merged = merge(covered)
        for f, t in result:
            assert not any(s < t and f < e for s, e in merged)

    def test_gaps_and_coverage_tile_the_bound(self):
        covered = [(20, 30), (55, 60)]
        result = gaps(0, 100, 1000, covered)
        assert merge(result + covered) == [(0, 100)]


def test_is_in_range():
    assert is_in_range(10, 10, 20) is True
    assert is_in_range(10, 5, 20) is True
    assert is_in_range(10, 0, 10) is True
    assert is_in_range(10, 11, 20) is False
    assert is_in_range(10, 5, 9) is False


def test_intersect_drops_single_point_overlaps():
    assert intersect([(0, 10), (20, 30)], [(5, 25)]) == [(5, 10), (20, 25)]
    assert intersect([(0, 10)], [(10, 20)]) == []


class TestLowestDenominatorGaps:
    def test_no_tracks_means_everything_is_a_gap(self):
        assert lowest_denominator_gaps(0, 100, 50, []) == [(0, 50), (50, 100)]

    def test_single_track_matches_gaps(self):
        covered = [(10, 20), (90, 100), (160, 170)]
        assert lowest_denominator_gaps(0, 200, 50, [covered]) == gaps(0, 200, 50, covered)

    def test_range_is_covered_only_when_every_track_covers_it(self):
        track_a = [(0, 100)]
        track_b = [(0, 50)]
        assert lowest_denominator_gaps(0, 100, 100, [track_a, track_b]) == [(50, 100)]

    def test_one_empty_track_reopens_the_whole_bound(self):
        assert lowest_denominator_gaps(0, 100, 100, [[(0, 100)], []]) == [(0, 100)]

    def test_disjoint_tracks(self):
        result = lowest_denominator_gaps(0, 100, 100, [[(0, 40)], [(60, 100)]])
        assert result == [(0, 100)]

    def test_partial_overlap_across_three_tracks(self):
        tracks = [
            [(0, 80)],
            [(10, 100)],
            [(0, 30), (30, 70)],
        ]
        # common coverage is (10, 70)
        assert lowest_denominator_gaps(0, 100, 100, tracks) == [(0, 10), (70, 100)]


def test_merge_is_idempotent():
    intervals = [(40, 50), (10, 20), (15, 25), (25, 30), (60, 60)]
    once = merge(intervals)
    assert merge(once) == once

"""Tests for tally.intervals — Collector, merge_intervals, collect_intervals."""

import pytest

from tally.intervals import Collector, Interval, collect_intervals, merge_intervals

G = 23 * 60
DAY = 24 * 60 * 60


def _collect(ticks, left, right, label=""):
    c = Collector(left, right, label)
    for t in ticks:
        c.add(t)
    return c.finish()


class TestCollectorBasic:
    def test_two_intervals_seconds(self):
        """Ticks a second apart, then a gap just over 23 minutes."""
        ticks = [0, 1, 2, 3, 4, 5] + [23 * 60 + 6 + i for i in range(6)]
        assert _collect(ticks, 0, DAY) == [
            Interval(0, 5),
            Interval(23 * 60 + 6, 23 * 60 + 11),
        ]

    def test_two_intervals_minutes(self):
        minutes = [0, 1, 2, 3, 4, 5] + list(range(1386, 1392))
        result = _collect([m * 60 for m in minutes], 0, DAY)
        assert result == [Interval(0, 5 * 60), Interval(1386 * 60, 1391 * 60)]

    def test_empty(self):
        assert Collector(0, DAY).finish() == []

    def test_isolated_tick_vanishes(self):
        assert _collect([1000], 0, DAY) == []

    def test_isolated_ticks_between_intervals_vanish(self):
        ticks = [0, 60, 120, 5000, 10000, 10060]
        assert _collect(ticks, 0, DAY) == [Interval(0, 120), Interval(10000, 10060)]

    def test_duplicate_ticks_stay_zero_width(self):
        assert _collect([500, 500, 500], 0, DAY) == []

    def test_gap_exactly_threshold_extends(self):
        assert _collect([0, G], 0, DAY) == [Interval(0, G)]

    def test_gap_over_threshold_breaks(self):
        assert _collect([0, 10, G + 11, G + 20], 0, DAY) == [
            Interval(0, 10),
            Interval(G + 11, G + 20),
        ]

    def test_small_gaps_make_one_interval(self):
        ticks = list(range(100, 100 + 40 * 600, 600))  # every 10 minutes
        assert _collect(ticks, 0, DAY) == [Interval(ticks[0], ticks[-1])]

    def test_label_is_kept(self):
        assert _collect([0, 60], 0, DAY, label="writing") == [Interval(0, 60, "writing")]

    def test_custom_gap(self):
        c = Collector(0, DAY, max_gap=10)
        for t in (0, 5, 30, 35):
            c.add(t)
        assert c.finish() == [Interval(0, 5), Interval(30, 35)]


class TestCollectorClipping:
    TICKS = list(range(6 * 3600, 18 * 3600 + 1, 1200))  # 6am..6pm every 20m

    def test_window_equal_to_ticks(self):
        assert _collect(self.TICKS, 6 * 3600, 18 * 3600) == [Interval(6 * 3600, 18 * 3600)]

    def test_window_ends_at_noon(self):
        assert _collect(self.TICKS, 0, 12 * 3600) == [Interval(6 * 3600, 12 * 3600)]

    def test_window_starts_at_noon(self):
        assert _collect(self.TICKS, 12 * 3600, DAY) == [Interval(12 * 3600, 18 * 3600)]

    def test_window_outside(self):
        assert _collect(self.TICKS, 19 * 3600, DAY) == []
        assert _collect(self.TICKS, 0, 5 * 3600) == []

    def test_window_touching_first_tick(self):
        # only a single instant overlaps -> zero width, dropped
        assert _collect(self.TICKS, 0, 6 * 3600) == []

    def test_all_intervals_inside_window(self):
        ticks = [0, 30, 60, 3000, 3050, 9000, 9100, 9200, 20000, 20500]
        for left in range(-100, 21000, 700):
            for width in (50, 500, 5000):
                right = left + width
                for iv in _collect(ticks, left, right):
                    assert left <= iv.start < iv.end <= right


class TestCollectorLifecycle:
    def test_add_returns_false_past_window(self):
        c = Collector(0, 100)
        assert c.add(200)
        assert c.add(210) is False
        assert c.finish() == []

    def test_add_true_while_useful(self):
        c = Collector(0, 1000)
        assert c.add(10)
        assert c.add(20)

    def test_finish_twice_raises(self):
        c = Collector(0, DAY)
        c.finish()
        with pytest.raises(RuntimeError, match="finished"):
            c.finish()

    def test_add_after_finish_raises(self):
        c = Collector(0, DAY)
        c.add(1)
        c.finish()
        with pytest.raises(RuntimeError, match="finished"):
            c.add(2)

    def test_out_of_order_raises(self):
        c = Collector(0, DAY)
        c.add(100)
        c.add(200)
        with pytest.raises(ValueError, match="chronological"):
            c.add(150)
        # earlier state is untouched
        assert c.finish() == [Interval(100, 200)]


class TestMergeIntervals:
    def test_merge_sorted_union(self):
        a = [Interval(0, 10, "a"), Interval(50, 60, "a"), Interval(200, 210, "a")]
        b = [Interval(5, 30, "b"), Interval(100, 120, "b")]
        c = [Interval(55, 56, "c")]
        merged = merge_intervals([a, b, c])
        assert [iv.start for iv in merged] == sorted(iv.start for iv in a + b + c)
        assert sorted(merged, key=lambda iv: (iv.start, iv.label)) == sorted(
            a + b + c, key=lambda iv: (iv.start, iv.label)
        )

    def test_ties_follow_input_order(self):
        a = [Interval(10, 20, "a")]
        b = [Interval(10, 30, "b")]
        assert [iv.label for iv in merge_intervals([a, b])] == ["a", "b"]
        assert [iv.label for iv in merge_intervals([b, a])] == ["b", "a"]

    def test_empty_inputs(self):
        assert merge_intervals([]) == []
        assert merge_intervals([[], []]) == []

    def test_accepts_generator(self):
        seqs = ([Interval(i, i + 1, str(i))] for i in (3, 1, 2))
        assert [iv.start for iv in merge_intervals(seqs)] == [1, 2, 3]


class TestCollectIntervals:
    TICKS = [
        (0, "a"), (60, "b"), (120, "a"), (180, "b"),
        (5000, "a"), (5060, "a"),
    ]

    def test_per_label(self):
        assert collect_intervals(self.TICKS, 0, DAY) == [
            Interval(0, 120, "a"),
            Interval(60, 180, "b"),
            Interval(5000, 5060, "a"),
        ]

    def test_union(self):
        assert collect_intervals(self.TICKS, 0, DAY, union=True) == [
            Interval(0, 180, ""),
            Interval(5000, 5060, ""),
        ]

    def test_union_never_overlaps(self):
        result = collect_intervals(self.TICKS, 0, DAY, union=True)
        for prev, nxt in zip(result, result[1:]):
            assert prev.end < nxt.start


class TestIntervalDict:
    def test_to_dict(self):
        assert Interval(1, 2, "x").to_dict() == {"Start": 1, "End": 2, "Label": "x"}

    def test_from_dict_missing_label(self):
        assert Interval.from_dict({"Start": 1, "End": 2}) == Interval(1, 2, "")

"""Tests for safety-window extraction and merging."""

from __future__ import annotations

import math

from hypothesis import given
from hypothesis import strategies as st

from emeraldviz.models import (
    AlignmentDot,
    AlignmentSafetyWindowMapping,
    AlignmentSegment,
    Edge,
    SequenceSafetyWindow,
)
from emeraldviz.safety_windows import (
    cached_safety_windows,
    extract_safety_windows_from_alignments,
    is_position_in_windows,
    merge_safety_windows,
    merged_safety_windows,
)


def _window(start_x, start_y, end_x, end_y, color="green"):
    return AlignmentSegment(color, (), AlignmentDot(start_x, start_y), AlignmentDot(end_x, end_y))


def _spans(windows):
    return [(w.start_position, w.end_position) for w in windows]


windows_strategy = st.lists(
    st.tuples(st.integers(1, 200), st.integers(0, 30)).map(
        lambda t: SequenceSafetyWindow(t[0], t[0] + t[1])
    ),
    max_size=25,
)


def _covered(windows):
    positions = set()
    for w in windows:
        positions.update(range(w.start_position, w.end_position + 1))
    return positions


class TestExtract:
    def test_empty_input(self):
        assert extract_safety_windows_from_alignments([]) == AlignmentSafetyWindowMapping()

    def test_x_maps_to_sequence_b_and_y_to_sequence_a(self):
        mapping = extract_safety_windows_from_alignments([_window(4, 9, 10, 20)])
        assert _spans(mapping.sequence_b) == [(5, 10)]
        assert _spans(mapping.sequence_a) == [(10, 20)]

    def test_color_defaults(self):
        mapping = extract_safety_windows_from_alignments([_window(0, 0, 3, 3, color="")])
        assert mapping.sequence_a[0].color == "#90EE90"

    def test_segment_color_kept(self):
        mapping = extract_safety_windows_from_alignments([_window(0, 0, 3, 3, color="teal")])
        assert mapping.sequence_b[0].color == "teal"

    def test_segments_without_both_dots_ignored(self):
        segments = [
            AlignmentSegment("blue", (Edge((0, 0), (1, 1), 1.0),)),
            AlignmentSegment("blue", (), AlignmentDot(1, 1), None),
            AlignmentSegment("blue", (), None, AlignmentDot(5, 5)),
        ]
        assert extract_safety_windows_from_alignments(segments) == AlignmentSafetyWindowMapping()

    def test_fractional_coordinates_floor(self):
        mapping = extract_safety_windows_from_alignments([_window(2.7, 0.2, 8.9, 6.5)])
        assert _spans(mapping.sequence_b) == [(3, 8)]
        assert _spans(mapping.sequence_a) == [(1, 6)]

    def test_degenerate_axis_dropped_independently(self):
        # x span collapses (start 5, end 4); y span is valid
        mapping = extract_safety_windows_from_alignments([_window(4, 0, 4, 10)])
        assert mapping.sequence_b == ()
        assert _spans(mapping.sequence_a) == [(1, 10)]

    def test_negative_coordinates_dropped(self):
        mapping = extract_safety_windows_from_alignments([_window(-3, -3, -1, -1)])
        assert mapping == AlignmentSafetyWindowMapping()

    def test_non_finite_coordinates_dropped(self):
        mapping = extract_safety_windows_from_alignments(
            [_window(math.nan, 0, 5, 5), _window(0, 0, math.inf, 5)]
        )
        assert mapping.sequence_b == ()
        assert _spans(mapping.sequence_a) == [(1, 5), (1, 5)]

    def test_fresh_mapping_per_call(self):
        segs = [_window(0, 0, 5, 5)]
        first = extract_safety_windows_from_alignments(segs)
        second = extract_safety_windows_from_alignments(segs)
        assert first == second
        assert first is not second

    @given(
        st.lists(
            st.tuples(
                st.floats(-50, 500, allow_nan=False),
                st.floats(-50, 500, allow_nan=False),
                st.floats(-50, 500, allow_nan=False),
                st.floats(-50, 500, allow_nan=False),
            ),
            max_size=20,
        )
    )
    def test_every_window_satisfies_invariant(self, corners):
        mapping = extract_safety_windows_from_alignments([_window(*c) for c in corners])
        for window in mapping.sequence_a + mapping.sequence_b:
            assert window.start_position > 0
            assert window.end_position >= window.start_position


class TestMerge:
    def test_adjacent_windows_merge(self):
        merged = merge_safety_windows([SequenceSafetyWindow(1, 5), SequenceSafetyWindow(6, 9)])
        assert _spans(merged) == [(1, 9)]

    def test_separated_windows_stay_apart(self):
        merged = merge_safety_windows([SequenceSafetyWindow(1, 3), SequenceSafetyWindow(10, 12)])
        assert _spans(merged) == [(1, 3), (10, 12)]

    def test_contained_window_absorbed(self):
        merged = merge_safety_windows([SequenceSafetyWindow(1, 20), SequenceSafetyWindow(5, 8)])
        assert _spans(merged) == [(1, 20)]

    def test_first_color_kept(self):
        merged = merge_safety_windows(
            [SequenceSafetyWindow(4, 9, "red"), SequenceSafetyWindow(1, 5, "blue")]
        )
        assert merged[0].color == "blue"

    def test_equal_starts_keep_earlier_color(self):
        merged = merge_safety_windows(
            [SequenceSafetyWindow(3, 5, "a"), SequenceSafetyWindow(1, 1), SequenceSafetyWindow(3, 9, "b")]
        )
        assert merged == [SequenceSafetyWindow(1, 1), SequenceSafetyWindow(3, 9, "a")]

        reversed_input = merge_safety_windows([SequenceSafetyWindow(3, 9, "b"), SequenceSafetyWindow(3, 5, "a")])
        assert reversed_input == [SequenceSafetyWindow(3, 9, "b")]

    @given(
        st.lists(st.integers(min_value=20, max_value=60).map(lambda s: SequenceSafetyWindow(s, s + 2)), max_size=6),
        st.data(),
    )
    def test_equal_starts_tie_independent_of_neighbours(self, others, data):
        first = data.draw(st.integers(min_value=0, max_value=len(others)))
        second = data.draw(st.integers(min_value=first, max_value=len(others)))
        windows = list(others)
        windows.insert(second, SequenceSafetyWindow(3, 9, "b"))
        windows.insert(first, SequenceSafetyWindow(3, 5, "a"))
        assert merge_safety_windows(windows)[0] == SequenceSafetyWindow(3, 9, "a")

    def test_empty(self):
        assert merge_safety_windows([]) == []

    def test_input_not_mutated(self):
        windows = [SequenceSafetyWindow(6, 9), SequenceSafetyWindow(1, 5)]
        merge_safety_windows(windows)
        assert _spans(windows) == [(6, 9), (1, 5)]

    @given(windows_strategy)
    def test_idempotent(self, windows):
        once = merge_safety_windows(windows)
        assert merge_safety_windows(once) == once

    @given(windows_strategy)
    def test_coverage_preserved(self, windows):
        assert _covered(merge_safety_windows(windows)) == _covered(windows)

    @given(windows_strategy)
    def test_output_sorted_and_separated(self, windows):
        merged = merge_safety_windows(windows)
        for left, right in zip(merged, merged[1:]):
            assert right.start_position - left.end_position >= 2


class TestMappingHelpers:
    def test_merged_mapping(self):
        raw = extract_safety_windows_from_alignments([_window(4, 4, 12, 12), _window(10, 10, 20, 20)])
        merged = merged_safety_windows(raw)
        assert _spans(merged.sequence_a) == [(5, 20)]
        assert _spans(merged.sequence_b) == [(5, 20)]

    def test_cached_variant_matches_uncached(self):
        segs = (_window(4, 9, 10, 20),)
        raw, merged = cached_safety_windows(segs)
        assert raw == extract_safety_windows_from_alignments(segs)
        assert merged == merged_safety_windows(raw)

    def test_cached_variant_hits_on_equal_values(self):
        cached_safety_windows.cache_clear()
        cached_safety_windows((_window(1, 1, 5, 5),))
        cached_safety_windows((_window(1, 1, 5, 5),))
        assert cached_safety_windows.cache_info().hits == 1

    def test_position_lookup(self):
        windows = [SequenceSafetyWindow(5, 10), SequenceSafetyWindow(20, 22)]
        assert is_position_in_windows(21, windows)
        assert not is_position_in_windows(15, windows)
        assert not is_position_in_windows(1, [])

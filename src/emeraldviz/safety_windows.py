"""Safety-window extraction and merging.

Safety windows arrive as rectangles in alignment space (segments carrying a
start and an end dot). They are projected onto each sequence as 1-indexed,
inclusive residue ranges and coalesced per sequence.

Examples:
    >>> from emeraldviz.models import AlignmentDot, AlignmentSegment
    >>> seg = AlignmentSegment("green", (), AlignmentDot(4, 9), AlignmentDot(10, 20))
    >>> mapping = extract_safety_windows_from_alignments([seg])
    >>> mapping.sequence_b[0].start_position, mapping.sequence_b[0].end_position
    (5, 10)
    >>> mapping.sequence_a[0].start_position, mapping.sequence_a[0].end_position
    (10, 20)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from functools import lru_cache

from emeraldviz.config import DEFAULT_WINDOW_COLOR
from emeraldviz.models import (
    AlignmentSafetyWindowMapping,
    AlignmentSegment,
    SequenceSafetyWindow,
)

_log = logging.getLogger(__name__)


def _project(start: float, end: float, color: str) -> SequenceSafetyWindow | None:
    """Project one axis of a rectangle to a residue range, or ``None`` if invalid."""
    try:
        start, end = float(start), float(end)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(start) and math.isfinite(end)):
        return None
    window = SequenceSafetyWindow(math.floor(start) + 1, math.floor(end), color)
    if window.start_position > 0 and window.end_position >= window.start_position:
        return window
    return None


def extract_safety_windows_from_alignments(
    segments: Iterable[AlignmentSegment],
) -> AlignmentSafetyWindowMapping:
    """Convert safety-window rectangles into per-sequence residue ranges.

    Only segments carrying both a start and an end dot are considered. The x
    coordinates give the sequence-B (member) window and the y coordinates the
    sequence-A (representative) window: ``start = floor(start) + 1`` and
    ``end = floor(end)``. Windows with a non-positive start, an end before
    the start, or non-finite coordinates are dropped.

    Args:
        segments: Alignment segments from the alignment collaborator.

    Returns:
        A new mapping; never raises on malformed segments.

    Examples:
        >>> extract_safety_windows_from_alignments([])
        AlignmentSafetyWindowMapping(sequence_a=(), sequence_b=())
    """
    sequence_a: list[SequenceSafetyWindow] = []
    sequence_b: list[SequenceSafetyWindow] = []

    for segment in segments:
        if segment.start_dot is None or segment.end_dot is None:
            continue
        color = segment.color or DEFAULT_WINDOW_COLOR
        window_b = _project(segment.start_dot.x, segment.end_dot.x, color)
        window_a = _project(segment.start_dot.y, segment.end_dot.y, color)
        if window_b is not None:
            sequence_b.append(window_b)
        if window_a is not None:
            sequence_a.append(window_a)

    _log.debug(
        "extracted safety windows: %d on sequence A, %d on sequence B",
        len(sequence_a),
        len(sequence_b),
    )
    return AlignmentSafetyWindowMapping(tuple(sequence_a), tuple(sequence_b))


def merge_safety_windows(
    windows: Iterable[SequenceSafetyWindow],
) -> list[SequenceSafetyWindow]:
    """Coalesce overlapping or adjacent windows into a minimal disjoint list.

    Windows are stably sorted by start position, then swept once; a window
    starting at or before ``current.end + 1`` is folded into the current
    one. The merged window keeps the first color encountered.

    Args:
        windows: Windows on a single sequence, in any order.

    Returns:
        A new list of windows, ascending, pairwise separated by at least one
        uncovered residue.

    Examples:
        >>> merged = merge_safety_windows([SequenceSafetyWindow(6, 9), SequenceSafetyWindow(1, 5)])
        >>> [(w.start_position, w.end_position) for w in merged]
        [(1, 9)]
        >>> len(merge_safety_windows([SequenceSafetyWindow(1, 3), SequenceSafetyWindow(10, 12)]))
        2
        >>> merge_safety_windows([])
        []
    """
    ordered = sorted(windows, key=lambda w: w.start_position)
    if not ordered:
        return []

    merged: list[SequenceSafetyWindow] = []
    current = ordered[0]
    for following in ordered[1:]:
        if following.start_position <= current.end_position + 1:
            current = SequenceSafetyWindow(
                current.start_position,
                max(current.end_position, following.end_position),
                current.color,
            )
        else:
            merged.append(current)
            current = following
    merged.append(current)
    return merged


def merged_safety_windows(mapping: AlignmentSafetyWindowMapping) -> AlignmentSafetyWindowMapping:
    """Merge both sequences of a mapping."""
    return AlignmentSafetyWindowMapping(
        tuple(merge_safety_windows(mapping.sequence_a)),
        tuple(merge_safety_windows(mapping.sequence_b)),
    )


@lru_cache(maxsize=32)
def cached_safety_windows(
    segments: tuple[AlignmentSegment, ...],
) -> tuple[AlignmentSafetyWindowMapping, AlignmentSafetyWindowMapping]:
    """Memoized ``(raw, merged)`` mappings keyed on segment values.

    Segments are frozen dataclasses, so equal alignment results hit the same
    cache entry regardless of object identity.
    """
    raw = extract_safety_windows_from_alignments(segments)
    return raw, merged_safety_windows(raw)


def is_position_in_windows(position: int, windows: Iterable[SequenceSafetyWindow]) -> bool:
    """Return whether a 1-indexed residue lies inside any window.

    Examples:
        >>> is_position_in_windows(5, [SequenceSafetyWindow(5, 10)])
        True
        >>> is_position_in_windows(4, [SequenceSafetyWindow(5, 10)])
        False
    """
    return any(window.contains(position) for window in windows)

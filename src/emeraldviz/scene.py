"""Scene graph of the dot matrix plot.

:func:`build_scene` turns an :class:`~emeraldviz.models.ExportData` snapshot
into layered drawing primitives in pixel space. The raster renderer and the
SVG exporter both draw this scene, so the two outputs agree by construction.

Each :class:`~emeraldviz.models.VisualizationSettings` flag gates exactly one
top-level layer; layers never share primitives.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from typing import Union

from emeraldviz.config import (
    AXIS_COLOR,
    BACKGROUND_COLOR,
    DEFAULT_DOT_COLOR,
    DEFAULT_EDGE_COLOR,
    DOT_RADIUS,
    FONT_FAMILY,
    GRID_COLOR,
    INDEX_LABEL_COLOR,
    INDEX_LABEL_FACTOR,
    MIN_LABEL_SIZE,
    MINIMAP_BACKGROUND,
    MINIMAP_BORDER,
    MINIMAP_DOT_COLOR,
    MINIMAP_DOT_RADIUS,
    MINIMAP_LINE_COLOR,
    MINIMAP_OFFSET_TOP,
    MINIMAP_PADDING,
    MINIMAP_SAFETY_FILL,
    MINIMAP_SIZE,
    MINIMAP_VIEWPORT_COLOR,
    MINIMAP_VIEWPORT_WIDTH,
    SAFETY_COLOR,
    SAFETY_FILL,
    TICK_LABEL_COLOR,
    TICK_LABEL_FACTOR,
)
from emeraldviz.geometry import (
    LinearScale,
    PlotLayout,
    edge_opacity,
    edge_stroke_width,
    font_size_for,
    view_scales,
    visible_domain,
    visible_index_markers,
)
from emeraldviz.models import (
    AlignmentDot,
    AlignmentSegment,
    Edge,
    ExportData,
    SequenceSafetyWindow,
    Tick,
)
from emeraldviz.safety_windows import cached_safety_windows, is_position_in_windows

_log = logging.getLogger(__name__)

CLIP_ID = "plot-area"


# -- Primitives ------------------------------------------------------------


@dataclass(frozen=True)
class Line:
    x1: float
    y1: float
    x2: float
    y2: float
    stroke: str
    stroke_width: float = 1.0
    opacity: float = 1.0
    css_class: str | None = None


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float
    fill: str = "none"
    stroke: str | None = None
    stroke_width: float = 1.0
    css_class: str | None = None


@dataclass(frozen=True)
class Circle:
    cx: float
    cy: float
    r: float
    fill: str
    css_class: str | None = None


@dataclass(frozen=True)
class Text:
    """Text anchored at ``(x, y)``.

    ``anchor`` is one of ``start``, ``middle``, ``end``; ``baseline`` is
    ``middle`` or ``bottom``.
    """

    x: float
    y: float
    text: str
    font_size: float
    fill: str
    weight: str = "normal"
    anchor: str = "middle"
    baseline: str = "middle"
    family: str = FONT_FAMILY


Primitive = Union[Line, Rect, Circle, Text]


@dataclass(frozen=True)
class Group:
    """Named group of primitives; ``clip`` restricts drawing to the plot area."""

    css_class: str
    children: tuple[Union[Primitive, "Group"], ...] = ()
    clip: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))


@dataclass(frozen=True)
class Scene:
    width: float
    height: float
    background: Rect
    clip_rect: Rect
    layers: tuple[Group, ...] = field(default_factory=tuple)

    def layer(self, css_class: str) -> Group | None:
        """Return the top-level layer with the given class, if drawn."""
        for group in self.layers:
            if group.css_class == css_class:
                return group
        return None


def iter_primitives(group: Group) -> Iterator[Primitive]:
    """Yield the primitives of a group depth-first, in drawing order."""
    for child in group.children:
        if isinstance(child, Group):
            yield from iter_primitives(child)
        else:
            yield child


# -- Scene context ---------------------------------------------------------


@dataclass(frozen=True)
class _Frame:
    """Scales and derived values shared by every layer of one scene."""

    layout: PlotLayout
    x: LinearScale
    y: LinearScale
    font_size: float
    windows_a: tuple[SequenceSafetyWindow, ...]
    windows_b: tuple[SequenceSafetyWindow, ...]


def _inside(value: float, lo: float, hi: float) -> bool:
    return lo <= value <= hi


# -- Layers ----------------------------------------------------------------


def _safety_window_layer(frame: _Frame, rectangles: list[AlignmentSegment]) -> Group:
    layout = frame.layout
    bracket_height = frame.font_size * 1.5
    bracket_width = frame.font_size * 0.8
    thickness = max(1.0, frame.font_size * 0.1)
    top = layout.margin_top - 5
    raised = layout.margin_top - bracket_height - 5
    rect_left = max(0.0, layout.margin_left - bracket_width - 5)
    rect_width = min(bracket_width, layout.margin_left - 5)
    bracket_x = layout.margin_left - 5

    windows = []
    for index, segment in enumerate(rectangles):
        start_x = frame.x(segment.start_dot.x)
        end_x = frame.x(segment.end_dot.x)
        start_y = frame.y(segment.start_dot.y)
        end_y = frame.y(segment.end_dot.y)

        x_bracket = Group(
            "x-bracket",
            (
                Line(start_x, raised, end_x, raised, SAFETY_COLOR, thickness),
                Line(start_x, top, start_x, raised, SAFETY_COLOR, thickness),
                Line(end_x, top, end_x, raised, SAFETY_COLOR, thickness),
            ),
        )
        y_bracket = Group(
            "y-bracket",
            (
                Rect(rect_left, start_y, rect_width, end_y - start_y, SAFETY_FILL, SAFETY_COLOR, thickness),
                Line(bracket_x - thickness / 2, start_y, bracket_x - thickness / 2, end_y, SAFETY_COLOR, thickness),
                Line(rect_left, start_y, bracket_x, start_y, SAFETY_COLOR, thickness),
                Line(rect_left, end_y, bracket_x, end_y, SAFETY_COLOR, thickness),
            ),
        )
        windows.append(Group(f"safety-window-{index}", (x_bracket, y_bracket)))
    return Group("safety-windows", windows)


def _axes_layer(frame: _Frame) -> Group:
    layout = frame.layout
    return Group(
        "axes",
        (
            Line(layout.plot_left, layout.plot_top, layout.plot_right, layout.plot_top, AXIS_COLOR, 1.0),
            Line(layout.plot_left, layout.plot_top, layout.plot_left, layout.plot_bottom, AXIS_COLOR, 1.0),
        ),
    )


def _tick_style(highlighted: bool, default_color: str) -> tuple[str, str]:
    if highlighted:
        return SAFETY_COLOR, "bold"
    return default_color, "normal"


def _axis_labels_layer(
    frame: _Frame,
    x_ticks: tuple[Tick, ...],
    y_ticks: tuple[Tick, ...],
) -> Group:
    layout = frame.layout
    label_size = max(MIN_LABEL_SIZE, frame.font_size * TICK_LABEL_FACTOR)
    index_size = max(MIN_LABEL_SIZE, frame.font_size * INDEX_LABEL_FACTOR)

    x_labels = []
    for tick in x_ticks:
        if not tick.label or tick.value < 0:
            continue
        pos = frame.x(tick.value + 0.5)
        if not _inside(pos, layout.plot_left, layout.plot_right):
            continue
        fill, weight = _tick_style(is_position_in_windows(tick.value + 1, frame.windows_b), TICK_LABEL_COLOR)
        x_labels.append(
            Text(pos, layout.margin_top - 10, tick.label, label_size, fill, weight, "middle", "bottom")
        )

    y_labels = []
    for tick in y_ticks:
        if not tick.label or tick.value < 0:
            continue
        pos = frame.y(tick.value + 0.5)
        if not _inside(pos, layout.plot_top, layout.plot_bottom):
            continue
        fill, weight = _tick_style(is_position_in_windows(tick.value + 1, frame.windows_a), TICK_LABEL_COLOR)
        y_labels.append(
            Text(layout.margin_left - 10, pos, tick.label, label_size, fill, weight, "end", "middle")
        )

    x_indices = []
    for index in visible_index_markers(frame.x, len(x_ticks), layout.plot_left, layout.plot_right):
        fill, weight = _tick_style(is_position_in_windows(index + 1, frame.windows_b), INDEX_LABEL_COLOR)
        x_indices.append(
            Text(frame.x(index + 0.5), layout.margin_top - 30, str(index + 1), index_size, fill, weight, "middle", "bottom")
        )

    y_indices = []
    for index in visible_index_markers(frame.y, len(y_ticks), layout.plot_top, layout.plot_bottom):
        fill, weight = _tick_style(is_position_in_windows(index + 1, frame.windows_a), INDEX_LABEL_COLOR)
        y_indices.append(
            Text(layout.margin_left - 30, frame.y(index + 0.5), str(index + 1), index_size, fill, weight, "end", "middle")
        )

    return Group(
        "axis-labels",
        (
            Group("x-labels", x_labels),
            Group("y-labels", y_labels),
            Group("x-indices", x_indices),
            Group("y-indices", y_indices),
        ),
    )


def _grid_layer(frame: _Frame, x_ticks: tuple[Tick, ...], y_ticks: tuple[Tick, ...]) -> Group:
    layout = frame.layout
    lines = []
    for tick in x_ticks:
        pos = frame.x(tick.value + 0.5)
        if _inside(pos, layout.plot_left, layout.plot_right):
            lines.append(Line(pos, layout.plot_top, pos, layout.plot_bottom, GRID_COLOR, 0.5))
    for tick in y_ticks:
        pos = frame.y(tick.value + 0.5)
        if _inside(pos, layout.plot_top, layout.plot_bottom):
            lines.append(Line(layout.plot_left, pos, layout.plot_right, pos, GRID_COLOR, 0.5))
    return Group("grid", lines, clip=True)


def _edge_layer(frame: _Frame, segments: tuple[AlignmentSegment, ...]) -> Group:
    lines = []
    for seg_index, segment in enumerate(segments):
        for edge_index, edge in enumerate(segment.edges):
            (from_x, from_y), (to_x, to_y) = edge.from_point, edge.to_point
            lines.append(
                Line(
                    frame.x(from_x),
                    frame.y(from_y),
                    frame.x(to_x),
                    frame.y(to_y),
                    segment.color or DEFAULT_EDGE_COLOR,
                    edge_stroke_width(edge.probability),
                    edge_opacity(edge.probability),
                    f"alignment-{seg_index}-edge-{edge_index}",
                )
            )
    return Group("alignment-edges", lines, clip=True)


def _dot_layer(frame: _Frame, segments: tuple[AlignmentSegment, ...]) -> Group:
    dots = []
    for index, segment in enumerate(segments):
        color = segment.color or DEFAULT_DOT_COLOR
        if segment.start_dot is not None:
            dots.append(
                Circle(frame.x(segment.start_dot.x), frame.y(segment.start_dot.y), DOT_RADIUS, color, f"alignment-{index}-start-dot")
            )
        if segment.end_dot is not None:
            dots.append(
                Circle(frame.x(segment.end_dot.x), frame.y(segment.end_dot.y), DOT_RADIUS, color, f"alignment-{index}-end-dot")
            )
    return Group("alignment-dots", dots, clip=True)


def minimap_viewport(
    frame_x: LinearScale,
    frame_y: LinearScale,
    layout: PlotLayout,
    member_length: int,
    representative_length: int,
) -> tuple[float, float, float, float]:
    """Visible alignment-space rectangle ``(x0, y0, x1, y1)`` clamped to the sequences.

    Computed by inverting the view scales at the plot-area edges.
    """
    x_lo, x_hi = visible_domain(frame_x, layout.plot_left, layout.plot_right)
    y_lo, y_hi = visible_domain(frame_y, layout.plot_top, layout.plot_bottom)
    x0 = min(max(0.0, x_lo), member_length)
    x1 = max(min(float(member_length), x_hi), x0)
    y0 = min(max(0.0, y_lo), representative_length)
    y1 = max(min(float(representative_length), y_hi), y0)
    return x0, y0, x1, y1


def _minimap_layer(
    frame: _Frame,
    segments: tuple[AlignmentSegment, ...],
    rectangles: list[AlignmentSegment],
    member_length: int,
    representative_length: int,
) -> Group:
    layout = frame.layout
    origin_x = layout.width - MINIMAP_SIZE - MINIMAP_PADDING
    origin_y = layout.margin_top + MINIMAP_OFFSET_TOP
    mini_x = LinearScale((0.0, float(member_length)), (0.0, MINIMAP_SIZE))
    mini_y = LinearScale((0.0, float(representative_length)), (0.0, MINIMAP_SIZE))

    def to_minimap(px: float, py: float) -> tuple[float, float]:
        return origin_x + mini_x(px), origin_y + mini_y(py)

    background = Rect(origin_x, origin_y, MINIMAP_SIZE, MINIMAP_SIZE, MINIMAP_BACKGROUND, MINIMAP_BORDER, 1.0)

    safety = []
    for index, segment in enumerate(rectangles):
        sx, sy = to_minimap(segment.start_dot.x, segment.start_dot.y)
        ex, ey = to_minimap(segment.end_dot.x, segment.end_dot.y)
        safety.append(Rect(sx, sy, ex - sx, ey - sy, MINIMAP_SAFETY_FILL, css_class=f"minimap-safety-window-{index}"))

    traced = []
    for index, segment in enumerate(segments):
        for edge in segment.edges:
            fx, fy = to_minimap(*edge.from_point)
            tx, ty = to_minimap(*edge.to_point)
            traced.append(Line(fx, fy, tx, ty, MINIMAP_LINE_COLOR, 1.0, css_class=f"minimap-alignment-{index}"))
        if segment.is_safety_window:
            sx, sy = to_minimap(segment.start_dot.x, segment.start_dot.y)
            ex, ey = to_minimap(segment.end_dot.x, segment.end_dot.y)
            traced.append(Line(sx, sy, ex, ey, MINIMAP_LINE_COLOR, 1.0, css_class=f"minimap-alignment-{index}"))
            traced.append(Circle(sx, sy, MINIMAP_DOT_RADIUS, MINIMAP_DOT_COLOR, f"minimap-alignment-{index}-start"))
            traced.append(Circle(ex, ey, MINIMAP_DOT_RADIUS, MINIMAP_DOT_COLOR, f"minimap-alignment-{index}-end"))

    x0, y0, x1, y1 = minimap_viewport(frame.x, frame.y, layout, member_length, representative_length)
    vx, vy = to_minimap(x0, y0)
    vx1, vy1 = to_minimap(x1, y1)
    viewport = Rect(vx, vy, vx1 - vx, vy1 - vy, "none", MINIMAP_VIEWPORT_COLOR, MINIMAP_VIEWPORT_WIDTH, "minimap-viewport")

    return Group(
        "minimap",
        (
            background,
            Group("minimap-safety-windows", safety),
            Group("minimap-alignments", traced),
            viewport,
        ),
    )


# -- Entry point -----------------------------------------------------------


def _finite_dot(dot: AlignmentDot | None) -> AlignmentDot | None:
    if dot is None:
        return None
    try:
        finite = math.isfinite(dot.x) and math.isfinite(dot.y)
    except TypeError:
        return None
    return dot if finite else None


def _finite_edge(edge: Edge) -> bool:
    try:
        values = (*edge.from_point, *edge.to_point, edge.probability)
        return all(math.isfinite(value) for value in values)
    except (TypeError, ValueError):
        return False


def drawable_segments(segments: tuple[AlignmentSegment, ...]) -> tuple[AlignmentSegment, ...]:
    """Strip non-finite dots and edges so malformed input is skipped, not drawn.

    Segments keep their position, so per-segment class names stay stable.

    Examples:
        >>> seg = AlignmentSegment("red", (), AlignmentDot(float("nan"), 3), AlignmentDot(8, 9))
        >>> cleaned = drawable_segments((seg,))[0]
        >>> cleaned.start_dot, cleaned.is_safety_window
        (None, False)
    """
    cleaned = []
    for segment in segments:
        edges = tuple(edge for edge in segment.edges if _finite_edge(edge))
        start_dot, end_dot = _finite_dot(segment.start_dot), _finite_dot(segment.end_dot)
        if len(edges) != len(segment.edges) or start_dot is not segment.start_dot or end_dot is not segment.end_dot:
            _log.warning("skipping non-finite coordinates in segment %d", len(cleaned))
            segment = replace(segment, edges=edges, start_dot=start_dot, end_dot=end_dot)
        cleaned.append(segment)
    return tuple(cleaned)


def build_scene(data: ExportData) -> Scene:
    """Build the layered scene for an export snapshot.

    Scales are freshly constructed from ``data.layout`` and the sequence
    lengths, then bound to ``data.transform``; nothing is sampled from a
    previously rendered bitmap.

    Args:
        data: Alignment, ticks, transform, settings and layout.

    Returns:
        A :class:`Scene` whose layers follow ``data.settings``.
    """
    layout = data.layout
    member_length = len(data.member)
    representative_length = len(data.representative)
    x, y = view_scales(layout, member_length, representative_length, data.transform)
    _, merged = cached_safety_windows(data.segments)
    frame = _Frame(layout, x, y, font_size_for(x, y), merged.sequence_a, merged.sequence_b)
    segments = drawable_segments(data.segments)
    rectangles = [segment for segment in segments if segment.is_safety_window]
    settings = data.settings

    layers: list[Group] = []
    if settings.show_safety_windows:
        layers.append(_safety_window_layer(frame, rectangles))
    if settings.show_axes:
        layers.append(_axes_layer(frame))
    if settings.show_axis_labels:
        layers.append(_axis_labels_layer(frame, data.x_ticks, data.y_ticks))
    if settings.show_grid:
        layers.append(_grid_layer(frame, data.x_ticks, data.y_ticks))
    if settings.show_alignment_edges:
        layers.append(_edge_layer(frame, segments))
    if settings.show_alignment_dots:
        layers.append(_dot_layer(frame, segments))
    if settings.show_minimap:
        layers.append(
            _minimap_layer(frame, segments, rectangles, member_length, representative_length)
        )

    _log.debug("built scene with layers %s", [group.css_class for group in layers])
    return Scene(
        width=layout.width,
        height=layout.height,
        background=Rect(0.0, 0.0, layout.width, layout.height, BACKGROUND_COLOR),
        clip_rect=Rect(
            layout.plot_left,
            layout.plot_top,
            layout.plot_right - layout.plot_left,
            layout.plot_bottom - layout.plot_top,
        ),
        layers=tuple(layers),
    )

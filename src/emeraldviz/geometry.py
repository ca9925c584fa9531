"""Linear scales, the pan/zoom transform and plot layout.

The live view and both exporters build their scales through
:func:`view_scales`, so every renderer maps alignment coordinates to pixels
with the same function and the same inputs.

Examples:
    >>> layout = PlotLayout(width=200, height=200, margin_top=0, margin_right=0,
    ...                     margin_bottom=0, margin_left=0, scale_padding=0.0)
    >>> x, y = view_scales(layout, 10, 20, ZoomTransform(k=2.0))
    >>> x(5)
    200.0
    >>> y.invert(200.0)
    10.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from emeraldviz.config import (
    EDGE_MIN_OPACITY,
    EDGE_MIN_STROKE_WIDTH,
    EDGE_STROKE_PER_PROBABILITY,
    FONT_CELL_FRACTION,
    FONT_MIN_SIZE,
    LAYOUT,
)


@dataclass(frozen=True)
class LinearScale:
    """Monotonic linear map from a domain interval to a pixel interval.

    Examples:
        >>> s = LinearScale((0.0, 10.0), (100.0, 200.0))
        >>> s(5)
        150.0
        >>> s.invert(150.0)
        5.0
    """

    domain: tuple[float, float]
    range: tuple[float, float]

    def __call__(self, value: float) -> float:
        d0, d1 = self.domain
        r0, r1 = self.range
        if d1 == d0:
            return float(r0)
        return r0 + (value - d0) * (r1 - r0) / (d1 - d0)

    def invert(self, pixel: float) -> float:
        d0, d1 = self.domain
        r0, r1 = self.range
        if r1 == r0:
            return float(d0)
        return d0 + (pixel - r0) * (d1 - d0) / (r1 - r0)


@dataclass(frozen=True)
class ZoomTransform:
    """Immutable pan/zoom transform: ``pixel = value * k + offset``.

    The same scale factor ``k`` applies to both axes; ``x`` and ``y`` are the
    translations. Owned by the pan/zoom collaborator and only read here.

    Examples:
        >>> t = ZoomTransform().translate(10, 0).scale(2)
        >>> t
        ZoomTransform(k=2.0, x=10.0, y=0.0)
        >>> t.apply((5, 5))
        (20.0, 10.0)
        >>> t.invert(t.apply((3, 4)))
        (3.0, 4.0)
    """

    k: float = 1.0
    x: float = 0.0
    y: float = 0.0

    def __post_init__(self) -> None:
        for name in ("k", "x", "y"):
            value = float(getattr(self, name))
            if not math.isfinite(value):
                raise ValueError(f"transform {name} must be finite")
            object.__setattr__(self, name, value)
        if self.k <= 0:
            raise ValueError("transform k must be positive")

    def apply_x(self, value: float) -> float:
        return value * self.k + self.x

    def apply_y(self, value: float) -> float:
        return value * self.k + self.y

    def invert_x(self, pixel: float) -> float:
        return (pixel - self.x) / self.k

    def invert_y(self, pixel: float) -> float:
        return (pixel - self.y) / self.k

    def apply(self, point: tuple[float, float]) -> tuple[float, float]:
        return (self.apply_x(point[0]), self.apply_y(point[1]))

    def invert(self, point: tuple[float, float]) -> tuple[float, float]:
        return (self.invert_x(point[0]), self.invert_y(point[1]))

    def translate(self, tx: float, ty: float) -> "ZoomTransform":
        """Return a transform panned by ``(tx, ty)`` in current units."""
        return ZoomTransform(self.k, self.x + self.k * tx, self.y + self.k * ty)

    def scale(self, factor: float) -> "ZoomTransform":
        """Return a transform zoomed by ``factor`` about the origin."""
        return ZoomTransform(self.k * factor, self.x, self.y)

    def rescale_x(self, base: LinearScale) -> LinearScale:
        """Return ``base`` with its domain adjusted so it draws through this transform."""
        r0, r1 = base.range
        domain = (base.invert(self.invert_x(r0)), base.invert(self.invert_x(r1)))
        return LinearScale(domain, base.range)

    def rescale_y(self, base: LinearScale) -> LinearScale:
        r0, r1 = base.range
        domain = (base.invert(self.invert_y(r0)), base.invert(self.invert_y(r1)))
        return LinearScale(domain, base.range)


def _layout_default(key: str) -> float:
    return float(LAYOUT[key])


@dataclass(frozen=True)
class PlotLayout:
    """Pixel size and margins of the dot matrix plot."""

    width: float = field(default_factory=lambda: _layout_default("width"))
    height: float = field(default_factory=lambda: _layout_default("height"))
    margin_top: float = field(default_factory=lambda: _layout_default("margin_top"))
    margin_right: float = field(default_factory=lambda: _layout_default("margin_right"))
    margin_bottom: float = field(default_factory=lambda: _layout_default("margin_bottom"))
    margin_left: float = field(default_factory=lambda: _layout_default("margin_left"))
    scale_padding: float = field(default_factory=lambda: _layout_default("scale_padding"))

    @property
    def plot_left(self) -> float:
        return self.margin_left

    @property
    def plot_right(self) -> float:
        return self.width - self.margin_right

    @property
    def plot_top(self) -> float:
        return self.margin_top

    @property
    def plot_bottom(self) -> float:
        return self.height - self.margin_bottom


def base_scales(
    layout: PlotLayout,
    member_length: int,
    representative_length: int,
) -> tuple[LinearScale, LinearScale]:
    """Construct fresh, untransformed scales for both axes.

    The x axis spans sequence B (member), the y axis sequence A
    (representative), each padded by ``layout.scale_padding`` residues.
    """
    pad = layout.scale_padding
    x = LinearScale((-pad, member_length + pad), (layout.plot_left, layout.plot_right))
    y = LinearScale((-pad, representative_length + pad), (layout.plot_top, layout.plot_bottom))
    return x, y


def view_scales(
    layout: PlotLayout,
    member_length: int,
    representative_length: int,
    transform: ZoomTransform,
) -> tuple[LinearScale, LinearScale]:
    """Apply ``transform`` to freshly constructed base scales."""
    x, y = base_scales(layout, member_length, representative_length)
    return transform.rescale_x(x), transform.rescale_y(y)


def visible_domain(scale: LinearScale, pixel_start: float, pixel_end: float) -> tuple[float, float]:
    """Return the sorted domain interval drawn between two pixel positions.

    Examples:
        >>> visible_domain(LinearScale((0.0, 10.0), (100.0, 0.0)), 0.0, 100.0)
        (0.0, 10.0)
    """
    lo, hi = scale.invert(pixel_start), scale.invert(pixel_end)
    return (min(lo, hi), max(lo, hi))


def visible_index_markers(
    scale: LinearScale,
    count: int,
    pixel_start: float,
    pixel_end: float,
) -> list[int]:
    """Pick the first, middle and last residue index visible on an axis.

    Args:
        scale: View scale of the axis.
        count: Number of residues (ticks) on the axis.
        pixel_start: Pixel where the plot area starts.
        pixel_end: Pixel where the plot area ends.

    Returns:
        Up to three distinct 0-based indices in ascending order.

    Examples:
        >>> s = LinearScale((0.0, 100.0), (0.0, 100.0))
        >>> visible_index_markers(s, 50, 0.0, 100.0)
        [0, 25, 49]
        >>> visible_index_markers(s, 0, 0.0, 100.0)
        []
    """
    lo, hi = visible_domain(scale, pixel_start, pixel_end)
    start = max(0, math.floor(lo))
    end = min(count, math.ceil(hi))
    if end <= start:
        return []
    middle = (start + end) // 2
    markers: list[int] = []
    for index in (start, middle, end - 1):
        if start <= index < end and index not in markers:
            markers.append(index)
    return markers


def font_size_for(x: LinearScale, y: LinearScale) -> float:
    """Font size tracking the on-screen cell size, floored at the minimum.

    Examples:
        >>> s = LinearScale((0.0, 10.0), (0.0, 200.0))
        >>> font_size_for(s, s)
        12.0
    """
    cell_width = abs(x(1) - x(0))
    cell_height = abs(y(1) - y(0))
    return max(FONT_MIN_SIZE, min(cell_width, cell_height) * FONT_CELL_FRACTION)


def edge_opacity(probability: float) -> float:
    """Opacity of an alignment edge, non-decreasing in ``probability``.

    Examples:
        >>> edge_opacity(0.2), edge_opacity(0.8)
        (0.5, 0.8)
    """
    return min(1.0, max(EDGE_MIN_OPACITY, probability))


def edge_stroke_width(probability: float) -> float:
    """Stroke width of an alignment edge, non-decreasing in ``probability``.

    Examples:
        >>> edge_stroke_width(0.25), edge_stroke_width(1.0)
        (2.0, 4.0)
    """
    return max(EDGE_MIN_STROKE_WIDTH, probability * EDGE_STROKE_PER_PROBABILITY)

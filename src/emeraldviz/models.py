"""Data structures for emeraldviz alignments, safety windows and exports.

Coordinate convention: in alignment space ``x`` indexes sequence B (the
member) and ``y`` indexes sequence A (the representative). Every consumer in
the package follows it; nothing re-derives it per call site.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from emeraldviz.geometry import PlotLayout, ZoomTransform


@dataclass(frozen=True)
class AlignmentDot:
    """A point in alignment space.

    Attributes:
        x: Residue index on sequence B (member).
        y: Residue index on sequence A (representative).
    """

    x: float
    y: float


@dataclass(frozen=True)
class Edge:
    """One step of a traced alignment path.

    Attributes:
        from_point: ``(x, y)`` start of the step in alignment space.
        to_point: ``(x, y)`` end of the step in alignment space.
        probability: Posterior probability of the step, in ``(0, 1]``.

    Examples:
        >>> Edge((0, 0), (1, 1), 0.9).probability
        0.9
    """

    from_point: tuple[float, float]
    to_point: tuple[float, float]
    probability: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "from_point", tuple(self.from_point))
        object.__setattr__(self, "to_point", tuple(self.to_point))


@dataclass(frozen=True)
class AlignmentSegment:
    """A colored alignment path, optionally bounding a safety window.

    When both ``start_dot`` and ``end_dot`` are set the segment marks a
    safety window rectangle spanning ``[start_dot, end_dot]``.

    Attributes:
        color: Display color of edges and dots.
        edges: Ordered steps of the traced path.
        start_dot: Upper-left corner of the safety window, if any.
        end_dot: Lower-right corner of the safety window, if any.

    Examples:
        >>> seg = AlignmentSegment("blue", [Edge((0, 0), (1, 1), 1.0)])
        >>> seg.edges[0].to_point
        (1, 1)
        >>> seg.is_safety_window
        False
    """

    color: str
    edges: tuple[Edge, ...] = ()
    start_dot: AlignmentDot | None = None
    end_dot: AlignmentDot | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "edges", tuple(self.edges))

    @property
    def is_safety_window(self) -> bool:
        return self.start_dot is not None and self.end_dot is not None


@dataclass(frozen=True)
class SequenceSafetyWindow:
    """A 1-indexed, inclusive residue range on one sequence.

    Attributes:
        start_position: First residue of the window (1-indexed).
        end_position: Last residue of the window (inclusive).
        color: Optional display color.

    Examples:
        >>> w = SequenceSafetyWindow(5, 10)
        >>> w.length
        6
        >>> w.contains(10), w.contains(11)
        (True, False)
    """

    start_position: int
    end_position: int
    color: str | None = None

    @property
    def length(self) -> int:
        return self.end_position - self.start_position + 1

    def contains(self, position: int) -> bool:
        return self.start_position <= position <= self.end_position


@dataclass(frozen=True)
class AlignmentSafetyWindowMapping:
    """Safety windows projected onto each sequence.

    Attributes:
        sequence_a: Windows on sequence A (representative, y axis).
        sequence_b: Windows on sequence B (member, x axis).
    """

    sequence_a: tuple[SequenceSafetyWindow, ...] = ()
    sequence_b: tuple[SequenceSafetyWindow, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "sequence_a", tuple(self.sequence_a))
        object.__setattr__(self, "sequence_b", tuple(self.sequence_b))


@dataclass(frozen=True)
class Tick:
    """Axis tick supplied by the alignment collaborator."""

    value: int
    label: str


def sequence_ticks(sequence: str) -> tuple[Tick, ...]:
    """Build one tick per residue, labelled with the residue letter.

    Examples:
        >>> [t.label for t in sequence_ticks("MKV")]
        ['M', 'K', 'V']
        >>> sequence_ticks("MKV")[2].value
        2
    """
    return tuple(Tick(i, residue) for i, residue in enumerate(sequence))


@dataclass(frozen=True)
class VisualizationSettings:
    """Layer toggles of the dot matrix; each flag gates exactly one layer.

    Examples:
        >>> VisualizationSettings().show_minimap
        True
        >>> VisualizationSettings.with_hidden(["grid"]).show_grid
        False
    """

    show_grid: bool = True
    show_axes: bool = True
    show_axis_labels: bool = True
    show_alignment_edges: bool = True
    show_alignment_dots: bool = True
    show_safety_windows: bool = True
    show_minimap: bool = True

    @classmethod
    def with_hidden(cls, layers: list[str] | tuple[str, ...]) -> "VisualizationSettings":
        """Build settings with the named layers switched off.

        Layer names are the flag names without the ``show_`` prefix.

        Raises:
            ValueError: If a layer name is unknown.
        """
        flags = {}
        for layer in layers:
            name = f"show_{layer.strip().replace('-', '_')}"
            if name not in cls.__dataclass_fields__:
                raise ValueError(f"Unknown layer '{layer}'")
            flags[name] = False
        return cls(**flags)


LAYER_NAMES: tuple[str, ...] = (
    "grid",
    "axes",
    "axis_labels",
    "alignment_edges",
    "alignment_dots",
    "safety_windows",
    "minimap",
)


@dataclass(frozen=True)
class ExportData:
    """Snapshot pulled from the live view for an export.

    Attributes:
        segments: Alignment segments, safety windows included.
        representative: Sequence A (y axis).
        member: Sequence B (x axis).
        x_ticks: Ticks along the member axis.
        y_ticks: Ticks along the representative axis.
        transform: The pan/zoom transform currently applied to the view.
        settings: Layer toggles.
        layout: Pixel size and margins of the plot.
        descriptor_a: Descriptor of sequence A used in filenames.
        descriptor_b: Descriptor of sequence B used in filenames.
    """

    segments: tuple[AlignmentSegment, ...]
    representative: str
    member: str
    x_ticks: tuple[Tick, ...]
    y_ticks: tuple[Tick, ...]
    transform: ZoomTransform = field(default_factory=ZoomTransform)
    settings: VisualizationSettings = field(default_factory=VisualizationSettings)
    layout: PlotLayout = field(default_factory=PlotLayout)
    descriptor_a: str | None = None
    descriptor_b: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "segments", tuple(self.segments))
        object.__setattr__(self, "x_ticks", tuple(self.x_ticks))
        object.__setattr__(self, "y_ticks", tuple(self.y_ticks))

"""Live dot matrix view.

:class:`DotMatrixView` owns the alignment result and the current pan/zoom
transform, renders the on-screen canvas and serves the export pull
interface used by :class:`~emeraldviz.export.ExportOrchestrator`.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Sequence

from emeraldviz.alignment_io import AlignmentResult
from emeraldviz.geometry import PlotLayout, ZoomTransform
from emeraldviz.models import (
    AlignmentSafetyWindowMapping,
    AlignmentSegment,
    ExportData,
    Tick,
    VisualizationSettings,
    sequence_ticks,
)
from emeraldviz.raster import Canvas, render_scene
from emeraldviz.safety_windows import cached_safety_windows
from emeraldviz.scene import Scene, build_scene

_log = logging.getLogger(__name__)


class DotMatrixView:
    """Renderable state of one pairwise alignment.

    Ticks default to one per residue. The canvas is rendered lazily and
    invalidated whenever the transform or settings change.

    Examples:
        >>> view = DotMatrixView([], representative="MKV", member="MK")
        >>> len(view.x_ticks), len(view.y_ticks)
        (2, 3)
        >>> view.safety_windows
        AlignmentSafetyWindowMapping(sequence_a=(), sequence_b=())
    """

    def __init__(
        self,
        segments: Sequence[AlignmentSegment],
        representative: str,
        member: str,
        x_ticks: Optional[Sequence[Tick]] = None,
        y_ticks: Optional[Sequence[Tick]] = None,
        *,
        transform: Optional[ZoomTransform] = None,
        settings: Optional[VisualizationSettings] = None,
        layout: Optional[PlotLayout] = None,
        descriptor_a: Optional[str] = None,
        descriptor_b: Optional[str] = None,
    ) -> None:
        self.segments = tuple(segments)
        self.representative = representative
        self.member = member
        self.x_ticks = tuple(x_ticks) if x_ticks is not None else sequence_ticks(member)
        self.y_ticks = tuple(y_ticks) if y_ticks is not None else sequence_ticks(representative)
        self._transform = transform or ZoomTransform()
        self._settings = settings or VisualizationSettings()
        self.layout = layout or PlotLayout()
        self.descriptor_a = descriptor_a
        self.descriptor_b = descriptor_b
        self._canvas: Optional[Canvas] = None

    @classmethod
    def from_result(cls, result: AlignmentResult, **kwargs) -> "DotMatrixView":
        """Build a view over a loaded alignment result."""
        return cls(
            result.segments,
            result.representative,
            result.member,
            result.x_ticks,
            result.y_ticks,
            descriptor_a=result.descriptor_a,
            descriptor_b=result.descriptor_b,
            **kwargs,
        )

    @property
    def transform(self) -> ZoomTransform:
        return self._transform

    def set_transform(self, transform: ZoomTransform) -> None:
        """Swap in a new transform, as the pan/zoom handler does."""
        if transform != self._transform:
            self._transform = transform
            self._canvas = None

    @property
    def settings(self) -> VisualizationSettings:
        return self._settings

    def set_settings(self, settings: VisualizationSettings) -> None:
        if settings != self._settings:
            self._settings = settings
            self._canvas = None

    def toggle(self, layer: str) -> VisualizationSettings:
        """Flip one layer flag and return the new settings."""
        name = f"show_{layer.replace('-', '_')}"
        if not hasattr(self._settings, name):
            raise ValueError(f"Unknown layer '{layer}'")
        self.set_settings(replace(self._settings, **{name: not getattr(self._settings, name)}))
        return self._settings

    @property
    def safety_windows(self) -> AlignmentSafetyWindowMapping:
        """Raw safety windows, memoized on the segment values."""
        return cached_safety_windows(self.segments)[0]

    @property
    def merged_safety_windows(self) -> AlignmentSafetyWindowMapping:
        return cached_safety_windows(self.segments)[1]

    def get_export_data(self) -> ExportData:
        return ExportData(
            segments=self.segments,
            representative=self.representative,
            member=self.member,
            x_ticks=self.x_ticks,
            y_ticks=self.y_ticks,
            transform=self._transform,
            settings=self._settings,
            layout=self.layout,
            descriptor_a=self.descriptor_a,
            descriptor_b=self.descriptor_b,
        )

    def scene(self) -> Scene:
        return build_scene(self.get_export_data())

    @property
    def canvas(self) -> Canvas:
        """The on-screen canvas at device-pixel ratio 1."""
        if self._canvas is None:
            self._canvas = render_scene(self.scene())
            _log.debug("rendered live canvas for transform %s", self._transform)
        return self._canvas

    def render_high_res_canvas(self, scale: float) -> Canvas:
        """Re-render the current view at ``scale`` device pixels per pixel.

        Scales are rebuilt from the layout and bound to the current
        transform, so the result shows the same region as :attr:`canvas`.
        """
        return render_scene(self.scene(), scale)

"""Tests for the live dot matrix view."""

from __future__ import annotations

import pytest

from emeraldviz.alignment_io import load_alignment_result
from emeraldviz.export import ExportSource
from emeraldviz.geometry import ZoomTransform
from emeraldviz.view import DotMatrixView


class TestView:
    def test_is_export_source(self, view):
        assert isinstance(view, ExportSource)

    def test_export_data_snapshot(self, view):
        view.set_transform(ZoomTransform(k=2.0, x=-40.0))
        data = view.get_export_data()
        assert data.transform == ZoomTransform(k=2.0, x=-40.0)
        assert data.descriptor_a == "sp|P02769|ALBU_BOVIN"
        assert data.layout is view.layout

    def test_canvas_cached_until_transform_changes(self, view):
        first = view.canvas
        assert view.canvas is first
        view.set_transform(ZoomTransform(k=1.5))
        assert view.canvas is not first

    def test_same_transform_keeps_canvas(self, view):
        first = view.canvas
        view.set_transform(ZoomTransform())
        assert view.canvas is first

    def test_toggle(self, view):
        assert not view.toggle("minimap").show_minimap
        assert view.toggle("minimap").show_minimap
        with pytest.raises(ValueError):
            view.toggle("legend")

    def test_high_res_matches_live_region(self, view):
        view.set_transform(ZoomTransform(k=2.0, x=-80.0, y=-80.0))
        live = view.canvas.get_context().convert("RGB")
        high = view.render_high_res_canvas(2.0).get_context().convert("RGB")
        assert high.size == (live.width * 2, live.height * 2)
        # downsampled high-res render should look like the live canvas
        reduced = high.resize(live.size)
        diff = sum(abs(a - b) for p, q in zip(reduced.getdata(), live.getdata()) for a, b in zip(p, q))
        assert diff / (live.width * live.height * 3) < 12

    def test_safety_windows_memoized(self, view):
        assert view.safety_windows is view.safety_windows
        spans = [(w.start_position, w.end_position) for w in view.merged_safety_windows.sequence_a]
        assert spans == [(5, 20)]

    def test_from_result(self, write_alignment):
        view = DotMatrixView.from_result(load_alignment_result(write_alignment()))
        assert view.descriptor_b == "sp|P02768|ALBU_HUMAN"
        assert len(view.x_ticks) == len(view.member)

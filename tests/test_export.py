"""Tests for export orchestration, filenames and readiness."""

from __future__ import annotations

import asyncio
import re
import threading
from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given
from hypothesis import strategies as st
from PIL import Image

from emeraldviz.export import (
    CanvasStatus,
    DownloadSink,
    ExportFormat,
    ExportOrchestrator,
    ExportStatus,
    check_canvas_status,
    generate_export_filename,
    wait_for_canvas_ready,
)
from emeraldviz.raster import Canvas
from emeraldviz.readiness import Readiness

NOW = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)
SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9_.]+$")


class StaticSource:
    """Export source serving a fixed canvas and the data of a real view."""

    def __init__(self, view, canvas):
        self._view = view
        self.canvas = canvas

    def get_export_data(self):
        return self._view.get_export_data()


class RecordingClipboard:
    def __init__(self):
        self.items = []

    def write_image(self, data, mime):
        self.items.append((data, mime))


class TestFilename:
    def test_both_descriptors(self):
        name = generate_export_filename("sp|P1|A_HUMAN", "sp|P2|B_HUMAN", "png", NOW)
        assert name == "emerald_alignment_sp_P1_A_HUMAN_vs_sp_P2_B_HUMAN_20240506T070809.png"

    def test_missing_descriptor(self):
        assert generate_export_filename("sp|P1|A", "", "svg", NOW) == "emerald_alignment_20240506T070809.svg"

    def test_descriptors_truncated(self):
        name = generate_export_filename("x" * 50, "y" * 50, "png", NOW)
        assert f"{'x' * 20}_vs_{'y' * 20}_" in name

    def test_timestamp_converted_to_utc(self):
        local = NOW.astimezone(timezone(timedelta(hours=5)))
        assert generate_export_filename(None, None, "png", local).endswith("20240506T070809.png")

    @given(st.text(max_size=60), st.text(max_size=60), st.sampled_from(["png", "jpeg", "svg"]))
    def test_always_filesystem_safe(self, a, b, ext):
        name = generate_export_filename(a, b, ext, NOW)
        assert SAFE_NAME_RE.match(name)
        assert name.endswith(f".{ext}")


class TestCanvasStatus:
    def test_missing(self):
        assert check_canvas_status(None) == CanvasStatus(False, "Canvas reference is missing")

    def test_zero_size(self):
        status = check_canvas_status(Canvas(Image.new("RGBA", (0, 3))))
        assert not status.is_ready
        assert "0x3" in status.error

    def test_tainted_is_security(self):
        canvas = Canvas.blank(4, 4)
        canvas.draw_image(Canvas.blank(1, 1), trusted=False)
        status = check_canvas_status(canvas)
        assert not status.is_ready
        assert status.security

    def test_ready(self):
        assert check_canvas_status(Canvas.blank(4, 4)).is_ready


class TestOrchestrator:
    def test_png_export(self, view, tmp_path):
        outcome = ExportOrchestrator(view, DownloadSink(tmp_path)).export("png", now=NOW)
        assert outcome.ok, outcome.message
        assert outcome.filename == "emerald_alignment_sp_P02769_ALBU_BOVIN_vs_sp_P02768_ALBU_HUMAN_20240506T070809.png"
        with Image.open(outcome.path) as image:
            assert image.size == (400, 400)

    def test_high_res_png_uses_re_render(self, view, tmp_path):
        outcome = ExportOrchestrator(view, DownloadSink(tmp_path)).export("png", resolution_scale=2, now=NOW)
        assert outcome.ok, outcome.message
        with Image.open(outcome.path) as image:
            assert image.size == (800, 800)

    def test_jpeg_export(self, view, tmp_path):
        outcome = ExportOrchestrator(view, DownloadSink(tmp_path)).export("jpg", quality=0.8)
        assert outcome.ok, outcome.message
        assert outcome.filename.endswith(".jpeg")

    def test_svg_export(self, view, tmp_path, output_dir):
        outcome = ExportOrchestrator(view, DownloadSink(output_dir)).export(ExportFormat.SVG, now=NOW)
        assert outcome.ok, outcome.message
        assert outcome.path.read_text().lstrip().startswith("<?xml")

    def test_svg_missing_canvas_is_error(self, view, tmp_path):
        outcome = ExportOrchestrator(StaticSource(view, None), DownloadSink(tmp_path)).export("svg")
        assert outcome.status is ExportStatus.ERROR
        assert outcome.category == "CanvasNotReadyError"
        assert list(tmp_path.iterdir()) == []

    def test_svg_tainted_canvas_is_security_error(self, view, tmp_path):
        canvas = Canvas.blank(10, 10)
        canvas.draw_image(Canvas.blank(1, 1), trusted=False)
        outcome = ExportOrchestrator(StaticSource(view, canvas), DownloadSink(tmp_path)).export("svg")
        assert outcome.status is ExportStatus.SECURITY_ERROR
        assert list(tmp_path.iterdir()) == []

    def test_missing_canvas_is_error(self, view, tmp_path):
        outcome = ExportOrchestrator(StaticSource(view, None), DownloadSink(tmp_path)).export("png")
        assert outcome.status is ExportStatus.ERROR
        assert outcome.category == "CanvasNotReadyError"
        assert list(tmp_path.iterdir()) == []

    def test_tainted_canvas_is_security_error(self, view, tmp_path):
        canvas = Canvas.blank(10, 10)
        canvas.draw_image(Canvas.blank(1, 1), trusted=False)
        outcome = ExportOrchestrator(StaticSource(view, canvas), DownloadSink(tmp_path)).export("png")
        assert outcome.status is ExportStatus.SECURITY_ERROR
        assert "external sources" in outcome.message

    def test_unknown_format(self, view, tmp_path):
        outcome = ExportOrchestrator(view, DownloadSink(tmp_path)).export("gif")
        assert outcome.status is ExportStatus.ERROR
        assert "gif" in outcome.message

    def test_resolution_scale_bounded(self, view, tmp_path):
        outcome = ExportOrchestrator(view, DownloadSink(tmp_path)).export("png", resolution_scale=64)
        assert outcome.status is ExportStatus.ERROR

    def test_unexpected_failure_reported(self, view, tmp_path):
        class Broken:
            canvas = None

            def get_export_data(self):
                raise RuntimeError("view went away")

        outcome = ExportOrchestrator(Broken(), DownloadSink(tmp_path)).export("svg")
        assert outcome.status is ExportStatus.ERROR
        assert outcome.message == "view went away"

    def test_concurrent_request_rejected(self, view, tmp_path):
        entered = threading.Event()
        release = threading.Event()

        class SlowSource(StaticSource):
            def get_export_data(self):
                entered.set()
                release.wait(5)
                return super().get_export_data()

        orchestrator = ExportOrchestrator(SlowSource(view, view.canvas), DownloadSink(tmp_path))
        results = []
        worker = threading.Thread(target=lambda: results.append(orchestrator.export("svg")))
        worker.start()
        assert entered.wait(5)
        rejected = orchestrator.export("png")
        release.set()
        worker.join(5)

        assert rejected.status is ExportStatus.ERROR
        assert "in progress" in rejected.message
        assert results[0].ok
        assert not orchestrator.busy

    def test_clipboard_copy(self, view, tmp_path):
        clipboard = RecordingClipboard()
        outcome = ExportOrchestrator(view, DownloadSink(tmp_path), clipboard).copy_to_clipboard()
        assert outcome.ok
        assert clipboard.items[0][1] == "image/png"

    def test_clipboard_unavailable(self, view, tmp_path):
        outcome = ExportOrchestrator(view, DownloadSink(tmp_path)).copy_to_clipboard()
        assert outcome.status is ExportStatus.ERROR
        assert outcome.category == "ClipboardUnsupportedError"


class TestReadiness:
    def test_ready_canvas(self, view):
        assert asyncio.run(wait_for_canvas_ready(view, timeout=0.1, interval=0.01)) is Readiness.READY

    def test_times_out_without_canvas(self, view):
        source = StaticSource(view, None)
        result = asyncio.run(wait_for_canvas_ready(source, timeout=0.05, interval=0.01))
        assert result is Readiness.TIMED_OUT

    def test_becomes_ready(self, view):
        source = StaticSource(view, None)

        async def scenario():
            async def attach():
                await asyncio.sleep(0.02)
                source.canvas = Canvas.blank(4, 4)

            task = asyncio.create_task(attach())
            result = await wait_for_canvas_ready(source, timeout=1.0, interval=0.005)
            await task
            return result

        assert asyncio.run(scenario()) is Readiness.READY


def test_sink_rejects_path_traversal(tmp_path):
    with pytest.raises(ValueError):
        DownloadSink(tmp_path).save("../escape.png", b"x")

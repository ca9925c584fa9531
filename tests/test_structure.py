"""Tests for the structure viewer boundary."""

from __future__ import annotations

import asyncio

import pytest

from emeraldviz.models import SequenceSafetyWindow
from emeraldviz.readiness import Readiness
from emeraldviz.structure import (
    StructureSource,
    StructureViewer,
    highlight_structure,
    wait_for_viewer_container,
)


class FakeViewer:
    def __init__(self, load_error=None, highlight_error=None):
        self.requests = []
        self.highlights = []
        self.load_error = load_error
        self.highlight_error = highlight_error
        self.disposed = False

    def load_structure(self, request):
        if self.load_error is not None:
            raise self.load_error
        self.requests.append(request)

    def set_highlight(self, ranges):
        if self.highlight_error is not None:
            raise self.highlight_error
        self.highlights.append(ranges)

    def dispose(self):
        self.disposed = True


WINDOWS = [SequenceSafetyWindow(10, 20), SequenceSafetyWindow(1, 5), SequenceSafetyWindow(15, 30)]


class TestSource:
    @pytest.mark.parametrize(
        "kwargs",
        [{}, {"uniprot_id": "P02769", "pdb_id": "1AO6"}, {"pdb_url": "", "pdb_content": ""}],
    )
    def test_exactly_one_source(self, kwargs):
        with pytest.raises(ValueError):
            StructureSource(**kwargs)

    def test_kind_and_value(self):
        source = StructureSource(pdb_id="1AO6")
        assert (source.kind, source.value) == ("pdb_id", "1AO6")
        assert not source.is_binary

    def test_fake_viewer_satisfies_protocol(self):
        assert isinstance(FakeViewer(), StructureViewer)


class TestHighlight:
    def test_loads_and_highlights_merged_windows(self):
        viewer = FakeViewer()
        loaded = []
        ok = highlight_structure(
            viewer,
            StructureSource(uniprot_id="P02769"),
            "MKWV",
            WINDOWS,
            on_structure_loaded=lambda: loaded.append(True),
        )
        assert ok
        assert loaded == [True]
        spans = [(w.start_position, w.end_position) for w in viewer.highlights[0]]
        assert spans == [(1, 5), (10, 30)]
        assert viewer.requests[0].safety_windows == viewer.highlights[0]

    def test_highlighting_disabled_clears(self):
        viewer = FakeViewer()
        highlight_structure(viewer, StructureSource(pdb_id="1AO6"), "MKWV", WINDOWS, enable_highlighting=False)
        assert viewer.highlights == [()]

    def test_load_failure_reported(self):
        errors = []
        ok = highlight_structure(
            FakeViewer(load_error=RuntimeError("404 Not Found")),
            StructureSource(uniprot_id="P99999"),
            "MKWV",
            WINDOWS,
            on_structure_loaded=lambda: pytest.fail("should not report loaded"),
            on_error=errors.append,
        )
        assert not ok
        assert errors == ['Structure not found. The UniProt ID "P99999" may not have an available structure in the database.']

    def test_network_failure_message(self):
        errors = []
        highlight_structure(
            FakeViewer(load_error=ConnectionError("reset")),
            StructureSource(pdb_url="https://files.rcsb.org/download/1AO6.cif"),
            "MKWV",
            [],
            on_error=errors.append,
        )
        assert errors[0].startswith("Network error")

    def test_highlight_failure_is_not_fatal(self):
        loaded = []
        ok = highlight_structure(
            FakeViewer(highlight_error=RuntimeError("no loci")),
            StructureSource(pdb_content="ATOM ..."),
            "MKWV",
            WINDOWS,
            on_structure_loaded=lambda: loaded.append(True),
        )
        assert ok
        assert loaded == [True]


class TestContainerReadiness:
    def test_ready(self):
        result = asyncio.run(wait_for_viewer_container(lambda: True, timeout=0.1, interval=0.01))
        assert result is Readiness.READY

    def test_timeout(self):
        result = asyncio.run(wait_for_viewer_container(lambda: False, timeout=0.03, interval=0.01))
        assert result is Readiness.TIMED_OUT

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            asyncio.run(wait_for_viewer_container(lambda: True, timeout=1, interval=0))

"""Shared fixtures for emeraldviz tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from emeraldviz.geometry import PlotLayout
from emeraldviz.models import AlignmentDot, AlignmentSegment, Edge
from emeraldviz.view import DotMatrixView

OUTPUT_DIR = Path(__file__).parent / "output"

REPRESENTATIVE = "MKWVTFISLLLLFSSAYSRGVFRRDTHKSEIAHRFKDLGE"
MEMBER = "MKWVTFISLLFLFSSAYSRGVFRRDAHKSEVAHRFKDLGEENFK"


@pytest.fixture(scope="session", autouse=True)
def ensure_output_dir() -> None:
    """Create tests/output/ once per session."""
    OUTPUT_DIR.mkdir(exist_ok=True)


@pytest.fixture
def output_dir() -> Path:
    """Persistent output directory for visual inspection."""
    return OUTPUT_DIR


@pytest.fixture
def segments() -> tuple[AlignmentSegment, ...]:
    """A diagonal path plus two overlapping safety windows."""
    path = AlignmentSegment(
        "blue",
        tuple(Edge((i, i), (i + 1, i + 1), 0.3 + 0.02 * i) for i in range(30)),
    )
    window_1 = AlignmentSegment("#2E8B57", (), AlignmentDot(4, 4), AlignmentDot(12, 12))
    window_2 = AlignmentSegment("#2E8B57", (), AlignmentDot(10, 10), AlignmentDot(20, 20))
    return (path, window_1, window_2)


@pytest.fixture
def small_layout() -> PlotLayout:
    """Compact layout keeping rendering tests fast."""
    return PlotLayout(width=400, height=400)


@pytest.fixture
def view(segments, small_layout) -> DotMatrixView:
    return DotMatrixView(
        segments,
        REPRESENTATIVE,
        MEMBER,
        layout=small_layout,
        descriptor_a="sp|P02769|ALBU_BOVIN",
        descriptor_b="sp|P02768|ALBU_HUMAN",
    )


@pytest.fixture
def write_alignment(tmp_path: Path) -> Callable[..., Path]:
    """Factory fixture that writes an alignment result and returns the path."""

    def _write(document: dict | None = None, filename: str = "alignment.json") -> Path:
        if document is None:
            document = {
                "representative": REPRESENTATIVE,
                "member": MEMBER,
                "descriptorA": "sp|P02769|ALBU_BOVIN",
                "descriptorB": "sp|P02768|ALBU_HUMAN",
                "alignments": [
                    {
                        "color": "blue",
                        "edges": [
                            {"from": [i, i], "to": [i + 1, i + 1], "probability": 0.9}
                            for i in range(10)
                        ],
                    },
                    {"color": "#2E8B57", "edges": [], "startDot": {"x": 4, "y": 9}, "endDot": {"x": 10, "y": 20}},
                ],
            }
        path = tmp_path / filename
        if path.suffix in (".yaml", ".yml"):
            import yaml

            path.write_text(yaml.safe_dump(document))
        else:
            path.write_text(json.dumps(document))
        return path

    return _write

"""emeraldviz: dot matrix alignment viewer with safety-window export.

Examples:
    >>> import emeraldviz
    >>> hasattr(emeraldviz, '__version__')
    True
"""

from importlib.metadata import PackageNotFoundError, version

from emeraldviz.alignment_io import AlignmentResult, load_alignment_result
from emeraldviz.export import ExportOrchestrator, ExportOutcome, ExportStatus, generate_export_filename
from emeraldviz.geometry import PlotLayout, ZoomTransform
from emeraldviz.models import (
    AlignmentDot,
    AlignmentSafetyWindowMapping,
    AlignmentSegment,
    Edge,
    ExportData,
    SequenceSafetyWindow,
    VisualizationSettings,
)
from emeraldviz.safety_windows import extract_safety_windows_from_alignments, merge_safety_windows
from emeraldviz.svg import export_svg
from emeraldviz.view import DotMatrixView

try:
    __version__ = version("emeraldviz")
except PackageNotFoundError:
    __version__ = "0.0.0"
__all__ = [
    "AlignmentDot",
    "AlignmentResult",
    "AlignmentSafetyWindowMapping",
    "AlignmentSegment",
    "DotMatrixView",
    "Edge",
    "ExportData",
    "ExportOrchestrator",
    "ExportOutcome",
    "ExportStatus",
    "PlotLayout",
    "SequenceSafetyWindow",
    "VisualizationSettings",
    "ZoomTransform",
    "export_svg",
    "extract_safety_windows_from_alignments",
    "generate_export_filename",
    "load_alignment_result",
    "merge_safety_windows",
]

"""Exception hierarchy for the export pipeline.

Exporters raise these; :class:`~emeraldviz.export.ExportOrchestrator` is the
boundary that turns them into reported outcomes.
"""

from __future__ import annotations


class ExportError(Exception):
    """Base class for every failure an export can report."""


class CanvasNotReadyError(ExportError):
    """The canvas is missing, has zero size, or offers no 2-D context."""


class CanvasSecurityError(ExportError):
    """The canvas holds content from an untrusted origin and cannot be read back."""


class ClipboardUnsupportedError(ExportError):
    """No clipboard capable of holding the requested content is available."""


class ClipboardPermissionError(ExportError):
    """The clipboard refused the write."""


class SerializationError(ExportError):
    """Encoding the export produced no usable content."""

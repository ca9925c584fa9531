"""Boundary to the 3-D structure viewer.

Structure parsing and rendering live outside this package. This module
defines what is handed to a viewer (:class:`StructureRequest`), the
capability a viewer must offer (:class:`StructureViewer`) and the glue that
loads a structure and highlights its merged safety windows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Protocol, runtime_checkable

from emeraldviz.config import READINESS_INTERVAL, READINESS_TIMEOUT
from emeraldviz.models import SequenceSafetyWindow
from emeraldviz.readiness import Readiness, wait_until_ready
from emeraldviz.safety_windows import merge_safety_windows

_log = logging.getLogger(__name__)

SOURCE_FIELDS = ("uniprot_id", "pdb_id", "pdb_url", "pdb_content")


@dataclass(frozen=True)
class StructureSource:
    """Where a structure comes from; exactly one field is set.

    Examples:
        >>> StructureSource(uniprot_id="P02769").kind
        'uniprot_id'
        >>> StructureSource(pdb_url="https://x/1abc.cif").is_binary
        True
        >>> StructureSource()
        Traceback (most recent call last):
        ...
        ValueError: Exactly one structure source must be given, got 0
    """

    uniprot_id: Optional[str] = None
    pdb_id: Optional[str] = None
    pdb_url: Optional[str] = None
    pdb_content: Optional[str] = None

    def __post_init__(self) -> None:
        given = [name for name in SOURCE_FIELDS if getattr(self, name)]
        if len(given) != 1:
            raise ValueError(f"Exactly one structure source must be given, got {len(given)}")

    @property
    def kind(self) -> str:
        return next(name for name in SOURCE_FIELDS if getattr(self, name))

    @property
    def value(self) -> str:
        return getattr(self, self.kind)

    @property
    def is_binary(self) -> bool:
        """Whether a URL source points at mmCIF/BinaryCIF data."""
        if self.pdb_url is None:
            return False
        lowered = self.pdb_url.lower()
        return ".cif" in lowered or ".bcif" in lowered


@dataclass(frozen=True)
class StructureRequest:
    source: StructureSource
    sequence: str
    safety_windows: tuple[SequenceSafetyWindow, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "safety_windows", tuple(self.safety_windows))


@runtime_checkable
class StructureViewer(Protocol):
    """Capability offered by a structure viewer."""

    def load_structure(self, request: StructureRequest) -> None: ...

    def set_highlight(self, ranges: tuple[SequenceSafetyWindow, ...]) -> None: ...

    def dispose(self) -> None: ...


def describe_load_error(exc: Exception, source: StructureSource) -> str:
    """Turn a viewer failure into a message for the user.

    Examples:
        >>> describe_load_error(RuntimeError("HTTP 404"), StructureSource(pdb_id="1ABC"))
        'Structure not found. The PDB ID "1ABC" may not have an available structure in the database.'
        >>> describe_load_error(RuntimeError("boom"), StructureSource(pdb_id="1ABC"))
        'Structure loading error: boom'
    """
    message = str(exc)
    if "404" in message or "Not Found" in message:
        label = "UniProt ID" if source.uniprot_id else "PDB ID"
        identifier = source.uniprot_id or source.pdb_id or source.value
        return f'Structure not found. The {label} "{identifier}" may not have an available structure in the database.'
    if "Invalid data cell" in message:
        return "Structure file format error. The structure data appears to be corrupted or in an unsupported format."
    if "Network" in message or isinstance(exc, ConnectionError):
        return "Network error: Unable to download structure. Please check your internet connection."
    return f"Structure loading error: {message}"


def highlight_structure(
    viewer: StructureViewer,
    source: StructureSource,
    sequence: str,
    windows: Iterable[SequenceSafetyWindow],
    *,
    enable_highlighting: bool = True,
    on_structure_loaded: Optional[Callable[[], None]] = None,
    on_error: Optional[Callable[[str], None]] = None,
) -> bool:
    """Load a structure into ``viewer`` and highlight its safety windows.

    Windows are merged before they are handed over. A failed load is
    reported through ``on_error``; a failed highlight only logs a warning
    and still counts as loaded.

    Args:
        viewer: The structure viewer capability.
        source: Where to load the structure from.
        sequence: Flat sequence of the structure's chain.
        windows: Safety windows on that sequence, merged or not.
        enable_highlighting: Clear highlights instead of setting them when false.
        on_structure_loaded: Called after a successful load.
        on_error: Called with a user-facing message on failure.

    Returns:
        Whether the structure loaded.
    """
    merged = tuple(merge_safety_windows(windows))
    request = StructureRequest(source, sequence, merged)
    try:
        viewer.load_structure(request)
    except Exception as exc:
        message = describe_load_error(exc, source)
        _log.error("structure load failed (%s): %s", source.kind, exc)
        if on_error is not None:
            on_error(message)
        return False

    highlights = merged if enable_highlighting else ()
    try:
        viewer.set_highlight(highlights)
    except Exception as exc:
        _log.warning("could not apply safety window highlighting: %s", exc)
    else:
        _log.debug("highlighted %d safety window(s)", len(highlights))

    if on_structure_loaded is not None:
        on_structure_loaded()
    return True


async def wait_for_viewer_container(
    is_ready: Callable[[], bool],
    timeout: float = READINESS_TIMEOUT,
    interval: float = READINESS_INTERVAL,
) -> Readiness:
    """Wait for the viewer's host container before initializing the viewer."""
    return await wait_until_ready(is_ready, timeout, interval)

"""Export orchestration: readiness checks, format dispatch and outcomes.

:class:`ExportOrchestrator` is the only place export failures are caught.
Everything below it raises :mod:`emeraldviz.errors` exceptions; the
orchestrator logs them and hands back a single :class:`ExportOutcome`.
"""

from __future__ import annotations

import enum
import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol, Union, runtime_checkable

from emeraldviz.config import (
    DEFAULT_JPEG_QUALITY,
    MAX_RESOLUTION_SCALE,
    READINESS_INTERVAL,
    READINESS_TIMEOUT,
)
from emeraldviz.errors import CanvasNotReadyError, CanvasSecurityError, ExportError
from emeraldviz.models import ExportData
from emeraldviz.raster import Canvas, Clipboard, copy_canvas_to_clipboard, export_raster
from emeraldviz.readiness import Readiness, wait_until_ready
from emeraldviz.svg import export_svg

_log = logging.getLogger(__name__)

FILENAME_PREFIX = "emerald_alignment"
_UNSAFE_RE = re.compile(r"[^A-Za-z0-9]")


class ExportFormat(str, enum.Enum):
    PNG = "png"
    JPEG = "jpeg"
    SVG = "svg"

    @classmethod
    def parse(cls, value: Union[str, "ExportFormat"]) -> "ExportFormat":
        """Parse a user-supplied format name; ``jpg`` is accepted for JPEG.

        Examples:
            >>> ExportFormat.parse("JPG")
            <ExportFormat.JPEG: 'jpeg'>
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized == "jpg":
            normalized = "jpeg"
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unsupported export format '{value}'") from None


class ExportStatus(enum.Enum):
    SUCCESS = "success"
    SECURITY_ERROR = "security_error"
    ERROR = "error"


@dataclass(frozen=True)
class ExportOutcome:
    """Result of one export or clipboard request.

    Attributes:
        status: Success, security error or generic error.
        message: Human readable summary.
        filename: Generated filename, on success of a file export.
        path: Where the sink stored the file.
        category: Exception class name behind a failure.
    """

    status: ExportStatus
    message: str = ""
    filename: Optional[str] = None
    path: Optional[Path] = None
    category: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ExportStatus.SUCCESS


def sanitize_descriptor(descriptor: str) -> str:
    """Replace every non-alphanumeric character and cap the length at 20.

    Examples:
        >>> sanitize_descriptor("sp|P02769|ALBU_BOVIN Albumin")
        'sp_P02769_ALBU_BOVIN'
    """
    return _UNSAFE_RE.sub("_", descriptor)[:20]


def generate_export_filename(
    descriptor_a: Optional[str],
    descriptor_b: Optional[str],
    extension: str,
    now: Optional[datetime] = None,
) -> str:
    """Build a filesystem-safe export filename.

    Args:
        descriptor_a: Descriptor of sequence A, or ``None``.
        descriptor_b: Descriptor of sequence B, or ``None``.
        extension: File extension without the dot.
        now: Timestamp to embed; defaults to the current UTC time.

    Returns:
        ``emerald_alignment_{A}_vs_{B}_{timestamp}.{ext}``, or
        ``emerald_alignment_{timestamp}.{ext}`` when a descriptor is missing.

    Examples:
        >>> ts = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        >>> generate_export_filename("sp|P1|A_HUMAN", "sp|P2|B_HUMAN", "png", ts)
        'emerald_alignment_sp_P1_A_HUMAN_vs_sp_P2_B_HUMAN_20240102T030405.png'
        >>> generate_export_filename(None, "x", "svg", ts)
        'emerald_alignment_20240102T030405.svg'
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    timestamp = now.strftime("%Y%m%dT%H%M%S")
    extension = extension.lstrip(".")
    if descriptor_a and descriptor_b:
        a, b = sanitize_descriptor(descriptor_a), sanitize_descriptor(descriptor_b)
        return f"{FILENAME_PREFIX}_{a}_vs_{b}_{timestamp}.{extension}"
    return f"{FILENAME_PREFIX}_{timestamp}.{extension}"


@dataclass(frozen=True)
class CanvasStatus:
    """Readiness of a canvas for read-back.

    ``security`` is set when the trial encode failed because of taint.
    """

    is_ready: bool
    error: Optional[str] = None
    security: bool = False


def check_canvas_status(canvas: Optional[Canvas]) -> CanvasStatus:
    """Validate that a canvas can be exported right now.

    Checks, in order: present, non-zero size, drawable context, and a trial
    low-quality PNG encode.

    Examples:
        >>> check_canvas_status(None).error
        'Canvas reference is missing'
        >>> check_canvas_status(Canvas.blank(2, 2)).is_ready
        True
    """
    if canvas is None:
        return CanvasStatus(False, "Canvas reference is missing")
    if canvas.width == 0 or canvas.height == 0:
        return CanvasStatus(False, f"Canvas has invalid dimensions: {canvas.width}x{canvas.height}")
    if canvas.get_context() is None:
        return CanvasStatus(False, "Unable to get canvas rendering context")
    try:
        canvas.to_data_url("image/png", 0.1)
    except CanvasSecurityError as exc:
        return CanvasStatus(False, str(exc), security=True)
    except (ExportError, OSError, ValueError) as exc:
        return CanvasStatus(False, f"Canvas export test failed: {exc}")
    return CanvasStatus(True)


async def wait_for_canvas_ready(
    source: "ExportSource",
    timeout: float = READINESS_TIMEOUT,
    interval: float = READINESS_INTERVAL,
) -> Readiness:
    """Wait until the source's canvas passes :func:`check_canvas_status`."""
    return await wait_until_ready(lambda: check_canvas_status(source.canvas).is_ready, timeout, interval)


@runtime_checkable
class ExportSource(Protocol):
    """What an exporter pulls from the live view.

    Sources may additionally provide ``render_high_res_canvas(scale)``;
    exports fall back to bitmap scaling when it is absent.
    """

    @property
    def canvas(self) -> Optional[Canvas]: ...

    def get_export_data(self) -> ExportData: ...


class DownloadSink:
    """Stores exported files in a directory.

    Examples:
        >>> import tempfile
        >>> with tempfile.TemporaryDirectory() as tmp:
        ...     DownloadSink(tmp).save("a.svg", "<svg/>").read_text()
        '<svg/>'
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def save(self, filename: str, content: Union[bytes, str]) -> Path:
        if Path(filename).name != filename:
            raise ValueError(f"Refusing to write outside the download directory: {filename!r}")
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / filename
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_bytes(content)
        return path


class ExportOrchestrator:
    """Serializes export requests against one source and reports outcomes.

    Only one request runs at a time; a request made while another is in
    flight is rejected with an error outcome.

    Args:
        source: The live view (or anything satisfying :class:`ExportSource`).
        sink: Destination for exported files.
        clipboard: Optional clipboard capability for :meth:`copy_to_clipboard`.
    """

    def __init__(
        self,
        source: ExportSource,
        sink: DownloadSink,
        clipboard: Optional[Clipboard] = None,
    ) -> None:
        self.source = source
        self.sink = sink
        self.clipboard = clipboard
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def export(
        self,
        fmt: Union[str, ExportFormat],
        quality: float = DEFAULT_JPEG_QUALITY,
        resolution_scale: float = 1.0,
        now: Optional[datetime] = None,
    ) -> ExportOutcome:
        """Export the current view as PNG, JPEG or SVG.

        Args:
            fmt: ``png``, ``jpeg`` (or ``jpg``) or ``svg``.
            quality: JPEG quality in ``[0, 1]``.
            resolution_scale: Raster output multiplier, ``1`` to the configured maximum.
            now: Timestamp embedded in the filename.

        Returns:
            Exactly one outcome; never raises.
        """
        if not self._lock.acquire(blocking=False):
            return self._busy_outcome(str(fmt))
        filename = None
        try:
            fmt = ExportFormat.parse(fmt)
            if not 1 <= resolution_scale <= MAX_RESOLUTION_SCALE:
                raise ValueError(f"Resolution scale must be between 1 and {MAX_RESOLUTION_SCALE}")
            data = self.source.get_export_data()
            filename = generate_export_filename(data.descriptor_a, data.descriptor_b, fmt.value, now)
            canvas = self._ready_canvas()

            if fmt is ExportFormat.SVG:
                path = self.sink.save(filename, export_svg(data))
                method = "vector"
            else:
                image = export_raster(
                    canvas,
                    fmt.value,
                    quality if fmt is ExportFormat.JPEG else 1.0,
                    resolution_scale,
                    getattr(self.source, "render_high_res_canvas", None),
                )
                path = self.sink.save(filename, image.data)
                method = image.method

            _log.info(
                "exported %s to %s",
                fmt.value,
                path,
                extra={"export_format": fmt.value, "export_filename": filename, "export_method": method},
            )
            return ExportOutcome(ExportStatus.SUCCESS, f"Saved {filename}", filename, path)
        except Exception as exc:
            return self._failure(exc, str(getattr(fmt, "value", fmt)), filename)
        finally:
            self._lock.release()

    def copy_to_clipboard(self) -> ExportOutcome:
        """Copy the live canvas to the clipboard as PNG."""
        if not self._lock.acquire(blocking=False):
            return self._busy_outcome("clipboard")
        try:
            copy_canvas_to_clipboard(self._ready_canvas(), self.clipboard)
            _log.info("copied plot to clipboard", extra={"export_format": "png"})
            return ExportOutcome(ExportStatus.SUCCESS, "Copied to clipboard")
        except Exception as exc:
            return self._failure(exc, "clipboard", None)
        finally:
            self._lock.release()

    async def wait_until_ready(
        self,
        timeout: float = READINESS_TIMEOUT,
        interval: float = READINESS_INTERVAL,
    ) -> Readiness:
        return await wait_for_canvas_ready(self.source, timeout, interval)

    def _ready_canvas(self) -> Canvas:
        canvas = self.source.canvas
        status = check_canvas_status(canvas)
        if status.security:
            raise CanvasSecurityError(status.error)
        if not status.is_ready:
            raise CanvasNotReadyError(status.error)
        return canvas

    def _busy_outcome(self, fmt: str) -> ExportOutcome:
        _log.warning("rejected %s export: another export is in progress", fmt)
        return ExportOutcome(
            ExportStatus.ERROR,
            "Another export is already in progress",
            category="ExportInProgress",
        )

    def _failure(self, exc: Exception, fmt: str, filename: Optional[str]) -> ExportOutcome:
        category = type(exc).__name__
        extra = {"export_format": fmt, "export_filename": filename, "error_category": category}
        if isinstance(exc, CanvasSecurityError):
            _log.error("export blocked by canvas security: %s", exc, extra=extra)
            return ExportOutcome(ExportStatus.SECURITY_ERROR, str(exc), filename, category=category)
        if isinstance(exc, (ExportError, ValueError)):
            _log.error("export failed: %s", exc, extra=extra)
        else:
            _log.exception("unexpected export failure", extra=extra)
        return ExportOutcome(ExportStatus.ERROR, str(exc) or category, filename, category=category)

"""Raster rendering and PNG/JPEG export.

The scene built by :mod:`emeraldviz.scene` is drawn with matplotlib's Agg
backend onto an off-screen :class:`Canvas`. Exports either re-render the
scene at a higher device-pixel ratio or, when no re-render is available,
resample the existing bitmap with Pillow.
"""

from __future__ import annotations

import base64
import io
import logging
import math
import re
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

import matplotlib

matplotlib.use("Agg")
import matplotlib.colors as mcolors
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes
from matplotlib.lines import Line2D
from matplotlib.patches import Circle as CirclePatch
from matplotlib.patches import Rectangle
from PIL import Image

from emeraldviz.config import BASE_DPI
from emeraldviz.errors import (
    CanvasNotReadyError,
    CanvasSecurityError,
    ClipboardPermissionError,
    ClipboardUnsupportedError,
    SerializationError,
)
from emeraldviz.scene import Circle, Group, Line, Rect, Scene, Text

_log = logging.getLogger(__name__)

MIME_TYPES: dict[str, str] = {"png": "image/png", "jpeg": "image/jpeg"}

_CSS_RGB_RE = re.compile(r"^rgba?\(\s*([^)]*)\)$", re.IGNORECASE)
_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<payload>.*)$", re.DOTALL)

_HA = {"start": "left", "middle": "center", "end": "right"}
_VA = {"middle": "center", "bottom": "bottom"}

HighResRenderer = Callable[[float], Optional["Canvas"]]


# -- Canvas ------------------------------------------------------------------


class Canvas:
    """Off-screen RGBA bitmap.

    A canvas becomes *tainted* once content from an untrusted origin is
    drawn onto it; tainted canvases refuse every read-back.

    Attributes:
        device_pixel_ratio: Pixels per CSS pixel the canvas was rendered at.

    Examples:
        >>> c = Canvas.blank(4, 3)
        >>> (c.width, c.height)
        (4, 3)
        >>> c.to_data_url().startswith("data:image/png;base64,")
        True
        >>> Canvas(None).width
        0
    """

    def __init__(
        self,
        image: Image.Image | None,
        *,
        device_pixel_ratio: float = 1.0,
        tainted: bool = False,
    ) -> None:
        self._image = image
        self.device_pixel_ratio = device_pixel_ratio
        self._tainted = tainted

    @classmethod
    def blank(cls, width: int, height: int, color: str = "white") -> "Canvas":
        return cls(Image.new("RGBA", (width, height), color))

    @property
    def width(self) -> int:
        return self._image.width if self._image is not None else 0

    @property
    def height(self) -> int:
        return self._image.height if self._image is not None else 0

    @property
    def tainted(self) -> bool:
        return self._tainted

    def get_context(self) -> Image.Image | None:
        """Return the drawable bitmap, or ``None`` when none is available."""
        if self._image is None or self._image.mode not in ("RGBA", "RGB"):
            return None
        return self._image

    def draw_image(self, source: "Canvas | Image.Image", x: int = 0, y: int = 0, *, trusted: bool = True) -> None:
        """Composite another bitmap onto this canvas.

        Drawing untrusted content, or a canvas that is already tainted,
        taints this canvas.
        """
        context = self.get_context()
        if context is None:
            raise CanvasNotReadyError("Unable to get canvas rendering context")
        if isinstance(source, Canvas):
            if source.tainted:
                trusted = False
            source = source._image
        if source is None:
            return
        context.alpha_composite(source.convert("RGBA"), (x, y))
        if not trusted:
            self._tainted = True

    def encode(self, fmt: str = "png", quality: float = 1.0) -> bytes:
        """Encode the bitmap as PNG or JPEG bytes.

        Raises:
            CanvasSecurityError: If the canvas is tainted.
            CanvasNotReadyError: If no bitmap is available.
            ValueError: If ``fmt`` is not ``png`` or ``jpeg``.
        """
        if fmt not in MIME_TYPES:
            raise ValueError(f"Unsupported raster format '{fmt}'")
        if self._tainted:
            raise CanvasSecurityError(
                "The canvas contains content from external sources that cannot be exported securely."
            )
        context = self.get_context()
        if context is None:
            raise CanvasNotReadyError("Unable to get canvas rendering context")

        buffer = io.BytesIO()
        if fmt == "jpeg":
            flattened = Image.new("RGB", context.size, "white")
            flattened.paste(context.convert("RGBA"), mask=context.convert("RGBA").getchannel("A"))
            flattened.save(buffer, format="JPEG", quality=jpeg_quality(quality))
        else:
            context.save(buffer, format="PNG")
        return buffer.getvalue()

    def to_data_url(self, mime: str = "image/png", quality: float = 1.0) -> str:
        """Serialize to a ``data:`` URL, mirroring a browser canvas."""
        fmt = {v: k for k, v in MIME_TYPES.items()}.get(mime)
        if fmt is None:
            raise ValueError(f"Unsupported MIME type '{mime}'")
        payload = base64.b64encode(self.encode(fmt, quality)).decode("ascii")
        return f"data:{mime};base64,{payload}"

    def to_blob(self) -> bytes:
        return self.encode("png")


def jpeg_quality(quality: float) -> int:
    """Map a 0-1 quality to Pillow's JPEG quality scale.

    Examples:
        >>> jpeg_quality(0.9), jpeg_quality(0.0), jpeg_quality(2)
        (90, 1, 100)
    """
    return max(1, min(100, int(round(quality * 100))))


def decode_data_url(data_url: str) -> tuple[str, bytes]:
    """Split a base64 ``data:`` URL into its MIME type and payload.

    Raises:
        SerializationError: If the URL is malformed or empty.
    """
    match = _DATA_URL_RE.match(data_url or "")
    if match is None:
        raise SerializationError("Canvas produced an invalid data URL")
    payload = base64.b64decode(match.group("payload"))
    if not payload:
        raise SerializationError("Canvas produced an empty image")
    return match.group("mime"), payload


# -- Scene rendering ---------------------------------------------------------


def to_mpl_color(color: str | None):
    """Convert a CSS color (hex, name, ``rgb()``/``rgba()``) to a matplotlib color.

    Examples:
        >>> to_mpl_color("rgba(0, 180, 0, 0.5)")
        (0.0, 0.7058823529411765, 0.0, 0.5)
        >>> to_mpl_color("none")
        'none'
    """
    if color is None or color == "none":
        return "none"
    match = _CSS_RGB_RE.match(color.strip())
    if match:
        parts = [float(part) for part in match.group(1).split(",")]
        red, green, blue = (channel / 255.0 for channel in parts[:3])
        alpha = parts[3] if len(parts) > 3 else 1.0
        return (red, green, blue, alpha)
    return mcolors.to_rgba(color)


def _draw_primitive(ax: Axes, item, px_to_pt: float, clip: Rectangle | None) -> None:
    if isinstance(item, Line):
        artist = Line2D(
            [item.x1, item.x2],
            [item.y1, item.y2],
            color=to_mpl_color(item.stroke),
            linewidth=item.stroke_width * px_to_pt,
            alpha=item.opacity,
            solid_capstyle="butt",
        )
        ax.add_line(artist)
    elif isinstance(item, Rect):
        artist = Rectangle(
            (item.x, item.y),
            item.width,
            item.height,
            facecolor=to_mpl_color(item.fill),
            edgecolor=to_mpl_color(item.stroke),
            linewidth=item.stroke_width * px_to_pt if item.stroke else 0.0,
        )
        ax.add_patch(artist)
    elif isinstance(item, Circle):
        artist = CirclePatch((item.cx, item.cy), item.r, facecolor=to_mpl_color(item.fill), edgecolor="none")
        ax.add_patch(artist)
    elif isinstance(item, Text):
        artist = ax.text(
            item.x,
            item.y,
            item.text,
            ha=_HA.get(item.anchor, "center"),
            va=_VA.get(item.baseline, "center"),
            fontsize=item.font_size * px_to_pt,
            fontweight=item.weight,
            family=item.family,
            color=to_mpl_color(item.fill),
        )
    else:
        raise TypeError(f"Unknown scene primitive {type(item).__name__}")
    if clip is not None:
        artist.set_clip_path(clip)


def _draw_group(ax: Axes, group: Group, px_to_pt: float, clip: Rectangle | None) -> None:
    for child in group.children:
        if isinstance(child, Group):
            _draw_group(ax, child, px_to_pt, clip)
        else:
            _draw_primitive(ax, child, px_to_pt, clip)


def render_scene(scene: Scene, scale: float = 1.0) -> Canvas:
    """Draw a scene onto a new canvas at ``scale`` device pixels per CSS pixel.

    Geometry stays in CSS pixels; only the output density changes, so a
    canvas rendered at ``scale=4`` has the same proportions as at ``1``.

    Args:
        scene: Scene from :func:`emeraldviz.scene.build_scene`.
        scale: Device-pixel ratio, ``>= 1``.

    Returns:
        An untainted canvas of ``scene.width * scale`` by ``scene.height * scale`` pixels.
    """
    if not math.isfinite(scale) or scale <= 0:
        raise ValueError("scale must be a positive number")
    fig = plt.figure(figsize=(scene.width / BASE_DPI, scene.height / BASE_DPI), dpi=BASE_DPI * scale)
    try:
        ax = fig.add_axes((0, 0, 1, 1))
        ax.set_xlim(0, scene.width)
        ax.set_ylim(scene.height, 0)
        ax.set_autoscale_on(False)
        ax.set_axis_off()
        px_to_pt = 72.0 / BASE_DPI

        bg = scene.background
        ax.add_patch(Rectangle((bg.x, bg.y), bg.width, bg.height, facecolor=to_mpl_color(bg.fill), edgecolor="none"))

        cr = scene.clip_rect
        clip = Rectangle((cr.x, cr.y), cr.width, cr.height, transform=ax.transData)
        for layer in scene.layers:
            _draw_group(ax, layer, px_to_pt, clip if layer.clip else None)

        fig.canvas.draw()
        image = Image.fromarray(np.array(fig.canvas.buffer_rgba()))
    finally:
        plt.close(fig)
    _log.debug("rendered scene at %sx: %dx%d px", scale, image.width, image.height)
    return Canvas(image, device_pixel_ratio=scale)


def create_scaled_canvas(source: Canvas, scale: float) -> Canvas:
    """Resample an existing bitmap by ``scale`` (lossy fallback).

    The result inherits the source's taint.

    Examples:
        >>> create_scaled_canvas(Canvas.blank(10, 4), 2.5).width
        25
    """
    context = source.get_context()
    if context is None:
        raise CanvasNotReadyError("Failed to get canvas context for scaling")
    size = (math.floor(source.width * scale), math.floor(source.height * scale))
    resized = context.resize(size, Image.Resampling.LANCZOS)
    return Canvas(resized, device_pixel_ratio=source.device_pixel_ratio * scale, tainted=source.tainted)


# -- Export ------------------------------------------------------------------


@dataclass(frozen=True)
class RasterImage:
    """Encoded raster export.

    Attributes:
        data: Encoded PNG or JPEG bytes.
        mime: MIME type of ``data``.
        width: Pixel width of the encoded image.
        height: Pixel height of the encoded image.
        method: ``native``, ``re-render`` or ``bitmap`` (lossy fallback).
    """

    data: bytes
    mime: str
    width: int
    height: int
    method: str


def normalize_raster_format(fmt: str) -> str:
    """Canonical raster format name.

    Examples:
        >>> normalize_raster_format("JPG")
        'jpeg'
    """
    normalized = fmt.strip().lower()
    if normalized == "jpg":
        normalized = "jpeg"
    if normalized not in MIME_TYPES:
        raise ValueError(f"Raster format must be 'png' or 'jpeg', got '{fmt}'")
    return normalized


def require_drawable(canvas: Canvas | None) -> Canvas:
    """Check the preconditions every raster read-back needs.

    Raises:
        CanvasNotReadyError: If the canvas is missing, empty or has no context.
    """
    if canvas is None:
        raise CanvasNotReadyError("Canvas reference is missing")
    if canvas.width == 0 or canvas.height == 0:
        raise CanvasNotReadyError(f"Canvas has invalid dimensions: {canvas.width}x{canvas.height}")
    if canvas.get_context() is None:
        raise CanvasNotReadyError("Unable to get canvas rendering context")
    return canvas


def export_raster(
    canvas: Canvas,
    fmt: str = "png",
    quality: float = 1.0,
    resolution_scale: float = 1.0,
    render_high_res: HighResRenderer | None = None,
) -> RasterImage:
    """Encode the plot as PNG or JPEG, optionally at higher resolution.

    With ``resolution_scale > 1`` the high-res renderer, when given, is
    called exactly once and its canvas is encoded as is. When it is missing
    or returns ``None`` the current bitmap is resampled instead.

    Args:
        canvas: The live canvas.
        fmt: ``png`` or ``jpeg``.
        quality: JPEG quality in ``[0, 1]``; ignored for PNG.
        resolution_scale: Output multiplier, ``>= 1``.
        render_high_res: Callback re-rendering the scene at a given ratio.

    Returns:
        The encoded image.

    Raises:
        CanvasNotReadyError: On missing/empty canvas or context.
        CanvasSecurityError: If the canvas to encode is tainted.
        SerializationError: If encoding yields nothing.
    """
    fmt = normalize_raster_format(fmt)
    if not math.isfinite(resolution_scale) or resolution_scale < 1:
        raise ValueError("resolution_scale must be >= 1")
    if not 0.0 <= quality <= 1.0:
        raise ValueError("quality must be between 0 and 1")
    require_drawable(canvas)

    target, method = canvas, "native"
    if resolution_scale > 1:
        rendered = render_high_res(resolution_scale) if render_high_res is not None else None
        if rendered is not None:
            target, method = require_drawable(rendered), "re-render"
        else:
            _log.info("no high-resolution renderer; resampling bitmap by %sx", resolution_scale)
            target, method = create_scaled_canvas(canvas, resolution_scale), "bitmap"

    mime = MIME_TYPES[fmt]
    _, data = decode_data_url(target.to_data_url(mime, quality if fmt == "jpeg" else 1.0))
    return RasterImage(data, mime, target.width, target.height, method)


@runtime_checkable
class Clipboard(Protocol):
    """System clipboard capability."""

    def write_image(self, data: bytes, mime: str) -> None: ...


def copy_canvas_to_clipboard(canvas: Canvas, clipboard: Clipboard | None) -> None:
    """Copy the canvas to the clipboard as a PNG image.

    Raises:
        ClipboardUnsupportedError: If no image-capable clipboard is available.
        ClipboardPermissionError: If the clipboard denies the write.
        CanvasSecurityError: If the canvas is tainted.
    """
    if clipboard is None or not callable(getattr(clipboard, "write_image", None)):
        raise ClipboardUnsupportedError("Clipboard API not supported")
    blob = require_drawable(canvas).to_blob()
    if not blob:
        raise SerializationError("Failed to create blob from canvas")
    try:
        clipboard.write_image(blob, MIME_TYPES["png"])
    except PermissionError as exc:
        raise ClipboardPermissionError(
            "Clipboard access was denied. You may need to grant clipboard permission."
        ) from exc

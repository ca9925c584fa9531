"""Standalone SVG export of the dot matrix scene."""

from __future__ import annotations

import logging
import math
import xml.etree.ElementTree as ET

from emeraldviz.errors import SerializationError
from emeraldviz.models import ExportData
from emeraldviz.scene import CLIP_ID, Circle, Group, Line, Rect, Scene, Text, build_scene

_log = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"
SVG_MIME = "image/svg+xml"

_BASELINES = {"middle": "middle", "bottom": "auto"}


def _num(value: float) -> str:
    """Format a coordinate compactly.

    Examples:
        >>> _num(12.0), _num(3.14159), _num(-0.0), _num(float('nan'))
        ('12', '3.142', '0', 'nan')
    """
    rounded = round(float(value), 3)
    if math.isfinite(rounded) and rounded == int(rounded):
        return str(int(rounded))
    return repr(rounded)


def get_svg_root(width: float, height: float) -> ET.Element:
    data = {
        "width": _num(width),
        "height": _num(height),
        "viewBox": f"0 0 {_num(width)} {_num(height)}",
        "version": "1.1",
        "xmlns": SVG_NS,
    }
    return ET.Element("svg", data)


def _rect_attrs(rect: Rect) -> dict[str, str]:
    # SVG rejects negative sizes; flip the origin instead.
    x = min(rect.x, rect.x + rect.width)
    y = min(rect.y, rect.y + rect.height)
    attrs = {
        "x": _num(x),
        "y": _num(y),
        "width": _num(abs(rect.width)),
        "height": _num(abs(rect.height)),
        "fill": rect.fill,
    }
    if rect.stroke:
        attrs["stroke"] = rect.stroke
        attrs["stroke-width"] = _num(rect.stroke_width)
    if rect.css_class:
        attrs["class"] = rect.css_class
    return attrs


def add_primitive(parent: ET.Element, item) -> ET.Element:
    """Append one scene primitive to ``parent`` and return the new element."""
    if isinstance(item, Line):
        attrs = {
            "x1": _num(item.x1),
            "y1": _num(item.y1),
            "x2": _num(item.x2),
            "y2": _num(item.y2),
            "stroke": item.stroke,
            "stroke-width": _num(item.stroke_width),
        }
        if item.opacity < 1.0:
            attrs["opacity"] = _num(item.opacity)
        if item.css_class:
            attrs["class"] = item.css_class
        return ET.SubElement(parent, "line", attrs)
    if isinstance(item, Rect):
        return ET.SubElement(parent, "rect", _rect_attrs(item))
    if isinstance(item, Circle):
        attrs = {"cx": _num(item.cx), "cy": _num(item.cy), "r": _num(item.r), "fill": item.fill}
        if item.css_class:
            attrs["class"] = item.css_class
        return ET.SubElement(parent, "circle", attrs)
    if isinstance(item, Text):
        element = ET.SubElement(
            parent,
            "text",
            {
                "x": _num(item.x),
                "y": _num(item.y),
                "font-family": item.family,
                "font-size": f"{_num(item.font_size)}px",
                "font-weight": item.weight,
                "fill": item.fill,
                "text-anchor": item.anchor,
                "dominant-baseline": _BASELINES.get(item.baseline, "middle"),
            },
        )
        element.text = item.text
        return element
    raise TypeError(f"Unknown scene primitive {type(item).__name__}")


def add_group(parent: ET.Element, group: Group) -> ET.Element:
    attrs = {"class": group.css_class}
    if group.clip:
        attrs["clip-path"] = f"url(#{CLIP_ID})"
    element = ET.SubElement(parent, "g", attrs)
    for child in group.children:
        if isinstance(child, Group):
            add_group(element, child)
        else:
            add_primitive(element, child)
    return element


def scene_to_svg(scene: Scene) -> ET.Element:
    """Build the ``<svg>`` element tree for a scene.

    The document is self-contained: a background rect, a ``plot-area``
    clip path and one ``<g>`` per drawn layer.
    """
    root = get_svg_root(scene.width, scene.height)
    add_primitive(root, scene.background)
    defs = ET.SubElement(root, "defs")
    clip = ET.SubElement(defs, "clipPath", {"id": CLIP_ID})
    add_primitive(clip, scene.clip_rect)
    for layer in scene.layers:
        add_group(root, layer)
    return root


def scene_to_svg_string(scene: Scene) -> str:
    """Serialize a scene as an SVG document string with an XML declaration."""
    body = ET.tostring(scene_to_svg(scene), encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body


def export_svg(data: ExportData) -> str:
    """Render export data as a standalone SVG document.

    The scene is rebuilt from ``data`` against its transform, so the
    document shows exactly the region visible in the live view.

    Args:
        data: Snapshot pulled from the live view.

    Returns:
        The SVG document text.

    Raises:
        SerializationError: If serialization yields no content.
    """
    document = scene_to_svg_string(build_scene(data))
    if not document.strip():
        raise SerializationError("SVG serialization produced no content")
    _log.debug("serialized SVG of %d characters", len(document))
    return document

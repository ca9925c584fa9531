"""Configuration loader for emeraldviz colors and scene styling.

Reads palette.yaml and style.yaml from the package directory and exposes
module-level constants used by the scene builder, renderers and exporters.

Examples:
    >>> palette = load_palette()
    >>> sorted(palette.keys()) == ['minimap', 'plot', 'safety']
    True
    >>> style = load_style()
    >>> sorted(style.keys()) == ['dots', 'edges', 'export', 'font', 'layout', 'minimap']
    True
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

_PKG_DIR = Path(__file__).parent


@lru_cache(maxsize=1)
def load_palette() -> dict[str, Any]:
    """Load color definitions from palette.yaml.

    Returns:
        Parsed YAML dict with ``plot``, ``safety`` and ``minimap`` keys.

    Examples:
        >>> palette = load_palette()
        >>> palette['safety']['highlight']
        'green'
        >>> 'viewport' in palette['minimap']
        True
    """
    return yaml.safe_load((_PKG_DIR / "palette.yaml").read_text())


@lru_cache(maxsize=1)
def load_style() -> dict[str, Any]:
    """Load layout and typography settings from style.yaml.

    Returns:
        Parsed YAML dict with ``layout``, ``minimap``, ``edges``, ``dots``,
        ``font`` and ``export`` keys.

    Examples:
        >>> style = load_style()
        >>> style['layout']['margin_left']
        80
        >>> style['edges']['min_opacity']
        0.5
    """
    return yaml.safe_load((_PKG_DIR / "style.yaml").read_text())


# -- Module-level constants ------------------------------------------------
_palette = load_palette()
_style = load_style()

BACKGROUND_COLOR: str = _palette["plot"]["background"]
AXIS_COLOR: str = _palette["plot"]["axis"]
GRID_COLOR: str = _palette["plot"]["grid"]
TICK_LABEL_COLOR: str = _palette["plot"]["tick_label"]
INDEX_LABEL_COLOR: str = _palette["plot"]["index_label"]
DEFAULT_EDGE_COLOR: str = _palette["plot"]["default_edge"]
DEFAULT_DOT_COLOR: str = _palette["plot"]["default_dot"]

SAFETY_COLOR: str = _palette["safety"]["highlight"]
SAFETY_FILL: str = _palette["safety"]["fill"]
DEFAULT_WINDOW_COLOR: str = _palette["safety"]["default_window"]

MINIMAP_BACKGROUND: str = _palette["minimap"]["background"]
MINIMAP_BORDER: str = _palette["minimap"]["border"]
MINIMAP_SAFETY_FILL: str = _palette["minimap"]["safety_fill"]
MINIMAP_LINE_COLOR: str = _palette["minimap"]["alignment_line"]
MINIMAP_DOT_COLOR: str = _palette["minimap"]["alignment_dot"]
MINIMAP_VIEWPORT_COLOR: str = _palette["minimap"]["viewport"]

LAYOUT: dict[str, float] = _style["layout"]
SCALE_PADDING: float = _style["layout"]["scale_padding"]

MINIMAP_SIZE: float = _style["minimap"]["size"]
MINIMAP_PADDING: float = _style["minimap"]["padding"]
MINIMAP_OFFSET_TOP: float = _style["minimap"]["offset_top"]
MINIMAP_DOT_RADIUS: float = _style["minimap"]["dot_radius"]
MINIMAP_VIEWPORT_WIDTH: float = _style["minimap"]["viewport_stroke_width"]

EDGE_MIN_OPACITY: float = _style["edges"]["min_opacity"]
EDGE_MIN_STROKE_WIDTH: float = _style["edges"]["min_stroke_width"]
EDGE_STROKE_PER_PROBABILITY: float = _style["edges"]["stroke_width_per_probability"]

DOT_RADIUS: float = _style["dots"]["radius"]

FONT_FAMILY: str = _style["font"]["family"]
FONT_MIN_SIZE: float = _style["font"]["min_size"]
FONT_CELL_FRACTION: float = _style["font"]["cell_fraction"]
TICK_LABEL_FACTOR: float = _style["font"]["tick_label_factor"]
INDEX_LABEL_FACTOR: float = _style["font"]["index_label_factor"]
MIN_LABEL_SIZE: float = _style["font"]["min_label_size"]

BASE_DPI: int = _style["export"]["base_dpi"]
DEFAULT_JPEG_QUALITY: float = _style["export"]["jpeg_quality"]
MAX_RESOLUTION_SCALE: int = _style["export"]["max_resolution_scale"]
READINESS_TIMEOUT: float = _style["export"]["readiness_timeout"]
READINESS_INTERVAL: float = _style["export"]["readiness_interval"]

"""Loading alignment results from JSON or YAML files.

Expected layout (JSON shown; YAML mirrors it)::

    {
      "representative": "MKV...",
      "member": "MKL...",
      "descriptorA": "sp|P02769|ALBU_BOVIN",
      "descriptorB": "sp|P02768|ALBU_HUMAN",
      "alignments": [
        {"color": "blue",
         "edges": [{"from": [0, 0], "to": [1, 1], "probability": 0.9}],
         "startDot": {"x": 4, "y": 9}, "endDot": {"x": 10, "y": 20}}
      ],
      "xTicks": [{"value": 0, "label": "M"}],
      "yTicks": [{"value": 0, "label": "M"}]
    }

``descriptorA/B``, ``xTicks``/``yTicks``, ``edges`` and the dots are
optional. Ticks default to one per residue.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from emeraldviz.models import AlignmentDot, AlignmentSegment, Edge, Tick, sequence_ticks

_log = logging.getLogger(__name__)

YAML_SUFFIXES = {".yaml", ".yml"}


@dataclass(frozen=True)
class AlignmentResult:
    """Alignment collaborator output, ready to hand to a view."""

    representative: str
    member: str
    segments: tuple[AlignmentSegment, ...]
    x_ticks: tuple[Tick, ...]
    y_ticks: tuple[Tick, ...]
    descriptor_a: Optional[str] = None
    descriptor_b: Optional[str] = None


def _number(value: Any, where: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValueError(f"{where} must be a finite number, got {value!r}")
    return value


def _point(value: Any, where: str) -> tuple[float, float]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"{where} must be an [x, y] pair, got {value!r}")
    return (_number(value[0], f"{where}[0]"), _number(value[1], f"{where}[1]"))


def _dot(value: Any, where: str) -> Optional[AlignmentDot]:
    if value is None:
        return None
    if not isinstance(value, dict) or "x" not in value or "y" not in value:
        raise ValueError(f"{where} must have 'x' and 'y', got {value!r}")
    return AlignmentDot(_number(value["x"], f"{where}.x"), _number(value["y"], f"{where}.y"))


def _edge(value: Any, where: str) -> Edge:
    if not isinstance(value, dict):
        raise ValueError(f"{where} must be a mapping, got {value!r}")
    for key in ("from", "to", "probability"):
        if key not in value:
            raise ValueError(f"{where} is missing '{key}'")
    probability = _number(value["probability"], f"{where}.probability")
    if not 0 < probability <= 1:
        raise ValueError(f"{where}.probability must be in (0, 1], got {probability!r}")
    return Edge(_point(value["from"], f"{where}.from"), _point(value["to"], f"{where}.to"), probability)


def _segment(value: Any, index: int) -> AlignmentSegment:
    where = f"alignments[{index}]"
    if not isinstance(value, dict):
        raise ValueError(f"{where} must be a mapping, got {value!r}")
    color = value.get("color")
    if not isinstance(color, str) or not color:
        raise ValueError(f"{where}.color must be a non-empty string")
    edges = value.get("edges") or []
    if not isinstance(edges, list):
        raise ValueError(f"{where}.edges must be a list")
    return AlignmentSegment(
        color=color,
        edges=tuple(_edge(edge, f"{where}.edges[{j}]") for j, edge in enumerate(edges)),
        start_dot=_dot(value.get("startDot"), f"{where}.startDot"),
        end_dot=_dot(value.get("endDot"), f"{where}.endDot"),
    )


def _ticks(value: Any, name: str, sequence: str) -> tuple[Tick, ...]:
    if value is None:
        return sequence_ticks(sequence)
    if not isinstance(value, list):
        raise ValueError(f"{name} must be a list")
    ticks = []
    for i, tick in enumerate(value):
        if not isinstance(tick, dict) or "value" not in tick:
            raise ValueError(f"{name}[{i}] must have a 'value'")
        ticks.append(Tick(int(_number(tick["value"], f"{name}[{i}].value")), str(tick.get("label", ""))))
    return tuple(ticks)


def parse_alignment_result(raw: Any) -> AlignmentResult:
    """Validate a decoded document and build an :class:`AlignmentResult`.

    Raises:
        ValueError: Naming the first offending field.

    Examples:
        >>> r = parse_alignment_result({"representative": "MKV", "member": "MK", "alignments": []})
        >>> [t.label for t in r.y_ticks]
        ['M', 'K', 'V']
        >>> parse_alignment_result({"member": "MK", "alignments": []})
        Traceback (most recent call last):
            ...
        ValueError: representative must be a non-empty string
    """
    if not isinstance(raw, dict):
        raise ValueError("Alignment result must be a mapping")
    for key in ("representative", "member"):
        if not isinstance(raw.get(key), str) or not raw[key]:
            raise ValueError(f"{key} must be a non-empty string")
    alignments = raw.get("alignments", [])
    if not isinstance(alignments, list):
        raise ValueError("alignments must be a list")

    representative, member = raw["representative"], raw["member"]
    return AlignmentResult(
        representative=representative,
        member=member,
        segments=tuple(_segment(seg, i) for i, seg in enumerate(alignments)),
        x_ticks=_ticks(raw.get("xTicks"), "xTicks", member),
        y_ticks=_ticks(raw.get("yTicks"), "yTicks", representative),
        descriptor_a=raw.get("descriptorA") or None,
        descriptor_b=raw.get("descriptorB") or None,
    )


def load_alignment_result(path: str | Path) -> AlignmentResult:
    """Read an alignment result from a JSON or YAML file.

    The format is chosen by suffix: ``.yaml``/``.yml`` is YAML, anything
    else JSON.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the document is malformed.
    """
    path = Path(path)
    with open(path) as fh:
        if path.suffix.lower() in YAML_SUFFIXES:
            try:
                raw = yaml.safe_load(fh)
            except yaml.YAMLError as exc:
                raise ValueError(f"{path}: invalid YAML: {exc}") from exc
        else:
            try:
                raw = json.load(fh)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}: invalid JSON: {exc}") from exc
    result = parse_alignment_result(raw)
    _log.debug(
        "loaded %d alignment segment(s) from %s (%d x %d)",
        len(result.segments),
        path,
        len(result.member),
        len(result.representative),
    )
    return result

"""Shareable alignment URLs.

A shared alignment is described by two UniProt accessions plus the
alignment parameters, carried in the URL query string::

    https://host/app?seqA=P02769&seqB=P02768&alpha=0.75&delta=8

Accessions are mandatory and must be well formed; invalid optional numbers
are dropped with a warning.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, fields
from typing import Optional, Protocol, runtime_checkable
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

_log = logging.getLogger(__name__)

UNIPROT_ACCESSION_RE = re.compile(
    r"^[OPQ][0-9][A-Z0-9]{3}[0-9]$|^[A-NR-Z][0-9]([A-Z][A-Z0-9]{2}[0-9]){1,2}$"
)

_ID = r"([A-Z][0-9][A-Z0-9]{3}[0-9])"
DESCRIPTOR_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("SwissProt", re.compile(rf"sp\|{_ID}\|", re.IGNORECASE)),
    ("TrEMBL", re.compile(rf"tr\|{_ID}\|", re.IGNORECASE)),
    ("FASTA header", re.compile(rf">{_ID}(?:\s|\|)", re.IGNORECASE)),
    ("direct at start", re.compile(rf"^{_ID}(?:\s|\|)", re.IGNORECASE)),
    ("with underscore", re.compile(rf"{_ID}_[A-Z]+", re.IGNORECASE)),
    ("anywhere", re.compile(_ID, re.IGNORECASE)),
)

DEFAULT_GAP_COST = -1.0
DEFAULT_START_GAP = -11.0
DEFAULT_COST_MATRIX_TYPE = 2


def is_valid_uniprot_format(accession: Optional[str]) -> bool:
    """Check an accession against the UniProt accession grammar.

    Examples:
        >>> is_valid_uniprot_format("p02769")
        True
        >>> is_valid_uniprot_format("A0A023GPI8")
        True
        >>> is_valid_uniprot_format("P1")
        False
    """
    if not accession or not isinstance(accession, str):
        return False
    return UNIPROT_ACCESSION_RE.match(accession.strip().upper()) is not None


def extract_uniprot_id(descriptor: Optional[str]) -> Optional[str]:
    """Find a UniProt accession inside a FASTA descriptor.

    Patterns are tried from most to least specific.

    Examples:
        >>> extract_uniprot_id("sp|P02769|ALBU_BOVIN Albumin")
        'P02769'
        >>> extract_uniprot_id(">q5xj36 protein")
        'Q5XJ36'
        >>> extract_uniprot_id("no accession here") is None
        True
    """
    if not descriptor:
        return None
    for name, pattern in DESCRIPTOR_PATTERNS:
        match = pattern.search(descriptor)
        if match:
            accession = match.group(1).upper()
            _log.debug("found accession %s using %s pattern", accession, name)
            return accession
    return None


@dataclass(frozen=True)
class ShareableAlignmentData:
    """Alignment state carried by a share URL."""

    seq_a: str
    seq_b: str
    alpha: Optional[float] = None
    delta: Optional[int] = None
    gap_cost: Optional[float] = None
    start_gap: Optional[float] = None
    cost_matrix_type: Optional[int] = None


QUERY_KEYS = {
    "seq_a": "seqA",
    "seq_b": "seqB",
    "alpha": "alpha",
    "delta": "delta",
    "gap_cost": "gapCost",
    "start_gap": "startGap",
    "cost_matrix_type": "costMatrixType",
}


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _in_range(value, lo: float, hi: float) -> bool:
    return _is_number(value) and lo <= value <= hi


def _parse_float(raw: str) -> Optional[float]:
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _parse_int(raw: str) -> Optional[int]:
    try:
        return int(raw.strip())
    except ValueError:
        return None


def _checked(name: str, raw: Optional[str], parser, lo: float = -math.inf, hi: float = math.inf):
    if not raw:
        return None
    value = parser(raw)
    if value is None or not lo <= value <= hi:
        _log.warning("ignoring invalid %s value in share URL: %r", name, raw)
        return None
    return value


def parse_share_query(url: str) -> Optional[ShareableAlignmentData]:
    """Read shared alignment state from a URL or a bare query string.

    Args:
        url: Full URL, or a query string with or without the leading ``?``.

    Returns:
        The parsed state, or ``None`` when either accession is missing or
        malformed.

    Examples:
        >>> data = parse_share_query("https://x/app?seqA=p02769&seqB=P02768&alpha=2&delta=8")
        >>> data.seq_a, data.alpha, data.delta
        ('P02769', None, 8)
        >>> parse_share_query("?seqA=P02769&seqB=nope") is None
        True
    """
    query = urlsplit(url).query if "?" in url else url
    params = {key: values[0] for key, values in parse_qs(query).items() if values}

    seq_a = params.get("seqA", "").strip()
    seq_b = params.get("seqB", "").strip()
    if not seq_a or not seq_b:
        return None
    if not is_valid_uniprot_format(seq_a) or not is_valid_uniprot_format(seq_b):
        _log.warning("invalid UniProt accession in share URL: seqA=%r seqB=%r", seq_a, seq_b)
        return None

    return ShareableAlignmentData(
        seq_a=seq_a.upper(),
        seq_b=seq_b.upper(),
        alpha=_checked("alpha", params.get("alpha"), _parse_float, 0, 1),
        delta=_checked("delta", params.get("delta"), _parse_int, 0, 100),
        gap_cost=_checked("gapCost", params.get("gapCost"), _parse_float),
        start_gap=_checked("startGap", params.get("startGap"), _parse_float),
        cost_matrix_type=_checked("costMatrixType", params.get("costMatrixType"), _parse_int, 0, 8),
    )


def _format_number(value: float) -> str:
    """Render numbers the way they appear in share URLs.

    Examples:
        >>> _format_number(1.0), _format_number(0.75), _format_number(8)
        ('1', '0.75', '8')
    """
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _resolve_accession(descriptor: Optional[str], accession: Optional[str]) -> Optional[str]:
    accession = accession.strip() if accession else None
    return accession or extract_uniprot_id(descriptor)


def generate_shareable_url(
    base_url: str,
    descriptor_a: Optional[str],
    descriptor_b: Optional[str],
    alpha: float,
    delta: float,
    accession_a: Optional[str] = None,
    accession_b: Optional[str] = None,
    gap_cost: Optional[float] = None,
    start_gap: Optional[float] = None,
    cost_matrix_type: Optional[int] = None,
) -> Optional[str]:
    """Build a share URL for an alignment of two UniProt sequences.

    Explicit accessions win over ones extracted from the descriptors.
    Parameters equal to their defaults are left out.

    Args:
        base_url: Application URL; any existing query or fragment is dropped.
        descriptor_a: FASTA descriptor of sequence A.
        descriptor_b: FASTA descriptor of sequence B.
        alpha: Alignment alpha in ``[0, 1]``.
        delta: Alignment delta in ``[0, 100]``.
        accession_a: Explicit accession of sequence A.
        accession_b: Explicit accession of sequence B.
        gap_cost: Gap extension cost.
        start_gap: Gap opening cost.
        cost_matrix_type: Substitution matrix index in ``[0, 8]``.

    Returns:
        The URL, or ``None`` when the alignment cannot be shared.

    Examples:
        >>> generate_shareable_url("https://x/app", "sp|P02769|ALBU_BOVIN", "sp|P02768|ALBU_HUMAN", 0.75, 8)
        'https://x/app?seqA=P02769&seqB=P02768&alpha=0.75&delta=8'
        >>> generate_shareable_url("https://x/app", "seq1", "seq2", 0.75, 8) is None
        True
    """
    if not _in_range(alpha, 0, 1):
        _log.warning("invalid alpha for share URL: %r", alpha)
        return None
    if not _in_range(delta, 0, 100):
        _log.warning("invalid delta for share URL: %r", delta)
        return None

    uniprot_a = _resolve_accession(descriptor_a, accession_a)
    uniprot_b = _resolve_accession(descriptor_b, accession_b)
    if not uniprot_a or not uniprot_b:
        return None
    if not is_valid_uniprot_format(uniprot_a) or not is_valid_uniprot_format(uniprot_b):
        _log.warning("invalid UniProt accession for share URL: %r, %r", uniprot_a, uniprot_b)
        return None

    params = [
        ("seqA", uniprot_a.upper()),
        ("seqB", uniprot_b.upper()),
        ("alpha", _format_number(alpha)),
        ("delta", _format_number(delta)),
    ]
    if gap_cost is not None and gap_cost != DEFAULT_GAP_COST:
        params.append(("gapCost", _format_number(gap_cost)))
    if start_gap is not None and start_gap != DEFAULT_START_GAP:
        params.append(("startGap", _format_number(start_gap)))
    if cost_matrix_type is not None and cost_matrix_type != DEFAULT_COST_MATRIX_TYPE:
        params.append(("costMatrixType", _format_number(cost_matrix_type)))

    return f"{clear_share_url(base_url)}?{urlencode(params)}"


def share_url_for(base_url: str, data: ShareableAlignmentData) -> Optional[str]:
    """Build the share URL for already parsed state."""
    return generate_shareable_url(
        base_url,
        None,
        None,
        data.alpha if data.alpha is not None else 0.0,
        data.delta if data.delta is not None else 0,
        accession_a=data.seq_a,
        accession_b=data.seq_b,
        gap_cost=data.gap_cost,
        start_gap=data.start_gap,
        cost_matrix_type=data.cost_matrix_type,
    )


def clear_share_url(url: str) -> str:
    """Strip the query string and fragment from a URL.

    Examples:
        >>> clear_share_url("https://x/app?seqA=P02769#top")
        'https://x/app'
    """
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def is_alignment_shareable(
    descriptor_a: Optional[str],
    descriptor_b: Optional[str],
    accession_a: Optional[str] = None,
    accession_b: Optional[str] = None,
) -> bool:
    """Whether both sequences resolve to valid UniProt accessions.

    Examples:
        >>> is_alignment_shareable("sp|P02769|ALBU_BOVIN", "sp|P02768|ALBU_HUMAN")
        True
        >>> is_alignment_shareable("x", "y", "P02769", "bad")
        False
    """
    if accession_a and accession_b:
        return is_valid_uniprot_format(accession_a) and is_valid_uniprot_format(accession_b)
    uniprot_a = extract_uniprot_id(descriptor_a)
    uniprot_b = extract_uniprot_id(descriptor_b)
    return is_valid_uniprot_format(uniprot_a) and is_valid_uniprot_format(uniprot_b)


def validate_shareable_data(data: Optional[ShareableAlignmentData]) -> bool:
    """Check accessions and every optional number of shared state.

    Examples:
        >>> validate_shareable_data(ShareableAlignmentData("P02769", "P02768", alpha=0.5))
        True
        >>> validate_shareable_data(ShareableAlignmentData("P02769", "P02768", cost_matrix_type=9))
        False
    """
    if data is None:
        return False
    if not is_valid_uniprot_format(data.seq_a) or not is_valid_uniprot_format(data.seq_b):
        return False
    if data.alpha is not None and not _in_range(data.alpha, 0, 1):
        return False
    if data.delta is not None and not _in_range(data.delta, 0, 100):
        return False
    for value in (data.gap_cost, data.start_gap):
        if value is not None and not _is_number(value):
            return False
    if data.cost_matrix_type is not None and not _in_range(data.cost_matrix_type, 0, 8):
        return False
    return True


def to_query_dict(data: ShareableAlignmentData) -> dict[str, object]:
    """Query-parameter names mapped to the set values of ``data``."""
    return {
        QUERY_KEYS[f.name]: getattr(data, f.name)
        for f in fields(data)
        if getattr(data, f.name) is not None
    }


@runtime_checkable
class TextClipboard(Protocol):
    def write_text(self, text: str) -> None: ...


@dataclass(frozen=True)
class CopyResult:
    """Outcome of copying a share URL.

    When ``copied`` is false the caller shows ``text`` for manual copying.
    """

    copied: bool
    text: str
    message: str = ""


def copy_share_url(url: str, clipboard: Optional[TextClipboard]) -> CopyResult:
    """Copy ``url`` to the clipboard, degrading to manual copy.

    Examples:
        >>> copy_share_url("https://x/app?seqA=P02769", None).copied
        False
    """
    if clipboard is None or not callable(getattr(clipboard, "write_text", None)):
        return CopyResult(False, url, "Clipboard not available; copy the link manually.")
    try:
        clipboard.write_text(url)
    except (PermissionError, OSError) as exc:
        _log.warning("clipboard write failed, falling back to manual copy: %s", exc)
        return CopyResult(False, url, "Failed to copy URL; copy the link manually.")
    return CopyResult(True, url, "Link copied to clipboard")

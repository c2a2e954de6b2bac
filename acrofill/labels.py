"""Human-readable labels for form fields.

Return the most human-readable label for a field:
  1) /TU (tooltip) if present
  2) /TM (alternate / mapping name) if present
  3) printed text near the field, to its left or just above/below it
  4) the raw field name as a last resort
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Callable, List, Optional, Sequence

from .models import MetadataSource, Rect, TextRun

log = logging.getLogger(__name__)

SEARCH_LEFT_MARGIN = 250      # labels sit up to this far left of their box
SEARCH_VERTICAL_MARGIN = 20
RANK_TIE_BAND = 5             # runs this close vertically rank by x instead
SECOND_LINE_BAND = 15         # second run this close to the best joins the label


@dataclass
class NearbyText:
    text: str
    anchor: TextRun


@dataclass
class LabelResolution:
    label: str
    source: MetadataSource
    nearby: Optional[NearbyText] = None


def _squash(text: str) -> str:
    return " ".join(text.split())


def find_nearby_text(runs: Sequence[TextRun], rect: Rect) -> Optional[NearbyText]:
    """Best text run inside the search region around ``rect``, or None."""
    llx, lly, urx, ury = rect
    x0, x1 = max(0.0, llx - SEARCH_LEFT_MARGIN), urx
    y0, y1 = lly - SEARCH_VERTICAL_MARGIN, ury + SEARCH_VERTICAL_MARGIN

    candidates = [
        r for r in runs
        if x0 <= r.x <= x1 and y0 <= r.y <= y1 and r.text.strip()
    ]
    if not candidates:
        return None

    def rank(a: TextRun, b: TextRun) -> float:
        dy = abs(a.y - lly) - abs(b.y - lly)
        if abs(dy) > RANK_TIE_BAND:
            return dy
        return abs(llx - a.x) - abs(llx - b.x)

    candidates.sort(key=cmp_to_key(rank))
    best = candidates[0]
    label = _squash(best.text)
    if len(candidates) > 1:
        second = candidates[1]
        if abs(second.y - best.y) < SECOND_LINE_BAND:
            label = _squash(f"{label} {second.text}")
    return NearbyText(text=label, anchor=best) if label else None


def _search_or_none(runs_for_page: Callable[[int], List[TextRun]], page: int, rect: Rect) -> Optional[NearbyText]:
    try:
        return find_nearby_text(runs_for_page(page), rect)
    except Exception as exc:  # any failure here just means "no nearby text"
        log.debug("Nearby-text search on page %d failed: %s", page, exc)
        return None


def resolve_label(
    name: str,
    tooltip: str = "",
    alternate_name: str = "",
    page: Optional[int] = None,
    rect: Optional[Rect] = None,
    runs_for_page: Optional[Callable[[int], List[TextRun]]] = None,
) -> LabelResolution:
    """Walk the label priority chain; the result is never empty."""
    if tooltip:
        return LabelResolution(tooltip, "tooltip")
    if alternate_name:
        return LabelResolution(alternate_name, "alternateName")
    if page is not None and rect is not None and runs_for_page is not None:
        nearby = _search_or_none(runs_for_page, page, rect)
        if nearby:
            return LabelResolution(nearby.text, "nearbyText", nearby)
    return LabelResolution(name or "(unnamed)", "fallback")

"""
page_text.py  –  per-page transcripts with inline field markers.

Meant for a human filling the form next to its printed text: every line of
the page is rebuilt from its text runs and the fields sitting on that line
are written into it, ``[name]`` for checkboxes and ``(_name_)`` for the rest.
"""

from __future__ import annotations

import asyncio
import logging
import re
from functools import cmp_to_key
from typing import Iterator, List, Sequence, Set, Tuple

from .geometry import open_document, page_text_runs
from .models import FieldDescriptor, PageText, TextRun
from .ordering import compare_positions

log = logging.getLogger(__name__)

SORT_BAND = 5          # runs this close vertically are ordered by x
LINE_GAP = 10          # a larger vertical jump starts a new line
FIELD_LINE_BAND = 15   # a field this close to a line's y belongs to it
OVERFLOW_MARKER = "  ← "

# private-use and geometric glyphs that forms draw as empty boxes
BOX_GLYPHS = "\uF063\u25A1\u25A0\u2610\u2611\u2612\u25A2\u25A3\u25FB\u25FC\u2B1C\u2B1B"
# repeated character-cell placeholder glyph (IBAN boxes and the like)
SLOT_GLYPH = "\uF07C"

_BOX_RE = re.compile(f"[{BOX_GLYPHS}]")
_SLOT_RE = re.compile(f"{SLOT_GLYPH}+")
_LABEL_COLON_RE = re.compile(r"([a-zA-ZÀ-ÿ][a-zA-ZÀ-ÿ\s()/.]*):(?!\s*\()\s*")


def _box_marker(field: FieldDescriptor) -> str:
    return f"[{field.name}]"


def _text_marker(field: FieldDescriptor) -> str:
    return f"(_{field.name}_)"


def group_lines(runs: Sequence[TextRun]) -> List[Tuple[str, float]]:
    """Join runs into (text, y) lines, top of the page first."""
    if not runs:
        return []

    def reading(a: TextRun, b: TextRun) -> float:
        dy = b.y - a.y
        if abs(dy) > SORT_BAND:
            return dy
        return a.x - b.x

    ordered = sorted(runs, key=cmp_to_key(reading))
    lines = []
    current: List[TextRun] = []
    last_y = line_y = ordered[0].y
    for run in ordered:
        if abs(run.y - last_y) > LINE_GAP:
            if current:
                lines.append((" ".join(r.text for r in current), line_y))
            current = [run]
            last_y = line_y = run.y
        else:
            current.append(run)
    if current:
        lines.append((" ".join(r.text for r in current), line_y))
    return lines


def mark_line(
    line: str,
    line_y: float,
    text_fields: List[FieldDescriptor],
    checkboxes: List[FieldDescriptor],
    used: Set[str],
) -> str:
    """Insert markers for the unused fields on this line; marks them used."""

    def on_line(f: FieldDescriptor) -> bool:
        return f.name not in used and abs(f.position.y - line_y) < FIELD_LINE_BAND

    line_boxes = sorted((f for f in checkboxes if on_line(f)), key=lambda f: f.position.x)
    line_texts = sorted((f for f in text_fields if on_line(f)), key=lambda f: f.position.x)

    # a) box glyphs -> checkboxes, left to right
    box_queue = list(line_boxes)

    def take_box(match):
        return _box_marker(box_queue.pop(0)) if box_queue else match.group(0)

    line = _BOX_RE.sub(take_box, line)

    # b) IBAN-style lines: each slot run takes the next free text field of the page
    if "IBAN:" in line or "IBAN :" in line:
        runs = len(_SLOT_RE.findall(line))
        iban_fields = [f for f in text_fields if f.name not in used][:runs]
        used.update(f.name for f in iban_fields)
        line_texts = [f for f in line_texts if f not in iban_fields]
        iban_queue = list(iban_fields)
        line = _SLOT_RE.sub(lambda m: _text_marker(iban_queue.pop(0)) if iban_queue else "(_?_)", line)

    used.update(f.name for f in line_boxes)
    used.update(f.name for f in line_texts)
    text_queue = list(line_texts)

    # other slot runs -> this line's text fields
    line = _SLOT_RE.sub(lambda m: _text_marker(text_queue.pop(0)) if text_queue else m.group(0), line)

    # c) "Label:" without a marker after it
    def take_label(match):
        label = match.group(1)
        if len(label.strip()) < 2 or not text_queue:
            return match.group(0)
        return f"{label}: {_text_marker(text_queue.pop(0))} "

    line = _LABEL_COLON_RE.sub(take_label, line)

    leftovers = [_box_marker(f) for f in box_queue] + [_text_marker(f) for f in text_queue]
    if leftovers:
        line += OVERFLOW_MARKER + " ".join(leftovers)
    return line


def transcribe_page(page_no: int, runs: Sequence[TextRun], fields: Sequence[FieldDescriptor]) -> PageText:
    on_page = [f for f in fields if f.position is not None and f.position.page == page_no]
    on_page.sort(key=cmp_to_key(compare_positions))
    text_fields = [f for f in on_page if f.type != "checkbox"]
    checkboxes = [f for f in on_page if f.type == "checkbox"]

    used: Set[str] = set()
    lines = [mark_line(text, y, text_fields, checkboxes, used) for text, y in group_lines(runs)]

    # fields that matched no printed line still get listed
    unclaimed = [f for f in on_page if f.name not in used]
    if unclaimed:
        lines.append(OVERFLOW_MARKER.lstrip() + " ".join(
            _box_marker(f) if f.type == "checkbox" else _text_marker(f) for f in unclaimed
        ))

    text = "\n".join(line.rstrip() for line in lines).strip()
    return PageText(page=page_no, text=text, field_count=len(on_page))


def iter_page_text(data, fields: Sequence[FieldDescriptor] = ()) -> Iterator[PageText]:
    """Yield one transcript per page; every call reads the document afresh."""
    doc = open_document(data)
    try:
        for pno in range(doc.page_count):
            yield transcribe_page(pno + 1, page_text_runs(doc[pno]), fields)
    finally:
        doc.close()


def extract_page_text(data, fields: Sequence[FieldDescriptor] = ()) -> List[PageText]:
    pages = list(iter_page_text(data, fields))
    log.info("Transcribed %d pages with %d fields", len(pages), len(fields))
    return pages


async def extract_page_text_async(data, fields: Sequence[FieldDescriptor] = ()) -> List[PageText]:
    return await asyncio.to_thread(extract_page_text, bytes(data), list(fields))

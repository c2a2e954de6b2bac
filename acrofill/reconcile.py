"""
Merge widget geometry with the structural field list.

Some form tools split one value (an IBAN, an account number) into many
single-character boxes that share one field name.  The field tree reports a
single field; the page annotations report every box.  Every box beyond the
first, and every box whose name the field tree never mentions, becomes its
own synthesized descriptor so each can be filled independently.

The first widget of a name (in geometry enumeration order) is assumed to be
the one the structural field stands for.  That order comes from the page
annotation arrays, not from anything the PDF format guarantees.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Dict, Iterable, List, Sequence, Tuple

from .models import FieldDescriptor, FieldPosition, FieldType, WidgetGeometry
from .ordering import sort_by_position

log = logging.getLogger(__name__)

CHECKBOX_MAX_SIZE = 30  # button widgets smaller than this on both sides are checkboxes

_INDEX_SUFFIX = re.compile(r"_\d+$")


def infer_widget_type(widget: WidgetGeometry) -> FieldType:
    """Best guess at a synthesized widget's type from its raw kind and size."""
    if widget.field_type == "Btn":
        if widget.width < CHECKBOX_MAX_SIZE and widget.height < CHECKBOX_MAX_SIZE:
            return "checkbox"
        return "text"
    if widget.field_type == "Ch":
        return "select"
    return "text"


def find_orphans(widgets: Iterable[WidgetGeometry], structural_names: Iterable[str]) -> List[WidgetGeometry]:
    """Widgets not represented by an entry of their own in the field tree."""
    known = set(structural_names)
    groups: Dict[str, List[WidgetGeometry]] = {}
    for w in widgets:
        groups.setdefault(w.field_name, []).append(w)

    orphans = []
    for name, group in groups.items():
        if name not in known:
            orphans.extend(group)
        elif len(group) > 1:
            orphans.extend(group[1:])
    return orphans


class NameAllocator:
    """Hands out ``{base}_{n}`` names that never collide with a claimed name."""

    def __init__(self):
        self.used = set()
        self.counts: Counter = Counter()

    def claim(self, name: str) -> bool:
        if name in self.used:
            return False
        self.used.add(name)
        self.counts[_INDEX_SUFFIX.sub("", name)] += 1
        return True

    def allocate(self, base: str) -> Tuple[str, int]:
        n = self.counts[base] + 1
        while f"{base}_{n}" in self.used:
            n += 1
        self.counts[base] = n
        name = f"{base}_{n}"
        self.used.add(name)
        return name, n


def synthesize(widget: WidgetGeometry, name: str, index: int) -> FieldDescriptor:
    base = widget.field_name or "widget"
    field_type = infer_widget_type(widget)
    return FieldDescriptor(
        name=name,
        label=f"{base} [{index}]",
        type=field_type,
        value=False if field_type == "checkbox" else "",
        position=FieldPosition.from_rect(widget.page, widget.rect),
        metadata_source="fallback",
        is_synthesized_widget=True,
        parent_name=base,
    )


def reconcile_widgets(
    fields: Sequence[FieldDescriptor],
    widgets: Sequence[WidgetGeometry],
) -> List[FieldDescriptor]:
    """Real descriptors plus one synthesized descriptor per orphan widget, in reading order."""
    allocator = NameAllocator()
    merged: List[FieldDescriptor] = []
    for f in fields:
        if not allocator.claim(f.name):
            renamed, _ = allocator.allocate(f.name)
            log.warning("Duplicate field name %r renamed to %r", f.name, renamed)
            f = f.model_copy(update={"name": renamed})
        merged.append(f)

    orphans = find_orphans(widgets, (f.name for f in fields))
    for w in orphans:
        name, index = allocator.allocate(w.field_name or "widget")
        merged.append(synthesize(w, name, index))

    if orphans:
        log.info("Added %d widgets sharing a name with another box", len(orphans))
    return sort_by_position(merged)

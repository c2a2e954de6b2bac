"""Reading-order sort for field descriptors."""

from functools import cmp_to_key
from typing import List, Sequence

from .models import FieldDescriptor

SAME_LINE_TOLERANCE = 10  # y values closer than this share a line


def compare_positions(a: FieldDescriptor, b: FieldDescriptor) -> int:
    # unpositioned fields go last and keep their relative order
    if a.position is None and b.position is None:
        return 0
    if a.position is None:
        return 1
    if b.position is None:
        return -1

    page_diff = a.position.page - b.position.page
    if page_diff:
        return page_diff

    # PDF y grows upwards: higher y reads first
    y_diff = b.position.y - a.position.y
    if abs(y_diff) > SAME_LINE_TOLERANCE:
        return y_diff

    return a.position.x - b.position.x


def sort_by_position(fields: Sequence[FieldDescriptor]) -> List[FieldDescriptor]:
    """Stable sort into page, top-to-bottom, left-to-right order."""
    return sorted(fields, key=cmp_to_key(compare_positions))

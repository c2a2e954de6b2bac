"""Field detection: structure + geometry + labels, reconciled and sorted."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Dict, List

from .geometry import TextRunIndex, extract_widget_geometry
from .labels import resolve_label
from .models import FieldDescriptor, FieldPosition, StructuralField, TextAnchor, WidgetGeometry
from .reconcile import reconcile_widgets
from .structure import FF_REQUIRED, StructuralForm

log = logging.getLogger(__name__)


def _position(field: StructuralField, form: StructuralForm, first_by_name: Dict[str, WidgetGeometry]):
    geo = first_by_name.get(field.name)
    if geo is not None:
        return FieldPosition.from_rect(geo.page, geo.rect)
    return form.locate(field)


def describe_field(
    field: StructuralField,
    form: StructuralForm,
    first_by_name: Dict[str, WidgetGeometry],
    text_index: TextRunIndex,
) -> FieldDescriptor:
    position = _position(field, form, first_by_name)
    resolution = resolve_label(
        field.name,
        tooltip=field.tooltip,
        alternate_name=field.alternate_name,
        page=position.page if position else None,
        rect=tuple(position.rect) if position else None,
        runs_for_page=text_index.runs,
    )
    nearby = resolution.nearby
    return FieldDescriptor(
        name=field.name,
        label=resolution.label,
        type=field.descriptor_type,
        value=field.value,
        options=field.options if field.descriptor_type in ("select", "radio") else None,
        required=bool(field.flags & FF_REQUIRED),
        position=position,
        metadata_source=resolution.source,
        tooltip=field.tooltip,
        alternate_name=field.alternate_name,
        nearby_text=nearby.text if nearby else None,
        nearby_text_position=TextAnchor(
            page=position.page, x=round(nearby.anchor.x), y=round(nearby.anchor.y)
        ) if nearby else None,
    )


def describe_field_or_default(field, form, first_by_name, text_index) -> FieldDescriptor:
    """``describe_field``, or a bare text descriptor when the field is unreadable."""
    try:
        return describe_field(field, form, first_by_name, text_index)
    except Exception as exc:
        log.warning("Field %r could not be described (%s); using defaults", field.name, exc)
        return FieldDescriptor(name=field.name, label=field.name)


def detect_fields(data) -> List[FieldDescriptor]:
    """
    Every fillable field of the PDF in ``data``, in reading order.

    Raises DocumentParseError if the document cannot be read at all; any
    per-field problem only degrades that field.
    """
    data = bytes(data)
    with StructuralForm.from_bytes(data) as form:
        widgets, first_by_name = extract_widget_geometry(data)
        with TextRunIndex.from_bytes(data) as text_index:
            real = [
                describe_field_or_default(f, form, first_by_name, text_index)
                for f in form.fields
            ]

    fields = reconcile_widgets(real, widgets)

    sources = Counter(f.metadata_source for f in fields if not f.is_synthesized_widget)
    log.info(
        "Detected %d fields (%d structural + %d synthesized); labels: %s",
        len(fields), len(real), len(fields) - len(real), dict(sources),
    )
    return fields


async def detect_fields_async(data) -> List[FieldDescriptor]:
    return await asyncio.to_thread(detect_fields, bytes(data))

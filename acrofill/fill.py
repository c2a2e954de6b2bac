"""
fill.py  –  write values into the AcroForm fields of a PDF.

Only ``/V`` (and ``/AS`` on button widgets) is touched; appearance streams
are left as they are so custom checkbox glyphs keep their style.  Viewers
are told to rebuild stale appearances through ``/NeedAppearances``.
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Any, Mapping

import pikepdf
from pikepdf import Name

from .errors import FieldWriteError, FlattenError
from .models import StructuralField
from .structure import (
    FF_COMB,
    FF_EDIT,
    StructuralForm,
    choice_options,
    export_values,
    state_names,
)

log = logging.getLogger(__name__)

CHECKED_VALUES = ("true", "on")
DEFAULT_ON_STATE = "Yes"


def is_checked_value(value: Any) -> bool:
    return value is True or (isinstance(value, str) and value in CHECKED_VALUES)


def as_field_text(value: Any) -> str:
    """Text to store for ``value``; booleans become "" and "true", not Python words."""
    if value is False:
        return ""
    if value is True:
        return "true"
    return str(value)


class FormFiller:
    """Fills the structural fields of one open form and counts the outcome."""

    def __init__(self, form: StructuralForm):
        self.form = form
        self.filled = 0
        self.skipped = 0
        self.errors = 0

    # ------------------------------------------------------------------
    def fill(self, values: Mapping[str, Any]) -> None:
        names = {f.name for f in self.form.fields}
        unknown = [k for k in values if k not in names]
        if unknown:
            log.warning("Values given for fields not in the document: %s", unknown)

        for field in self.form.fields:
            value = values.get(field.name)
            if value is None:
                self.skipped += 1
                continue
            try:
                wrote = self.write(field, value)
            except FieldWriteError as exc:
                self.errors += 1
                log.warning("✗ %s", exc)
                continue
            if wrote:
                self.filled += 1
            else:
                self.skipped += 1

        self.mark_need_appearances()
        log.info("Filled %d fields, skipped %d, %d errors", self.filled, self.skipped, self.errors)

    def write(self, field: StructuralField, value: Any) -> bool:
        """Write one value; returns False when the value means "leave as is"."""
        try:
            if field.kind == "text":
                return self._write_text(field, value)
            if field.kind == "checkbox":
                return self._write_checkbox(field, value)
            if field.kind in ("dropdown", "listbox"):
                return self._write_choice(field, value)
            if field.kind == "radio":
                return self._write_radio(field, value)
        except FieldWriteError:
            raise
        except (pikepdf.PdfError, ValueError, TypeError, KeyError, AttributeError) as exc:
            raise FieldWriteError(f"Field {field.name!r} ({field.kind}): {exc}") from exc
        log.warning("Field %r has kind %r, which cannot be filled", field.name, field.kind)
        return False

    # ------------------------------------------------------------------
    def _write_text(self, field: StructuralField, value: Any) -> bool:
        text = as_field_text(value)
        limit = field.max_length
        if limit is not None and len(text) > limit:
            if not field.flags & FF_COMB:
                raise FieldWriteError(
                    f"Field {field.name!r}: {len(text)} characters exceed /MaxLen {limit}"
                )
            log.info("Comb field %r holds %d characters, truncating %r", field.name, limit, text)
            text = text[:limit]
        field.obj[Name.V] = pikepdf.String(text)
        return True

    def _write_checkbox(self, field: StructuralField, value: Any) -> bool:
        if not is_checked_value(value):
            field.obj[Name.V] = Name.Off
            for widget in field.widgets:
                widget[Name.AS] = Name.Off
            return True

        exports = export_values(field)
        on_state = exports[0] if exports else DEFAULT_ON_STATE
        on_name = Name("/" + on_state)
        field.obj[Name.V] = on_name
        for widget in field.widgets:
            states = state_names(widget)
            widget[Name.AS] = on_name if not states or on_state in states else Name.Off
        return True

    def _write_choice(self, field: StructuralField, value: Any) -> bool:
        if not value:
            return False
        option = str(value)
        pairs = choice_options(field.obj.get("/Opt"))
        if option not in (field.options or []) and not field.flags & FF_EDIT:
            raise FieldWriteError(f"Field {field.name!r}: {option!r} is not one of {field.options}")
        export = next((e for e, display in pairs if display == option), option)
        field.obj[Name.V] = pikepdf.String(export)
        return True

    def _write_radio(self, field: StructuralField, value: Any) -> bool:
        if not value:
            return False
        option = str(value)
        if option not in (field.options or []):
            raise FieldWriteError(f"Field {field.name!r}: {option!r} is not one of {field.options}")
        labels = [display for _, display in choice_options(field.obj.get("/Opt"))]
        state = str(labels.index(option)) if labels else option
        state_name = Name("/" + state)
        field.obj[Name.V] = state_name
        for widget in field.widgets:
            widget[Name.AS] = state_name if state in state_names(widget) else Name.Off
        return True

    # ------------------------------------------------------------------
    def mark_need_appearances(self) -> None:
        acroform = self.form.acroform
        if acroform is None:
            log.debug("No /AcroForm, /NeedAppearances not set")
            return
        acroform[Name.NeedAppearances] = True

    def save(self) -> bytes:
        buf = io.BytesIO()
        self.form.pdf.save(buf)
        return buf.getvalue()


# ----------------------------------------------------------------------
def flatten_document(data: bytes) -> bytes:
    """Bake field appearances into the page content and drop the widgets."""
    try:
        with pikepdf.open(io.BytesIO(data)) as pdf:
            pdf.generate_appearance_streams()
            pdf.flatten_annotations(mode="all")
            buf = io.BytesIO()
            pdf.save(buf)
            return buf.getvalue()
    except Exception as exc:
        raise FlattenError(f"Flatten failed: {exc}") from exc


def fill_form(data, values: Mapping[str, Any], flatten: bool = False) -> bytes:
    """
    Return a copy of ``data`` with ``values`` written into its fields.

    A missing or None value leaves a field untouched; "" clears a text field.
    Per-field failures are logged and counted, never raised.
    """
    with StructuralForm.from_bytes(data) as form:
        filler = FormFiller(form)
        filler.fill(values)
        filled = filler.save()

    if not flatten:
        return filled
    try:
        return flatten_document(filled)
    except FlattenError as exc:
        log.warning("%s; returning the interactive document", exc)
        return filled


async def fill_form_async(data, values: Mapping[str, Any], flatten: bool = False) -> bytes:
    return await asyncio.to_thread(fill_form, bytes(data), dict(values), flatten)

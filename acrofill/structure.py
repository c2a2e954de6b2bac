"""
structure.py  –  logical AcroForm fields, read through pikepdf.

The field tree gives one entry per field name with its type, value and
options, but collapses multi-box fields into a single entry.  Widget
geometry is recovered here only as a fallback; ``geometry.py`` is the
primary source.
"""

from __future__ import annotations

import io
import logging
from typing import Callable, Iterator, List, Optional, Tuple

import pikepdf
from pikepdf import Array, Dictionary, Name

from .errors import DocumentParseError, FieldReadError, GeometryLookupFailure
from .models import FieldPosition, Rect, StructuralField, normalize_rect

log = logging.getLogger(__name__)

# Field flags (/Ff), 1-based bit positions from the PDF reference
FF_READ_ONLY = 1 << 0
FF_REQUIRED = 1 << 1
FF_NO_TOGGLE_TO_OFF = 1 << 14
FF_RADIO = 1 << 15
FF_PUSHBUTTON = 1 << 16
FF_COMBO = 1 << 17
FF_EDIT = 1 << 18
FF_COMB = 1 << 24

INHERITABLE = ("/FT", "/Ff", "/V", "/DV", "/Opt", "/MaxLen", "/DA")


def open_pdf(data) -> pikepdf.Pdf:
    """Open ``data`` with pikepdf; unreadable input raises DocumentParseError."""
    try:
        pdf = pikepdf.open(io.BytesIO(bytes(data)))
    except Exception as exc:
        raise DocumentParseError(f"Not a readable PDF: {exc}") from exc
    try:
        pdf.Root
    except Exception as exc:
        pdf.close()
        raise DocumentParseError("PDF has no document catalog") from exc
    return pdf


# ----------------------------------------------------------------------
# Field tree traversal


def _text(obj) -> str:
    if obj is None:
        return ""
    if isinstance(obj, pikepdf.String):
        return str(obj)
    if isinstance(obj, Name):
        return str(obj)[1:]
    return ""


def state_names(widget) -> List[str]:
    """On-state names of a button widget's normal appearance (``/Off`` excluded)."""
    ap = widget.get("/AP")
    if not isinstance(ap, Dictionary):
        return []
    normal = ap.get("/N")
    if not isinstance(normal, Dictionary):
        return []
    return [k[1:] for k in normal.keys() if k != "/Off"]


def export_values(field: StructuralField) -> List[str]:
    """Declared on-values of a checkbox or radio group, in widget order."""
    values: List[str] = []
    for widget in field.widgets:
        for state in state_names(widget):
            if state not in values:
                values.append(state)
    return values


def choice_options(opt) -> List[Tuple[str, str]]:
    """``/Opt`` as (export value, display text) pairs."""
    pairs = []
    if not isinstance(opt, Array):
        return pairs
    for item in opt:
        if isinstance(item, Array) and len(item) == 2:
            pairs.append((_text(item[0]), _text(item[1])))
        else:
            text = _text(item)
            pairs.append((text, text))
    return pairs


def _field_nodes(pdf: pikepdf.Pdf) -> Iterator[Tuple[str, Dictionary, dict, list]]:
    """Yield (qualified name, terminal node, inherited attrs, widgets)."""
    acroform = pdf.Root.get("/AcroForm")
    if not isinstance(acroform, Dictionary):
        return
    seen = set()

    def walk(node, parent_name, inherited):
        if node.is_indirect:
            if node.objgen in seen:
                return
            seen.add(node.objgen)

        partial = node.get("/T")
        name = parent_name
        if partial is not None:
            name = f"{parent_name}.{partial}" if parent_name else str(partial)

        attrs = dict(inherited)
        for key in INHERITABLE:
            if key in node:
                attrs[key] = node[key]

        kids = node.get("/Kids")
        kids = list(kids) if isinstance(kids, Array) else []
        sub_fields = [k for k in kids if isinstance(k, Dictionary) and "/T" in k]
        if sub_fields:
            for kid in sub_fields:
                yield from walk(kid, name, attrs)
            return

        if kids:
            widgets = [k for k in kids if isinstance(k, Dictionary)]
        elif node.get("/Subtype") == Name.Widget or "/Rect" in node:
            widgets = [node]
        else:
            widgets = []
        yield name, node, attrs, widgets

    for top in acroform.get("/Fields", Array()):
        if isinstance(top, Dictionary):
            yield from walk(top, "", {})


def _kind(attrs: dict) -> str:
    ft = attrs.get("/FT")
    flags = int(attrs.get("/Ff", 0))
    if ft == Name.Tx:
        return "text"
    if ft == Name.Btn:
        if flags & FF_PUSHBUTTON:
            return "button"
        if flags & FF_RADIO:
            return "radio"
        return "checkbox"
    if ft == Name.Ch:
        return "dropdown" if flags & FF_COMBO else "listbox"
    if ft == Name.Sig:
        return "signature"
    return "unknown"


def _read_field(name: str, node: Dictionary, attrs: dict, widgets: list) -> StructuralField:
    try:
        field = StructuralField(
            name=name,
            kind=_kind(attrs),
            obj=node,
            flags=int(attrs.get("/Ff", 0)),
            tooltip=" ".join(_text(node.get("/TU")).split()),
            alternate_name=" ".join(_text(node.get("/TM")).split()),
            widgets=widgets,
        )
        if "/MaxLen" in attrs:
            field.max_length = int(attrs["/MaxLen"])

        raw = attrs.get("/V")
        if field.kind == "text":
            field.value = _text(raw)
        elif field.kind == "checkbox":
            if isinstance(raw, Name):
                field.value = raw != Name.Off
            else:
                field.value = any(w.get("/AS", Name.Off) != Name.Off for w in widgets)
        elif field.kind == "radio":
            labels = [t for _, t in choice_options(attrs.get("/Opt"))]
            field.options = labels or export_values(field)
            selected = _text(raw) if raw != Name.Off else ""
            if labels and selected.isdigit() and int(selected) < len(labels):
                selected = labels[int(selected)]
            field.value = selected
        elif field.kind in ("dropdown", "listbox"):
            pairs = choice_options(attrs.get("/Opt"))
            field.options = [display for _, display in pairs]
            if isinstance(raw, Array):
                raw = raw[0] if len(raw) else None
            selected = _text(raw)
            field.value = dict(pairs).get(selected, selected)
        return field
    except (pikepdf.PdfError, ValueError, TypeError, KeyError, AttributeError) as exc:
        raise FieldReadError(f"Field {name!r}: {exc}") from exc


def read_field_or_default(name: str, node: Dictionary, attrs: dict, widgets: list) -> StructuralField:
    """Read one field; an unreadable field becomes an empty text field."""
    try:
        return _read_field(name, node, attrs, widgets)
    except FieldReadError as exc:
        log.warning("%s (falling back to an empty text field)", exc)
        return StructuralField(name=name, kind="text", obj=node, widgets=widgets)


# ----------------------------------------------------------------------
# Rectangle lookup: ordered strategies, first hit wins

WidgetHit = Tuple[Dictionary, Rect]


def _rect_of(obj) -> Optional[Rect]:
    rect = obj.get("/Rect") if isinstance(obj, Dictionary) else None
    if not isinstance(rect, Array) or len(rect) != 4:
        return None
    return normalize_rect([float(v) for v in rect])


def rect_from_field_dict(field: StructuralField) -> Optional[WidgetHit]:
    """Single-widget fields merge the widget into the field dictionary."""
    rect = _rect_of(field.obj)
    return (field.obj, rect) if rect else None


def rect_from_widget_accessor(field: StructuralField) -> Optional[WidgetHit]:
    """First widget collected while walking the field tree."""
    if not field.widgets:
        return None
    rect = _rect_of(field.widgets[0])
    return (field.widgets[0], rect) if rect else None


def rect_from_kids_scan(field: StructuralField) -> Optional[WidgetHit]:
    """Depth-first scan of ``/Kids`` for any descendant carrying ``/Rect``."""
    stack = [field.obj]
    while stack:
        node = stack.pop()
        kids = node.get("/Kids")
        if not isinstance(kids, Array):
            continue
        for kid in reversed(list(kids)):
            if not isinstance(kid, Dictionary):
                continue
            rect = _rect_of(kid)
            if rect:
                return kid, rect
            stack.append(kid)
    return None


RECT_STRATEGIES: List[Callable[[StructuralField], Optional[WidgetHit]]] = [
    rect_from_field_dict,
    rect_from_widget_accessor,
    rect_from_kids_scan,
]


# ----------------------------------------------------------------------
# Page lookup: producers disagree on how /P relates to the page list


def page_by_object_id(widget: Dictionary, pages: List[Dictionary]) -> Optional[int]:
    ref = widget.get("/P")
    if ref is None or not ref.is_indirect:
        return None
    for i, page in enumerate(pages):
        if page.objgen == ref.objgen:
            return i
    return None


def page_by_reference_string(widget: Dictionary, pages: List[Dictionary]) -> Optional[int]:
    ref = widget.get("/P")
    if ref is None or not ref.is_indirect:
        return None
    key = ref.unparse()
    for i, page in enumerate(pages):
        if page.is_indirect and page.unparse() == key:
            return i
    return None


def page_by_object_number(widget: Dictionary, pages: List[Dictionary]) -> Optional[int]:
    ref = widget.get("/P")
    if ref is None or not ref.is_indirect:
        return None
    number = ref.objgen[0]
    for i, page in enumerate(pages):
        if page.objgen[0] == number:
            return i
    return None


def page_by_annotation_scan(widget: Dictionary, pages: List[Dictionary]) -> Optional[int]:
    """Find the page whose ``/Annots`` holds the widget (for widgets without ``/P``)."""
    if not widget.is_indirect:
        return None
    for i, page in enumerate(pages):
        for annot in page.get("/Annots", Array()):
            if annot.is_indirect and annot.objgen == widget.objgen:
                return i
    return None


PAGE_STRATEGIES: List[Callable[[Dictionary, List[Dictionary]], Optional[int]]] = [
    page_by_object_id,
    page_by_reference_string,
    page_by_object_number,
    page_by_annotation_scan,
]


def _resolve_geometry(field: StructuralField, pages: List[Dictionary]) -> Tuple[int, Rect]:
    hit = None
    for strategy in RECT_STRATEGIES:
        try:
            hit = strategy(field)
        except (pikepdf.PdfError, ValueError, TypeError) as exc:
            log.debug("Field %r: %s failed (%s)", field.name, strategy.__name__, exc)
        if hit:
            break
    if not hit:
        raise GeometryLookupFailure(f"Field {field.name!r}: no /Rect found")

    widget, rect = hit
    for strategy in PAGE_STRATEGIES:
        try:
            index = strategy(widget, pages)
        except (pikepdf.PdfError, ValueError, TypeError) as exc:
            log.debug("Field %r: %s failed (%s)", field.name, strategy.__name__, exc)
            continue
        if index is not None:
            return index, rect
    raise GeometryLookupFailure(f"Field {field.name!r}: page reference matches no page")


# ----------------------------------------------------------------------
class StructuralForm:
    """An open document plus its logical fields; use as a context manager."""

    def __init__(self, pdf: pikepdf.Pdf):
        self.pdf = pdf
        self.fields: List[StructuralField] = []
        for name, node, attrs, widgets in _field_nodes(pdf):
            if not name:
                log.warning("Unnamed field skipped")
                continue
            self.fields.append(read_field_or_default(name, node, attrs, widgets))
        self._pages: Optional[List[Dictionary]] = None

    @classmethod
    def from_bytes(cls, data) -> "StructuralForm":
        pdf = open_pdf(data)
        try:
            return cls(pdf)
        except Exception:
            pdf.close()
            raise

    @property
    def acroform(self) -> Optional[Dictionary]:
        acroform = self.pdf.Root.get("/AcroForm")
        return acroform if isinstance(acroform, Dictionary) else None

    @property
    def pages(self) -> List[Dictionary]:
        if self._pages is None:
            self._pages = [page.obj for page in self.pdf.pages]
        return self._pages

    def locate(self, field: StructuralField) -> Optional[FieldPosition]:
        """Position of ``field`` from the field tree alone, or None."""
        try:
            index, rect = _resolve_geometry(field, self.pages)
        except GeometryLookupFailure as exc:
            log.debug("%s", exc)
            return None
        return FieldPosition.from_rect(index + 1, rect)

    def close(self) -> None:
        self.pdf.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def read_structural_fields(data) -> List[StructuralField]:
    """Logical fields of ``data`` (the document is closed afterwards)."""
    with StructuralForm.from_bytes(data) as form:
        fields = form.fields
    log.info("Found %d structural fields", len(fields))
    return fields

"""
geometry.py  –  widget rectangles and text runs, read through PyMuPDF.

PyMuPDF walks the page annotations directly, so it sees every widget
instance, including the repeated boxes of one field that the AcroForm tree
reports as a single entry.  All coordinates returned from here are PDF user
space (origin bottom-left), not PyMuPDF's top-left page space.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import fitz  # PyMuPDF

from .errors import DocumentParseError
from .models import TextRun, WidgetGeometry, normalize_rect

log = logging.getLogger(__name__)

# PyMuPDF widget type -> raw AcroForm /FT
_RAW_KIND = {
    fitz.PDF_WIDGET_TYPE_TEXT: "Tx",
    fitz.PDF_WIDGET_TYPE_CHECKBOX: "Btn",
    fitz.PDF_WIDGET_TYPE_RADIOBUTTON: "Btn",
    fitz.PDF_WIDGET_TYPE_BUTTON: "Btn",
    fitz.PDF_WIDGET_TYPE_COMBOBOX: "Ch",
    fitz.PDF_WIDGET_TYPE_LISTBOX: "Ch",
    fitz.PDF_WIDGET_TYPE_SIGNATURE: "Sig",
}


def open_document(data) -> fitz.Document:
    """Open ``data`` with PyMuPDF, mapping any failure to DocumentParseError."""
    try:
        doc = fitz.open(stream=bytes(data), filetype="pdf")
    except Exception as exc:
        raise DocumentParseError(f"Not a readable PDF: {exc}") from exc
    if doc.page_count == 0:
        doc.close()
        raise DocumentParseError("PDF has no pages")
    return doc


# ----------------------------------------------------------------------
def _xref_value(doc: fitz.Document, xref: int, key: str) -> Optional[str]:
    kind, value = doc.xref_get_key(xref, key)
    if kind == "null":
        return None
    return value


def _raw_field_type(doc: fitz.Document, w) -> Optional[str]:
    kind = _RAW_KIND.get(w.field_type)
    if kind:
        return kind
    # /FT may only live on the parent field dictionary
    try:
        ft = _xref_value(doc, w.xref, "FT")
        if ft is None:
            parent = _xref_value(doc, w.xref, "Parent")
            if parent:
                ft = _xref_value(doc, int(parent.split()[0]), "FT")
        if ft:
            return ft.lstrip("/")
    except Exception:
        log.debug("widget xref %s: no /FT found", w.xref)
    return None


def _widget_name(doc: fitz.Document, w, index: int) -> str:
    if w.field_name:
        return w.field_name
    title = _xref_value(doc, w.xref, "T")
    if title:
        return title
    return f"widget_{index}"


def extract_widget_geometry(data) -> Tuple[List[WidgetGeometry], Dict[str, WidgetGeometry]]:
    """
    Return every widget on every page, plus the first widget seen per name.

    Widgets are listed in page order, then annotation order; names repeat when
    one field owns several boxes.
    """
    doc = open_document(data)
    widgets: List[WidgetGeometry] = []
    first_by_name: Dict[str, WidgetGeometry] = {}
    try:
        for pno in range(doc.page_count):
            try:
                page = doc[pno]
                to_pdf = ~page.transformation_matrix
                page_widgets = list(page.widgets())
            except Exception as exc:
                log.warning("Page %d: cannot list widgets (%s), skipped", pno + 1, exc)
                continue

            for w in page_widgets:
                try:
                    if w.rect is None:
                        continue
                    rect = fitz.Rect(w.rect) * to_pdf
                    entry = WidgetGeometry(
                        page=pno + 1,
                        rect=normalize_rect((rect.x0, rect.y0, rect.x1, rect.y1)),
                        field_name=_widget_name(doc, w, len(widgets)),
                        field_type=_raw_field_type(doc, w),
                        widget_index=len(widgets),
                    )
                except Exception as exc:
                    log.warning("Page %d: malformed widget skipped (%s)", pno + 1, exc)
                    continue
                widgets.append(entry)
                first_by_name.setdefault(entry.field_name, entry)
    finally:
        doc.close()

    log.info("Found %d widgets, %d distinct names", len(widgets), len(first_by_name))
    return widgets, first_by_name


# ----------------------------------------------------------------------
def page_text_runs(page: fitz.Page) -> List[TextRun]:
    """Text spans of ``page`` anchored at their baseline origin, in PDF space."""
    to_pdf = ~page.transformation_matrix
    runs = []
    for block in page.get_text("dict")["blocks"]:
        for line in block.get("lines", []):
            for span in line["spans"]:
                text = span["text"]
                if not text.strip():
                    continue
                origin = fitz.Point(span["origin"]) * to_pdf
                runs.append(TextRun(text=text, x=origin.x, y=origin.y))
    return runs


class TextRunIndex:
    """Lazily extracted text runs per page of one open document."""

    def __init__(self, doc: fitz.Document):
        self.doc = doc
        self._runs: Dict[int, List[TextRun]] = {}

    @classmethod
    def from_bytes(cls, data) -> "TextRunIndex":
        return cls(open_document(data))

    @property
    def page_count(self) -> int:
        return self.doc.page_count

    def runs(self, page_no: int) -> List[TextRun]:
        """Runs of the 1-based page ``page_no``; empty when out of range."""
        if page_no < 1 or page_no > self.doc.page_count:
            return []
        if page_no not in self._runs:
            self._runs[page_no] = page_text_runs(self.doc[page_no - 1])
        return self._runs[page_no]

    def close(self) -> None:
        self.doc.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

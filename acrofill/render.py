"""
render.py  –  page images for the description service and for humans.

``render_pages`` rasterizes the first pages of a form.  ``annotate_fields``
builds a helper PDF with a numbered red badge over every detected field, so a
reviewer can match rows of a field list to boxes on the page.
"""

from __future__ import annotations

import base64
import logging
from collections import defaultdict
from typing import List, Sequence

import fitz  # PyMuPDF

from . import config
from .geometry import open_document
from .models import FieldDescriptor, PageImage

log = logging.getLogger(__name__)

MIME_TYPES = {"png": "image/png", "jpeg": "image/jpeg"}
JPG_QUALITY = 85

BADGE_RED = (1, 0, 0)
BADGE_FILL = (1, 1, 1)


def render_pages(
    data,
    max_pages: int = config.MAX_PAGES,
    dpi: int = config.DPI,
    image_format: str = "png",
    jpg_quality: int = JPG_QUALITY,
) -> List[PageImage]:
    """PNG (or JPEG) images of the first ``max_pages`` pages."""
    image_format = "jpeg" if image_format.lower() == "jpg" else image_format.lower()
    if image_format not in MIME_TYPES:
        raise ValueError(f"Unsupported image format {image_format!r}; use one of {sorted(MIME_TYPES)}")

    doc = open_document(data)
    images = []
    try:
        count = min(doc.page_count, max_pages)
        if doc.page_count > count:
            log.info("Rendering %d of %d pages", count, doc.page_count)
        for i in range(count):
            pix = doc[i].get_pixmap(dpi=dpi, alpha=False)
            if image_format == "jpeg":
                raw = pix.tobytes("jpeg", jpg_quality=jpg_quality)
            else:
                raw = pix.tobytes("png")
            images.append(PageImage(
                page=i + 1,
                base64=base64.b64encode(raw).decode("ascii"),
                width=pix.width,
                height=pix.height,
                mime_type=MIME_TYPES[image_format],
            ))
    finally:
        doc.close()
    return images


def field_box_on_page(page: fitz.Page, rect) -> fitz.Rect:
    """A PDF-space field rect as it appears on the displayed (rotated) page."""
    return fitz.Rect(rect) * page.transformation_matrix * page.rotation_matrix


def _draw_badge(page: fitz.Page, center: fitz.Point, number: int) -> None:
    label = str(number)
    half_w = (8 + 6 * len(label)) / 2
    badge = fitz.Rect(center.x - half_w, center.y - 6, center.x + half_w, center.y + 6)
    page.draw_rect(badge, color=BADGE_RED, fill=BADGE_FILL, width=0.8, overlay=True)
    page.insert_textbox(badge, label, fontname="helv", fontsize=9, color=BADGE_RED, align=1, overlay=True)


def annotate_fields(data, fields: Sequence[FieldDescriptor], render_scale: float = 2.0) -> bytes:
    """
    Helper PDF with every field's 1-based index drawn at its centre.

    Widgets can paint over page content, so each page is rasterized first
    and the badges are drawn on a fresh page holding only that image.  The
    result is for looking at, not for filling.
    """
    src = open_document(data)
    out = fitz.open()

    by_page = defaultdict(list)
    for number, f in enumerate(fields, start=1):
        if f.position is not None:
            by_page[f.position.page - 1].append((number, f.position.rect))

    try:
        for i in range(src.page_count):
            sp = src[i]
            pix = sp.get_pixmap(matrix=fitz.Matrix(render_scale, render_scale), alpha=False)
            shown = out.new_page(width=sp.rect.width, height=sp.rect.height)
            shown.insert_image(shown.rect, stream=pix.tobytes("png"))

            for number, field_rect in by_page.get(i, []):
                box = field_box_on_page(sp, field_rect)
                _draw_badge(shown, (box.tl + box.br) / 2, number)

        return out.tobytes()
    finally:
        src.close()
        out.close()

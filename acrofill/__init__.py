"""Detect, label, order and fill the AcroForm fields of PDF documents."""

from .detect import detect_fields, detect_fields_async
from .errors import (
    AcroFillError,
    DescriptionServiceError,
    DocumentParseError,
    FieldReadError,
    FieldWriteError,
    FlattenError,
    GeometryLookupFailure,
)
from .fill import fill_form, fill_form_async
from .models import FieldDescriptor, FieldPosition, PageImage, PageText, TextAnchor
from .page_text import extract_page_text, extract_page_text_async, iter_page_text

__all__ = [
    "AcroFillError",
    "DescriptionServiceError",
    "DocumentParseError",
    "FieldDescriptor",
    "FieldPosition",
    "FieldReadError",
    "FieldWriteError",
    "FlattenError",
    "GeometryLookupFailure",
    "PageImage",
    "PageText",
    "TextAnchor",
    "detect_fields",
    "detect_fields_async",
    "extract_page_text",
    "extract_page_text_async",
    "fill_form",
    "fill_form_async",
    "iter_page_text",
]

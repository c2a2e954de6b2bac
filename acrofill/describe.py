"""
describe.py  –  ask a vision model what each field of a page is for.

One Gemini request per page image.  The model answers against a pydantic
``response_schema`` so the reply is parsed, not scraped.  A page that fails
is reported with no fields and the error as its summary; the other pages are
unaffected.
"""

from __future__ import annotations

import base64
import logging
from typing import List, Optional, Sequence

from google import genai
from google.genai import types
from pydantic import BaseModel, Field

from . import config
from .errors import DescriptionServiceError
from .models import PageImage, _Schema
from .render import render_pages

log = logging.getLogger(__name__)

MAX_DESCRIBE_PAGES = 6
PROVIDER = "gemini"


# --- PYDANTIC SCHEMAS (Enforces Output Format) ---
class FieldNote(BaseModel):
    label: str = Field(description="What information goes in this field, e.g. 'Applicant full name'")
    order: int = Field(description="Position of the field on the page (1, 2, 3...)")


class PageAnalysis(BaseModel):
    fields: list[FieldNote]
    page_summary: str = Field(description="One or two sentences on what this page of the form is about")


class PageDescription(_Schema):
    page: int
    summary: str
    fields: List[str] = []
    error: Optional[str] = None


class DescriptionResult(_Schema):
    pages: List[PageDescription]
    total_pages: int
    total_fields: int
    provider: str = PROVIDER


SYSTEM_INSTRUCTION = (
    "You are an expert in form analysis. Describe the MEANING of every fillable "
    "field visible in the image (text boxes, checkboxes, lines to write on).\n"
    "- Write each label in the language of the form, clearly and descriptively.\n"
    "- Order the fields top to bottom, left to right.\n"
    "- When one value is split over several boxes (IBAN, account or ID numbers), "
    "number them, e.g. 'IBAN code - digits 1-4', 'IBAN code - digits 5-8'.\n"
    "- For checkboxes, say what is being accepted or selected.\n"
    "- The summary explains the purpose of this section of the form."
)


def build_prompt_text(page_no: int) -> str:
    return (
        f"Analyze PAGE {page_no} of a PDF form. Describe the meaning of every "
        "fillable field you see, top to bottom, and summarize what the page is about."
    )


def make_client(timeout: float = config.DESCRIBE_TIMEOUT) -> genai.Client:
    if not config.GEMINI_API_KEY:
        raise DescriptionServiceError("GEMINI_API_KEY not found in environment variables.")
    return genai.Client(
        api_key=config.GEMINI_API_KEY,
        http_options=types.HttpOptions(timeout=int(timeout * 1000)),
    )


def analyze_page(client, image: PageImage, model: str = config.MODEL_ID) -> PageAnalysis:
    """Send one page image; raises whatever the client raises."""
    image_part = types.Part.from_bytes(data=base64.b64decode(image.base64), mime_type=image.mime_type)
    response = client.models.generate_content(
        model=model,
        contents=[image_part, build_prompt_text(image.page)],
        config=types.GenerateContentConfig(
            system_instruction=SYSTEM_INSTRUCTION,
            response_mime_type="application/json",
            response_schema=PageAnalysis,
            temperature=0.1,
        ),
    )
    parsed = response.parsed
    if parsed is None:
        parsed = PageAnalysis.model_validate_json(response.text or "")
    return parsed


def describe_pages(
    images: Sequence[PageImage],
    client=None,
    model: str = config.MODEL_ID,
    timeout: float = config.DESCRIBE_TIMEOUT,
) -> DescriptionResult:
    """Describe the fields of up to ``MAX_DESCRIBE_PAGES`` page images."""
    if not images:
        raise DescriptionServiceError("At least one page image is required")
    if client is None:
        client = make_client(timeout)

    pages = []
    for image in list(images)[:MAX_DESCRIBE_PAGES]:
        try:
            analysis = analyze_page(client, image, model)
        except Exception as exc:
            log.warning("Page %d could not be described: %s", image.page, exc)
            pages.append(PageDescription(
                page=image.page, summary=f"Analysis failed: {exc}", error=str(exc),
            ))
            continue
        notes = sorted(analysis.fields, key=lambda n: n.order)
        pages.append(PageDescription(
            page=image.page,
            summary=analysis.page_summary,
            fields=[n.label for n in notes],
        ))

    total_fields = sum(len(p.fields) for p in pages)
    log.info("%s described %d fields on %d pages", model, total_fields, len(pages))
    for p in pages:
        log.debug("  page %d: %d fields - %.50s", p.page, len(p.fields), p.summary)
    return DescriptionResult(pages=pages, total_pages=len(pages), total_fields=total_fields)


def describe_document(data, client=None, model: str = config.MODEL_ID) -> DescriptionResult:
    """Render the first pages of ``data`` and describe them."""
    images = render_pages(data, max_pages=min(config.MAX_PAGES, MAX_DESCRIBE_PAGES))
    return describe_pages(images, client=client, model=model)

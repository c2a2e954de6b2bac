import json
import logging

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from .describe import describe_document
from .detect import detect_fields_async
from .errors import DescriptionServiceError, DocumentParseError
from .fill import fill_form_async
from .models import FieldDescriptor
from .page_text import extract_page_text_async
from .render import annotate_fields

log = logging.getLogger(__name__)

# --- app ---
app = FastAPI(title="acrofill")


def parse_json_form(raw: str, what: str):
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(400, f"{what} is not valid JSON: {exc}")


async def read_pdf(pdf: UploadFile) -> bytes:
    b = await pdf.read()
    if not b:
        raise HTTPException(400, "Empty upload")
    return b


def unreadable(exc: DocumentParseError) -> HTTPException:
    return HTTPException(422, str(exc))


def dump(models):
    return [m.model_dump(by_alias=True) for m in models]


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.post("/api/fields")
async def api_fields(pdf: UploadFile = File(...)):
    b = await read_pdf(pdf)
    try:
        fields = await detect_fields_async(b)
    except DocumentParseError as exc:
        raise unreadable(exc)
    return dump(fields)


@app.post("/api/fill")
async def api_fill(
    pdf: UploadFile = File(...),
    values: str = Form(...),
    flatten: bool = Form(False),
):
    b = await read_pdf(pdf)
    parsed = parse_json_form(values, "values")
    if not isinstance(parsed, dict):
        raise HTTPException(400, "values must be a JSON object of field name -> value")
    try:
        out = await fill_form_async(b, parsed, flatten=flatten)
    except DocumentParseError as exc:
        raise unreadable(exc)
    name = pdf.filename or "form.pdf"
    return Response(
        content=out,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="filled_{name}"'},
    )


@app.post("/api/text")
async def api_text(
    pdf: UploadFile = File(...),
    fields: str | None = Form(None),
):
    b = await read_pdf(pdf)
    try:
        if fields is None:
            descriptors = await detect_fields_async(b)
        else:
            raw = parse_json_form(fields, "fields")
            try:
                descriptors = [FieldDescriptor.model_validate(f) for f in raw]
            except (TypeError, ValueError) as exc:
                raise HTTPException(400, f"fields is not a list of field descriptors: {exc}")
        pages = await extract_page_text_async(b, descriptors)
    except DocumentParseError as exc:
        raise unreadable(exc)
    return dump(pages)


@app.post("/api/annotate")
async def api_annotate(pdf: UploadFile = File(...)):
    b = await read_pdf(pdf)
    try:
        fields = await detect_fields_async(b)
        out = annotate_fields(b, fields)
    except DocumentParseError as exc:
        raise unreadable(exc)
    return Response(content=out, media_type="application/pdf")


@app.post("/api/describe")
def api_describe(pdf: UploadFile = File(...)):
    b = pdf.file.read()
    if not b:
        raise HTTPException(400, "Empty upload")
    try:
        result = describe_document(b)
    except DocumentParseError as exc:
        raise unreadable(exc)
    except DescriptionServiceError as exc:
        log.error("Description service failed: %s", exc)
        raise HTTPException(502, str(exc))
    return result.model_dump(by_alias=True)

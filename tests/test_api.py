"""HTTP surface tests through FastAPI's TestClient."""

import io
import json

import pikepdf
import pytest
from fastapi.testclient import TestClient

from acrofill import api
from acrofill.describe import DescriptionResult, PageDescription
from acrofill.errors import DescriptionServiceError


@pytest.fixture
def client():
    return TestClient(api.app)


def upload(data, name="form.pdf"):
    return {"pdf": (name, data, "application/pdf")}


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": True}


def test_fields(client, simple_form_pdf):
    r = client.post("/api/fields", files=upload(simple_form_pdf))
    assert r.status_code == 200
    (field,) = r.json()
    assert field["name"] == "applicant_name"
    assert field["metadataSource"] == "nearbyText"


def test_fields_rejects_unreadable_upload(client):
    r = client.post("/api/fields", files=upload(b"not a pdf"))
    assert r.status_code == 422


def test_fill_returns_pdf(client, simple_form_pdf):
    r = client.post(
        "/api/fill",
        files=upload(simple_form_pdf),
        data={"values": json.dumps({"applicant_name": "Joan"}), "flatten": "false"},
    )
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    with pikepdf.open(io.BytesIO(r.content)) as pdf:
        assert str(pdf.Root.AcroForm.Fields[0].V) == "Joan"


@pytest.mark.parametrize("values", ["{not json", "[1, 2]"])
def test_fill_rejects_bad_values(client, simple_form_pdf, values):
    r = client.post("/api/fill", files=upload(simple_form_pdf), data={"values": values})
    assert r.status_code == 400


def test_text_detects_fields_when_none_given(client, simple_form_pdf):
    r = client.post("/api/text", files=upload(simple_form_pdf))
    assert r.status_code == 200
    assert r.json() == [{"page": 1, "text": "Name: (_applicant_name_)", "fieldCount": 1}]


def test_text_with_supplied_fields(client, simple_form_pdf):
    fields = client.post("/api/fields", files=upload(simple_form_pdf)).json()
    fields[0]["name"] = "renamed"
    r = client.post("/api/text", files=upload(simple_form_pdf), data={"fields": json.dumps(fields)})
    assert r.status_code == 200
    assert "(_renamed_)" in r.json()[0]["text"]


def test_text_rejects_bad_fields(client, simple_form_pdf):
    r = client.post("/api/text", files=upload(simple_form_pdf), data={"fields": json.dumps([{"label": ""}])})
    assert r.status_code == 400


def test_annotate(client, mixed_form_pdf):
    r = client.post("/api/annotate", files=upload(mixed_form_pdf))
    assert r.status_code == 200
    assert r.content.startswith(b"%PDF")


def test_describe(client, simple_form_pdf, monkeypatch):
    result = DescriptionResult(
        pages=[PageDescription(page=1, summary="Applicant", fields=["Name"])],
        total_pages=1, total_fields=1,
    )
    monkeypatch.setattr(api, "describe_document", lambda data: result)
    r = client.post("/api/describe", files=upload(simple_form_pdf))
    assert r.status_code == 200
    assert r.json()["totalFields"] == 1
    assert r.json()["pages"][0]["fields"] == ["Name"]


def test_describe_service_failure_is_502(client, simple_form_pdf, monkeypatch):
    def down(data):
        raise DescriptionServiceError("GEMINI_API_KEY not found in environment variables.")

    monkeypatch.setattr(api, "describe_document", down)
    r = client.post("/api/describe", files=upload(simple_form_pdf))
    assert r.status_code == 502
    assert "GEMINI_API_KEY" in r.json()["detail"]

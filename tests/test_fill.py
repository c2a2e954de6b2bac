"""Tests for writing values into form fields."""

import io

import pikepdf
import pytest
from pikepdf import Name, String

from acrofill import fill as fill_module
from acrofill.errors import DocumentParseError, FlattenError
from acrofill.fill import FormFiller, fill_form, is_checked_value
from acrofill.structure import StructuralForm, read_structural_fields


def values_of(data):
    return {f.name: f.value for f in read_structural_fields(data)}


@pytest.fixture
def text_form_pdf(builder):
    page = builder.page()
    builder.text_field(page, "name", [100, 700, 300, 720], value="old")
    builder.text_field(page, "code", [100, 650, 130, 670], Ff=1 << 24, MaxLen=2)
    builder.text_field(page, "short", [100, 600, 130, 620], MaxLen=3)
    builder.checkbox(page, "agree", [100, 550, 112, 562])
    builder.checkbox(page, "opt_in", [150, 550, 162, 562], on_state="On", checked=True)
    return builder.build()


def test_text_round_trip(text_form_pdf):
    out = fill_form(text_form_pdf, {"name": "ABC"})
    assert values_of(out)["name"] == "ABC"


def test_comb_field_is_truncated_to_max_length(text_form_pdf):
    out = fill_form(text_form_pdf, {"code": "ABC"})
    assert values_of(out)["code"] == "AB"


def test_overlong_value_for_non_comb_field_is_skipped(text_form_pdf):
    with StructuralForm.from_bytes(text_form_pdf) as form:
        filler = FormFiller(form)
        filler.fill({"short": "TOO LONG", "name": "ok"})
        out = filler.save()

    assert (filler.filled, filler.errors) == (1, 1)
    assert values_of(out)["short"] == ""
    assert values_of(out)["name"] == "ok"


def test_checkbox_round_trip(text_form_pdf):
    checked = fill_form(text_form_pdf, {"agree": True})
    assert values_of(checked)["agree"] is True

    unchecked = fill_form(checked, {"agree": False})
    assert values_of(unchecked)["agree"] is False


def test_checkbox_uses_the_widgets_own_on_state(text_form_pdf):
    out = fill_form(text_form_pdf, {"opt_in": "off", "agree": "on"})
    with pikepdf.open(io.BytesIO(out)) as pdf:
        by_name = {str(f.T): f for f in pdf.Root.AcroForm.Fields}
        assert by_name["agree"].V == Name.Yes
        assert by_name["agree"].AS == Name.Yes
        assert by_name["opt_in"].V == Name.Off
        assert by_name["opt_in"].AS == Name.Off

    out = fill_form(out, {"opt_in": "true"})
    with pikepdf.open(io.BytesIO(out)) as pdf:
        opt_in = next(f for f in pdf.Root.AcroForm.Fields if str(f.T) == "opt_in")
        assert opt_in.V == Name("/On")


@pytest.mark.parametrize("value, expected", [
    (True, True), ("true", True), ("on", True),
    (False, False), ("false", False), ("yes", False), (1, False), ("", False),
])
def test_checked_values(value, expected):
    assert is_checked_value(value) is expected


def test_missing_value_leaves_field_and_empty_string_clears(text_form_pdf):
    untouched = fill_form(text_form_pdf, {"name": None})
    assert values_of(untouched)["name"] == "old"

    cleared = fill_form(text_form_pdf, {"name": ""})
    assert values_of(cleared)["name"] == ""


def test_need_appearances_is_set(text_form_pdf):
    out = fill_form(text_form_pdf, {"name": "x"})
    with pikepdf.open(io.BytesIO(out)) as pdf:
        assert bool(pdf.Root.AcroForm.NeedAppearances) is True


def test_unknown_names_are_ignored(text_form_pdf, caplog):
    out = fill_form(text_form_pdf, {"nope": "x", "name": "y"})
    assert values_of(out)["name"] == "y"
    assert "nope" in caplog.text


def test_dropdown_and_radio(mixed_form_pdf):
    out = fill_form(mixed_form_pdf, {"country": "Spain", "colour": "Blue"})
    values = values_of(out)
    assert values["country"] == "Spain"
    assert values["colour"] == "Blue"

    with pikepdf.open(io.BytesIO(out)) as pdf:
        colour = next(f for f in pdf.Root.AcroForm.Fields if str(f.get("/T", "")) == "colour")
        assert [k.AS for k in colour.Kids] == [Name.Off, Name("/Blue")]


def test_invalid_choice_is_counted_not_raised(mixed_form_pdf):
    with StructuralForm.from_bytes(mixed_form_pdf) as form:
        filler = FormFiller(form)
        filler.fill({"country": "Atlantis"})
    assert filler.errors == 1
    assert filler.filled == 0


def test_flatten_failure_returns_interactive_document(text_form_pdf, monkeypatch):
    def boom(data):
        raise FlattenError("no appearance streams")

    monkeypatch.setattr(fill_module, "flatten_document", boom)
    out = fill_form(text_form_pdf, {"name": "kept"}, flatten=True)
    assert values_of(out)["name"] == "kept"


def test_flatten_produces_a_readable_document(text_form_pdf):
    out = fill_form(text_form_pdf, {"name": "flat"}, flatten=True)
    with pikepdf.open(io.BytesIO(out)) as pdf:
        assert len(pdf.pages) == 1


def test_unreadable_input_raises():
    with pytest.raises(DocumentParseError):
        fill_form(b"not a pdf", {"a": "b"})


def test_fill_does_not_touch_appearance_streams(text_form_pdf):
    out = fill_form(text_form_pdf, {"agree": True})
    with pikepdf.open(io.BytesIO(out)) as pdf:
        agree = next(f for f in pdf.Root.AcroForm.Fields if str(f.T) == "agree")
        assert set(agree.AP.N.keys()) == {"/Yes", "/Off"}
        assert "/AP" not in next(f for f in pdf.Root.AcroForm.Fields if str(f.T) == "name")


def test_values_written_as_pdf_strings(text_form_pdf):
    out = fill_form(text_form_pdf, {"name": 42})
    with pikepdf.open(io.BytesIO(out)) as pdf:
        name = next(f for f in pdf.Root.AcroForm.Fields if str(f.T) == "name")
        assert isinstance(name.V, String)
        assert str(name.V) == "42"


@pytest.mark.parametrize("value, stored", [(False, ""), (True, "true")])
def test_booleans_in_text_fields_are_not_python_words(text_form_pdf, value, stored):
    out = fill_form(text_form_pdf, {"name": value})
    assert values_of(out)["name"] == stored

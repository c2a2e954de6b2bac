"""Fixture PDFs built in memory with pikepdf."""

from __future__ import annotations

import io

import pikepdf
import pytest
from pikepdf import Array, Dictionary, Name, String


class FormBuilder:
    """Assembles a small AcroForm document one page and widget at a time."""

    def __init__(self):
        self.pdf = pikepdf.new()
        self.font = self.pdf.make_indirect(Dictionary(
            Type=Name.Font, Subtype=Name.Type1, BaseFont=Name.Helvetica,
            Encoding=Name.WinAnsiEncoding,
        ))
        self.pdf.Root.AcroForm = self.pdf.make_indirect(Dictionary(
            Fields=Array(),
            DA=String("/Helv 0 Tf 0 g"),
            DR=Dictionary(Font=Dictionary(Helv=self.font)),
        ))

    @property
    def fields(self) -> Array:
        return self.pdf.Root.AcroForm.Fields

    def page(self, text=(), size=(612, 792)):
        """New page; ``text`` is a list of (x, y, string) baselines in PDF space."""
        page = self.pdf.add_blank_page(page_size=size)
        ops = b"".join(
            b"BT /F1 12 Tf %d %d Td (%s) Tj ET\n" % (x, y, s.encode("latin-1"))
            for x, y, s in text
        )
        page.obj.Resources = Dictionary(Font=Dictionary(F1=self.font))
        page.obj.Contents = self.pdf.make_stream(ops)
        page.obj.Annots = self.pdf.make_indirect(Array())
        return page

    def widget(self, page, rect, page_ref=True, **entries):
        w = Dictionary(Type=Name.Annot, Subtype=Name.Widget, Rect=Array(rect), F=4, **entries)
        if page_ref:
            w.P = page.obj
        w = self.pdf.make_indirect(w)
        page.obj.Annots.append(w)
        return w

    def appearance(self, on_state: str) -> Dictionary:
        states = {}
        for state in ("/" + on_state, "/Off"):
            stream = self.pdf.make_stream(b"")
            stream.Type = Name.XObject
            stream.Subtype = Name.Form
            stream.BBox = Array([0, 0, 12, 12])
            states[state] = stream
        return Dictionary(N=Dictionary(states))

    # ------------------------------------------------------------------
    def text_field(self, page, name, rect, value=None, **entries):
        if value is not None:
            entries["V"] = String(value)
        w = self.widget(page, rect, FT=Name.Tx, T=String(name), **entries)
        self.fields.append(w)
        return w

    def checkbox(self, page, name, rect, checked=False, on_state="Yes", **entries):
        state = Name("/" + on_state) if checked else Name.Off
        w = self.widget(
            page, rect, FT=Name.Btn, T=String(name),
            V=state, AS=state, AP=self.appearance(on_state), **entries,
        )
        self.fields.append(w)
        return w

    def choice(self, page, name, rect, options, value=None, combo=True, **entries):
        if value is not None:
            entries["V"] = String(value)
        w = self.widget(
            page, rect, FT=Name.Ch, T=String(name),
            Ff=(1 << 17) if combo else 0,
            Opt=Array([String(o) for o in options]), **entries,
        )
        self.fields.append(w)
        return w

    def parent_field(self, name, **entries):
        parent = self.pdf.make_indirect(Dictionary(T=String(name), Kids=Array(), **entries))
        self.fields.append(parent)
        return parent

    def kid(self, page, parent, rect, **entries):
        w = self.widget(page, rect, Parent=parent, **entries)
        parent.Kids.append(w)
        return w

    def build(self) -> bytes:
        buf = io.BytesIO()
        self.pdf.save(buf)
        return buf.getvalue()


@pytest.fixture
def builder():
    return FormBuilder()


@pytest.fixture
def simple_form_pdf(builder):
    """One text field with "Name:" printed 100 units to its left."""
    page = builder.page(text=[(100, 705, "Name:")])
    builder.text_field(page, "applicant_name", [200, 700, 400, 720])
    return builder.build()


@pytest.fixture
def iban_pdf(builder):
    """One field ``iban`` owning 22 single-character boxes on one line."""
    page = builder.page(text=[(10, 605, "IBAN:")])
    parent = builder.parent_field("iban", FT=Name.Tx)
    for i in range(22):
        x = 60 + i * 20
        builder.kid(page, parent, [x, 600, x + 15, 615])
    return builder.build()


@pytest.fixture
def mixed_form_pdf(builder):
    """Two pages of text fields, a checkbox, a dropdown and a radio group."""
    p1 = builder.page(text=[
        (50, 705, "Full name:"),
        (50, 655, "Email:"),
        (80, 605, "I accept the terms"),
    ])
    builder.text_field(p1, "full_name", [150, 700, 400, 720], TU=String("Applicant full name"))
    builder.text_field(p1, "email", [150, 650, 400, 670], Ff=1 << 1)
    builder.checkbox(p1, "accept", [50, 600, 62, 612])
    builder.choice(p1, "country", [150, 550, 300, 570], ["Andorra", "Spain", "France"], TM=String("country_code"))

    p2 = builder.page(text=[(50, 705, "Colour:")])
    radio = builder.parent_field("colour", FT=Name.Btn, Ff=1 << 15)
    builder.kid(p2, radio, [150, 700, 162, 712], AP=builder.appearance("Red"), AS=Name.Off)
    builder.kid(p2, radio, [200, 700, 212, 712], AP=builder.appearance("Blue"), AS=Name.Off)
    builder.text_field(p2, "signature_date", [150, 400, 300, 420])
    return builder.build()

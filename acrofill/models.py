"""Data shapes shared across the pipeline.

Caller-facing records are pydantic models serialized with camelCase aliases;
the per-document intermediates are plain dataclasses and never leave a call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

FieldType = Literal["text", "checkbox", "select", "radio"]
MetadataSource = Literal["tooltip", "alternateName", "nearbyText", "fallback"]
Rect = Tuple[float, float, float, float]


class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def normalize_rect(rect) -> Rect:
    """Return ``rect`` as floats with the lower-left corner first."""
    x0, y0, x1, y1 = (float(v) for v in rect)
    return (min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))


class FieldPosition(_Schema):
    page: int = Field(ge=1)
    rect: List[float]  # [llx, lly, urx, ury], PDF user space
    x: int
    y: int
    width: int = Field(ge=0)
    height: int = Field(ge=0)

    @classmethod
    def from_rect(cls, page: int, rect) -> "FieldPosition":
        llx, lly, urx, ury = normalize_rect(rect)
        return cls(
            page=page,
            rect=[llx, lly, urx, ury],
            x=round(llx),
            y=round(lly),
            width=round(urx - llx),
            height=round(ury - lly),
        )


class TextAnchor(_Schema):
    page: int
    x: int
    y: int


class FieldDescriptor(_Schema):
    name: str
    label: str = Field(min_length=1)
    type: FieldType = "text"
    value: Union[bool, str] = ""
    options: Optional[List[str]] = None
    required: bool = False
    position: Optional[FieldPosition] = None
    metadata_source: MetadataSource = "fallback"
    is_synthesized_widget: bool = False
    tooltip: str = ""
    alternate_name: str = ""
    nearby_text: Optional[str] = None
    nearby_text_position: Optional[TextAnchor] = None
    parent_name: Optional[str] = None

    @model_validator(mode="after")
    def _checkbox_has_no_options(self):
        if self.type == "checkbox" and self.options is not None:
            raise ValueError(f"checkbox field {self.name!r} cannot carry options")
        return self


class PageText(_Schema):
    page: int
    text: str
    field_count: int = 0


class PageImage(_Schema):
    page: int
    base64: str
    width: int
    height: int
    mime_type: str = "image/png"

    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


# ----------------------------------------------------------------------
# Per-call intermediates


@dataclass
class WidgetGeometry:
    """One physical widget annotation, as seen in the page content."""

    page: int
    rect: Rect
    field_name: str
    field_type: Optional[str]  # raw kind: "Tx", "Btn", "Ch", "Sig"
    widget_index: int

    @property
    def width(self) -> float:
        return self.rect[2] - self.rect[0]

    @property
    def height(self) -> float:
        return self.rect[3] - self.rect[1]


@dataclass
class StructuralField:
    """One logical field from the AcroForm field tree."""

    name: str
    kind: str  # text | checkbox | radio | dropdown | listbox | button | signature
    obj: Any  # the terminal field dictionary (pikepdf.Dictionary)
    value: Union[bool, str] = ""
    options: Optional[List[str]] = None
    flags: int = 0
    max_length: Optional[int] = None
    tooltip: str = ""
    alternate_name: str = ""
    widgets: List[Any] = field(default_factory=list)

    @property
    def descriptor_type(self) -> FieldType:
        if self.kind == "checkbox":
            return "checkbox"
        if self.kind == "radio":
            return "radio"
        if self.kind in ("dropdown", "listbox"):
            return "select"
        return "text"


@dataclass
class TextRun:
    """A span of page text anchored at its baseline origin (PDF user space)."""

    text: str
    x: float
    y: float

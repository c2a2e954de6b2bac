#!/usr/bin/env python
"""
cli.py  –  acrofill on the command line

Usage:
    acrofill detect   path/to/form.pdf [--csv] [--json]
    acrofill fill     path/to/form.pdf values.json out.pdf [--flatten]
    acrofill text     path/to/form.pdf
    acrofill annotate path/to/form.pdf out.pdf
    acrofill describe path/to/form.pdf
"""

import argparse
import csv
import json
import logging
import sys
from pathlib import Path

from . import config
from .describe import describe_document
from .detect import detect_fields
from .errors import AcroFillError
from .fill import fill_form
from .page_text import iter_page_text
from .render import annotate_fields

CSV_COLUMNS = [
    "row", "heading", "subheading", "form_entry_description",
    "x1", "y1", "x2", "y2", "page",
    "name", "type", "required", "metadata_source", "value",
]


def field_rows(fields):
    rows = []
    for row_id, f in enumerate(fields, start=1):
        rect = f.position.rect if f.position else ["", "", "", ""]
        rows.append([
            row_id,
            f.label,
            f.parent_name or "",
            f"{f.type} {f.name}".strip(),
            *rect,
            f.position.page if f.position else "",
            f.name, f.type, f.required, f.metadata_source, f.value,
        ])
    return rows


def write_map_csv(fields, csv_out: Path) -> int:
    rows = field_rows(fields)
    with open(csv_out, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(CSV_COLUMNS)
        w.writerows(rows)
    return len(rows)


# ----------------------------------------------------------------------
def cmd_detect(args):
    fields = detect_fields(args.pdf.read_bytes())
    stem = args.pdf.with_suffix("")
    if args.csv:
        csv_out = Path(f"{stem}_map.csv")
        n = write_map_csv(fields, csv_out)
        print(f"✓ Wrote CSV with {n} rows → {csv_out}")
    if args.json:
        json_out = Path(f"{stem}_fields.json")
        json_out.write_text(
            json.dumps([f.model_dump(by_alias=True) for f in fields], indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        print(f"✓ Wrote {len(fields)} fields → {json_out}")
    if not (args.csv or args.json):
        for row in field_rows(fields):
            print(f"{row[0]:>4}  p{row[8]}  {row[10]:<8} {row[9]}  ({row[1]})")
        print(f"✓ {len(fields)} fields")


def cmd_fill(args):
    try:
        values = json.loads(args.values.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        sys.exit(f"Error: values file is not valid JSON: {exc}")
    if not isinstance(values, dict):
        sys.exit("Error: values file must hold a JSON object of field name -> value")
    out = fill_form(args.pdf.read_bytes(), values, flatten=args.flatten)
    args.out.write_bytes(out)
    print(f"✓ Saved {'Flattened' if args.flatten else 'Editable'} PDF: {args.out}")


def cmd_text(args):
    data = args.pdf.read_bytes()
    fields = detect_fields(data)
    for page in iter_page_text(data, fields):
        print(f"--- Page {page.page} ({page.field_count} fields) ---")
        print(page.text)


def cmd_annotate(args):
    data = args.pdf.read_bytes()
    fields = detect_fields(data)
    args.out.write_bytes(annotate_fields(data, fields))
    print(f"✓ Annotated PDF saved as → {args.out}")


def cmd_describe(args):
    print(f"Describing pages with model: {config.MODEL_ID}")
    result = describe_document(args.pdf.read_bytes())
    print(json.dumps(result.model_dump(by_alias=True), indent=2, ensure_ascii=False))
    print(f"✓ {result.total_fields} fields described on {result.total_pages} pages")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="acrofill", description="Detect and fill PDF AcroForm fields.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("detect", help="list the fillable fields in reading order")
    p.add_argument("pdf", type=Path)
    p.add_argument("--csv", action="store_true", help="write <stem>_map.csv")
    p.add_argument("--json", action="store_true", help="write <stem>_fields.json")
    p.set_defaults(func=cmd_detect)

    p = sub.add_parser("fill", help="write values into the fields")
    p.add_argument("pdf", type=Path)
    p.add_argument("values", type=Path)
    p.add_argument("out", type=Path)
    p.add_argument("--flatten", action="store_true")
    p.set_defaults(func=cmd_fill)

    p = sub.add_parser("text", help="print each page with field markers")
    p.add_argument("pdf", type=Path)
    p.set_defaults(func=cmd_text)

    p = sub.add_parser("annotate", help="write a review PDF with numbered field badges")
    p.add_argument("pdf", type=Path)
    p.add_argument("out", type=Path)
    p.set_defaults(func=cmd_annotate)

    p = sub.add_parser("describe", help="ask the vision model what each field is for")
    p.add_argument("pdf", type=Path)
    p.set_defaults(func=cmd_describe)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    try:
        args.func(args)
    except AcroFillError as e:
        sys.exit(f"Error: {e}")


if __name__ == "__main__":
    main()

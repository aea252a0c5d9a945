"""Overlay field values onto the first page of a template PDF.

Field geometry is authored in a top-left-origin space (the web template
designer); PDF user space is bottom-left-origin. Every region goes through
``adjusted_y`` before anything is drawn.

The overlay is painted with reportlab onto a page the size of the template's
first page and merged with pypdf. Each call builds its own canvas and
buffers, so renders can run in parallel.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from io import BytesIO

from PIL import Image
from pypdf import PdfReader, PdfWriter
from reportlab.lib import colors
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from docsign.config import settings
from docsign.errors import DecodeFailure, IOFailure
from docsign.schemas.document_data import (
    DocumentData,
    SignatureField,
    TableCell,
    TableField,
    TableSpec,
    TextField,
    parse_field_schema,
)

logger = logging.getLogger(__name__)

DEFAULT_TABLE_ROWS = 3
HEADER_MIN_HEIGHT = 20.0
HEADER_MAX_HEIGHT = 30.0
HEADER_HEIGHT_RATIO = 0.12
SIGNATURE_FALLBACK_FONT_SIZE = 12

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


# ---------------------------------------------------------------------------
# Coordinate and style helpers
# ---------------------------------------------------------------------------


def adjusted_y(page_height: float, y: float, height: float) -> float:
    """Bottom-left-origin y of a region given in top-left-origin coordinates."""
    return page_height - y - height


def parse_hex_color(value) -> colors.Color:
    if isinstance(value, str) and _HEX_COLOR.match(value.strip()):
        return colors.HexColor(value.strip())
    logger.warning("Unparsable font color %r, using black", value)
    return colors.black


def decode_signature(raw: str) -> Image.Image:
    """Decode a base64 signature, with or without a ``data:image/...`` header."""
    payload = (raw or "").strip()
    if payload.startswith("data:image"):
        payload = payload[payload.find(",") + 1 :]
    try:
        image_bytes = base64.b64decode(payload, validate=True)
        image = Image.open(BytesIO(image_bytes))
        image.load()
    except (binascii.Error, ValueError, OSError, Image.DecompressionBombError) as exc:
        raise DecodeFailure(f"Signature image could not be decoded: {exc}") from exc
    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA")
    return image


# ---------------------------------------------------------------------------
# Table geometry
# ---------------------------------------------------------------------------


def header_height(table_height: float) -> float:
    return min(HEADER_MAX_HEIGHT, max(HEADER_MIN_HEIGHT, table_height * HEADER_HEIGHT_RATIO))


def column_widths(columns, total_width: float) -> list[float]:
    """Declared column widths; missing or non-positive ones share what is left."""
    if not columns:
        return [total_width]
    declared = [
        column.width if column.width is not None and column.width > 0 else None
        for column in columns
    ]
    fixed = sum(width for width in declared if width is not None)
    open_slots = sum(1 for width in declared if width is None)
    share = max(total_width - fixed, 0.0) / open_slots if open_slots else 0.0
    return [width if width is not None else share for width in declared]


@dataclass(frozen=True)
class TableLayout:
    x: float
    y: float  # bottom edge in PDF space
    width: float
    height: float
    header: float
    widths: tuple[float, ...]
    rows: int

    @property
    def row_height(self) -> float:
        return (self.height - self.header) / self.rows

    def cell_origin(self, row: int, column: int) -> tuple[float, float] | None:
        if row < 0 or row >= self.rows or column < 0 or column >= len(self.widths):
            return None
        col_start_x = self.x + sum(self.widths[:column])
        cell_y = self.y + self.height - self.header - (row + 1) * self.row_height
        return col_start_x, cell_y


def layout_table(spec: TableSpec, cells: list[TableCell], page_height: float) -> TableLayout:
    rows = max((cell.location_row for cell in cells), default=-1) + 1
    if rows <= 0:
        rows = DEFAULT_TABLE_ROWS
    return TableLayout(
        x=spec.x,
        y=adjusted_y(page_height, spec.y, spec.height),
        width=spec.width,
        height=spec.height,
        header=header_height(spec.height),
        widths=tuple(column_widths(spec.columns, spec.width)),
        rows=rows,
    )


def _collect_tables(fields, data: DocumentData) -> list[TableSpec]:
    tables: list[TableSpec] = []
    seen: set[str] = set()
    for spec in data.table_specs:
        tables.append(spec)
        if spec.table_id is not None:
            seen.add(spec.table_id)
    for field in fields:
        if isinstance(field, TableField):
            spec = TableSpec.from_field(field)
            if spec.table_id not in seen:
                seen.add(spec.table_id)
                tables.append(spec)
    return tables


def _cells_for(spec: TableSpec, data: DocumentData, single_table: bool) -> list[TableCell]:
    return [
        cell
        for cell in data.table_cells
        if cell.table_id == spec.table_id or (cell.table_id is None and single_table)
    ]


# ---------------------------------------------------------------------------
# Drawing
# ---------------------------------------------------------------------------


def _draw_text(c, field: TextField, value: str, page_height: float) -> None:
    ay = adjusted_y(page_height, field.y, field.height)
    c.setFont(settings.default_font, field.font_size or settings.default_font_size)
    c.setFillColor(parse_hex_color(field.font_color))
    c.drawString(field.x + 2, ay + 2, value)


def _draw_signature(c, field: SignatureField, image_data: str, page_height: float) -> None:
    ay = adjusted_y(page_height, field.y, field.height)
    try:
        image = decode_signature(image_data)
    except DecodeFailure as exc:
        logger.warning(
            "Signature for %s on field %s not drawn: %s",
            field.reviewer_email,
            field.id,
            exc,
        )
        c.setFont(settings.default_font, SIGNATURE_FALLBACK_FONT_SIZE)
        c.setFillColor(colors.black)
        c.drawString(field.x, ay + field.height / 2, f"[signature: {field.reviewer_email}]")
        return
    c.drawImage(
        ImageReader(image),
        field.x,
        ay,
        width=field.width,
        height=field.height,
        mask="auto",
    )


def _draw_table(c, spec: TableSpec, cells: list[TableCell], page_height: float) -> int:
    layout = layout_table(spec, cells, page_height)
    c.setStrokeColor(colors.black)
    c.rect(layout.x, layout.y, layout.width, layout.height, stroke=1, fill=0)
    header_y = layout.y + layout.height - layout.header
    c.rect(layout.x, header_y, layout.width, layout.header, stroke=1, fill=0)

    font_size = settings.default_font_size
    c.setFont(settings.default_font, font_size)
    c.setFillColor(colors.black)
    for index, column in enumerate(spec.columns):
        if column.title:
            col_x = layout.x + sum(layout.widths[:index])
            c.drawString(col_x + 2, header_y + (layout.header - font_size) / 2, column.title)

    drawn = 0
    for cell in cells:
        origin = layout.cell_origin(cell.location_row, cell.location_column)
        if origin is None:
            logger.debug(
                "Dropped cell (%d, %d) outside table %s",
                cell.location_row,
                cell.location_column,
                spec.table_id,
            )
            continue
        if not cell.value:
            continue
        col_x, cell_y = origin
        c.drawString(col_x + 2, cell_y + 2, cell.value)
        drawn += 1
    return drawn


def _signature_image(data: DocumentData, email: str | None) -> str | None:
    value = data.signature_for(email)
    if value is not None:
        return value.image
    if email:
        for key, image in data.signatures.items():
            if key.lower() == email.lower():
                return image
    return None


def draw_fields(c, page_height: float, fields, data: DocumentData) -> int:
    """Paint every filled field onto ``c``; returns the number of drawn items.

    Non-table fields go first in schema order, then all tables.
    """
    drawn = 0
    for field in fields:
        if isinstance(field, SignatureField):
            image_data = _signature_image(data, field.reviewer_email)
            if image_data is None:
                logger.info("No signature on file for %s", field.reviewer_email)
                continue
            _draw_signature(c, field, image_data, page_height)
            drawn += 1
        elif isinstance(field, TextField):
            value = data.text_value(field.id)
            if value is None:
                continue
            _draw_text(c, field, value.value, page_height)
            drawn += 1

    tables = _collect_tables(fields, data)
    for spec in tables:
        cells = _cells_for(spec, data, single_table=len(tables) == 1)
        drawn += _draw_table(c, spec, cells, page_height)
    return drawn


def _make_overlay(box, fields, data: DocumentData) -> bytes:
    page_height = float(box.height)
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=(float(box.right), float(box.top)))
    c.translate(float(box.left), float(box.bottom))
    drawn = draw_fields(c, page_height, fields, data)
    c.save()
    logger.debug("Overlay holds %d drawn items", drawn)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def render(template_pdf_bytes: bytes, field_schema, document_data) -> bytes:
    """Return a new PDF with the document's values overlaid on the template.

    ``field_schema`` is a list of field descriptors (dicts or parsed models) and
    ``document_data`` the document blob or a ``DocumentData``. The template
    bytes are never modified. Raises ``IOFailure`` when the template cannot be
    read or the result cannot be written; per-field problems only degrade that
    field.
    """
    fields = parse_field_schema(field_schema)
    data = (
        document_data
        if isinstance(document_data, DocumentData)
        else DocumentData.from_blob(document_data)
    )

    try:
        reader = PdfReader(BytesIO(template_pdf_bytes))
        pages = list(reader.pages)
        box = pages[0].mediabox
    except Exception as exc:
        logger.error("Template PDF could not be opened: %s", exc)
        raise IOFailure(f"Template PDF could not be opened: {exc}") from exc

    logger.info(
        "Rendering %d fields with %d filled values on a %.0fx%.0f page",
        len(fields),
        len(data.values()),
        float(box.width),
        float(box.height),
    )
    overlay = _make_overlay(box, fields, data)

    try:
        overlay_page = PdfReader(BytesIO(overlay)).pages[0]
        writer = PdfWriter()
        for index, page in enumerate(pages):
            added = writer.add_page(page)
            if index == 0:
                added.merge_page(overlay_page)
        out = BytesIO()
        writer.write(out)
    except Exception as exc:
        logger.error("Completed PDF could not be written: %s", exc)
        raise IOFailure(f"Completed PDF could not be written: {exc}") from exc
    return out.getvalue()

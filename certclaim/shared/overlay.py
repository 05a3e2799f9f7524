"""Stamp the participant name and certificate number onto a PDF template."""

from __future__ import annotations

from io import BytesIO
from typing import Sequence

from PyPDF2 import PdfReader, PdfWriter
from PyPDF2.errors import PdfReadError
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from .coordinates import to_document_space
from .errors import RenderError, TemplateError

FONT_NAME = "Helvetica-Bold"
NAME_FONT_SIZE = 35
NUMBER_FONT_SIZE = 14
NAME_FILL_GRAY = 0.0
NUMBER_FILL_GRAY = 0.2


def _load_pages(template_bytes: bytes) -> list:
    if not template_bytes:
        raise TemplateError("Template PDF is empty.")
    try:
        reader = PdfReader(BytesIO(template_bytes))
        pages = list(reader.pages)
    except (PdfReadError, ValueError, KeyError, TypeError) as exc:
        raise TemplateError(f"Template PDF could not be read: {exc}") from exc
    if not pages:
        raise TemplateError("Template PDF has no pages.")
    return pages


def centred_origin(text: str, anchor_x: float, font_size: float) -> float:
    """Return the x where ``text`` starts so it is centred on ``anchor_x``."""
    return anchor_x - stringWidth(text, FONT_NAME, font_size) / 2.0


def render_overlay(
    template_bytes: bytes,
    participant_name: str,
    certificate_number: str,
    name_anchor_pct: Sequence[float],
    cert_anchor_pct: Sequence[float],
) -> bytes:
    """Return ``template_bytes`` with both text runs drawn on page one.

    Anchors are ``(x%, y%)`` of the first page. Each run is centred
    horizontally on its anchor; the anchor y is the text baseline. Later
    pages are copied through unchanged.
    """
    pages = _load_pages(template_bytes)
    base_page = pages[0]
    w = float(base_page.mediabox.width)
    h = float(base_page.mediabox.height)

    name_x, name_y = to_document_space(name_anchor_pct[0], name_anchor_pct[1], w, h)
    cert_x, cert_y = to_document_space(cert_anchor_pct[0], cert_anchor_pct[1], w, h)

    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=(w, h))

    c.setFont(FONT_NAME, NAME_FONT_SIZE)
    c.setFillGray(NAME_FILL_GRAY)
    c.drawString(
        centred_origin(participant_name, name_x, NAME_FONT_SIZE),
        name_y,
        participant_name,
    )

    c.setFont(FONT_NAME, NUMBER_FONT_SIZE)
    c.setFillGray(NUMBER_FILL_GRAY)
    c.drawString(
        centred_origin(certificate_number, cert_x, NUMBER_FONT_SIZE),
        cert_y,
        certificate_number,
    )

    c.save()
    buffer.seek(0)

    try:
        overlay_page = PdfReader(buffer).pages[0]
        left = float(base_page.mediabox.left)
        bottom = float(base_page.mediabox.bottom)
        if left or bottom:
            # overlay canvas is drawn from (0, 0)
            overlay_page.add_transformation((1, 0, 0, 1, left, bottom))
        base_page.merge_page(overlay_page)
        writer = PdfWriter()
        for page in pages:
            writer.add_page(page)
        out_buf = BytesIO()
        writer.write(out_buf)
    except (PdfReadError, ValueError, KeyError, TypeError) as exc:
        raise RenderError(f"Certificate PDF could not be written: {exc}") from exc
    return out_buf.getvalue()

"""
Report Exporters

Three independent conversions from an arbitrary report payload (a JSON object)
to an email attachment:

- ``export_csv``  flat table with a header line (pandas)
- ``export_pdf``  paginated text document with a watermark (ReportLab)
- ``export_docx`` styled Word document (python-docx)

They share nothing but the payload. ``export_report`` picks one by format and
wraps the bytes in an ``ExportArtifact``.

Example usage:
    artifact = export_report(ReportFormat.PDF, {"product": "Ceylon tea"})
    mailer_attachment = (artifact.filename, artifact.content, artifact.content_type)
"""

import csv
import json
from datetime import datetime, timezone
from io import BytesIO
from typing import Any, Dict, List, Optional

import pandas as pd
from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt
from reportlab.lib.pagesizes import letter
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from core.errors import ExportError
from core.models import ExportArtifact, ReportFormat

REPORT_TITLE = "Ceylog Report"
REPORT_AUTHOR = "Ceylog"
WATERMARK_TEXT = "CONFIDENTIAL"

# PDF layout, in points
PDF_FONT = "Helvetica"
PDF_MARGIN = 50
PDF_BOTTOM_MARGIN = 50
PDF_TITLE_SIZE = 20
PDF_STAMP_SIZE = 12
PDF_BODY_SIZE = 10
PDF_LINE_HEIGHT = 15
PDF_WATERMARK_SIZE = 40

CONTENT_TYPES = {
    ReportFormat.PDF: "application/pdf",
    ReportFormat.CSV: "text/csv",
    ReportFormat.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def _generated_on(generated_at: Optional[datetime]) -> str:
    moment = generated_at or datetime.now(timezone.utc)
    return f"Generated on: {moment.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}"


def _pretty(report_data: Dict[str, Any]) -> str:
    return json.dumps(report_data, indent=2, ensure_ascii=False, default=str)


# --- CSV -------------------------------------------------------------------

def _strip_angle_brackets(value: Any) -> Any:
    # Crude guard against markup in spreadsheet cells, not real escaping.
    if isinstance(value, str):
        return value.replace("<", "").replace(">", "")
    if isinstance(value, dict):
        return {key: _strip_angle_brackets(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_strip_angle_brackets(item) for item in value]
    return value


def _cell(value: Any) -> Any:
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return value


def export_csv(report_data: Dict[str, Any]) -> bytes:
    """
    Flatten the payload into CSV rows.

    Nested objects become dotted column names; lists are written as JSON text
    in a single cell.

    Raises:
        ExportError: the payload has no fields to write
    """
    if not report_data:
        raise ExportError("Report data has no fields to export")

    frame = pd.json_normalize(_strip_angle_brackets(report_data))
    if frame.columns.empty:
        raise ExportError("Report data has no fields to export")

    frame = frame.apply(lambda column: column.map(_cell))
    text = frame.to_csv(index=False, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    return text.encode("utf-8")


# --- PDF -------------------------------------------------------------------

def _text_width(text: str) -> float:
    return stringWidth(text, PDF_FONT, PDF_BODY_SIZE)


def _hard_break(text: str, max_width: float) -> List[str]:
    pieces: List[str] = []
    start, width = 0, 0.0
    for index, char in enumerate(text):
        char_width = _text_width(char)
        if width + char_width > max_width and index > start:
            pieces.append(text[start:index])
            start, width = index, 0.0
        width += char_width
    pieces.append(text[start:])
    return pieces


def _wrap_line(line: str, max_width: float) -> List[str]:
    """Word-wrap one line of pretty-printed JSON, keeping its indentation."""
    if _text_width(line) <= max_width:
        return [line]

    indent = line[:len(line) - len(line.lstrip(" "))]
    if _text_width(indent) > max_width / 2:
        indent = ""

    wrapped: List[str] = []
    current = ""
    for word in line.strip(" ").split(" "):
        candidate = f"{current} {word}" if current else indent + word
        if _text_width(candidate) <= max_width:
            current = candidate
            continue
        if current:
            wrapped.append(current)
        if _text_width(indent + word) <= max_width:
            current = indent + word
        else:
            pieces = _hard_break(indent + word, max_width)
            wrapped.extend(pieces[:-1])
            current = pieces[-1]
    if current:
        wrapped.append(current)
    return wrapped


def _draw_watermark(pdf: canvas.Canvas, width: float, height: float) -> None:
    pdf.saveState()
    pdf.setFillColorRGB(0.9, 0.9, 0.9)
    pdf.setFont(PDF_FONT, PDF_WATERMARK_SIZE)
    pdf.translate(width / 2 - 50, height / 2)
    pdf.rotate(45)
    pdf.drawString(0, 0, WATERMARK_TEXT)
    pdf.restoreState()


def _start_body_page(pdf: canvas.Canvas, width: float, height: float) -> None:
    _draw_watermark(pdf, width, height)
    pdf.setFont(PDF_FONT, PDF_BODY_SIZE)
    pdf.setFillColorRGB(0, 0, 0)


def export_pdf(report_data: Dict[str, Any], generated_at: Optional[datetime] = None) -> bytes:
    """
    Render the payload as a paginated PDF.

    Page one carries the title and generation time; every page carries the
    watermark. Body lines move to a new page once the cursor drops below the
    bottom margin.
    """
    buffer = BytesIO()
    width, height = letter
    pdf = canvas.Canvas(buffer, pagesize=letter)
    pdf.setTitle(REPORT_TITLE)
    pdf.setAuthor(REPORT_AUTHOR)
    pdf.setCreator(REPORT_AUTHOR)

    _draw_watermark(pdf, width, height)

    pdf.setFont(PDF_FONT, PDF_TITLE_SIZE)
    pdf.setFillColorRGB(0.1, 0.1, 0.1)
    pdf.drawString(PDF_MARGIN, height - 50, REPORT_TITLE)

    pdf.setFont(PDF_FONT, PDF_STAMP_SIZE)
    pdf.setFillColorRGB(0.3, 0.3, 0.3)
    pdf.drawString(PDF_MARGIN, height - 80, _generated_on(generated_at))

    pdf.setFont(PDF_FONT, PDF_BODY_SIZE)
    pdf.setFillColorRGB(0, 0, 0)

    max_width = width - 2 * PDF_MARGIN
    y = height - 120
    for raw_line in _pretty(report_data).split("\n"):
        for line in _wrap_line(raw_line, max_width):
            if y < PDF_BOTTOM_MARGIN:
                pdf.showPage()
                _start_body_page(pdf, width, height)
                y = height - PDF_MARGIN
            pdf.drawString(PDF_MARGIN, y, line)
            y -= PDF_LINE_HEIGHT

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


# --- DOCX ------------------------------------------------------------------

def export_docx(report_data: Dict[str, Any], generated_at: Optional[datetime] = None) -> bytes:
    """Render the payload as a Word document: title, timestamp, one body paragraph."""
    document = Document()
    document.core_properties.title = REPORT_TITLE
    document.core_properties.author = REPORT_AUTHOR

    heading = document.add_heading(REPORT_TITLE, level=1)
    heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
    heading.paragraph_format.space_after = Pt(10)

    stamp = document.add_paragraph(_generated_on(generated_at))
    stamp.alignment = WD_ALIGN_PARAGRAPH.CENTER
    stamp.paragraph_format.space_after = Pt(10)

    body = document.add_paragraph()
    run = body.add_run(_pretty(report_data))
    run.font.size = Pt(12)

    buffer = BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def export_report(report_format: ReportFormat, report_data: Dict[str, Any]) -> ExportArtifact:
    """
    Convert the payload to the requested format.

    Raises:
        ExportError: unknown format
        Exception: anything the underlying exporter raises is propagated
    """
    fmt = ReportFormat(report_format)
    if fmt is ReportFormat.PDF:
        content = export_pdf(report_data)
    elif fmt is ReportFormat.CSV:
        content = export_csv(report_data)
    elif fmt is ReportFormat.DOCX:
        content = export_docx(report_data)
    else:
        raise ExportError(f"Invalid format: {report_format}")

    return ExportArtifact(
        filename=f"report.{fmt.value}",
        content_type=CONTENT_TYPES[fmt],
        content=content,
        format=fmt,
    )

"""
Report export: JSON, plain text, PDF (ReportLab) and Word (python-docx).

Every format lists the questions in document order with their number,
text, four options, and any attached diagrams with captions.
"""

import io
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional
from xml.sax.saxutils import escape

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Mm, Pt
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.platypus import HRFlowable, Image as ReportLabImage, Paragraph, SimpleDocTemplate, Spacer

from config import EXPORT_FORMATS, PDF_FONT_CANDIDATES, PDF_FONT_PATH, REPORT_TITLE
from pipeline.models import DiagramSlot, ExtractionResult, Question
from utils.image_utils import decode_data_url
from utils.latex_text import latex_to_text

logger = logging.getLogger(__name__)

MAIN_DIAGRAM_WIDTH_MM = 100
OPTION_DIAGRAM_WIDTH_MM = 40
FALLBACK_PDF_FONT = "Helvetica"


def report_filename(source_filename: str, fmt: str) -> str:
    """e.g. ("paper 1.pdf", "docx") -> "paper 1_questions.docx"."""
    stem = Path(source_filename or "document").stem or "document"
    return f"{stem}_questions.{fmt}"


def _timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _slot_bytes(slot: DiagramSlot) -> Optional[bytes]:
    if not slot.image_url:
        return None
    try:
        data, _ = decode_data_url(slot.image_url)
    except ValueError as e:
        logger.warning("Skipping undecodable diagram: %s", e)
        return None
    return data


# ─── JSON / text ─────────────────────────────────────────────────────────────


def render_json(result: ExtractionResult) -> str:
    return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)


def render_text(result: ExtractionResult) -> str:
    lines = [
        REPORT_TITLE.upper(),
        f"FILE: {result.filename}",
        f"DATE: {_timestamp()}",
        "",
    ]
    for q in result.questions:
        lines.append(f"QUESTION {q.question_number}")
        lines.append("-" * 26)
        lines.append(q.question_text)
        lines.append("")
        if q.diagram.is_enriched:
            lines.append(f"[Main Diagram Attached] {q.diagram.caption or ''}".rstrip())
        for label, option in q.options.items():
            lines.append(f"({label}) {option.text}")
            if option.diagram.is_enriched:
                lines.append(f"    [Diagram for option {label}] {option.diagram.caption or ''}".rstrip())
        lines.append("")
        lines.append("")
    return "\n".join(lines)


def export_json(result: ExtractionResult, path: Path) -> Path:
    path = Path(path)
    path.write_text(render_json(result), encoding="utf-8")
    return path


def export_text(result: ExtractionResult, path: Path) -> Path:
    path = Path(path)
    path.write_text(render_text(result), encoding="utf-8")
    return path


# ─── PDF ─────────────────────────────────────────────────────────────────────


def resolve_pdf_font(font_path: Optional[str] = None) -> str:
    """
    Register the first usable TrueType font and return its ReportLab name.

    Tries font_path, then MCQ_PDF_FONT, then PDF_FONT_CANDIDATES. The alias
    is the file stem. Helvetica covers Latin text only, so falling back to
    it is logged.
    """
    candidates = [font_path, PDF_FONT_PATH, *PDF_FONT_CANDIDATES]
    for candidate in candidates:
        if not candidate:
            continue
        path = Path(candidate).expanduser()
        if not path.is_file():
            continue
        alias = path.stem
        if alias in pdfmetrics.getRegisteredFontNames():
            return alias
        try:
            pdfmetrics.registerFont(TTFont(alias, str(path)))
        except (TTFError, OSError) as e:
            logger.warning("Failed to register font %s: %s", path, e)
            continue
        logger.info("Registered PDF font %s from %s", alias, path)
        return alias

    logger.warning("No Unicode font found; non-Latin text may be missing from PDF reports (set MCQ_PDF_FONT)")
    return FALLBACK_PDF_FONT


def _pdf_text(text: str) -> str:
    return escape(latex_to_text(text))


def _pdf_image(data: bytes, width_mm: float) -> ReportLabImage:
    img_w, img_h = ImageReader(io.BytesIO(data)).getSize()
    width = width_mm * mm
    height = width * img_h / img_w
    return ReportLabImage(io.BytesIO(data), width=width, height=height, hAlign="LEFT")


def _pdf_question(q: Question, styles: Dict[str, ParagraphStyle]) -> List:
    elements = [
        Paragraph(_pdf_text(f"Q{q.question_number}. {q.question_text}"), styles["question"]),
        Spacer(1, 2 * mm),
    ]

    data = _slot_bytes(q.diagram)
    if data:
        elements.append(_pdf_image(data, MAIN_DIAGRAM_WIDTH_MM))
        if q.diagram.caption:
            elements.append(Paragraph(_pdf_text(q.diagram.caption), styles["caption"]))
        elements.append(Spacer(1, 3 * mm))

    for label, option in q.options.items():
        elements.append(Paragraph(_pdf_text(f"({label}) {option.text}"), styles["option"]))
        data = _slot_bytes(option.diagram)
        if data:
            elements.append(_pdf_image(data, OPTION_DIAGRAM_WIDTH_MM))
            if option.diagram.caption:
                elements.append(Paragraph(_pdf_text(option.diagram.caption), styles["caption"]))

    elements.append(Spacer(1, 3 * mm))
    elements.append(HRFlowable(width="100%", thickness=0.5, color=colors.HexColor("#E5E7EB")))
    elements.append(Spacer(1, 4 * mm))
    return elements


def render_pdf(result: ExtractionResult, font_path: Optional[str] = None) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=A4,
        leftMargin=20 * mm, rightMargin=20 * mm, topMargin=20 * mm, bottomMargin=20 * mm,
        title=REPORT_TITLE,
    )
    font = resolve_pdf_font(font_path)
    # A single registered TTF has no bold or italic face
    bold = "Helvetica-Bold" if font == FALLBACK_PDF_FONT else font
    italic = "Helvetica-Oblique" if font == FALLBACK_PDF_FONT else font

    base = getSampleStyleSheet()
    styles = {
        "title": ParagraphStyle("ReportTitle", parent=base["Title"], fontName=bold),
        "question": ParagraphStyle("Question", parent=base["Normal"], fontName=bold, fontSize=12, leading=16),
        "option": ParagraphStyle("Option", parent=base["Normal"], fontName=font, fontSize=10, leading=14, leftIndent=8 * mm),
        "caption": ParagraphStyle("Caption", parent=base["Italic"], fontName=italic, fontSize=8, textColor=colors.HexColor("#6B7280"), leftIndent=8 * mm),
        "meta": ParagraphStyle("Meta", parent=base["Normal"], fontName=font, fontSize=9, textColor=colors.HexColor("#646464"), alignment=TA_CENTER),
    }

    elements = [
        Paragraph(REPORT_TITLE, styles["title"]),
        Paragraph(escape(f"Source Document: {result.filename}"), styles["meta"]),
        Paragraph(f"Generated On: {_timestamp()}", styles["meta"]),
        Spacer(1, 10 * mm),
    ]
    for q in result.questions:
        elements.extend(_pdf_question(q, styles))

    doc.build(elements)
    return buffer.getvalue()


def export_pdf(result: ExtractionResult, path: Path, font_path: Optional[str] = None) -> Path:
    path = Path(path)
    path.write_bytes(render_pdf(result, font_path))
    return path


# ─── Word ────────────────────────────────────────────────────────────────────


def _docx_caption(document, text: str) -> None:
    run = document.add_paragraph().add_run(latex_to_text(text))
    run.italic = True
    run.font.size = Pt(8)


def render_docx(result: ExtractionResult) -> bytes:
    document = Document()

    document.add_heading(REPORT_TITLE, level=0).alignment = WD_ALIGN_PARAGRAPH.CENTER
    for line in (f"Source Document: {result.filename}", f"Generated On: {_timestamp()}"):
        document.add_paragraph(line).alignment = WD_ALIGN_PARAGRAPH.CENTER

    for q in result.questions:
        heading = document.add_paragraph()
        heading.add_run(f"Q{q.question_number}. ").bold = True
        heading.add_run(latex_to_text(q.question_text))

        data = _slot_bytes(q.diagram)
        if data:
            document.add_picture(io.BytesIO(data), width=Mm(MAIN_DIAGRAM_WIDTH_MM))
            if q.diagram.caption:
                _docx_caption(document, q.diagram.caption)

        for label, option in q.options.items():
            para = document.add_paragraph()
            para.paragraph_format.left_indent = Mm(8)
            para.add_run(f"({label}) ").bold = True
            para.add_run(latex_to_text(option.text))
            data = _slot_bytes(option.diagram)
            if data:
                document.add_picture(io.BytesIO(data), width=Mm(OPTION_DIAGRAM_WIDTH_MM))
                if option.diagram.caption:
                    _docx_caption(document, option.diagram.caption)

        document.add_paragraph("")

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def export_docx(result: ExtractionResult, path: Path) -> Path:
    path = Path(path)
    path.write_bytes(render_docx(result))
    return path


EXPORTERS = {
    "json": export_json,
    "txt": export_text,
    "pdf": export_pdf,
    "docx": export_docx,
}


def export_result(
    result: ExtractionResult,
    output_dir: Path,
    formats: Iterable[str] = ("json",),
) -> List[Path]:
    """Write the requested formats into output_dir; returns the written paths."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for fmt in formats:
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Unknown export format: {fmt}")
        path = EXPORTERS[fmt](result, output_dir / report_filename(result.filename, fmt))
        logger.info("Wrote %s", path)
        paths.append(path)
    return paths

"""
Tests for report export.
"""

import json
import os

import cv2
import fitz
import numpy as np
import pytest
import reportlab
from docx import Document
from reportlab.pdfbase import pdfmetrics

from config import PDF_FONT_CANDIDATES
from pipeline import exporter
from pipeline.exporter import (
    export_result,
    render_docx,
    render_pdf,
    render_text,
    report_filename,
    resolve_pdf_font,
)
from pipeline.models import ExtractionResult, ProcessStep, Question
from tests.fakes import make_question
from utils.image_utils import encode_png, to_data_url


@pytest.fixture
def result():
    diagram = np.zeros((40, 80, 3), dtype=np.uint8)
    url = to_data_url(encode_png(cv2.rectangle(diagram, (5, 5), (70, 30), (255, 255, 255), 2)))

    q1 = Question.from_response(make_question(number=1, text="Find the area."), 1, 0)
    q1.diagram.image_url = url
    q1.diagram.caption = "Rectangle 4 cm by 2 cm"
    q2 = Question.from_response(make_question(number=2, text="Which shape has 3 sides?"), 1, 1)
    q2.options.get("C").diagram.image_url = url
    q2.options.get("C").diagram.caption = "triangle"

    return ExtractionResult(
        filename="paper 1.pdf",
        total_pages=1,
        questions=[q1, q2],
        step=ProcessStep.COMPLETED,
    )


class TestReportFilename:
    def test_uses_pdf_stem(self):
        assert report_filename("paper 1.pdf", "docx") == "paper 1_questions.docx"

    def test_missing_name(self):
        assert report_filename("", "json") == "document_questions.json"


class TestRenderers:
    """Test the in-memory report formats."""

    def test_text(self, result):
        text = render_text(result)
        assert "FILE: paper 1.pdf" in text
        assert "QUESTION 1" in text
        assert "[Main Diagram Attached] Rectangle 4 cm by 2 cm" in text
        assert "(B) 4" in text
        assert "[Diagram for option C] triangle" in text
        assert text.index("QUESTION 1") < text.index("QUESTION 2")

    def test_pdf(self, result):
        assert render_pdf(result).startswith(b"%PDF")

    def test_docx(self, result, tmp_path):
        path = tmp_path / "report.docx"
        path.write_bytes(render_docx(result))
        text = "\n".join(p.text for p in Document(str(path)).paragraphs)
        assert "Q1. Find the area." in text
        assert "Rectangle 4 cm by 2 cm" in text
        assert "(C) 5" in text
        assert len(Document(str(path)).inline_shapes) == 2


class TestExportResult:
    """Test writing reports to disk."""

    def test_writes_requested_formats(self, result, tmp_path):
        paths = export_result(result, tmp_path / "out", ["json", "txt", "pdf", "docx"])

        assert [p.name for p in paths] == [
            "paper 1_questions.json",
            "paper 1_questions.txt",
            "paper 1_questions.pdf",
            "paper 1_questions.docx",
        ]
        assert all(p.exists() and p.stat().st_size > 0 for p in paths)

        data = json.loads(paths[0].read_text(encoding="utf-8"))
        assert data["filename"] == "paper 1.pdf"
        assert data["total_questions"] == 2
        assert data["questions_with_diagrams"] == 2
        assert data["questions"][1]["options"]["C_diagram_alt_text"] == "triangle"

    def test_unknown_format(self, result, tmp_path):
        with pytest.raises(ValueError):
            export_result(result, tmp_path, ["html"])


VERA_PATH = os.path.join(os.path.dirname(reportlab.__file__), "fonts", "Vera.ttf")
DEVANAGARI_FONTS = [p for p in PDF_FONT_CANDIDATES if os.path.isfile(p) and "DejaVu" not in p]


def single_question(text: str) -> ExtractionResult:
    q = Question.from_response(make_question(number=1, text=text), 1, 0)
    return ExtractionResult(filename="paper.pdf", total_pages=1, questions=[q], step=ProcessStep.COMPLETED)


def pdf_text(pdf: bytes) -> str:
    with fitz.open(stream=pdf, filetype="pdf") as doc:
        return "".join(page.get_text() for page in doc)


class TestPdfFonts:
    """Test font selection and non-Latin text in PDF reports."""

    def test_registers_given_ttf(self):
        assert resolve_pdf_font(VERA_PATH) == "Vera"
        assert "Vera" in pdfmetrics.getRegisteredFontNames()

    def test_falls_back_to_helvetica(self, monkeypatch, tmp_path):
        monkeypatch.setattr(exporter, "PDF_FONT_PATH", None)
        monkeypatch.setattr(exporter, "PDF_FONT_CANDIDATES", ())
        broken = tmp_path / "broken.ttf"
        broken.write_bytes(b"not a font file at all" * 4)

        assert resolve_pdf_font(str(tmp_path / "missing.ttf")) == "Helvetica"
        assert resolve_pdf_font(str(broken)) == "Helvetica"

    def test_math_rendered_without_delimiters(self):
        pdf = render_pdf(single_question("Find $\\pi r^2$ when $r \\leq 3$."), font_path=VERA_PATH)
        text = pdf_text(pdf)

        assert "$" not in text
        assert "π" in text
        assert "≤" in text

    def test_cjk_text_kept(self, tmp_path):
        font_file = tmp_path / "fallback.ttf"
        font_file.write_bytes(fitz.Font(ordering=0).buffer)
        if resolve_pdf_font(str(font_file)) != "fallback":
            pytest.skip("bundled CJK font is not a TrueType outline font")

        pdf = render_pdf(single_question("这是什么形状?"), font_path=str(font_file))

        assert "形状" in pdf_text(pdf)

    @pytest.mark.skipif(not DEVANAGARI_FONTS, reason="no Devanagari font installed")
    def test_devanagari_text_kept(self):
        pdf = render_pdf(single_question("प्रश्न: 2 + 2 = ?"), font_path=DEVANAGARI_FONTS[0])
        assert "प" in pdf_text(pdf)

    def test_docx_math_rendered(self, tmp_path):
        path = tmp_path / "report.docx"
        path.write_bytes(render_docx(single_question("Simplify $\\frac{1}{2} \\times 4$.")))
        text = "\n".join(p.text for p in Document(str(path)).paragraphs)
        assert "Q1. Simplify 1/2 × 4." in text

"""
PDF to image conversion using PyMuPDF.
"""

import io
import logging
from typing import Generator, List, Optional, Tuple

import fitz  # PyMuPDF
from PIL import Image

from config import JPEG_QUALITY, RENDER_SCALE
from pipeline.models import PageImage
from utils.errors import DocumentLoadError

logger = logging.getLogger(__name__)

LOAD_ERROR_MESSAGE = "Could not process PDF."


class PDFLoader:
    """Handles PDF loading and conversion to page images."""

    def __init__(self, scale: float = RENDER_SCALE, jpeg_quality: int = JPEG_QUALITY):
        self.scale = scale
        self.jpeg_quality = jpeg_quality

    def load_pdf(self, pdf_bytes: bytes) -> fitz.Document:
        """Open a PDF from memory."""
        return fitz.open(stream=pdf_bytes, filetype="pdf")

    def get_page_count(self, doc: fitz.Document) -> int:
        """Get total number of pages."""
        return len(doc)

    def page_to_pil(self, doc: fitz.Document, page_num: int) -> Image.Image:
        """
        Render a single PDF page (0-based) to an RGB PIL Image on white.
        """
        page = doc[page_num]
        mat = fitz.Matrix(self.scale, self.scale)
        pix = page.get_pixmap(matrix=mat, alpha=False)
        return Image.frombytes("RGB", [pix.width, pix.height], pix.samples)

    def page_to_page_image(self, doc: fitz.Document, page_num: int) -> PageImage:
        """Render a page (0-based) to a JPEG PageImage numbered from 1."""
        img = self.page_to_pil(doc, page_num)
        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=self.jpeg_quality)
        return PageImage(
            page_number=page_num + 1,
            data=buffer.getvalue(),
            width=img.width,
            height=img.height,
        )

    def iterate_pages(
        self, doc: fitz.Document, start: int = 0, end: Optional[int] = None
    ) -> Generator[PageImage, None, None]:
        """
        Generator that yields rendered pages for 0-based indices [start, end).
        """
        if end is None:
            end = len(doc)

        for page_num in range(max(0, start), min(end, len(doc))):
            yield self.page_to_page_image(doc, page_num)


def render_pdf(
    pdf_bytes: bytes,
    scale: float = RENDER_SCALE,
    page_range: Optional[Tuple[int, int]] = None,
) -> List[PageImage]:
    """
    Render a PDF to an ordered list of JPEG page images.

    Args:
        pdf_bytes: Raw PDF file contents
        scale: Zoom factor relative to 72 DPI
        page_range: Optional inclusive 1-based (start, end) pages

    Raises:
        DocumentLoadError: if the document cannot be opened, rendered, or has no pages
    """
    loader = PDFLoader(scale=scale)
    try:
        doc = loader.load_pdf(pdf_bytes)
    except Exception as e:
        logger.error("PDF conversion failed: %s", e)
        raise DocumentLoadError(LOAD_ERROR_MESSAGE) from e

    try:
        start, end = 0, loader.get_page_count(doc)
        if page_range:
            start, end = page_range[0] - 1, min(page_range[1], end)
        pages = list(loader.iterate_pages(doc, start, end))
    except Exception as e:
        logger.error("PDF conversion failed: %s", e)
        raise DocumentLoadError(LOAD_ERROR_MESSAGE) from e
    finally:
        doc.close()

    if not pages:
        raise DocumentLoadError(LOAD_ERROR_MESSAGE)

    logger.info("Rendered %d pages at %.1fx", len(pages), scale)
    return pages


def parse_page_range(value: str) -> Tuple[int, int]:
    """Parse "2-10" (or a single page "4") into an inclusive (start, end)."""
    parts = [p.strip() for p in value.split("-")]
    try:
        if len(parts) == 1:
            start = end = int(parts[0])
        elif len(parts) == 2:
            start, end = int(parts[0]), int(parts[1])
        else:
            raise ValueError
    except ValueError:
        raise ValueError(f"Invalid page range: {value}") from None

    if start < 1 or end < start:
        raise ValueError(f"Invalid page range: {value}")
    return start, end

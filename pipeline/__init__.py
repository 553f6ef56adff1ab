"""
MCQ Diagram Extraction Pipeline.

Modules:
- models: Questions, diagram slots, progress and results
- pdf_loader: PDF to image conversion
- vision_extractor: Gemini question extraction and diagram captions
- page_pipeline: Per-page extraction and diagram enrichment
- orchestrator: Whole-document processing with progress
- exporter: JSON, text, PDF and Word reports
"""

from .models import BoundingBox, ExtractionResult, PageImage, ProcessStep, ProgressEvent, Question
from .pdf_loader import PDFLoader, render_pdf
from .vision_extractor import CaptionClient, ExtractionClient
from .page_pipeline import PagePipeline
from .orchestrator import DocumentExtractor, extract_questions
from .exporter import export_result

__all__ = [
    "BoundingBox",
    "ExtractionResult",
    "PageImage",
    "ProcessStep",
    "ProgressEvent",
    "Question",
    "PDFLoader",
    "render_pdf",
    "CaptionClient",
    "ExtractionClient",
    "PagePipeline",
    "DocumentExtractor",
    "extract_questions",
    "export_result",
]

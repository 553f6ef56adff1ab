"""
Document-level extraction: render a PDF, fan pages out through the page
pipeline, and collect one sorted question list with progress reporting.

Concurrency is bounded twice. A shared RequestQueue caps in-flight Gemini
calls (extraction and captions together); a second, smaller queue caps the
pages being worked on at once, which limits how many crops and captions
for different pages are held in memory together.
"""

import asyncio
import gc
import logging
from typing import Callable, List, Optional, Tuple

import psutil

from config import DEFAULT_MODEL, MAX_CONCURRENT_REQUESTS, PAGE_CONCURRENCY
from pipeline.models import (
    ExtractionResult,
    PageImage,
    ProcessStep,
    ProgressEvent,
    Question,
    sort_questions,
)
from pipeline.page_pipeline import PagePipeline
from pipeline.pdf_loader import LOAD_ERROR_MESSAGE, render_pdf
from pipeline.vision_extractor import CaptionClient, ExtractionClient
from utils.errors import ConfigurationError, DocumentLoadError
from utils.gemini_client import GeminiClient
from utils.request_queue import RequestQueue

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]
Rasterizer = Callable[..., List[PageImage]]

LOADING_PROGRESS = 5
CONVERTED_PROGRESS = 15
EXTRACTION_CEILING = 95


def get_memory() -> str:
    """Get current memory usage."""
    mem = psutil.virtual_memory()
    return f"{mem.percent:.1f}%"


class DocumentExtractor:
    """Runs one PDF through the full extraction pipeline."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        max_concurrent: int = MAX_CONCURRENT_REQUESTS,
        page_concurrency: int = PAGE_CONCURRENCY,
        rasterizer: Rasterizer = render_pdf,
        on_progress: Optional[ProgressCallback] = None,
        gemini_client: Optional[GeminiClient] = None,
    ):
        """
        Args:
            api_key: Gemini API key; read from env/settings when omitted
            model: Gemini model name
            max_concurrent: Upper bound on in-flight Gemini requests
            page_concurrency: Upper bound on pages processed at once
            rasterizer: Callable(pdf_bytes, page_range=...) -> List[PageImage]
            on_progress: Called with every ProgressEvent
            gemini_client: Pre-built client; its queue is then the shared one
        """
        if gemini_client is None:
            gemini_client = GeminiClient(
                api_key=api_key,
                model=model,
                queue=RequestQueue(max_concurrent),
            )
        self.client = gemini_client
        self.pipeline = PagePipeline(
            ExtractionClient(gemini_client),
            CaptionClient(gemini_client),
        )
        self.page_concurrency = page_concurrency
        self.rasterizer = rasterizer
        self.on_progress = on_progress
        self._progress = 0.0

    def _emit(self, step: ProcessStep, progress: float, message: str = "") -> None:
        # Progress never moves backwards, whatever order pages finish in
        self._progress = max(self._progress, min(100.0, progress))
        event = ProgressEvent(step=step, progress=self._progress, message=message)
        if self.on_progress:
            self.on_progress(event)

    async def process(
        self,
        pdf_bytes: bytes,
        filename: str = "document.pdf",
        page_range: Optional[Tuple[int, int]] = None,
    ) -> ExtractionResult:
        """
        Extract all questions from a PDF.

        Returns an ExtractionResult in the COMPLETED or ERROR step; a failed
        document carries the error message and no questions.
        """
        self._progress = 0.0
        result = ExtractionResult(filename=filename)
        logger.info("Processing: %s (memory %s)", filename, get_memory())

        self._emit(ProcessStep.LOADING_PDF, LOADING_PROGRESS, "Analyzing PDF document...")
        try:
            pages = await asyncio.to_thread(self.rasterizer, pdf_bytes, page_range=page_range)
        except DocumentLoadError as e:
            return self._fail(result, str(e))
        except Exception as e:
            logger.exception("Rasterizer error: %s", e)
            return self._fail(result, LOAD_ERROR_MESSAGE)

        if not pages:
            return self._fail(result, LOAD_ERROR_MESSAGE)

        result.total_pages = len(pages)
        self._emit(ProcessStep.CONVERTING_PAGES, CONVERTED_PROGRESS, "Processing page layers...")

        try:
            questions = await self._extract_pages(pages)
        except ConfigurationError as e:
            return self._fail(result, str(e))

        result.questions = sort_questions(questions)
        result.step = ProcessStep.COMPLETED
        result.message = f"Extracted {result.total_questions} questions."
        self._emit(ProcessStep.COMPLETED, 100, result.message)

        del pages
        gc.collect()
        logger.info(
            "%s: %d questions from %d pages (memory %s)",
            filename, result.total_questions, result.total_pages, get_memory(),
        )
        return result

    async def _extract_pages(self, pages: List[PageImage]) -> List[Question]:
        total = len(pages)
        step = (EXTRACTION_CEILING - CONVERTED_PROGRESS) / total
        self._emit(
            ProcessStep.EXTRACTING_DATA,
            CONVERTED_PROGRESS,
            f"Extracting content from {total} pages...",
        )

        page_queue = RequestQueue(self.page_concurrency)
        collected: List[Question] = []
        done = 0

        async def run_page(page: PageImage) -> None:
            nonlocal done
            page_questions = await self.pipeline.process(page)
            collected.extend(page_questions)
            done += 1
            self._emit(
                ProcessStep.EXTRACTING_DATA,
                CONVERTED_PROGRESS + step * done,
                f"Processed {done}/{total} pages",
            )

        def page_task(page: PageImage):
            return lambda: run_page(page)

        outcomes = await asyncio.gather(
            *(page_queue.add(page_task(p)) for p in pages),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return collected

    def _fail(self, result: ExtractionResult, message: str) -> ExtractionResult:
        logger.error("Extraction failed for %s: %s", result.filename, message)
        result.questions = []
        result.step = ProcessStep.ERROR
        result.error = message
        result.message = message or "Error occurred during extraction."
        self._emit(ProcessStep.ERROR, self._progress, result.message)
        return result


def extract_questions(
    pdf_bytes: bytes,
    filename: str = "document.pdf",
    page_range: Optional[Tuple[int, int]] = None,
    **kwargs,
) -> ExtractionResult:
    """Synchronous entry point: run DocumentExtractor.process on a fresh event loop."""
    extractor = DocumentExtractor(**kwargs)
    return asyncio.run(extractor.process(pdf_bytes, filename, page_range))

"""
Per-page processing: extract questions, then crop and caption every diagram.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from pipeline.models import BoundingBox, DiagramSlot, PageImage, Question
from pipeline.vision_extractor import CaptionClient, ExtractionClient
from utils.errors import ConfigurationError
from utils.image_utils import crop_diagram

logger = logging.getLogger(__name__)

Cropper = Callable[[bytes, Optional[BoundingBox], int, int], Awaitable[Optional[str]]]


class PagePipeline:
    """Extraction followed by concurrent diagram enrichment for one page at a time."""

    def __init__(
        self,
        extractor: ExtractionClient,
        captioner: CaptionClient,
        cropper: Cropper = crop_diagram,
    ):
        self.extractor = extractor
        self.captioner = captioner
        self.cropper = cropper

    async def process(self, page: PageImage) -> List[Question]:
        """
        Extract and enrich all questions on a page.

        A failed extraction yields no questions for this page; only a
        missing API key propagates.
        """
        try:
            questions = await self.extractor.extract_page(page)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error("Error processing page %d: %s", page.page_number, e)
            return []

        await asyncio.gather(*(self.enrich_question(q, page) for q in questions))
        return questions

    async def enrich_question(self, question: Question, page: PageImage) -> None:
        """Crop and caption every diagram slot with a bounding box, concurrently."""
        jobs = [
            self._enrich_slot(question, label, slot, page)
            for label, slot in question.diagram_slots()
            if slot.bbox is not None
        ]
        if jobs:
            await asyncio.gather(*jobs)

    async def _enrich_slot(
        self,
        question: Question,
        label: Optional[str],
        slot: DiagramSlot,
        page: PageImage,
    ) -> None:
        where = f"Q{question.question_number}" + (f" option {label}" if label else "")
        try:
            image_url = await self.cropper(page.data, slot.bbox, page.width, page.height)
            if image_url is None:
                logger.debug("Page %d %s: empty crop", page.page_number, where)
                return
            caption = await self.captioner.caption(image_url)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.warning("Page %d %s: diagram enrichment failed: %s", page.page_number, where, e)
            return

        slot.image_url = image_url
        slot.caption = caption
        logger.debug("Page %d %s: diagram attached", page.page_number, where)

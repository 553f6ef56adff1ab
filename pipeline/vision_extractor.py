"""
Gemini vision extraction of MCQs from page images, and captioning of diagram crops.
"""

import json
import logging
import re
from typing import List, Optional, Union

from google.genai import types

from config import (
    CAPTION_PROMPT,
    CAPTION_SYSTEM_INSTRUCTION,
    EXTRACTION_PROMPT,
    OPTION_LABELS,
    SYSTEM_INSTRUCTION,
)
from pipeline.models import PageImage, Question
from utils.gemini_client import GeminiClient
from utils.image_utils import decode_data_url

logger = logging.getLogger(__name__)


def _bbox_schema(description: Optional[str] = None) -> types.Schema:
    return types.Schema(
        type=types.Type.ARRAY,
        items=types.Schema(type=types.Type.NUMBER),
        description=description or "Bounding box [ymin, xmin, ymax, xmax] normalized to 0-1000.",
    )


def build_response_schema() -> types.Schema:
    """Structured-output contract: every question carries options A-D."""
    option_properties = {
        label: types.Schema(type=types.Type.STRING) for label in OPTION_LABELS
    }
    for label in OPTION_LABELS:
        option_properties[f"{label}_diagram_bbox"] = _bbox_schema(
            f"Bounding box of the diagram inside option {label}."
        )

    question = types.Schema(
        type=types.Type.OBJECT,
        properties={
            "question_number": types.Schema(type=types.Type.NUMBER),
            "question_text": types.Schema(type=types.Type.STRING),
            "has_diagram": types.Schema(type=types.Type.BOOLEAN),
            "diagram_description": types.Schema(type=types.Type.STRING),
            "diagram_bbox": _bbox_schema("Bounding box of the main question diagram."),
            "options": types.Schema(
                type=types.Type.OBJECT,
                properties=option_properties,
                required=list(OPTION_LABELS),
            ),
        },
        required=["question_number", "question_text", "has_diagram", "options"],
    )

    return types.Schema(
        type=types.Type.OBJECT,
        properties={"questions": types.Schema(type=types.Type.ARRAY, items=question)},
        required=["questions"],
    )


RESPONSE_SCHEMA = build_response_schema()


def parse_questions(response: str, page_number: int) -> List[Question]:
    """
    Parse the model's JSON body into Questions.

    Empty or malformed bodies give an empty list.
    """
    text = (response or "").strip()
    if not text:
        return []

    # Strip markdown code fences if present
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text)
        text = re.sub(r"\s*```$", "", text)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Page %d: JSON parse error: %s", page_number, e)
        return []

    if not isinstance(data, dict):
        logger.warning("Page %d: unexpected response type %s", page_number, type(data).__name__)
        return []

    items = data.get("questions") or []
    if not isinstance(items, list):
        return []

    return [
        Question.from_response(item, page_number, index)
        for index, item in enumerate(items)
        if isinstance(item, dict)
    ]


class ExtractionClient:
    """Extracts the questions on one page."""

    def __init__(self, client: GeminiClient):
        self.client = client

    async def extract_page(self, page: PageImage) -> List[Question]:
        """
        Extract every question on a page.

        Raises ConfigurationError without a key; rate-limit and transport
        errors that outlast the retry budget propagate.
        """
        response = await self.client.generate(
            page.data,
            "image/jpeg",
            EXTRACTION_PROMPT,
            system_instruction=SYSTEM_INSTRUCTION,
            response_schema=RESPONSE_SCHEMA,
        )
        questions = parse_questions(response, page.page_number)
        logger.info("Page %d: found %d questions", page.page_number, len(questions))
        return questions


class CaptionClient:
    """Transcribes or briefly describes a cropped diagram."""

    def __init__(self, client: GeminiClient):
        self.client = client

    async def caption(self, image: Union[str, bytes]) -> str:
        """
        Caption a crop given as a data URL or PNG bytes.

        Returns "" when the model sends no text.
        """
        if isinstance(image, str):
            data, mime_type = decode_data_url(image)
        else:
            data, mime_type = image, "image/png"

        text = await self.client.generate(
            data,
            mime_type,
            CAPTION_PROMPT,
            system_instruction=CAPTION_SYSTEM_INSTRUCTION,
        )
        return text.strip()

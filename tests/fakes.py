"""
Test doubles: a fake google-genai client and synthetic page images.
"""

import json
from types import SimpleNamespace

import cv2
import numpy as np

from pipeline.models import PageImage


class FakeAPIError(Exception):
    """Stands in for google.genai.errors.APIError."""

    def __init__(self, code: int, message: str = ""):
        super().__init__(message or f"{code} error")
        self.code = code


class FakeModels:
    """Implements `aio.models.generate_content` by delegating to a responder.

    The responder receives (image_bytes, prompt, config) and returns the
    response text, or raises.
    """

    def __init__(self, responder):
        self.responder = responder
        self.calls = []

    async def generate_content(self, model, contents, config):
        part, prompt = contents
        image = part.inline_data.data
        self.calls.append(SimpleNamespace(model=model, image=image, prompt=prompt, config=config))
        return SimpleNamespace(text=self.responder(image, prompt, config))


class FakeGenAIClient:
    def __init__(self, responder):
        self.models = FakeModels(responder)
        self.aio = SimpleNamespace(models=self.models)

    @property
    def calls(self):
        return self.models.calls


def is_extraction(config) -> bool:
    return config.response_schema is not None


def questions_json(*questions) -> str:
    return json.dumps({"questions": list(questions)})


def make_question(number=1, text="What is 2 + 2?", **extra) -> dict:
    q = {
        "question_number": number,
        "question_text": text,
        "has_diagram": False,
        "options": {"A": "3", "B": "4", "C": "5", "D": "6"},
    }
    q.update(extra)
    return q


def make_page_image(page_number=1, width=400, height=600) -> PageImage:
    """A white JPEG page with a black block in the top half."""
    image = np.full((height, width, 3), 255, dtype=np.uint8)
    cv2.rectangle(image, (40, 60), (120, 120), (0, 0, 0), thickness=-1)
    ok, buffer = cv2.imencode(".jpg", image)
    assert ok
    return PageImage(page_number=page_number, data=buffer.tobytes(), width=width, height=height)

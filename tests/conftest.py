"""
Shared fixtures.
"""

import pytest

from tests.fakes import FakeGenAIClient, make_page_image
from utils.gemini_client import GeminiClient
from utils.request_queue import RequestQueue


@pytest.fixture
def page_image():
    return make_page_image()


@pytest.fixture
def make_client():
    """Build a GeminiClient over a fake genai client; retries without waiting."""

    def factory(responder, max_concurrent=10, max_retries=2):
        fake = FakeGenAIClient(responder)
        client = GeminiClient(
            api_key="test-key",
            queue=RequestQueue(max_concurrent),
            max_retries=max_retries,
            initial_delay=0,
            client=fake,
        )
        return client, fake

    return factory
